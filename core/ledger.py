"""
Deduplication Ledger

One row per (agent, subject, event kind, day, slot) in notification_ledger.
The table's primary key is what guarantees at-most-once delivery; was_sent()
only saves a round trip when the row is already there.

The claim and the notification it guards are written by a single database
function (send_notification_once), so a claim can never exist without its
notification and a committed notification always has its claim.
"""

import logging
from datetime import date
from typing import Optional, Dict, Any, Union
from dataclasses import dataclass

from core.models import BREAK_EVENT_KINDS, BreakType, EventKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerKey:
    agent_id: int
    subject: str
    event_kind: EventKind
    day: date
    # Reminder number for recurring reminders, 0 otherwise
    slot: int = 0

    @classmethod
    def for_break(
        cls,
        agent_id: int,
        break_type: BreakType,
        event_kind: EventKind,
        day: date,
        slot: int = 0
    ) -> 'LedgerKey':
        return cls(agent_id, break_type.value, event_kind, day, slot)

    @classmethod
    def for_subject(cls, user_id: int, kind: str, subject_id: Union[int, str], event_kind: EventKind, day: date) -> 'LedgerKey':
        return cls(user_id, f"{kind}:{subject_id}", event_kind, day)

    @classmethod
    def for_task(cls, user_id: int, task_id: Union[int, str], event_kind: EventKind, day: date) -> 'LedgerKey':
        return cls.for_subject(user_id, "task", task_id, event_kind, day)

    @classmethod
    def from_break_payload(cls, user_id: int, payload: Dict[str, Any]) -> 'LedgerKey':
        """Key for a break notification written outside the schedulers"""
        try:
            break_type = BreakType(payload["break_type"])
            event_kind = EventKind(payload["reminder_type"])
            day = date.fromisoformat(str(payload["shift_day"]))
            slot = int(payload.get("reminder_number", 0))
        except (KeyError, ValueError, TypeError) as e:
            raise ValueError(
                "break notifications need break_type, reminder_type and shift_day in the payload"
            ) from e
        if event_kind not in BREAK_EVENT_KINDS:
            raise ValueError(f"{event_kind.value} is not a break reminder")
        return cls.for_break(user_id, break_type, event_kind, day, slot)

    def as_row(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "subject": self.subject,
            "event_kind": self.event_kind.value,
            "day": self.day.isoformat(),
            "slot": self.slot,
        }


class DeduplicationLedger:
    def __init__(self, db):
        self.db = db

    def was_sent(self, key: LedgerKey) -> bool:
        return self.db.ledger_exists(key.as_row())

    def mark_sent(self, key: LedgerKey, notification: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Claim the key and store its notification in one transaction.

        Returns the stored notification row, or None when the key was
        already claimed (nothing is written in that case).
        """
        row = self.db.insert_notification_once(key.as_row(), notification)
        if row is None:
            logger.debug("Ledger key already claimed: %s", key)
        return row
