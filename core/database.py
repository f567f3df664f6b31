"""
Break Notifier Database Client

Single source of truth for all database operations.
All reads and writes of agents, break sessions, notifications and the
notification ledger go through this module.
"""

import logging
import os
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any

from supabase import create_client, Client

from config.settings import DatabaseConfig
from core.models import Agent, BreakSession, Event, Meeting, Notification, Task

logger = logging.getLogger(__name__)


class WorkforceDB:
    """Database client for the break notifier"""

    def __init__(self, config: DatabaseConfig = None):
        if config is not None:
            self.url, self.key = config.url, config.key
        else:
            self.url = os.environ.get('SUPABASE_URL', '').strip().strip('"').strip("'")
            self.key = os.environ.get('SUPABASE_KEY', '').strip().strip('"').strip("'")
        self._client: Optional[Client] = None
        logger.debug("SUPABASE_URL: %s...", self.url[:50] if self.url else 'NOT SET')

    @property
    def client(self) -> Client:
        if self._client is None:
            if not self.url or not self.key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY are required")
            self._client = create_client(self.url, self.key)
        return self._client

    # ==========================================
    # AGENTS
    # ==========================================

    def get_active_agents(self) -> List[Agent]:
        """All active agents with their shift configuration"""
        result = self.client.table("agent_shifts")\
            .select("*")\
            .eq("is_active", True)\
            .execute()
        return [Agent.from_row(row) for row in result.data]

    def get_agent(self, agent_id: int) -> Optional[Agent]:
        result = self.client.table("agent_shifts").select("*").eq("id", agent_id).execute()
        return Agent.from_row(result.data[0]) if result.data else None

    # ==========================================
    # BREAK SESSIONS (read-only here)
    # ==========================================

    def get_break_sessions(self, since: datetime, agent_id: int = None) -> List[BreakSession]:
        """Break sessions started at or after `since`"""
        query = self.client.table("break_sessions")\
            .select("*")\
            .gte("start_time", since.isoformat())
        if agent_id is not None:
            query = query.eq("agent_user_id", agent_id)
        result = query.order("start_time").execute()
        return [BreakSession.from_row(row) for row in result.data]

    # ==========================================
    # NOTIFICATIONS
    # ==========================================

    def insert_notification(self, data: Dict[str, Any]) -> Dict:
        """Insert a notification row; the table trigger publishes it"""
        data = dict(data)
        data.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        result = self.client.table("notifications").insert(data).execute()
        return result.data[0] if result.data else data

    def get_notification(self, notification_id: int) -> Optional[Notification]:
        result = self.client.table("notifications").select("*").eq("id", notification_id).execute()
        return Notification.from_row(result.data[0]) if result.data else None

    def get_notifications(
        self,
        user_id: int,
        category: str = None,
        include_cleared: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        query = self.client.table("notifications").select("*").eq("user_id", user_id)
        if category:
            query = query.eq("category", category)
        if not include_cleared:
            query = query.eq("clear", False)
        result = query.order("created_at", desc=True).limit(limit).execute()
        return [Notification.from_row(row) for row in result.data]

    def update_notification(self, notification_id: int, user_id: int, **updates) -> Optional[Notification]:
        result = self.client.table("notifications")\
            .update(updates)\
            .eq("id", notification_id)\
            .eq("user_id", user_id)\
            .execute()
        return Notification.from_row(result.data[0]) if result.data else None

    # ==========================================
    # LEDGER
    # ==========================================

    def ledger_exists(self, key: Dict[str, Any]) -> bool:
        query = self.client.table("notification_ledger").select("agent_id")
        for column, value in key.items():
            query = query.eq(column, value)
        result = query.limit(1).execute()
        return bool(result.data)

    def insert_notification_once(self, key: Dict[str, Any], data: Dict[str, Any]) -> Optional[Dict]:
        """Claim the ledger key and insert the notification in one transaction.

        Returns the notification row, or None when the key already exists.
        """
        result = self.client.rpc("send_notification_once", {
            "p_key": key,
            "p_notification": data
        }).execute()
        return result.data or None

    # ==========================================
    # TASKS
    # ==========================================

    def get_active_tasks_due_before(self, before: datetime) -> List[Task]:
        """Active tasks with a due date earlier than `before`"""
        result = self.client.table("tasks")\
            .select("id,user_id,title,due_date,status")\
            .eq("status", "active")\
            .not_.is_("due_date", "null")\
            .lte("due_date", before.isoformat())\
            .order("due_date")\
            .execute()
        return [Task.from_row(row) for row in result.data]

    # ==========================================
    # MEETINGS & EVENTS
    # ==========================================

    def get_scheduled_meetings_before(self, before: datetime) -> List[Meeting]:
        """Scheduled (not yet started) meetings starting at or before `before`"""
        result = self.client.table("meetings")\
            .select("*")\
            .eq("status", "scheduled")\
            .lte("start_time", before.isoformat())\
            .order("start_time")\
            .execute()
        return [Meeting.from_row(row) for row in result.data]

    def start_meeting(self, meeting_id: int) -> bool:
        """Move a meeting to in-progress; False if it was no longer scheduled"""
        result = self.client.table("meetings")\
            .update({"status": "in-progress", "is_in_meeting": True})\
            .eq("id", meeting_id)\
            .eq("status", "scheduled")\
            .execute()
        return bool(result.data)

    def get_events_on(self, day: date) -> List[Event]:
        result = self.client.table("events")\
            .select("*")\
            .eq("event_date", day.isoformat())\
            .neq("status", "cancelled")\
            .order("start_time")\
            .execute()
        return [Event.from_row(row) for row in result.data]

    def get_active_user_ids(self) -> List[int]:
        result = self.client.table("users").select("id").eq("is_active", True).execute()
        return [row["id"] for row in result.data]

    # ==========================================
    # SCHEDULER LEASE
    # ==========================================

    def acquire_lease(self, name: str, holder: str, ttl_seconds: int) -> bool:
        result = self.client.rpc("acquire_scheduler_lease", {
            "p_name": name,
            "p_holder": holder,
            "p_ttl_seconds": ttl_seconds
        }).execute()
        return bool(result.data)

    def release_lease(self, name: str, holder: str):
        self.client.rpc("release_scheduler_lease", {
            "p_name": name,
            "p_holder": holder
        }).execute()

    # ==========================================
    # HEALTH
    # ==========================================

    def ping(self):
        self.client.table("notifications").select("id").limit(1).execute()


# Singleton instance
_db: Optional[WorkforceDB] = None

def get_db() -> WorkforceDB:
    global _db
    if _db is None:
        from config.settings import get_config
        _db = WorkforceDB(get_config().db)
    return _db
