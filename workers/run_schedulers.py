"""
Scheduler entry point.

Runs the break reminder poller (every 2 seconds by default), the task
notification poller (every 5 minutes) and the meeting and event pollers
(every 10 seconds) in one process. Start ONE of these per database; a
second process will find the leases taken and idle.
"""

import argparse
import asyncio
import logging
import sys
from typing import List

from config.settings import get_config
from core.break_reminders import BreakReminderJob
from core.database import get_db
from core.evaluator import NotificationEvaluator
from core.events import EventReminderJob
from core.logging_setup import configure_logging
from core.meetings import MeetingJob
from core.notifications import NotificationSink
from core.scheduler import PollingScheduler, SchedulerLease, install_signal_handlers
from core.task_notifications import TaskNotificationJob

logger = logging.getLogger(__name__)

SCHEDULER_CHOICES = ["break", "task", "meeting", "event"]


def build_schedulers(only: str = None, config=None, db=None) -> List[PollingScheduler]:
    config = config or get_config()
    db = db or get_db()
    sink = NotificationSink(db)
    tz = config.rules.timezone

    jobs = []
    if only in (None, "break"):
        jobs.append((
            BreakReminderJob(db, NotificationEvaluator(config.rules), sink=sink),
            config.scheduler.break_reminder_interval_seconds,
        ))
    if only in (None, "task"):
        jobs.append((
            TaskNotificationJob(db, tz=tz, sink=sink),
            config.scheduler.task_notification_interval_seconds,
        ))
    if only in (None, "meeting"):
        jobs.append((
            MeetingJob(db, tz=tz, reminder_lead_minutes=config.scheduler.meeting_reminder_lead_minutes, sink=sink),
            config.scheduler.meeting_interval_seconds,
        ))
    if only in (None, "event"):
        jobs.append((
            EventReminderJob(db, tz=tz, sink=sink),
            config.scheduler.event_interval_seconds,
        ))

    schedulers = []
    for job, interval in jobs:
        lease = None
        if config.scheduler.use_lease:
            lease = SchedulerLease(db, job.name, ttl_seconds=config.scheduler.lease_ttl_for(interval))
        schedulers.append(PollingScheduler(job.name, job, interval, lease=lease))
    return schedulers


async def run(schedulers: List[PollingScheduler]):
    install_signal_handlers(schedulers)
    await asyncio.gather(*(s.run_forever() for s in schedulers))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run break, task, meeting and event notification schedulers")
    parser.add_argument("--only", choices=SCHEDULER_CHOICES, help="Run a single scheduler")
    parser.add_argument("--once", action="store_true", help="Run one tick of each scheduler and exit")
    args = parser.parse_args(argv)

    try:
        config = get_config()
        configure_logging(config.log_level)
        schedulers = build_schedulers(args.only, config=config)
        if args.once:
            for scheduler in schedulers:
                sent = scheduler.run_once()
                print(f"{scheduler.name}: {sent if sent is not None else 'skipped'}")
                if scheduler.lease is not None:
                    scheduler.lease.release()
            return 1 if any(s.status().failures for s in schedulers) else 0
        asyncio.run(run(schedulers))
        return 0
    except Exception as e:
        logger.error("Scheduler failed: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
