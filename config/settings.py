# Break Notifier Configuration
# All secrets come from environment variables

import math
import os
from typing import Optional
from dataclasses import dataclass, field

from dotenv import load_dotenv


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class DatabaseConfig:
    url: str
    key: str
    # Direct Postgres connection, only needed for migrations
    database_url: Optional[str] = None
    verify_tls: bool = True

    @classmethod
    def from_env(cls) -> 'DatabaseConfig':
        url = os.environ.get('SUPABASE_URL', '').strip().strip('"').strip("'")
        key = os.environ.get('SUPABASE_KEY', '').strip().strip('"').strip("'")
        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY are required")
        env = os.environ.get('APP_ENV') or os.environ.get('NODE_ENV', 'development')
        return cls(
            url=url,
            key=key,
            database_url=os.environ.get('DATABASE_URL'),
            verify_tls=env != 'production'
        )


@dataclass
class BreakRulesConfig:
    """Timing rules for break notifications, in minutes"""

    timezone: str = "Asia/Manila"
    available_soon_lead: int = 15
    reminder_interval: int = 30
    reminder_tolerance: int = 2
    ending_soon_min: int = 12
    ending_soon_max: int = 18
    missed_grace: int = 60

    @classmethod
    def from_env(cls) -> 'BreakRulesConfig':
        rules = cls(
            timezone=os.environ.get('BREAK_TIMEZONE', 'Asia/Manila'),
            available_soon_lead=_env_int('BREAK_AVAILABLE_SOON_LEAD_MINUTES', 15),
            reminder_interval=_env_int('BREAK_REMINDER_INTERVAL_MINUTES', 30),
            reminder_tolerance=_env_int('BREAK_REMINDER_TOLERANCE_MINUTES', 2),
            ending_soon_min=_env_int('BREAK_ENDING_SOON_MIN_MINUTES', 12),
            ending_soon_max=_env_int('BREAK_ENDING_SOON_MAX_MINUTES', 18),
            missed_grace=_env_int('BREAK_MISSED_GRACE_MINUTES', 60),
        )
        rules.validate()
        return rules

    def validate(self):
        if self.reminder_interval <= 0:
            raise ValueError("reminder interval must be positive")
        if self.reminder_tolerance * 2 >= self.reminder_interval:
            raise ValueError("reminder tolerance must be less than half the reminder interval")
        if self.ending_soon_min > self.ending_soon_max:
            raise ValueError("ending soon band is inverted")
        if self.available_soon_lead <= 0:
            raise ValueError("available soon lead must be positive")


@dataclass
class SchedulerConfig:
    break_reminder_interval_seconds: int = 2
    task_notification_interval_seconds: int = 300
    meeting_interval_seconds: int = 10
    event_interval_seconds: int = 10
    meeting_reminder_lead_minutes: int = 60
    # Floor; each lease lives at least two of its scheduler's intervals
    lease_ttl_seconds: int = 30
    use_lease: bool = True

    @classmethod
    def from_env(cls) -> 'SchedulerConfig':
        return cls(
            break_reminder_interval_seconds=_env_int('BREAK_REMINDER_INTERVAL_SECONDS', 2),
            task_notification_interval_seconds=_env_int('TASK_NOTIFICATION_INTERVAL_SECONDS', 300),
            meeting_interval_seconds=_env_int('MEETING_INTERVAL_SECONDS', 10),
            event_interval_seconds=_env_int('EVENT_REMINDER_INTERVAL_SECONDS', 10),
            meeting_reminder_lead_minutes=_env_int('MEETING_REMINDER_LEAD_MINUTES', 60),
            lease_ttl_seconds=_env_int('SCHEDULER_LEASE_TTL_SECONDS', 30),
            use_lease=os.environ.get('SCHEDULER_USE_LEASE', 'true').lower() not in ('0', 'false', 'no')
        )

    def lease_ttl_for(self, interval_seconds: float) -> int:
        """Lease TTL for a scheduler ticking every `interval_seconds`.

        The lease is renewed once per tick, so it must outlive the gap
        between two ticks or a second process takes over in between.
        """
        return max(self.lease_ttl_seconds, math.ceil(2 * interval_seconds))


@dataclass
class NotifierConfig:
    """Central configuration for the break notifier"""

    # Database
    db: DatabaseConfig

    rules: BreakRulesConfig = field(default_factory=BreakRulesConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)

    # Logging
    log_level: str = "INFO"

    @classmethod
    def load(cls, env_file: Optional[str] = None) -> 'NotifierConfig':
        """Load configuration from environment"""
        load_dotenv(env_file or os.environ.get('NOTIFIER_ENV_FILE', '.env'))
        return cls(
            db=DatabaseConfig.from_env(),
            rules=BreakRulesConfig.from_env(),
            scheduler=SchedulerConfig.from_env(),
            log_level=os.environ.get('LOG_LEVEL', 'INFO')
        )


# Singleton config instance
_config: Optional[NotifierConfig] = None

def get_config() -> NotifierConfig:
    global _config
    if _config is None:
        _config = NotifierConfig.load()
    return _config


def reset_config():
    global _config
    _config = None
