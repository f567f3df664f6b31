"""
Break Notifier API

Notification center endpoints (list, read, clear) plus read-only views of
the break windows and due events the schedulers work from.
"""

from fastapi import FastAPI, HTTPException, Depends, Header
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import date, datetime, timezone

from config.settings import BreakRulesConfig, get_config
from core.database import get_db
from core.evaluator import NotificationEvaluator
from core.ledger import LedgerKey
from core.notifications import NotificationSink
from core.break_reminders import BreakReminderJob
from core.shifts import calculate_break_windows, classify_shift

app = FastAPI(
    title="Break Notifier API",
    description="Notification center and break schedule API",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==========================================
# MODELS
# ==========================================

class NotificationCreate(BaseModel):
    user_id: int
    category: str = Field(..., min_length=1, max_length=50)
    type: str = Field(default="info", pattern="^(info|success|warning|error)$")
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    payload: Dict[str, Any]

# ==========================================
# DEPENDENCIES
# ==========================================

def get_user_id(x_user_id: int = Header(...)):
    """Extract the acting user from header"""
    return x_user_id


def get_rules() -> BreakRulesConfig:
    return get_config().rules


def _notification_dict(notification) -> Dict[str, Any]:
    data = dict(notification.__dict__)
    if notification.created_at is not None:
        data["created_at"] = notification.created_at.isoformat()
    return data

# ==========================================
# ROUTES: NOTIFICATIONS
# ==========================================

@app.get("/notifications", tags=["Notifications"])
async def list_notifications(
    category: Optional[str] = None,
    include_cleared: bool = False,
    limit: int = 50,
    user_id: int = Depends(get_user_id)
):
    """List the caller's notifications, newest first"""
    sink = NotificationSink(get_db())
    notifications = sink.list_for_user(user_id, category=category, include_cleared=include_cleared, limit=limit)
    return [_notification_dict(n) for n in notifications]

@app.post("/notifications", tags=["Notifications"])
async def create_notification(notification: NotificationCreate):
    """Create a notification directly (announcements, manual tests).

    Break notifications go through the same ledger as the scheduler, so a
    repeated request for the same break event is rejected with 409.
    """
    sink = NotificationSink(get_db())
    try:
        key = None
        if notification.category == "break":
            key = LedgerKey.from_break_payload(notification.user_id, notification.payload)
        notification_id = sink.create_notification(
            user_id=notification.user_id,
            category=notification.category,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            payload=notification.payload,
            key=key
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if notification_id is None:
        raise HTTPException(status_code=409, detail="Notification already sent")
    return {"id": notification_id}

@app.post("/notifications/{notification_id}/read", tags=["Notifications"])
async def mark_notification_read(notification_id: int, user_id: int = Depends(get_user_id)):
    sink = NotificationSink(get_db())
    notification = sink.mark_read(notification_id, user_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return _notification_dict(notification)

@app.post("/notifications/{notification_id}/clear", tags=["Notifications"])
async def clear_notification(notification_id: int, user_id: int = Depends(get_user_id)):
    """Soft-delete a notification"""
    sink = NotificationSink(get_db())
    notification = sink.clear(notification_id, user_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return _notification_dict(notification)

# ==========================================
# ROUTES: BREAKS
# ==========================================

@app.get("/agents/{agent_id}/break-windows", tags=["Breaks"])
async def get_break_windows(agent_id: int, day: Optional[date] = None):
    """Break windows for the shift starting on `day` (default: today)"""
    db = get_db()
    rules = get_rules()
    agent = db.get_agent(agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    evaluator = NotificationEvaluator(rules)
    day = day or datetime.now(evaluator.tz).date()
    shift_class = classify_shift(agent.shift_time, agent.shift_period)
    return {
        "agent_id": agent.id,
        "shift_time": agent.shift_time,
        "shift_class": shift_class.value if shift_class else None,
        "windows": [w.as_dict() for w in calculate_break_windows(agent, day, evaluator.tz)]
    }

@app.get("/agents/{agent_id}/due-events", tags=["Breaks"])
async def get_due_events(agent_id: int, at: Optional[datetime] = None):
    """Which break notifications would be due at `at` (default: now). Sends nothing."""
    db = get_db()
    agent = db.get_agent(agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    if at is None:
        at = datetime.now(timezone.utc)
    elif at.tzinfo is None:
        raise HTTPException(status_code=400, detail="`at` must include a timezone offset")
    job = BreakReminderJob(db, NotificationEvaluator(get_rules()))
    sessions = db.get_break_sessions(job.sessions_since(at), agent_id=agent.id)
    return [
        {
            "event_kind": event.kind.value,
            "break_type": event.window.break_type.value,
            "shift_day": event.window.day.isoformat(),
            "slot": event.slot,
        }
        for event in job.due_events(agent, at, sessions)
    ]

# ==========================================
# ROUTES: HEALTH
# ==========================================

@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint"""
    db = get_db()
    try:
        db.ping()
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": "connected"
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": f"error: {str(e)}"
        }

@app.get("/", tags=["System"])
async def root():
    """API root"""
    return {
        "name": "Break Notifier API",
        "version": "1.0.0",
        "docs": "/docs"
    }


def run():
    import uvicorn
    from core.logging_setup import configure_logging
    configure_logging(get_config().log_level)
    uvicorn.run(app, host="0.0.0.0", port=8002)


if __name__ == "__main__":
    run()
