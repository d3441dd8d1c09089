"""Daily attendance bonus, one per calendar day in the game's timezone."""

import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from flask import current_app

from app import db
from app.models import User


def local_date(now: Optional[float] = None, offset_hours: int = 9) -> str:
    moment = datetime.fromtimestamp(time.time() if now is None else now, tz=timezone.utc)
    return (moment + timedelta(hours=offset_hours)).strftime('%Y-%m-%d')


def check_attendance(user: User, now: Optional[float] = None) -> int:
    """Credit today's reward once. Returns the amount granted (0 if already claimed)."""
    today = local_date(now, int(current_app.config.get('ATTENDANCE_UTC_OFFSET_HOURS', 9)))
    if user.last_attendance_date == today:
        return 0
    reward = int(current_app.config.get('ATTENDANCE_REWARD', 100))
    user.last_attendance_date = today
    user.balance = (user.balance or 0) + reward
    db.session.add(user)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info(f"[attendance] user={user.id} date={today} reward={reward} balance={user.balance}")
    return reward
