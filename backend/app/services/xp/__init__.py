"""Experience and leveling.

Pure calculations live in ``leveling``; ``award_xp`` persists the result
for a user. Only the primary tab of a user should call it.
"""

from flask import current_app

from app import db
from app.models import User
from .leveling import XpLevel, apply_elapsed_xp, load_xp_table, parse_xp_table


def award_xp(user: User, elapsed: int) -> User:
    """Grant ``elapsed`` seconds of xp, clamped to the configured tick cap."""
    cap = int(current_app.config.get('XP_MAX_TICK_SEC', 60))
    elapsed = min(max(0, int(elapsed)), cap)
    table = load_xp_table(current_app.config.get('XP_TABLE_PATH'))
    previous_level = user.level or 1
    user.xp, user.level = apply_elapsed_xp(user.xp, user.level, elapsed, table)
    db.session.add(user)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info(f"[xp-tick] user={user.id} elapsed={elapsed}s xp={user.xp} level={user.level}")
    if user.level != previous_level:
        current_app.logger.info(f"[level-up] user={user.id} level {previous_level} -> {user.level}")
    return user


__all__ = ['XpLevel', 'apply_elapsed_xp', 'award_xp', 'load_xp_table', 'parse_xp_table']
