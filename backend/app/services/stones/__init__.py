"""The stone a user is currently growing.

Each user has at most one current stone. It grows while the user's
primary tab ticks; a client may also push a snapshot of its state.
"""

import uuid
from typing import Any, Dict, Optional

from flask import current_app

from app import db
from app.models import Stone, User
from .growth import BASE_SIZE, STONE_TYPES, grown_size, random_stone_type


class StoneStateError(ValueError):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


def _commit() -> None:
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def current_stone(user: User) -> Optional[Stone]:
    return user.stones.filter_by(is_current=True).first()


def start_stone(user: User, stone_type: Optional[str] = None, rng=None) -> Stone:
    """Retire the current stone, if any, and begin a fresh one."""
    stone_type = stone_type or random_stone_type(rng)
    if stone_type not in STONE_TYPES:
        raise StoneStateError(f"unknown stone type: {stone_type}")
    user.stones.filter_by(is_current=True).update({'is_current': False})
    stone = Stone(
        id=str(uuid.uuid4()),
        user_id=user.id,
        type=stone_type,
        name=stone_type,
        size=BASE_SIZE,
        total_elapsed=0,
        is_current=True,
    )
    db.session.add(stone)
    _commit()
    current_app.logger.info(f"[stone-start] user={user.id} stone={stone.id} type={stone_type}")
    return stone


def grow_stone(user: User, elapsed: int) -> Stone:
    """Add ``elapsed`` seconds of growth, clamped to the configured tick cap."""
    cap = int(current_app.config.get('STONE_MAX_TICK_SEC', 60))
    growth_sec = int(current_app.config.get('STONE_GROWTH_SEC', 60))
    elapsed = min(max(0, int(elapsed)), cap)
    stone = current_stone(user) or start_stone(user)
    stone.total_elapsed = (stone.total_elapsed or 0) + elapsed
    stone.size = max(stone.size or BASE_SIZE, grown_size(stone.total_elapsed, growth_sec))
    db.session.add(stone)
    _commit()
    current_app.logger.info(
        f"[stone-tick] user={user.id} stone={stone.id} elapsed={elapsed}s total={stone.total_elapsed}s size={stone.size}"
    )
    return stone


def save_stone_state(user: User, payload: Dict[str, Any]) -> Stone:
    """Insert or update one of the user's stones from a client snapshot.

    A new id becomes the current stone; an id owned by someone else is
    reported as not found.
    """
    stone_id = payload.get('id')
    if not isinstance(stone_id, str) or not stone_id or len(stone_id) > 36:
        raise StoneStateError('id is required')
    stone_type = payload.get('type')
    if stone_type not in STONE_TYPES:
        raise StoneStateError(f"unknown stone type: {stone_type}")
    try:
        size = int(payload.get('size', BASE_SIZE))
        total_elapsed = int(payload.get('total_elapsed', 0))
    except (TypeError, ValueError):
        raise StoneStateError('size and total_elapsed must be integers')
    if size < BASE_SIZE or total_elapsed < 0:
        raise StoneStateError('size must be positive and total_elapsed not negative')

    stone = db.session.get(Stone, stone_id)
    if stone is not None and stone.user_id != user.id:
        raise StoneStateError('stone not found', status=404)
    if stone is None:
        user.stones.filter_by(is_current=True).update({'is_current': False})
        stone = Stone(id=stone_id, user_id=user.id, is_current=True)
    stone.type = stone_type
    stone.name = payload.get('name') or stone_type
    stone.size = size
    stone.total_elapsed = total_elapsed
    db.session.add(stone)
    _commit()
    current_app.logger.info(f"[stone-save] user={user.id} stone={stone.id} size={size} total={total_elapsed}s")
    return stone


__all__ = [
    'STONE_TYPES',
    'StoneStateError',
    'current_stone',
    'grow_stone',
    'grown_size',
    'random_stone_type',
    'save_stone_state',
    'start_stone',
]
