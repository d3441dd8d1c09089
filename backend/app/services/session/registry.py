"""Server-side bookkeeping of connected tabs, one origin per user."""

from typing import Dict, List, Optional

from flask import current_app

from .backends import DatabaseBackend
from .channels import Origin
from .coordinator import LeaderRecord


_origins: Dict[str, Origin] = {}
_tabs: Dict[str, Dict] = {}  # sid -> {'user_id', 'coordinator', 'visibility'}


def scope_for(user_id: int) -> str:
    return f"user:{user_id}"


def origin_for(user_id: int) -> Origin:
    scope = scope_for(user_id)
    origin = _origins.get(scope)
    if origin is None:
        origin = Origin(name=scope, backend=DatabaseBackend(scope))
        _origins[scope] = origin
    return origin


def drop_origin(user_id: int) -> None:
    """Forget the user's origin once no tab is left to share it."""
    _origins.pop(scope_for(user_id), None)


def active_scopes() -> List[str]:
    return list(_origins)


def coordinator_options(config) -> Dict:
    return {
        'channel_name': config.get('ACTIVE_SESSION_CHANNEL', 'active-session'),
        'slot_key': config.get('LEADER_SLOT_KEY', 'primary-tab'),
        'lease_ttl': float(config.get('LEADER_LEASE_SEC', 0) or 0) or None,
        'clear_on_start': bool(config.get('LEADER_CLEAR_ON_START', False)),
    }


def register_tab(sid: str, user_id: Optional[int], coordinator, visibility) -> None:
    _tabs[sid] = {'user_id': user_id, 'coordinator': coordinator, 'visibility': visibility}


def get_tab(sid: str) -> Optional[Dict]:
    return _tabs.get(sid)


def pop_tab(sid: str) -> Optional[Dict]:
    return _tabs.pop(sid, None)


def tabs_for(user_id: int) -> List[Dict]:
    return [tab for tab in _tabs.values() if tab['user_id'] == user_id]


def read_slot(user_id: int) -> Optional[LeaderRecord]:
    key = current_app.config.get('LEADER_SLOT_KEY', 'primary-tab')
    return LeaderRecord.loads(DatabaseBackend(scope_for(user_id)).get(key))


def clear_slot(user_id: int) -> Optional[LeaderRecord]:
    """Empty the user's leader slot and tell every connected tab.

    Returns the record that was removed, if any.
    """
    key = current_app.config.get('LEADER_SLOT_KEY', 'primary-tab')
    previous = read_slot(user_id)
    origin = _origins.get(scope_for(user_id))
    if origin is None:
        # no tab is connected, nobody to notify
        DatabaseBackend(scope_for(user_id)).delete(key)
    else:
        # A fresh context so every tab counts as "other" and gets the change event
        view = origin.storage(origin.new_context())
        view.remove(key)
        view.close()
    current_app.logger.info(f"[primary-clear] scope={scope_for(user_id)} previous={previous.tab_id if previous else None}")
    return previous


def reset() -> None:
    """Forget all tabs and origins (used between tests)."""
    _tabs.clear()
    _origins.clear()
