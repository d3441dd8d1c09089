from flask_socketio import emit
from flask import current_app, request
from flask_login import current_user
from app import socketio, db
from app.models import User
from app.services.session import HIDDEN, VISIBLE, VisibilityState, create_coordinator
from app.services.session import registry
from app.services.stones import grow_stone
from app.services.xp import award_xp


NAMESPACE = '/ws'


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _status(coordinator) -> dict:
    return {
        'tab_id': coordinator.tab_id,
        'is_primary': coordinator.is_primary,
        'inert': coordinator.inert,
    }


def _status_emitter(sid: str, coordinator):
    # may fire while handling another tab's event; request.sid is not ours then
    def _emit(_value):
        socketio.emit('primary_status', _status(coordinator), to=sid, namespace=NAMESPACE)
    return _emit


def handle_connect(auth=None):
    sid = _get_sid()
    state = (auth or {}).get('visibility') or VISIBLE
    if current_user.is_authenticated:
        try:
            visibility = VisibilityState(state)
        except ValueError as exc:
            # an unreported state must not lead
            emit('error', {'message': str(exc)})
            visibility = VisibilityState(HIDDEN)
        user_id = current_user.id
        coordinator = create_coordinator(
            registry.origin_for(user_id),
            visibility,
            **registry.coordinator_options(current_app.config),
        )
    else:
        # Anonymous sockets have no shared origin; they never lead
        user_id, visibility = None, None
        coordinator = create_coordinator()
    registry.register_tab(sid, user_id, coordinator, visibility)
    current_app.logger.info(f"[tab-connect] sid={sid} user={user_id} tab={coordinator.tab_id} inert={coordinator.inert}")
    emit('connected', {'message': f'Connected to {NAMESPACE}', 'tab_id': coordinator.tab_id})
    registry.get_tab(sid)['unsubscribe'] = coordinator.subscribe(_status_emitter(sid, coordinator))


def handle_disconnect(*_args):
    tab = registry.pop_tab(_get_sid())
    if not tab:
        return
    unsubscribe = tab.get('unsubscribe')
    if unsubscribe:
        unsubscribe()
    release = bool(current_app.config.get('LEADER_RELEASE_ON_CLOSE', True))
    tab['coordinator'].close(release=release)
    current_app.logger.info(f"[tab-disconnect] tab={tab['coordinator'].tab_id} released={release}")
    if tab['user_id'] is not None and not registry.tabs_for(tab['user_id']):
        registry.drop_origin(tab['user_id'])


def handle_visibility(data):
    tab = registry.get_tab(_get_sid())
    if not tab:
        emit('error', {'message': 'unknown tab'})
        return
    if tab['visibility'] is None:
        # inert tabs have nothing to react to visibility
        return
    state = (data or {}).get('state')
    try:
        tab['visibility'].set(state)
    except ValueError as exc:
        emit('error', {'message': str(exc)})


def handle_claim_primary(_data=None):
    tab = registry.get_tab(_get_sid())
    if not tab:
        emit('error', {'message': 'unknown tab'})
        return
    tab['coordinator'].claim_primary()


def handle_heartbeat(_data=None):
    tab = registry.get_tab(_get_sid())
    if not tab:
        emit('error', {'message': 'unknown tab'})
        return
    tab['coordinator'].tick()
    emit('heartbeat_ack', _status(tab['coordinator']))


def _primary_user(data, rejected_event):
    """Resolve (user, elapsed) for a tick only the primary tab may send."""
    tab = registry.get_tab(_get_sid())
    if not tab or tab['user_id'] is None:
        emit('error', {'message': 'login required'})
        return None
    try:
        elapsed = int((data or {}).get('elapsed', 1))
    except (TypeError, ValueError):
        emit('error', {'message': 'elapsed must be an integer'})
        return None
    coordinator = tab['coordinator']
    if not coordinator.is_primary:
        emit(rejected_event, {'tab_id': coordinator.tab_id, 'reason': 'not_primary'})
        return None
    user = db.session.get(User, tab['user_id'])
    if user is None:
        emit('error', {'message': 'user not found'})
        return None
    return user, elapsed


def handle_xp_tick(data):
    resolved = _primary_user(data, 'xp_rejected')
    if resolved is None:
        return
    user, elapsed = resolved
    award_xp(user, elapsed)
    emit('xp_update', {'xp': user.xp, 'level': user.level})


def handle_stone_tick(data):
    resolved = _primary_user(data, 'stone_rejected')
    if resolved is None:
        return
    user, elapsed = resolved
    stone = grow_stone(user, elapsed)
    emit('stone_update', stone.to_dict())


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('visibility', handle_visibility, namespace=NAMESPACE)
    socketio.on_event('claim_primary', handle_claim_primary, namespace=NAMESPACE)
    socketio.on_event('heartbeat', handle_heartbeat, namespace=NAMESPACE)
    socketio.on_event('xp_tick', handle_xp_tick, namespace=NAMESPACE)
    socketio.on_event('stone_tick', handle_stone_tick, namespace=NAMESPACE)
