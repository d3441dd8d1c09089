"""Same-origin primitives shared by the tabs of one user.

An ``Origin`` stands in for the browser's per-origin facilities: named
broadcast channels that never echo to the sender, and a key-value store
whose writes raise change events in every *other* context. Events travel
through a single FIFO queue so delivery order is deterministic, and a
test can hold events back (``autoflush=False``) to model several tabs
acting in the same tick.
"""

import logging
import threading
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple


logger = logging.getLogger(__name__)

VISIBLE = 'visible'
HIDDEN = 'hidden'

StoreListener = Callable[[Optional[str], Optional[str], Optional[str]], None]
MessageListener = Callable[[Dict[str, Any]], None]


class MemoryBackend:
    """Authoritative storage for an origin kept in a plain dict."""

    def __init__(self):
        self._items: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()


class Origin:
    """A group of browsing contexts sharing channels and storage."""

    def __init__(self, name: str = 'local', backend=None, autoflush: bool = True):
        self.name = name
        self.backend = backend if backend is not None else MemoryBackend()
        self.autoflush = autoflush
        self.drop_messages = False
        self._queue: Deque[Tuple[Callable, tuple]] = deque()
        self._pumping = False
        self._lock = threading.RLock()
        self._store_views: List['SharedStore'] = []
        self._channels: Dict[str, List['BroadcastChannel']] = {}
        self._next_context = 0

    # ---- contexts ----

    def new_context(self) -> int:
        self._next_context += 1
        return self._next_context

    def storage(self, context: int) -> 'SharedStore':
        view = SharedStore(self, context)
        self._store_views.append(view)
        return view

    def open_channel(self, name: str, context: int) -> 'BroadcastChannel':
        channel = BroadcastChannel(self, name, context)
        self._channels.setdefault(name, []).append(channel)
        return channel

    def _detach_view(self, view: 'SharedStore') -> None:
        if view in self._store_views:
            self._store_views.remove(view)

    def _detach_channel(self, channel: 'BroadcastChannel') -> None:
        members = self._channels.get(channel.name, [])
        if channel in members:
            members.remove(channel)

    # ---- event queue ----

    @property
    def pending(self) -> int:
        return len(self._queue)

    def _post(self, fn: Callable, *args) -> None:
        with self._lock:
            self._queue.append((fn, args))
        if self.autoflush:
            self.run_pending()

    def run_pending(self) -> int:
        """Deliver queued events in order, including ones they enqueue.

        Returns the number of events delivered. Nested calls made from a
        listener return immediately; the outer loop drains the queue.
        Another thread waits until the running drain is done.
        """
        with self._lock:
            if self._pumping:
                return 0
            self._pumping = True
            delivered = 0
            try:
                while self._queue:
                    fn, args = self._queue.popleft()
                    fn(*args)
                    delivered += 1
            finally:
                self._pumping = False
            return delivered

    # ---- storage ----

    def _land_write(self, writer: int, key: Optional[str], value: Optional[str]) -> None:
        if key is None:
            self.backend.clear()
            old_value = None
        else:
            old_value = self.backend.get(key)
            if value is None:
                self.backend.delete(key)
            else:
                self.backend.set(key, value)
            if old_value == value:
                return
        for view in list(self._store_views):
            if view.context != writer:
                self._queue.append((view._notify, (key, old_value, value)))

    # ---- broadcast ----

    def _send(self, sender: 'BroadcastChannel', message: Dict[str, Any]) -> None:
        if self.drop_messages:
            logger.debug(f"[broadcast-drop] origin={self.name} channel={sender.name} message={message}")
            return
        with self._lock:
            for channel in list(self._channels.get(sender.name, [])):
                if channel is not sender:
                    self._queue.append((channel._deliver, (dict(message),)))
        if self.autoflush:
            self.run_pending()


class SharedStore:
    """One context's handle on the origin's key-value store.

    Reads see every write that has landed. A write lands when the origin
    delivers it, and only the other contexts are told about it.
    """

    def __init__(self, origin: Origin, context: int):
        self.origin = origin
        self.context = context
        self._listeners: List[StoreListener] = []

    def get(self, key: str) -> Optional[str]:
        return self.origin.backend.get(key)

    def set(self, key: str, value: str) -> None:
        self.origin._post(self.origin._land_write, self.context, key, value)

    def remove(self, key: str) -> None:
        self.origin._post(self.origin._land_write, self.context, key, None)

    def clear(self) -> None:
        self.origin._post(self.origin._land_write, self.context, None, None)

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def close(self) -> None:
        self._listeners.clear()
        self.origin._detach_view(self)

    def _notify(self, key, old_value, new_value) -> None:
        for listener in list(self._listeners):
            listener(key, old_value, new_value)


class BroadcastChannel:
    """Named channel; messages reach every other open channel of that name."""

    def __init__(self, origin: Origin, name: str, context: int):
        self.origin = origin
        self.name = name
        self.context = context
        self.closed = False
        self._listeners: List[MessageListener] = []

    def post_message(self, message: Dict[str, Any]) -> None:
        if self.closed:
            return
        self.origin._send(self, message)

    def subscribe(self, listener: MessageListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def close(self) -> None:
        self.closed = True
        self._listeners.clear()
        self.origin._detach_channel(self)

    def _deliver(self, message: Dict[str, Any]) -> None:
        if self.closed:
            return
        for listener in list(self._listeners):
            listener(message)


class VisibilityState:
    """Tab-local foreground/background state with change listeners."""

    def __init__(self, state: str = VISIBLE):
        self._state = _checked(state)
        self._listeners: List[Callable[[str], None]] = []

    @property
    def state(self) -> str:
        return self._state

    @property
    def visible(self) -> bool:
        return self._state == VISIBLE

    def set(self, state: str) -> None:
        state = _checked(state)
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    def show(self) -> None:
        self.set(VISIBLE)

    def hide(self) -> None:
        self.set(HIDDEN)

    def subscribe(self, listener: Callable[[str], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe


def _checked(state: str) -> str:
    if state not in (VISIBLE, HIDDEN):
        raise ValueError(f"unknown visibility state: {state!r}")
    return state
