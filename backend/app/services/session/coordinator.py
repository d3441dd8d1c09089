"""Primary-tab election.

Every tab runs its own coordinator. A tab that becomes visible reads the
leader slot and, if nobody else holds it, writes its own identity there
and broadcasts a claim. Other tabs step down when they see the claim or
the slot change. Read-then-write is not atomic, so two tabs can briefly
both think they are primary; the storage notification for the write that
landed last corrects the other one.

Claims carry an ``epoch`` that grows with every new claim, so a delayed
broadcast from an older claim does not demote the current holder.
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .channels import VISIBLE


logger = logging.getLogger(__name__)

CLAIM_PRIMARY = 'claim-primary'
DEFAULT_CHANNEL = 'active-session'
DEFAULT_SLOT_KEY = 'primary-tab'

FlagListener = Callable[[bool], None]


@dataclass(frozen=True)
class LeaderRecord:
    """Value of the leader slot."""
    tab_id: str
    epoch: int = 0
    renewed_at: float = 0.0

    def dumps(self) -> str:
        return json.dumps({'id': self.tab_id, 'epoch': self.epoch, 'renewed_at': self.renewed_at})

    @classmethod
    def loads(cls, raw: Optional[str]) -> Optional['LeaderRecord']:
        """Parse a slot value; a bare identity string is an epoch-0 record."""
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            return cls(tab_id=raw)
        if not isinstance(data, dict):
            return cls(tab_id=raw)
        tab_id = data.get('id')
        if not tab_id:
            return None
        try:
            epoch = int(data.get('epoch') or 0)
            renewed_at = float(data.get('renewed_at') or 0.0)
        except (TypeError, ValueError):
            epoch, renewed_at = 0, 0.0
        return cls(tab_id=str(tab_id), epoch=epoch, renewed_at=renewed_at)

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.tab_id, 'epoch': self.epoch, 'renewed_at': self.renewed_at}


class TabCoordinator:
    """Decides whether the owning tab is the primary one."""

    inert = False

    def __init__(
        self,
        origin,
        visibility,
        channel_name: str = DEFAULT_CHANNEL,
        slot_key: str = DEFAULT_SLOT_KEY,
        lease_ttl: Optional[float] = None,
        clear_on_start: bool = False,
        clock: Callable[[], float] = time.time,
        tab_id: Optional[str] = None,
    ):
        self.tab_id = tab_id or uuid.uuid4().hex
        self.slot_key = slot_key
        self.lease_ttl = lease_ttl or None
        self.closed = False
        self._clock = clock
        self._visibility = visibility
        self._is_primary = False
        self._seen_epoch = 0
        self._listeners: List[FlagListener] = []

        context = origin.new_context()
        self._store = origin.storage(context)
        self._channel = origin.open_channel(channel_name, context)
        self._unsubscribers = [
            self._channel.subscribe(self._on_message),
            self._store.subscribe(self._on_storage),
            visibility.subscribe(self._on_visibility),
        ]

        if clear_on_start:
            logger.info(f"[primary-reset] tab={self.tab_id} clearing slot {self.slot_key}")
            self._store.remove(self.slot_key)
        record = self.read_slot()
        if record:
            self._seen_epoch = record.epoch
        if visibility.visible:
            self.try_claim()

    @property
    def is_primary(self) -> bool:
        return self._is_primary

    def subscribe(self, listener: FlagListener) -> Callable[[], None]:
        """Call ``listener`` with the current flag now and on every change."""
        self._listeners.append(listener)
        listener(self._is_primary)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def read_slot(self) -> Optional[LeaderRecord]:
        return LeaderRecord.loads(self._store.get(self.slot_key))

    def claim_primary(self) -> None:
        """Take the slot unconditionally, unless the tab is hidden."""
        if self.closed or not self._visibility.visible:
            logger.debug(f"[primary-skip] tab={self.tab_id} hidden or closed")
            return
        record = self.read_slot()
        if record is not None and record.tab_id == self.tab_id:
            epoch = record.epoch
        else:
            epoch = max(self._seen_epoch, record.epoch if record else 0) + 1
        self._seen_epoch = max(self._seen_epoch, epoch)
        logger.info(f"[primary-claim] tab={self.tab_id} epoch={epoch}")
        self._write_slot(epoch)
        self._channel.post_message({'type': CLAIM_PRIMARY, 'id': self.tab_id, 'epoch': epoch})
        self._set_primary(True)

    def try_claim(self) -> None:
        """Claim only if the slot is free, ours, or its lease ran out."""
        if self.closed or not self._visibility.visible:
            return
        record = self.read_slot()
        if record is None or record.tab_id == self.tab_id:
            self.claim_primary()
            return
        if self._expired(record):
            logger.info(
                f"[primary-expired] tab={self.tab_id} holder={record.tab_id} "
                f"idle={self._clock() - record.renewed_at:.1f}s"
            )
            self.claim_primary()
            return
        self._seen_epoch = max(self._seen_epoch, record.epoch)
        self._set_primary(False)

    def tick(self) -> None:
        """Periodic upkeep: renew our lease, or pick up an abandoned slot."""
        if self.closed:
            return
        record = self.read_slot()
        if self._is_primary:
            if self.lease_ttl and record is not None and record.tab_id == self.tab_id:
                self._write_slot(record.epoch)
            return
        if not self._visibility.visible:
            return
        if record is None or self._expired(record):
            self.try_claim()

    def close(self, release: bool = True) -> None:
        """Detach from the origin; with ``release`` give up a held slot."""
        if self.closed:
            return
        if release and self._is_primary:
            record = self.read_slot()
            if record is not None and record.tab_id == self.tab_id:
                logger.info(f"[primary-release] tab={self.tab_id} epoch={record.epoch}")
                self._store.remove(self.slot_key)
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._channel.close()
        self._store.close()
        self.closed = True
        self._set_primary(False)
        self._listeners.clear()

    # ---- reactions ----

    def _on_message(self, message: Dict[str, Any]) -> None:
        if message.get('type') != CLAIM_PRIMARY:
            return
        claimant = message.get('id')
        if 'epoch' in message:
            try:
                epoch = int(message['epoch'])
            except (TypeError, ValueError):
                return
            if self._is_stale(claimant, epoch):
                logger.debug(f"[primary-stale] tab={self.tab_id} claimant={claimant} epoch={epoch}")
                return
            self._seen_epoch = max(self._seen_epoch, epoch)
        self._set_primary(claimant == self.tab_id)

    def _on_storage(self, key: Optional[str], old_value: Optional[str], new_value: Optional[str]) -> None:
        # key is None when the whole store was cleared
        if key is not None and key != self.slot_key:
            return
        record = self.read_slot()
        if record is not None:
            self._seen_epoch = max(self._seen_epoch, record.epoch)
        self._set_primary(record is not None and record.tab_id == self.tab_id)

    def _on_visibility(self, state: str) -> None:
        if state == VISIBLE:
            self.try_claim()

    # ---- helpers ----

    def _is_stale(self, claimant: Optional[str], epoch: int) -> bool:
        if epoch < self._seen_epoch:
            return True
        record = self.read_slot()
        if record is None:
            return False
        return epoch < record.epoch or (epoch == record.epoch and claimant != record.tab_id)

    def _expired(self, record: LeaderRecord) -> bool:
        if not self.lease_ttl:
            return False
        return self._clock() - record.renewed_at > self.lease_ttl

    def _write_slot(self, epoch: int) -> None:
        record = LeaderRecord(tab_id=self.tab_id, epoch=epoch, renewed_at=self._clock())
        self._store.set(self.slot_key, record.dumps())

    def _set_primary(self, value: bool) -> None:
        if value == self._is_primary:
            return
        self._is_primary = value
        logger.info(f"[primary-{'take' if value else 'yield'}] tab={self.tab_id}")
        for listener in list(self._listeners):
            listener(value)


class InertCoordinator:
    """Stand-in used when there is no origin to coordinate with."""

    inert = True
    is_primary = False
    lease_ttl = None

    def __init__(self, tab_id: Optional[str] = None, slot_key: str = DEFAULT_SLOT_KEY):
        self.tab_id = tab_id or uuid.uuid4().hex
        self.slot_key = slot_key
        self.closed = False

    def subscribe(self, listener: FlagListener) -> Callable[[], None]:
        listener(False)
        return lambda: None

    def read_slot(self) -> Optional[LeaderRecord]:
        return None

    def claim_primary(self) -> None:
        pass

    def try_claim(self) -> None:
        pass

    def tick(self) -> None:
        pass

    def close(self, release: bool = True) -> None:
        self.closed = True


def create_coordinator(origin=None, visibility=None, **options):
    """Build the coordinator for a tab.

    Without an origin or a visibility source there is nothing to elect
    against, so the inert variant is returned.
    """
    if origin is None or visibility is None:
        logger.debug("[primary-inert] no origin or visibility source, coordinator disabled")
        return InertCoordinator(tab_id=options.get('tab_id'), slot_key=options.get('slot_key', DEFAULT_SLOT_KEY))
    return TabCoordinator(origin, visibility, **options)
