"""Primary-tab election across the open tabs of one user.

``coordinator`` holds the election logic, ``channels`` the same-origin
primitives it talks through, ``registry`` the per-user origins of the
Socket.IO server.
"""

from .channels import HIDDEN, VISIBLE, BroadcastChannel, MemoryBackend, Origin, SharedStore, VisibilityState
from .coordinator import (
    CLAIM_PRIMARY,
    InertCoordinator,
    LeaderRecord,
    TabCoordinator,
    create_coordinator,
)

__all__ = [
    'HIDDEN',
    'VISIBLE',
    'BroadcastChannel',
    'MemoryBackend',
    'Origin',
    'SharedStore',
    'VisibilityState',
    'CLAIM_PRIMARY',
    'InertCoordinator',
    'LeaderRecord',
    'TabCoordinator',
    'create_coordinator',
]
