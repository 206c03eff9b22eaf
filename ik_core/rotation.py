"""
ik_core.rotation
----------------
Lifecycle states and the rules for moving between them.

Rotation only changes which path is *current* for a (curve, account, role)
slot. Paths are pure functions of (seed, integers), so nothing here ever
removes the ability to re-derive an old key.
"""

from __future__ import annotations
from enum import Enum

from .errors import IkError, InvalidStateTransition
from .logger import get_logger

log = get_logger("IK.Rotation")


class KeyState(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    DEPRECATED = "deprecated"
    REVOKED = "revoked"


TRANSITIONS = {
    KeyState.INACTIVE: {KeyState.ACTIVE, KeyState.REVOKED},
    KeyState.ACTIVE: {KeyState.DEPRECATED, KeyState.REVOKED},
    KeyState.DEPRECATED: {KeyState.REVOKED},
    KeyState.REVOKED: set(),
}


def can_transition(current: KeyState, target: KeyState) -> bool:
    return target in TRANSITIONS[KeyState(current)]


def check_transition(path: str, current: KeyState, target: KeyState) -> KeyState:
    current, target = KeyState(current), KeyState(target)
    if not can_transition(current, target):
        raise InvalidStateTransition(path, current.value, target.value)
    return target


def usable_for_encryption(state: KeyState) -> bool:
    return KeyState(state) is not KeyState.REVOKED


def rotate_seed(old_registry, new_seed_source, storage=None):
    """
    All-keys rotation after a suspected seed compromise.

    Builds a registry over ``new_seed_source`` holding a fresh index-0 Active
    key for every (curve, account, role) slot the old registry knew, then
    revokes every key of the old registry. Old keys stay derivable from the
    old seed for historical decryption.

    ``storage`` must be a fresh store: the old registry's own store, or any
    store that already holds records, would mix the two seeds' keys under
    the same paths.
    """
    from .registry import KeyRegistry

    if storage is not None:
        if storage is getattr(old_registry, "_storage", None):
            raise IkError("rotate_seed needs a separate store from the old registry")
        if storage.list_keys():
            raise IkError("rotate_seed needs an empty store for the new seed")

    new_registry = KeyRegistry(new_seed_source, storage=storage)
    slots = sorted({rk.path.lineage for rk in old_registry.list_keys()},
                   key=lambda s: (s[0].value, s[1], s[2]))
    for curve, account, role in slots:
        new_registry.create(curve, role, account=account)

    revoked = 0
    for rk in old_registry.list_keys():
        if rk.state is not KeyState.REVOKED:
            old_registry.revoke(rk.path)
            revoked += 1

    log.info(f"[ROTATE SEED] slots={len(slots)} revoked={revoked}")
    return new_registry
