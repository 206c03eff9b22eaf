import pytest

from ik_core.derivation import derive
from ik_core.envelope import EnvelopeCodec
from ik_core.errors import IkError, InvalidStateTransition
from ik_core.paths import Curve
from ik_core.registry import KeyRegistry
from ik_core.rotation import KeyState, can_transition, check_transition, rotate_seed, usable_for_encryption
from ik_core.seed import StaticSeedSource, generate_seed
from ik_core.storage import InMemoryStorage

OLD_SEED = bytes(range(32))


def test_transition_table():
    assert can_transition(KeyState.INACTIVE, KeyState.ACTIVE)
    assert can_transition(KeyState.ACTIVE, KeyState.DEPRECATED)
    assert can_transition(KeyState.DEPRECATED, KeyState.REVOKED)
    assert can_transition("inactive", "revoked")
    assert not can_transition(KeyState.DEPRECATED, KeyState.ACTIVE)
    assert not can_transition(KeyState.INACTIVE, KeyState.DEPRECATED)
    for target in KeyState:
        assert not can_transition(KeyState.REVOKED, target)
    with pytest.raises(InvalidStateTransition) as err:
        check_transition("ik:v1:x25519/0/encryption/0", KeyState.REVOKED, KeyState.ACTIVE)
    assert err.value.path == "ik:v1:x25519/0/encryption/0"


def test_usable_for_encryption():
    assert usable_for_encryption(KeyState.ACTIVE)
    assert usable_for_encryption(KeyState.DEPRECATED)
    assert not usable_for_encryption(KeyState.REVOKED)


def test_rotate_seed_revokes_everything_old():
    old = KeyRegistry(StaticSeedSource(OLD_SEED))
    old.create(Curve.ED25519, "identity")
    enc = old.create(Curve.X25519, "encryption")
    old.rotate("encryption")
    old.create(Curve.X25519, "backup", account=2)
    envelope = EnvelopeCodec().encrypt(b"archived", [old.encryption_target(enc.short_fingerprint)])

    new_seed = generate_seed()
    new = rotate_seed(old, StaticSeedSource(new_seed))

    assert all(rk.state is KeyState.REVOKED for rk in old.list_keys())
    active = {(rk.path.curve, rk.path.account, rk.path.role): rk for rk in new.list_keys(state="active")}
    assert set(active) == {
        (Curve.ED25519, 0, "identity"),
        (Curve.X25519, 0, "encryption"),
        (Curve.X25519, 2, "backup"),
    }
    for rk in active.values():
        assert rk.path.index == 0
        assert rk.fingerprint == derive(new_seed, rk.path).fingerprint
        assert rk.fingerprint != derive(OLD_SEED, rk.path).fingerprint

    # old envelopes stay readable through the old registry
    assert EnvelopeCodec().decrypt(envelope, old.secret_resolver()) == b"archived"


def test_rotate_seed_into_fresh_store():
    old_store, new_store = InMemoryStorage(), InMemoryStorage()
    old = KeyRegistry(StaticSeedSource(OLD_SEED), storage=old_store)
    old.create(Curve.X25519, "encryption")
    old.rotate("encryption")

    new_seed = generate_seed()
    new = rotate_seed(old, StaticSeedSource(new_seed), storage=new_store)

    assert [rk.path.index for rk in new.list_keys(state="active")] == [0]
    assert {r.path for r in new_store.list_keys()} == {"ik:v1:x25519/0/encryption/0"}
    assert {r.state for r in old_store.list_keys()} == {"revoked"}


def test_rotate_seed_refuses_shared_or_used_store():
    store = InMemoryStorage()
    old = KeyRegistry(StaticSeedSource(OLD_SEED), storage=store)
    old.create(Curve.X25519, "encryption")

    with pytest.raises(IkError):
        rotate_seed(old, StaticSeedSource(generate_seed()), storage=store)

    used = InMemoryStorage()
    KeyRegistry(StaticSeedSource(generate_seed()), storage=used).create(Curve.ED25519, "identity")
    with pytest.raises(IkError):
        rotate_seed(old, StaticSeedSource(generate_seed()), storage=used)

    # nothing was revoked by the refused attempts
    assert [rk.state for rk in old.list_keys()] == [KeyState.ACTIVE]
