"""
ik_core.registry
----------------
Bookkeeping for derived keys: path -> fingerprint -> lifecycle state.

The registry never stores secret material. ``register`` derives once to learn
the fingerprint and throws the secret away; ``resolve`` re-derives from the
seed source on demand. An optional in-process cache (off by default, see
``IK_CACHE_SECRETS``) keeps resolved KeyPairs for the life of the registry
object only.

Mutations (register / activate / rotate / revoke) are serialized by a lock
and publish a fresh snapshot of the key table; lookups read whichever
snapshot is current without locking.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union
import hmac
import threading

from .derivation import KeyPair, derive
from .errors import FingerprintCollision, FingerprintMismatch, InvalidPath, KeyNotFound, KeyRevoked, WrongKeyType
from .fingerprint import fingerprint, from_full, is_short, to_full, to_short
from .constants import FP_TAG_ED25519, FP_TAG_X25519
from .logger import get_logger
from .paths import Curve, DerivationPath, build, coerce
from .rotation import KeyState, check_transition, usable_for_encryption
from .seed import SeedSource
from .storage import KeyRecord, StorageProvider, load_storage_provider
from .utils import env_flag, now_ts

log = get_logger("IK.Registry")

PathLike = Union[DerivationPath, str]


@dataclass(frozen=True)
class RegisteredKey:
    path: DerivationPath
    fingerprint: bytes
    state: KeyState
    created_at: str

    @property
    def tag(self) -> str:
        return FP_TAG_ED25519 if self.path.curve is Curve.ED25519 else FP_TAG_X25519

    @property
    def full_fingerprint(self) -> str:
        return to_full(self.fingerprint)

    @property
    def short_fingerprint(self) -> str:
        return to_short(self.fingerprint, self.tag)

    def to_record(self) -> KeyRecord:
        return KeyRecord(
            path=build(self.path),
            fingerprint=self.full_fingerprint,
            state=self.state.value,
            created_at=self.created_at,
        )

    @classmethod
    def from_record(cls, rec: Union[KeyRecord, dict]) -> "RegisteredKey":
        if isinstance(rec, dict):
            rec = KeyRecord.from_dict(rec)
        try:
            fp = from_full(rec.fingerprint)
        except ValueError as e:
            raise KeyNotFound(fingerprint=rec.fingerprint, path=rec.path,
                              reason="unreadable fingerprint in record") from e
        return cls(path=coerce(rec.path), fingerprint=fp,
                   state=KeyState(rec.state), created_at=rec.created_at or now_ts())


class KeyRegistry:
    def __init__(
        self,
        seed_source: SeedSource,
        storage: Optional[StorageProvider] = None,
        cache_secrets: bool = False,
    ):
        self._seed_source = seed_source
        self._storage = storage
        self._cache_secrets = cache_secrets
        self._cache: Dict[DerivationPath, KeyPair] = {}
        self._lock = threading.RLock()
        self._keys: Dict[DerivationPath, RegisteredKey] = {}

        if storage is not None:
            self.load_records(storage.list_keys(), persist=False)

    @classmethod
    def from_config(cls, seed_source: SeedSource, config: Optional[dict] = None) -> "KeyRegistry":
        """
        Build a registry from a config dict, falling back to environment:

        - ``storage``: a StorageProvider instance, else ``load_storage_provider(config)``
        - ``cache_secrets``: bool, else ``IK_CACHE_SECRETS``
        """
        config = config or {}
        storage = config.get("storage") or load_storage_provider(config)
        cache = config.get("cache_secrets")
        if cache is None:
            cache = env_flag("IK_CACHE_SECRETS")
        return cls(seed_source, storage=storage, cache_secrets=bool(cache))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _derive(self, path: DerivationPath) -> KeyPair:
        return derive(self._seed_source.get_seed(), path)

    def _publish(self, rk: RegisteredKey, event: str) -> None:
        # copy-on-write so readers holding the old snapshot are unaffected
        keys = dict(self._keys)
        keys[rk.path] = rk
        self._keys = keys
        if self._storage is not None:
            self._storage.upsert_key(rk.to_record())
            self._storage.log_event(event, {
                "path": build(rk.path),
                "fingerprint": rk.full_fingerprint,
                "state": rk.state.value,
            })
        log.info(f"[{event.upper()}] {build(rk.path)} fp={rk.short_fingerprint} state={rk.state.value}")

    def _set_state(self, rk: RegisteredKey, target: KeyState, event: str) -> RegisteredKey:
        check_transition(build(rk.path), rk.state, target)
        updated = RegisteredKey(rk.path, rk.fingerprint, target, rk.created_at)
        self._publish(updated, event)
        return updated

    def _require(self, path: DerivationPath) -> RegisteredKey:
        rk = self._keys.get(path)
        if rk is None:
            raise KeyNotFound(path=build(path))
        return rk

    def _next_index(self, lineage) -> int:
        indexes = [p.index for p in self._keys if p.lineage == lineage]
        return max(indexes) + 1 if indexes else 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def register(self, path: PathLike) -> RegisteredKey:
        """Record ``path`` as Inactive. Registering a known path returns it unchanged."""
        path = coerce(path)
        with self._lock:
            existing = self._keys.get(path)
            if existing is not None:
                return existing

            kp = self._derive(path)
            if self._cache_secrets:
                self._cache[path] = kp
            rk = RegisteredKey(path, kp.fingerprint, KeyState.INACTIVE, now_ts())

            clash = [other for other in self._keys.values() if other.short_fingerprint == rk.short_fingerprint]
            if clash:
                log.warning(f"[COLLISION] short fingerprint {rk.short_fingerprint} shared by "
                            f"{build(path)} and {', '.join(build(o.path) for o in clash)}")
            self._publish(rk, "register")
            return rk

    def activate(self, path: PathLike) -> RegisteredKey:
        """Make ``path`` the current key of its slot, deprecating the previous one."""
        path = coerce(path)
        with self._lock:
            rk = self._require(path)
            if rk.state is KeyState.ACTIVE:
                return rk
            check_transition(build(path), rk.state, KeyState.ACTIVE)
            current = self.active(path.curve, path.role, account=path.account)
            if current is not None:
                self._set_state(current, KeyState.DEPRECATED, "deprecate")
            return self._set_state(rk, KeyState.ACTIVE, "activate")

    def create(self, curve: Union[Curve, str], role: str, account: int = 0) -> RegisteredKey:
        """Register and activate the next unused index of a slot."""
        with self._lock:
            lineage = (Curve(curve), account, role)
            path = DerivationPath(lineage[0], account, role, self._next_index(lineage))
            self.register(path)
            return self.activate(path)

    def rotate(self, role: str, curve: Optional[Union[Curve, str]] = None,
               account: Optional[int] = None) -> List[RegisteredKey]:
        """
        Advance every Active slot for ``role`` (optionally narrowed by curve and
        account) to its next index. The old path becomes Deprecated and stays
        derivable. Returns the newly active keys.
        """
        curve = Curve(curve) if curve is not None else None
        with self._lock:
            current = [
                rk for rk in self._keys.values()
                if rk.state is KeyState.ACTIVE and rk.path.role == role
                and (curve is None or rk.path.curve is curve)
                and (account is None or rk.path.account == account)
            ]
            if not current:
                raise KeyNotFound(path=role, reason="no active key to rotate for role")
            rotated = []
            for old in current:
                new_path = old.path.with_index(self._next_index(old.path.lineage))
                self.register(new_path)
                rotated.append(self.activate(new_path))
                log.info(f"[ROTATE] {build(old.path)} -> {build(new_path)}")
            return rotated

    def revoke(self, path: PathLike) -> RegisteredKey:
        """Move ``path`` to Revoked. Revoking a revoked key is a no-op."""
        path = coerce(path)
        with self._lock:
            rk = self._require(path)
            self._cache.pop(path, None)
            if rk.state is KeyState.REVOKED:
                return rk
            return self._set_state(rk, KeyState.REVOKED, "revoke")

    # ------------------------------------------------------------------
    # Queries (lock-free, snapshot reads)
    # ------------------------------------------------------------------
    def get(self, path: PathLike) -> RegisteredKey:
        return self._require(coerce(path))

    def list_keys(self, curve: Optional[Union[Curve, str]] = None,
                  state: Optional[Union[KeyState, str]] = None) -> List[RegisteredKey]:
        keys = list(self._keys.values())
        if curve is not None:
            keys = [rk for rk in keys if rk.path.curve is Curve(curve)]
        if state is not None:
            keys = [rk for rk in keys if rk.state is KeyState(state)]
        return keys

    def active(self, curve: Union[Curve, str], role: str, account: int = 0) -> Optional[RegisteredKey]:
        lineage = (Curve(curve), account, role)
        return next((rk for rk in self._keys.values()
                     if rk.path.lineage == lineage and rk.state is KeyState.ACTIVE), None)

    def lookup(self, fp: Union[str, bytes]) -> RegisteredKey:
        """
        Find a registered key by raw digest, full Base58 fingerprint or short
        fingerprint. Short lookups that match more than one key raise
        FingerprintCollision.
        """
        snapshot = self._keys
        if isinstance(fp, (bytes, bytearray)):
            digest = bytes(fp)
        elif is_short(fp):
            matches = [rk for rk in snapshot.values() if rk.short_fingerprint == fp]
            if len(matches) > 1:
                log.warning(f"[COLLISION] lookup of {fp} matched {len(matches)} keys")
                raise FingerprintCollision(fp, [build(rk.path) for rk in matches])
            if not matches:
                raise KeyNotFound(fingerprint=fp)
            return matches[0]
        else:
            try:
                digest = from_full(fp)
            except ValueError:
                raise KeyNotFound(fingerprint=fp, reason="not a fingerprint") from None

        for rk in snapshot.values():
            if hmac.compare_digest(rk.fingerprint, digest):
                return rk
        raise KeyNotFound(fingerprint=fp if isinstance(fp, str) else to_full(digest))

    def resolve(self, fp: Union[str, bytes]) -> KeyPair:
        """Re-derive the keypair behind ``fp`` and check it against the recorded digest."""
        rk = self.lookup(fp)
        kp = self._cache.get(rk.path)
        if kp is None:
            kp = self._derive(rk.path)
        if not hmac.compare_digest(fingerprint(kp.public), rk.fingerprint):
            raise FingerprintMismatch(rk.full_fingerprint, build(rk.path))
        if self._cache_secrets:
            with self._lock:
                # revoke may have run since the lookup
                current = self._keys.get(rk.path)
                if current is not None and current.state is not KeyState.REVOKED:
                    self._cache[rk.path] = kp
        return kp

    def encryption_target(self, fp: Union[str, bytes]) -> Tuple[bytes, str]:
        """(public key, short fingerprint) suitable for EnvelopeCodec.encrypt."""
        rk = self.lookup(fp)
        if rk.path.curve is not Curve.X25519:
            raise WrongKeyType(f"{build(rk.path)} is a signing key, not a key-agreement key")
        if not usable_for_encryption(rk.state):
            raise KeyRevoked(build(rk.path), rk.short_fingerprint)
        if rk.state is not KeyState.ACTIVE:
            log.warning(f"[TARGET] {build(rk.path)} is {rk.state.value}; prefer the active key of its slot")
        kp = self.resolve(rk.fingerprint)
        return kp.public, rk.short_fingerprint

    def secret_resolver(self) -> Callable[[str], Optional[bytes]]:
        """
        Resolver for EnvelopeCodec.decrypt: short fingerprint -> X25519 secret.

        Revoked and deprecated keys still resolve so old envelopes stay readable.
        An ambiguous short fingerprint resolves to None so the remaining
        entries are still tried.
        """
        def resolve(short: str) -> Optional[bytes]:
            try:
                rk = self.lookup(short)
            except KeyNotFound:
                return None
            except FingerprintCollision:
                log.warning(f"[RESOLVE] {short} is ambiguous; skipping entry")
                return None
            if rk.path.curve is not Curve.X25519:
                return None
            return self.resolve(rk.fingerprint).secret

        return resolve

    # ------------------------------------------------------------------
    # Persistence exchange
    # ------------------------------------------------------------------
    def export_records(self) -> List[dict]:
        return [rk.to_record().to_dict() for rk in self._keys.values()]

    def load_records(self, records: Iterable[Union[KeyRecord, dict]], persist: bool = True) -> int:
        """Import bookkeeping records without touching the seed."""
        loaded = 0
        with self._lock:
            keys = dict(self._keys)
            for rec in records:
                rk = RegisteredKey.from_record(rec)
                keys[rk.path] = rk
                if persist and self._storage is not None:
                    self._storage.upsert_key(rk.to_record())
                loaded += 1
            self._keys = keys
        log.info(f"[LOAD] {loaded} key records")
        return loaded

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, path) -> bool:
        try:
            return coerce(path) in self._keys
        except InvalidPath:
            return False
