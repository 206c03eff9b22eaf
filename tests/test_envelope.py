import dataclasses

import pytest

import ik_core.envelope as envelope_mod
from ik_core.derivation import derive
from ik_core.envelope import Envelope, EnvelopeCodec, FAILED, NO_KEY, UNWRAPPED
from ik_core.errors import (
    BodyAuthenticationFailed, IkError, InvalidEnvelope, NoMatchingRecipient, UnwrapFailed, WrongKeyType,
)

SEED = bytes(range(32))


def _keys(n, seed=SEED):
    return [derive(seed, f"ik:v1:x25519/0/encryption/{i}") for i in range(n)]


def _resolver(*kps):
    table = {kp.short_fingerprint: kp.secret for kp in kps}
    return table.get


def _targets(kps):
    return [(kp.public, kp.short_fingerprint) for kp in kps]


def _flip(data: bytes, bit: int) -> bytes:
    b = bytearray(data)
    b[bit // 8] ^= 1 << (bit % 8)
    return bytes(b)


def test_roundtrip_every_recipient():
    codec = EnvelopeCodec()
    kps = _keys(3)
    env = codec.encrypt(b"attack at dawn", _targets(kps))
    assert len(env.recipients) == 3
    assert [r.to for r in env.recipients] == [kp.short_fingerprint for kp in kps]
    for kp in kps:
        assert codec.decrypt(env, _resolver(kp)) == b"attack at dawn"


def test_empty_plaintext_and_raw_layout():
    codec = EnvelopeCodec()
    kp = _keys(1)[0]
    env = codec.encrypt(b"", _targets([kp]))
    raw = env.to_bytes()
    parsed = Envelope.from_bytes(raw)
    assert parsed == env
    assert codec.decrypt(parsed, _resolver(kp)) == b""


def test_fresh_randomness_per_call():
    codec = EnvelopeCodec()
    kp = _keys(1)[0]
    a = codec.encrypt(b"same", _targets([kp]))
    b = codec.encrypt(b"same", _targets([kp]))
    assert a.body_nonce != b.body_nonce
    assert a.body_ct != b.body_ct
    assert a.recipients[0].ephemeral_public != b.recipients[0].ephemeral_public
    assert a.recipients[0].nonce != b.recipients[0].nonce


def test_no_matching_recipient():
    codec = EnvelopeCodec()
    kps = _keys(3)
    env = codec.encrypt(b"x", _targets(kps[:2]))
    with pytest.raises(NoMatchingRecipient):
        codec.decrypt(env, _resolver(kps[2]))


def test_bad_entry_does_not_block_others():
    codec = EnvelopeCodec()
    a, b = _keys(2)
    env = codec.encrypt(b"payload", _targets([a, b]))

    # resolver hands back the wrong secret for entry 0 and the right one for entry 1
    resolve = {a.short_fingerprint: b.secret, b.short_fingerprint: b.secret}.get
    assert codec.decrypt(env, resolve) == b"payload"

    attempts = codec.open_entries(env, resolve)
    assert [x.status for x in attempts] == [FAILED, UNWRAPPED]
    assert attempts[1].cek is not None

    attempts = codec.open_entries(env, _resolver(a))
    assert [x.status for x in attempts] == [UNWRAPPED, NO_KEY]


def test_all_held_entries_fail():
    codec = EnvelopeCodec()
    a, b = _keys(2)
    env = codec.encrypt(b"payload", _targets([a]))
    with pytest.raises(UnwrapFailed) as err:
        codec.decrypt(env, {a.short_fingerprint: b.secret}.get)
    assert err.value.indexes == [0]


def test_tamper_detection():
    codec = EnvelopeCodec()
    kp = _keys(1)[0]
    resolve = _resolver(kp)
    env = codec.encrypt(b"sixteen byte msg", _targets([kp]))
    entry = env.recipients[0]

    for bit in range(len(env.body_ct) * 8):
        bad = dataclasses.replace(env, body_ct=_flip(env.body_ct, bit))
        with pytest.raises(BodyAuthenticationFailed):
            codec.decrypt(bad, resolve)

    for bit in range(len(env.body_nonce) * 8):
        bad = dataclasses.replace(env, body_nonce=_flip(env.body_nonce, bit))
        with pytest.raises(BodyAuthenticationFailed):
            codec.decrypt(bad, resolve)

    for field, value in (("wrapped_cek", entry.wrapped_cek), ("nonce", entry.nonce),
                         ("ephemeral_public", entry.ephemeral_public)):
        for bit in range(len(value) * 8):
            bad_entry = dataclasses.replace(entry, **{field: _flip(value, bit)})
            bad = dataclasses.replace(env, recipients=[bad_entry])
            with pytest.raises(IkError):
                codec.decrypt(bad, resolve)


def test_relabelled_recipient_fails():
    codec = EnvelopeCodec()
    a, b = _keys(2)
    env = codec.encrypt(b"payload", _targets([a]))
    moved = dataclasses.replace(env.recipients[0], to=b.short_fingerprint)
    bad = dataclasses.replace(env, recipients=[moved])
    with pytest.raises(UnwrapFailed):
        codec.decrypt(bad, {b.short_fingerprint: a.secret}.get)


def test_nonce_uniqueness():
    codec = EnvelopeCodec()
    kp = _keys(1)[0]
    target = _targets([kp])
    seen = set()
    for _ in range(10_000):
        env = codec.encrypt(b"n", target)
        seen.add(env.body_nonce)
        seen.add(env.recipients[0].nonce)
    assert len(seen) == 20_000


def test_cost_scaling(monkeypatch):
    calls = {"body": 0, "wrap": 0}
    real_seal, real_wrap = envelope_mod.seal_body, envelope_mod.wrap_cek

    def counting_seal(*args, **kwargs):
        calls["body"] += 1
        return real_seal(*args, **kwargs)

    def counting_wrap(*args, **kwargs):
        calls["wrap"] += 1
        return real_wrap(*args, **kwargs)

    monkeypatch.setattr(envelope_mod, "seal_body", counting_seal)
    monkeypatch.setattr(envelope_mod, "wrap_cek", counting_wrap)

    kps = _keys(5)
    body = b"\xab" * (10 * 1024 * 1024)
    env = EnvelopeCodec().encrypt(body, _targets(kps))
    assert calls == {"body": 1, "wrap": 5}
    assert len(env.body_ct) == len(body) + 16
    assert all(len(r.wrapped_cek) == 48 for r in env.recipients)


def test_encrypt_rejects_bad_recipients():
    codec = EnvelopeCodec()
    kp = _keys(1)[0]
    signer = derive(SEED, "ik:v1:ed25519/0/identity/0")
    with pytest.raises(InvalidEnvelope):
        codec.encrypt(b"x", [])
    with pytest.raises(WrongKeyType):
        codec.encrypt(b"x", [(signer.public, signer.short_fingerprint)])
    with pytest.raises(WrongKeyType):
        codec.encrypt(b"x", [(kp.public[:31], kp.short_fingerprint)])
    with pytest.raises(WrongKeyType):
        codec.encrypt(b"x", [(bytes(32), kp.short_fingerprint)])
    with pytest.raises(InvalidEnvelope):
        codec.encrypt(b"x", [(kp.public, "x1-" + "A" * 300)])

    env = codec.encrypt(b"x", _targets([kp]))
    env.recipients[0].to = "x1-" + "A" * 300
    with pytest.raises(InvalidEnvelope):
        env.to_bytes()


def test_malformed_envelopes():
    codec = EnvelopeCodec()
    kp = _keys(1)[0]
    env = codec.encrypt(b"payload", _targets([kp]))
    raw = env.to_bytes()
    with pytest.raises(InvalidEnvelope):
        Envelope.from_bytes(raw[:-1])
    with pytest.raises(InvalidEnvelope):
        Envelope.from_bytes(raw + b"\x00")
    with pytest.raises(InvalidEnvelope):
        codec.decrypt(dataclasses.replace(env, alg="ik-other"), _resolver(kp))
    with pytest.raises(InvalidEnvelope):
        codec.decrypt(dataclasses.replace(env, recipients=[]), _resolver(kp))
