import base58
import pytest

from ik_core.fingerprint import fingerprint, from_full, is_short, short_bytes, short_tag, to_full, to_short


def test_zero_key_fingerprint():
    fp = fingerprint(bytes(32))
    assert to_full(fp) == "7tkzFg8RHBmMw1ncRJZCCZAizgq4rwCftTKYLce8RU8t"
    assert from_full(to_full(fp)) == fp


def test_short_is_prefix_of_full():
    for i in range(64):
        fp = fingerprint(bytes([i]) * 32)
        short = to_short(fp, "x1")
        assert short.startswith("x1-")
        assert from_full(to_full(fp))[:10] == short_bytes(short)
        assert base58.b58decode(to_full(fp)).startswith(short_bytes(short))


def test_short_tags():
    fp = fingerprint(b"\x01" * 32)
    assert short_tag(to_short(fp, "ed1")) == "ed1"
    assert is_short(to_short(fp, "x1"))
    assert not is_short(to_full(fp))
    with pytest.raises(ValueError):
        to_short(fp, "rsa1")


def test_from_full_rejects_wrong_length():
    with pytest.raises(ValueError):
        from_full(base58.b58encode(b"\x01" * 10).decode())
