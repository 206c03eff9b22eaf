import json
import logging

import pytest

from ik_core.errors import InvalidSeed, SeedUnavailable
from ik_core.logger import get_logger
from ik_core.seed import LockableSeedSource, StaticSeedSource, generate_seed


def test_generate_seed():
    assert len(generate_seed()) == 32
    assert len(generate_seed(64)) == 64
    assert generate_seed() != generate_seed()
    with pytest.raises(InvalidSeed):
        generate_seed(16)


def test_static_seed_source():
    seed = bytes(range(32))
    src = StaticSeedSource(seed)
    assert src.get_seed() == seed
    assert seed.hex() not in repr(src)
    with pytest.raises(InvalidSeed):
        StaticSeedSource(b"\x00" * 31)


def test_lockable_seed_source():
    src = LockableSeedSource()
    assert src.locked
    with pytest.raises(SeedUnavailable):
        src.get_seed()
    src.unlock(b"\x01" * 64)
    assert src.get_seed() == b"\x01" * 64
    src.lock()
    with pytest.raises(SeedUnavailable):
        src.get_seed()
    with pytest.raises(InvalidSeed):
        src.unlock(b"")


def test_logger_json_lines(tmp_path, capsys):
    log_file = tmp_path / "logs" / "ik.log"
    log = get_logger("IK.Test.Json", level=logging.DEBUG, to_file=str(log_file))
    log.info("hello")
    line = capsys.readouterr().out.strip().splitlines()[-1]
    record = json.loads(line)
    assert record["level"] == "INFO"
    assert record["name"] == "IK.Test.Json"
    assert record["msg"] == "hello"
    assert json.loads(log_file.read_text().strip())["msg"] == "hello"


def test_logger_level_from_env(monkeypatch):
    monkeypatch.setenv("IK_LOG_LEVEL", "warning")
    assert get_logger("IK.Test.Env").level == logging.WARNING
