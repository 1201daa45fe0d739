import json

import pytest

from floorgen import logging_utils
from floorgen.logging_utils import get_logger


def test_key_value_format():
    line = logging_utils._format("info", event="floor_generated", layout="outer ring", attempts=2, skipped=None)
    assert line.startswith("level=info ts=")
    assert "event=floor_generated" in line
    assert "layout=outer_ring" in line
    assert "attempts=2" in line
    assert "skipped" not in line


def test_json_format(monkeypatch):
    monkeypatch.setattr(logging_utils, "JSON_MODE", True)
    rec = json.loads(logging_utils._format("warn", event="floor_fallback", attempts=10))
    assert rec["level"] == "warn" and rec["event"] == "floor_fallback" and rec["attempts"] == 10


def test_level_filter_and_streams(monkeypatch, capsys):
    monkeypatch.setattr(logging_utils, "CURRENT_LEVEL", logging_utils.LEVELS["warn"])
    log = get_logger("test")
    log.info(event="hidden")
    log.warn(event="shown")
    log.error(event="boom")
    out, err = capsys.readouterr()
    assert "hidden" not in out
    assert "event=shown" in out and "logger=test" in out
    assert "event=boom" in err


def test_logger_cache():
    assert get_logger("pipeline") is get_logger("pipeline")


def test_bound_context(capsys):
    log = get_logger("bound").bind(seed=42, layout="cross")
    log.warn(event="floor_fallback")
    out = capsys.readouterr().out
    assert "seed=42" in out and "layout=cross" in out and "logger=bound" in out


def test_configure(monkeypatch):
    monkeypatch.setattr(logging_utils, "CURRENT_LEVEL", logging_utils.CURRENT_LEVEL)
    monkeypatch.setattr(logging_utils, "JSON_MODE", logging_utils.JSON_MODE)
    logging_utils.configure(level="error", json_mode=True)
    assert logging_utils.CURRENT_LEVEL == 40
    assert logging_utils.JSON_MODE is True
    with pytest.raises(ValueError):
        logging_utils.configure(level="verbose")
