"""Minimal structured logging helper.

Emits key=value pairs (or JSON lines) with a timestamp and level so floor
generation diagnostics stay grep-able from batch runs and seed sweeps.

Usage:
    from floorgen.logging_utils import get_logger
    log = get_logger("pipeline").bind(seed=42)
    log.info(event="floor_accepted", attempts=2, layout="standard")

Non-numeric values are str()'d with spaces replaced. Reserved keys: level, ts.
Level and output mode come from FLOORGEN_LOG_LEVEL / FLOORGEN_LOG_JSON and can
be changed at runtime with configure().
"""

from __future__ import annotations

import json
import os
import sys
import time

LEVELS = {"debug": 10, "info": 20, "warn": 30, "error": 40}
CURRENT_LEVEL = LEVELS.get(os.getenv("FLOORGEN_LOG_LEVEL", "info"), 20)
JSON_MODE = os.getenv("FLOORGEN_LOG_JSON", "0") in ("1", "true", "TRUE", "yes", "on")


def configure(level: str | None = None, json_mode: bool | None = None) -> None:
    """Override the environment-derived level and/or output mode."""
    global CURRENT_LEVEL, JSON_MODE
    if level is not None:
        if level not in LEVELS:
            raise ValueError(f"unknown log level {level!r}; expected one of {sorted(LEVELS)}")
        CURRENT_LEVEL = LEVELS[level]
    if json_mode is not None:
        JSON_MODE = json_mode


def _format(level: str, **fields):
    if JSON_MODE:
        rec = {k: v for k, v in fields.items() if v is not None}
        rec["level"] = level
        rec["ts"] = int(time.time())
        try:
            return json.dumps(rec, separators=(",", ":"))
        except (TypeError, ValueError):
            return json.dumps({"level": level, "ts": int(time.time()), "error": "json_encode_failed"})
    parts = [f"level={level}", f"ts={int(time.time())}"]
    for k, v in fields.items():
        if v is None:
            continue
        if isinstance(v, (int, float)):
            parts.append(f"{k}={v}")
        else:
            parts.append(f"{k}={str(v).replace(' ', '_')}")
    return " ".join(parts)


class _Logger:
    def __init__(self, name: str | None = None, context: dict | None = None):
        self.name = name or "floorgen"
        self.context = dict(context or {})

    def bind(self, **fields) -> "_Logger":
        """Child logger that adds ``fields`` to every line it emits."""
        return _Logger(self.name, {**self.context, **fields})

    def _log(self, lvl: str, **fields):
        if LEVELS[lvl] < CURRENT_LEVEL:
            return
        merged = {"logger": self.name, **self.context, **fields}
        print(_format(lvl, **merged), file=sys.stderr if lvl == "error" else sys.stdout)

    def debug(self, **fields):
        self._log("debug", **fields)

    def info(self, **fields):
        self._log("info", **fields)

    def warn(self, **fields):
        self._log("warn", **fields)

    def error(self, **fields):
        self._log("error", **fields)


_LOGGER_CACHE: dict[str, _Logger] = {}


def get_logger(name: str) -> _Logger:
    if name not in _LOGGER_CACHE:
        _LOGGER_CACHE[name] = _Logger(name)
    return _LOGGER_CACHE[name]
