"""Failure signals of floor generation.

Structural failures never leave the generator; they drive its retry and
fallback transitions as ``AttemptOutcome`` values. The exceptions below are
raised only for broken invariants that no retry can repair.
"""
from __future__ import annotations

from enum import Enum


class AttemptOutcome(str, Enum):
    ACCEPTED = "accepted"
    STRUCTURAL_FAILURE = "structural_failure"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    FIXED_ROOM_NOT_FOUND = "fixed_room_not_found"


class FloorGenerationError(Exception):
    pass


class SpawnPlacementError(FloorGenerationError):
    """A mandatory entity (the player) had no eligible tile."""

    def __init__(self, kind: str, message: str | None = None):
        self.kind = kind
        super().__init__(message or f"no eligible tile for mandatory spawn '{kind}'")


__all__ = ["AttemptOutcome", "FloorGenerationError", "SpawnPlacementError"]
