"""Junction resolution between hallways and rooms.

``finalize_junctions`` is order dependent on purpose. Hallway anchors are
turned into plain hallway tiles at the moment the scan reaches them, so an
anchor is flagged as a junction only if a hallway neighbor was scanned before
it (the anchor still looked like a room tile then). The only anchor that
escapes is one whose hallway neighbors all lie to its right or below. Spawn
eligibility reads the resulting flags, so the scan order must stay row-major.
"""
from __future__ import annotations

from .grid import DIRS4, DIRS8, TileGrid
from .tiles import HALLWAY, HALLWAY_ANCHOR, OPEN, TileFlag


def finalize_junctions(grid: TileGrid) -> int:
    """Flag open non-hallway tiles touching a hallway as junctions. Returns new junctions."""
    flagged = 0
    for x, y, t in grid.iter_scan():
        if t.room_index == HALLWAY_ANCHOR:
            t.room_index = HALLWAY
        if t.terrain != OPEN or t.room_index != HALLWAY:
            continue
        for dx, dy in DIRS4:
            nx, ny = x + dx, y + dy
            if not grid.in_bounds(nx, ny):
                continue
            n = grid.tiles[nx][ny]
            if n.terrain == OPEN and n.room_index != HALLWAY and not n.flags & TileFlag.JUNCTION:
                n.set(TileFlag.JUNCTION)
                flagged += 1
    return flagged


def flag_hallway_junctions(grid: TileGrid, x0: int, y0: int, x1: int, y1: int) -> int:
    """Flag hallway tiles in [x0, x1) x [y0, y1) where three or more open paths meet.

    Room tiles are left untouched.
    """
    flagged = 0
    for x, y, t in grid.iter_scan(max(0, x0), max(0, y0), min(grid.width, x1), min(grid.height, y1)):
        if t.terrain != OPEN or t.room_index != HALLWAY:
            continue
        open_sides = sum(1 for _nx, _ny, n in grid.neighbors4(x, y) if n.terrain == OPEN)
        if open_sides >= 3 and not t.flags & TileFlag.JUNCTION:
            t.set(TileFlag.JUNCTION)
            flagged += 1
    return flagged


def is_next_to_hallway(grid: TileGrid, x: int, y: int) -> bool:
    """True if the tile is an open hallway tile or one of its eight neighbors is."""
    for dx, dy in ((0, 0),) + DIRS8:
        nx, ny = x + dx, y + dy
        if grid.in_bounds(nx, ny):
            n = grid.tiles[nx][ny]
            if n.terrain == OPEN and n.room_index in (HALLWAY, HALLWAY_ANCHOR):
                return True
    return False


__all__ = ["finalize_junctions", "flag_hallway_junctions", "is_next_to_hallway"]
