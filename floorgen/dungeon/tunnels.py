"""Hallway carving between grid cells."""
from __future__ import annotations

from typing import Iterable, List, Tuple

from .cells import DOWN, RIGHT, CellGrid, GridCell
from .grid import Coord2D, TileGrid
from .rng import RandomSource
from .tiles import HALLWAY, OPEN, TileFlag


def _line(a: Coord2D, b: Coord2D) -> List[Coord2D]:
    (x1, y1), (x2, y2) = a, b
    if x1 == x2:
        step = 1 if y2 >= y1 else -1
        return [(x1, yy) for yy in range(y1, y2 + step, step)]
    step = 1 if x2 >= x1 else -1
    return [(xx, y1) for xx in range(x1, x2 + step, step)]


def hallway_path(start: Coord2D, end: Coord2D, vertical: bool, middle: int) -> List[Coord2D]:
    """Ordered tiles of a straight or kinked hallway from ``start`` to ``end``.

    Horizontal hallways (``vertical=False``) run along the start row to the
    column ``middle``, along that column to the end row, then along the end row.
    Vertical hallways mirror this with ``middle`` as the kink row. When both
    endpoints share the row (or column) the path is a straight line.
    """
    (sx, sy), (ex, ey) = start, end
    if vertical:
        if sx == ex:
            return _line(start, end)
        corners = [start, (sx, middle), (ex, middle), end]
    else:
        if sy == ey:
            return _line(start, end)
        corners = [start, (middle, sy), (middle, ey), end]
    path: List[Coord2D] = [start]
    for a, b in zip(corners, corners[1:]):
        for p in _line(a, b)[1:]:
            path.append(p)
    return path


def _carve_until_open(grid: TileGrid, path: Iterable[Coord2D]) -> int:
    """Carve along ``path``; the first tile is the endpoint and is always kept,
    later tiles stop the pass if already open. Returns tiles carved."""
    carved = 0
    for i, (x, y) in enumerate(path):
        t = grid.tiles[x][y]
        if t.flags & TileFlag.IMPASSABLE:
            break
        if t.terrain == OPEN:
            if i == 0:
                continue
            break
        t.terrain = OPEN
        t.room_index = HALLWAY
        carved += 1
    return carved


def create_hallway(grid: TileGrid, start: Coord2D, end: Coord2D, vertical: bool, middle: int) -> int:
    """Carve a hallway from both endpoints toward each other.

    Each pass stops at the first already-open tile it meets after its own
    endpoint, so hallways never tunnel through existing rooms or hallways.
    Returns the number of tiles carved.
    """
    path = hallway_path(start, end, vertical, middle)
    carved = _carve_until_open(grid, path)
    carved += _carve_until_open(grid, reversed(path))
    return carved


def _span(lo: int, hi: int, cell_lo: int, cell_hi: int) -> Tuple[int, int]:
    """Part of the room range [lo, hi) that lies in the cell range; whole room if none."""
    a, b = max(lo, cell_lo), min(hi, cell_hi)
    return (a, b) if a < b else (lo, hi)


def _endpoint(cell: GridCell, direction: str, outgoing: bool, rng: RandomSource) -> Coord2D:
    """Tile where a hallway leaves ``cell``: just outside its room edge, or its anchor."""
    if cell.room is None:
        return cell.anchor
    room = cell.room
    if direction == RIGHT:
        lo, hi = _span(room.y, room.y1, cell.y0, cell.y1)
        return (room.x1 if outgoing else room.x - 1, rng.rand_range(lo, hi))
    lo, hi = _span(room.x, room.x1, cell.x0, cell.x1)
    return (rng.rand_range(lo, hi), room.y1 if outgoing else room.y - 1)


def create_grid_cell_connections(grid: TileGrid, cell_grid: CellGrid, rng: RandomSource) -> int:
    """Carve one hallway for every linked pair of adjacent cells, in scan order."""
    carved = 0
    for cell in cell_grid:
        for direction in (RIGHT, DOWN):
            if direction not in cell.connections:
                continue
            other = cell_grid.neighbor(cell, direction)
            if other is None or not other.is_used:
                continue
            if cell.room is not None and cell.room is other.room:
                continue  # merged room spanning both cells
            start = _endpoint(cell, direction, True, rng)
            end = _endpoint(other, direction, False, rng)
            if direction == RIGHT:
                carved += create_hallway(grid, start, end, False, other.x0)
            else:
                carved += create_hallway(grid, start, end, True, other.y0)
    return carved


__all__ = ["hallway_path", "create_hallway", "create_grid_cell_connections"]
