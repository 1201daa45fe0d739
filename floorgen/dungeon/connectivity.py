"""Reachability validation: every walkable tile must be reachable from the stairs."""
from __future__ import annotations

from collections import deque
from typing import List, Set

from .grid import Coord2D, TileGrid
from .tiles import TileFlag


def walkable_tiles(grid: TileGrid) -> List[Coord2D]:
    return [(x, y) for x, y, t in grid.iter_scan() if t.walkable]


def flood_from(grid: TileGrid, x: int, y: int) -> Set[Coord2D]:
    """Walkable tiles four-connected to (x, y), the start included."""
    if not grid.in_bounds(x, y) or not grid.tiles[x][y].walkable:
        return set()
    visited = {(x, y)}
    q = deque([(x, y)])
    while q:
        cx, cy = q.popleft()
        for nx, ny, n in grid.neighbors4(cx, cy):
            if (nx, ny) not in visited and n.walkable:
                visited.add((nx, ny))
                q.append((nx, ny))
    return visited


def stairs_always_reachable(grid: TileGrid, x: int, y: int, mark_only: bool = False) -> bool:
    """Flag walkable tiles not reachable from the stairs at (x, y).

    Returns False when any tile was flagged, unless ``mark_only`` is set, in
    which case the flags are still written but the result is always True.
    """
    visited = flood_from(grid, x, y)
    unreachable = 0
    for tx, ty, t in grid.iter_scan():
        t.clear(TileFlag.UNREACHABLE)
        if t.walkable and (tx, ty) not in visited:
            t.set(TileFlag.UNREACHABLE)
            unreachable += 1
    return mark_only or unreachable == 0


__all__ = ["walkable_tiles", "flood_from", "stairs_always_reachable"]
