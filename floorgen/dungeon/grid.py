"""Tile grid container and whole-grid passes.

The grid is the single mutable arena of a generation attempt. It is passed
explicitly to every phase; nothing keeps a module-level reference to it.
Tiles are indexed ``tiles[x][y]``; scans that depend on visiting order use
``iter_scan`` (rows top-to-bottom, each row left-to-right).
"""
from __future__ import annotations

from typing import Iterator, List, Tuple

from .tiles import (
    CHASM,
    HALLWAY,
    OPEN,
    SECONDARY,
    TERRAIN_CODES,
    WALL,
    Tile,
    TileFlag,
)

Coord2D = Tuple[int, int]

DIRS4 = ((0, -1), (1, 0), (0, 1), (-1, 0))
DIRS8 = ((-1, -1), (0, -1), (1, -1), (-1, 0), (1, 0), (-1, 1), (0, 1), (1, 1))

DEFAULT_WIDTH = 56
DEFAULT_HEIGHT = 32


class TileGrid:
    def __init__(self, width: int = DEFAULT_WIDTH, height: int = DEFAULT_HEIGHT):
        if width < 8 or height < 8:
            raise ValueError(f"grid too small: {width}x{height}")
        self.width = width
        self.height = height
        self.tiles: List[List[Tile]] = [[Tile() for _ in range(height)] for _ in range(width)]
        self.reset()

    def reset(self) -> None:
        """Reset every tile and make the outer border impassable."""
        for column in self.tiles:
            for t in column:
                t.reset()
        for x in range(self.width):
            self.tiles[x][0].set(TileFlag.IMPASSABLE)
            self.tiles[x][self.height - 1].set(TileFlag.IMPASSABLE)
        for y in range(self.height):
            self.tiles[0][y].set(TileFlag.IMPASSABLE)
            self.tiles[self.width - 1][y].set(TileFlag.IMPASSABLE)

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def in_interior(self, x: int, y: int) -> bool:
        return 1 <= x < self.width - 1 and 1 <= y < self.height - 1

    def tile(self, x: int, y: int) -> Tile:
        return self.tiles[x][y]

    def neighbors4(self, x: int, y: int) -> Iterator[Tuple[int, int, Tile]]:
        for dx, dy in DIRS4:
            nx, ny = x + dx, y + dy
            if 0 <= nx < self.width and 0 <= ny < self.height:
                yield nx, ny, self.tiles[nx][ny]

    def iter_scan(self, x0: int = 0, y0: int = 0, x1: int | None = None, y1: int | None = None):
        """Yield (x, y, tile) row-major over [x0, x1) x [y0, y1)."""
        x1 = self.width if x1 is None else x1
        y1 = self.height if y1 is None else y1
        for y in range(y0, y1):
            for x in range(x0, x1):
                yield x, y, self.tiles[x][y]

    def positions_with(self, flag: TileFlag) -> List[Coord2D]:
        return [(x, y) for x, y, t in self.iter_scan() if t.flags & flag]

    def count_terrain(self, terrain: str) -> int:
        return sum(1 for _x, _y, t in self.iter_scan() if t.terrain == terrain)

    # --- whole-grid passes -------------------------------------------------

    def ensure_impassable_tiles_are_walls(self) -> int:
        changed = 0
        for _x, _y, t in self.iter_scan():
            if t.flags & TileFlag.IMPASSABLE and t.terrain != WALL:
                t.terrain = WALL
                changed += 1
        return changed

    def convert_secondary_terrain_to_chasms(self) -> int:
        changed = 0
        for _x, _y, t in self.iter_scan():
            if t.terrain == SECONDARY:
                t.terrain = CHASM
                changed += 1
        return changed

    def convert_walls_to_chasms(self) -> int:
        """Turn every passable wall into a chasm; impassable walls stay."""
        changed = 0
        for _x, _y, t in self.iter_scan():
            if t.terrain == WALL and not t.flags & TileFlag.IMPASSABLE:
                t.terrain = CHASM
                changed += 1
        return changed

    def reset_inner_boundary_tile_rows(self) -> None:
        """Reset rows y == 1 and y == height - 2 to plain walls, impassable at both ends."""
        for y in (1, self.height - 2):
            for x in range(self.width):
                t = self.tiles[x][y]
                t.reset()
                if x in (0, self.width - 1):
                    t.set(TileFlag.IMPASSABLE)

    # --- diagnostics -------------------------------------------------------

    def fingerprint(self) -> bytes:
        """Bit-exact encoding of the grid, used for determinism comparisons."""
        out = bytearray()
        for _x, _y, t in self.iter_scan():
            flags = int(t.flags)
            out += bytes((TERRAIN_CODES[t.terrain], t.room_index, flags & 0xFF, flags >> 8))
        return bytes(out)

    def to_ascii(self) -> str:
        rows = []
        for y in range(self.height):
            row = []
            for x in range(self.width):
                t = self.tiles[x][y]
                if t.flags & TileFlag.STAIRS_SPAWN:
                    ch = ">"
                elif t.flags & TileFlag.PLAYER_SPAWN:
                    ch = "@"
                elif t.terrain == OPEN:
                    ch = "-" if t.room_index == HALLWAY else "."
                elif t.terrain == SECONDARY:
                    ch = "~"
                elif t.terrain == CHASM:
                    ch = " "
                else:
                    ch = "#"
                row.append(ch)
            rows.append("".join(row))
        return "\n".join(rows)


__all__ = ["TileGrid", "Coord2D", "DIRS4", "DIRS8", "DEFAULT_WIDTH", "DEFAULT_HEIGHT"]
