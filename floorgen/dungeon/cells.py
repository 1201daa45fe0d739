from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Set, Tuple

ROLE_ROOM = "room"
ROLE_ANCHOR = "anchor"
ROLE_UNUSED = "unused"

# Connection directions between adjacent grid cells
UP, RIGHT, DOWN, LEFT = "up", "right", "down", "left"
OFFSETS = {UP: (0, -1), RIGHT: (1, 0), DOWN: (0, 1), LEFT: (-1, 0)}
OPPOSITE = {UP: DOWN, DOWN: UP, LEFT: RIGHT, RIGHT: LEFT}
DIRECTIONS = (UP, RIGHT, DOWN, LEFT)

# Room feature tags
TAG_KECLEON_SHOP = "kecleon_shop"
TAG_MONSTER_HOUSE = "monster_house"
TAG_MAZE = "maze"
TAG_IMPERFECT = "imperfect"


@dataclass
class Room:
    index: int
    x: int
    y: int
    w: int
    h: int

    @property
    def x1(self) -> int:
        return self.x + self.w

    @property
    def y1(self) -> int:
        return self.y + self.h

    def cells(self) -> Iterator[Tuple[int, int]]:
        for iy in range(self.y, self.y + self.h):
            for ix in range(self.x, self.x + self.w):
                yield ix, iy

    @property
    def center(self) -> Tuple[int, int]:
        return (self.x + self.w // 2, self.y + self.h // 2)


@dataclass
class GridCell:
    """One partition of the layout grid; discarded once the tiles are final."""
    col: int
    row: int
    x0: int
    y0: int
    x1: int
    y1: int
    role: str = ROLE_UNUSED
    room: Optional[Room] = None
    anchor: Optional[Tuple[int, int]] = None
    connections: Set[str] = field(default_factory=set)
    tags: Set[str] = field(default_factory=set)

    @property
    def is_room(self) -> bool:
        return self.role == ROLE_ROOM

    @property
    def is_used(self) -> bool:
        return self.role != ROLE_UNUSED

    @property
    def width(self) -> int:
        return self.x1 - self.x0

    @property
    def height(self) -> int:
        return self.y1 - self.y0


class CellGrid:
    """Columns x rows arrangement of grid cells plus the tile-space boundaries."""

    def __init__(self, list_x: List[int], list_y: List[int]):
        self.list_x = list_x
        self.list_y = list_y
        self.cols = len(list_x) - 1
        self.rows = len(list_y) - 1
        self.cells: List[List[GridCell]] = [
            [GridCell(c, r, list_x[c], list_y[r], list_x[c + 1], list_y[r + 1]) for r in range(self.rows)]
            for c in range(self.cols)
        ]

    def __iter__(self) -> Iterator[GridCell]:
        for r in range(self.rows):
            for c in range(self.cols):
                yield self.cells[c][r]

    def at(self, col: int, row: int) -> GridCell:
        return self.cells[col][row]

    def neighbor(self, cell: GridCell, direction: str) -> Optional[GridCell]:
        dx, dy = OFFSETS[direction]
        c, r = cell.col + dx, cell.row + dy
        if 0 <= c < self.cols and 0 <= r < self.rows:
            return self.cells[c][r]
        return None

    def link(self, a: GridCell, direction: str) -> bool:
        """Connect ``a`` with its neighbor in ``direction``; False if there is none or it is unused."""
        b = self.neighbor(a, direction)
        if b is None or not a.is_used or not b.is_used:
            return False
        a.connections.add(direction)
        b.connections.add(OPPOSITE[direction])
        return True

    def rooms(self) -> List[Room]:
        seen = {}
        for cell in self:
            if cell.room is not None and cell.room.index not in seen:
                seen[cell.room.index] = cell.room
        return list(seen.values())


__all__ = [
    "Room",
    "GridCell",
    "CellGrid",
    "ROLE_ROOM",
    "ROLE_ANCHOR",
    "ROLE_UNUSED",
    "UP",
    "RIGHT",
    "DOWN",
    "LEFT",
    "OFFSETS",
    "OPPOSITE",
    "DIRECTIONS",
    "TAG_KECLEON_SHOP",
    "TAG_MONSTER_HOUSE",
    "TAG_MAZE",
    "TAG_IMPERFECT",
]
