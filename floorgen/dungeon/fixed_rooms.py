"""Hand-authored fixed rooms.

Fixed-room data comes from an external loader; this module defines the
loader contract, a small in-memory catalog, and stamping of a loaded room onto
the tile grid. Layout rows use one character per tile:

    #  wall            X  impassable wall
    .  room floor      *  special floor (key doors and the like)
    -  hallway floor   ~  secondary terrain
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from .grid import TileGrid
from .spawns import KIND_FLAGS, SpawnKind, SpawnRecord
from .tiles import HALLWAY, OPEN, SECONDARY, WALL, TileFlag

FIXED_ROOM_INDEX = 0

_LEGEND = {
    "#": (WALL, HALLWAY, TileFlag.NONE),
    "X": (WALL, HALLWAY, TileFlag.IMPASSABLE),
    ".": (OPEN, FIXED_ROOM_INDEX, TileFlag.NONE),
    "*": (OPEN, FIXED_ROOM_INDEX, TileFlag.SPECIAL),
    "-": (OPEN, HALLWAY, TileFlag.NONE),
    "~": (SECONDARY, FIXED_ROOM_INDEX, TileFlag.NONE),
}


@dataclass(frozen=True)
class FixedSpawn:
    kind: SpawnKind
    x: int  # relative to the room's top-left corner
    y: int
    payload: Optional[object] = None


@dataclass(frozen=True)
class FixedRoom:
    fixed_room_id: int
    rows: Tuple[str, ...]
    spawns: Tuple[FixedSpawn, ...] = field(default_factory=tuple)
    walls_are_chasms: bool = False

    def __post_init__(self):
        if not self.rows or len({len(r) for r in self.rows}) != 1:
            raise ValueError(f"fixed room {self.fixed_room_id}: rows must be non-empty and equally long")
        bad = {ch for r in self.rows for ch in r if ch not in _LEGEND}
        if bad:
            raise ValueError(f"fixed room {self.fixed_room_id}: unknown tile characters {sorted(bad)}")
        for s in self.spawns:
            if not (0 <= s.x < self.width and 0 <= s.y < self.height):
                raise ValueError(f"fixed room {self.fixed_room_id}: spawn {s} outside the layout")

    @property
    def width(self) -> int:
        return len(self.rows[0])

    @property
    def height(self) -> int:
        return len(self.rows)


class FixedRoomLoader(Protocol):
    def load(self, fixed_room_id: int) -> Optional[FixedRoom]:
        """Return the room, or None when the id is unknown."""


class FixedRoomCatalog:
    """In-memory ``FixedRoomLoader``."""

    def __init__(self, rooms: Iterable[FixedRoom] = ()):
        self._rooms: Dict[int, FixedRoom] = {}
        for room in rooms:
            self.add(room)

    def add(self, room: FixedRoom) -> None:
        self._rooms[room.fixed_room_id] = room

    def load(self, fixed_room_id: int) -> Optional[FixedRoom]:
        return self._rooms.get(fixed_room_id)

    def __len__(self) -> int:
        return len(self._rooms)


def fixed_room_origin(grid: TileGrid, room: FixedRoom) -> Tuple[int, int]:
    """Top-left corner that centers ``room`` on the grid, clear of the border."""
    if room.width > grid.width - 2 or room.height > grid.height - 2:
        raise ValueError(
            f"fixed room {room.fixed_room_id} ({room.width}x{room.height}) "
            f"does not fit a {grid.width}x{grid.height} floor"
        )
    return (grid.width - room.width) // 2, (grid.height - room.height) // 2


def stamp_fixed_room(grid: TileGrid, room: FixedRoom, spawns: List[SpawnRecord]) -> Tuple[int, int]:
    """Write the room layout and its embedded spawns; returns the origin used."""
    ox, oy = fixed_room_origin(grid, room)
    for ry, row in enumerate(room.rows):
        for rx, ch in enumerate(row):
            terrain, room_index, flags = _LEGEND[ch]
            t = grid.tiles[ox + rx][oy + ry]
            t.terrain = terrain
            t.room_index = room_index
            t.set(flags)
    for s in room.spawns:
        x, y = ox + s.x, oy + s.y
        grid.tiles[x][y].set(KIND_FLAGS[s.kind])
        spawns.append(SpawnRecord(s.kind, x, y, s.payload))
    return ox, oy


__all__ = [
    "FixedSpawn",
    "FixedRoom",
    "FixedRoomLoader",
    "FixedRoomCatalog",
    "fixed_room_origin",
    "stamp_fixed_room",
]
