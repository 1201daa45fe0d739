"""Tile constants and the per-tile state record."""
from __future__ import annotations

from enum import IntFlag

# Terrain kinds
WALL = "wall"
OPEN = "open"
SECONDARY = "secondary"  # water/lava
CHASM = "chasm"

TERRAIN_CODES = {WALL: 0, OPEN: 1, SECONDARY: 2, CHASM: 3}

# Reserved room indices
HALLWAY = 0xFF
HALLWAY_ANCHOR = 0xFE
MAX_ROOM_INDEX = 0xFD


class TileFlag(IntFlag):
    NONE = 0
    JUNCTION = 1 << 0
    IMPASSABLE = 1 << 1
    IN_KECLEON_SHOP = 1 << 2
    IN_MONSTER_HOUSE = 1 << 3
    SPECIAL = 1 << 4  # key doors and similar fixed-room tiles
    STAIRS_SPAWN = 1 << 5
    HIDDEN_STAIRS_SPAWN = 1 << 6
    ITEM_SPAWN = 1 << 7
    TRAP_SPAWN = 1 << 8
    ENEMY_SPAWN = 1 << 9
    PLAYER_SPAWN = 1 << 10
    UNREACHABLE = 1 << 11


SPAWN_FLAGS = (
    TileFlag.STAIRS_SPAWN
    | TileFlag.HIDDEN_STAIRS_SPAWN
    | TileFlag.ITEM_SPAWN
    | TileFlag.TRAP_SPAWN
    | TileFlag.ENEMY_SPAWN
    | TileFlag.PLAYER_SPAWN
)


class Tile:
    """Mutable state of one floor tile."""
    __slots__ = ("terrain", "room_index", "flags")

    def __init__(self, terrain: str = WALL, room_index: int = HALLWAY, flags: TileFlag = TileFlag.NONE):
        self.terrain = terrain
        self.room_index = room_index
        self.flags = flags

    def reset(self) -> None:
        self.terrain = WALL
        self.room_index = HALLWAY
        self.flags = TileFlag.NONE

    @property
    def is_open(self) -> bool:
        return self.terrain == OPEN

    @property
    def is_wall(self) -> bool:
        return self.terrain == WALL

    @property
    def in_room(self) -> bool:
        return self.room_index < HALLWAY_ANCHOR

    @property
    def is_hallway(self) -> bool:
        return self.room_index == HALLWAY

    @property
    def walkable(self) -> bool:
        return self.terrain == OPEN and not self.flags & TileFlag.IMPASSABLE

    def has(self, flag: TileFlag) -> bool:
        return bool(self.flags & flag)

    def set(self, flag: TileFlag) -> None:
        self.flags |= flag

    def clear(self, flag: TileFlag) -> None:
        self.flags &= ~flag

    def to_dict(self):
        return {"terrain": self.terrain, "room_index": self.room_index, "flags": int(self.flags)}

    def __repr__(self) -> str:
        return f"Tile({self.terrain!r}, room_index={self.room_index:#x}, flags={int(self.flags):#x})"


__all__ = [
    "WALL",
    "OPEN",
    "SECONDARY",
    "CHASM",
    "HALLWAY",
    "HALLWAY_ANCHOR",
    "MAX_ROOM_INDEX",
    "TileFlag",
    "SPAWN_FLAGS",
    "Tile",
]
