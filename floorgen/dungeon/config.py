from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .grid import DEFAULT_HEIGHT, DEFAULT_WIDTH


class Layout(str, Enum):
    STANDARD = "standard"
    OUTER_RING = "outer_ring"
    CROSSROADS = "crossroads"
    LINE = "line"
    CROSS = "cross"
    BEETLE = "beetle"
    OUTER_ROOMS = "outer_rooms"
    ONE_ROOM_MONSTER_HOUSE = "one_room_monster_house"
    TWO_ROOMS_WITH_MONSTER_HOUSE = "two_rooms_with_monster_house"


# Layouts that get the full feature pass (maze, terrain, imperfections, ...)
FEATURE_LAYOUTS = frozenset(
    {
        Layout.STANDARD,
        Layout.OUTER_RING,
        Layout.CROSSROADS,
        Layout.LINE,
        Layout.CROSS,
        Layout.BEETLE,
        Layout.OUTER_ROOMS,
    }
)


class HiddenStairsType(str, Enum):
    NONE = "none"
    SECRET_BAZAAR = "secret_bazaar"
    SECRET_ROOM = "secret_room"


MIN_WIDTH, MAX_WIDTH = 16, 128
MIN_HEIGHT, MAX_HEIGHT = 12, 96


@dataclass(frozen=True)
class FloorProperties:
    """Caller-supplied, read-only configuration of one floor generation run.

    Percent values are in [0, 100]. A grid size of 0 lets the planner pick one.
    A negative ``room_density`` is an exact room count; a non-negative one gets
    up to two extra rooms at random.
    """
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    layout: Layout = Layout.STANDARD
    grid_columns: int = 0
    grid_rows: int = 0
    room_density: int = 4
    floor_connectivity: int = 3
    allow_dead_ends: bool = False
    # features
    maze_room_chance: int = 0
    secondary_terrain: bool = False
    secondary_terrain_density: int = 2
    lake_chance: int = 30
    secondary_terrain_as_chasms: bool = False
    imperfect_rooms: bool = False
    imperfection_chance: int = 40
    extra_hallway_density: int = 0
    kecleon_shop_chance: int = 0
    monster_house_chance: int = 0
    empty_monster_house_chance: int = 0
    # entities
    item_density: int = 4
    buried_item_density: int = 2
    trap_density: int = 3
    enemy_density: int = 5
    item_ids: Tuple[int, ...] = field(default_factory=tuple)
    trap_ids: Tuple[int, ...] = field(default_factory=tuple)
    enemy_ids: Tuple[int, ...] = field(default_factory=tuple)
    hidden_stairs: HiddenStairsType = HiddenStairsType.NONE
    floors_remaining: int = 1
    rescue_floor: bool = False
    fixed_room_id: Optional[int] = None

    def __post_init__(self):
        if not (MIN_WIDTH <= self.width <= MAX_WIDTH):
            raise ValueError(f"width must be in [{MIN_WIDTH}, {MAX_WIDTH}], got {self.width}")
        if not (MIN_HEIGHT <= self.height <= MAX_HEIGHT):
            raise ValueError(f"height must be in [{MIN_HEIGHT}, {MAX_HEIGHT}], got {self.height}")
        if self.grid_columns < 0 or self.grid_rows < 0:
            raise ValueError("grid size must be non-negative")
        for name in (
            "maze_room_chance",
            "lake_chance",
            "imperfection_chance",
            "kecleon_shop_chance",
            "monster_house_chance",
            "empty_monster_house_chance",
        ):
            value = getattr(self, name)
            if not (0 <= value <= 100):
                raise ValueError(f"{name} must be a percentage, got {value}")
        for name in (
            "floor_connectivity",
            "secondary_terrain_density",
            "extra_hallway_density",
            "item_density",
            "buried_item_density",
            "trap_density",
            "enemy_density",
            "floors_remaining",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        # Coerce plain strings passed by callers (e.g. from JSON) into enums
        if not isinstance(self.layout, Layout):
            object.__setattr__(self, "layout", Layout(self.layout))
        if not isinstance(self.hidden_stairs, HiddenStairsType):
            object.__setattr__(self, "hidden_stairs", HiddenStairsType(self.hidden_stairs))


__all__ = ["Layout", "FEATURE_LAYOUTS", "HiddenStairsType", "FloorProperties"]
