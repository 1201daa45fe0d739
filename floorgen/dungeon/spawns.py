"""Entity placement on a finished floor.

Eligibility of a tile for each kind of spawn is a conjunction of small tile
predicates, kept in the ``SPAWN_RULES`` table. Placement draws a shuffled list
of eligible tiles and consumes it in order. Two passes run, non-enemies then
enemies, followed by ``resolve_invalid_spawns`` which clears flags that lost a
same-tile conflict.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..logging_utils import get_logger
from .cells import TAG_MONSTER_HOUSE, CellGrid, Room
from .config import FloorProperties, HiddenStairsType
from .errors import SpawnPlacementError
from .features import tag_room
from .grid import Coord2D, TileGrid
from .rng import RandomSource
from .tiles import OPEN, SPAWN_FLAGS, WALL, Tile, TileFlag

log = get_logger("spawns")

MAX_MONSTER_HOUSE_ITEMS = 20
MAX_MONSTER_HOUSE_TRAPS = 15
MAX_MONSTER_HOUSE_ENEMIES = 30
EMPTY_MONSTER_HOUSE_ENEMIES = 3


class SpawnKind(str, Enum):
    STAIRS = "stairs"
    HIDDEN_STAIRS = "hidden_stairs"
    ITEM = "item"
    TRAP = "trap"
    ENEMY = "enemy"
    PLAYER = "player"


KIND_FLAGS: Dict[SpawnKind, TileFlag] = {
    SpawnKind.STAIRS: TileFlag.STAIRS_SPAWN,
    SpawnKind.HIDDEN_STAIRS: TileFlag.HIDDEN_STAIRS_SPAWN,
    SpawnKind.ITEM: TileFlag.ITEM_SPAWN,
    SpawnKind.TRAP: TileFlag.TRAP_SPAWN,
    SpawnKind.ENEMY: TileFlag.ENEMY_SPAWN,
    SpawnKind.PLAYER: TileFlag.PLAYER_SPAWN,
}


@dataclass
class SpawnRecord:
    kind: SpawnKind
    x: int
    y: int
    payload: Optional[object] = None
    buried: bool = False
    monster_house: bool = False

    def to_dict(self):
        return {
            "kind": self.kind.value,
            "x": self.x,
            "y": self.y,
            "payload": self.payload,
            "buried": self.buried,
            "monster_house": self.monster_house,
        }


# --- tile predicates --------------------------------------------------------

TilePredicate = Callable[[Tile], bool]


def is_open(t: Tile) -> bool:
    return t.terrain == OPEN


def is_wall(t: Tile) -> bool:
    return t.terrain == WALL


def in_room(t: Tile) -> bool:
    return t.in_room


def in_monster_house(t: Tile) -> bool:
    return bool(t.flags & TileFlag.IN_MONSTER_HOUSE)


def not_shop(t: Tile) -> bool:
    return not t.flags & TileFlag.IN_KECLEON_SHOP


def not_monster_house(t: Tile) -> bool:
    return not t.flags & TileFlag.IN_MONSTER_HOUSE


def not_junction(t: Tile) -> bool:
    return not t.flags & TileFlag.JUNCTION


def not_special(t: Tile) -> bool:
    return not t.flags & TileFlag.SPECIAL


def no_item_spawn(t: Tile) -> bool:
    return not t.flags & TileFlag.ITEM_SPAWN


def no_trap_spawn(t: Tile) -> bool:
    return not t.flags & TileFlag.TRAP_SPAWN


def no_enemy_spawn(t: Tile) -> bool:
    return not t.flags & TileFlag.ENEMY_SPAWN


def no_player_spawn(t: Tile) -> bool:
    return not t.flags & TileFlag.PLAYER_SPAWN


def no_spawn(t: Tile) -> bool:
    return not t.flags & SPAWN_FLAGS


class SpawnRule(str, Enum):
    STAIRS = "stairs"
    HIDDEN_STAIRS = "hidden_stairs"
    ITEM = "item"
    BURIED_ITEM = "buried_item"
    MONSTER_HOUSE_ITEM = "monster_house_item"
    TRAP = "trap"
    MONSTER_HOUSE_TRAP = "monster_house_trap"
    PLAYER = "player"
    ENEMY = "enemy"
    MONSTER_HOUSE_ENEMY = "monster_house_enemy"


_STAIRS_PREDICATES = (is_open, in_room, not_shop, no_enemy_spawn, not_junction, not_special)
_MONSTER_HOUSE_LOOT_PREDICATES = (in_monster_house, not_shop, not_junction)

SPAWN_RULES: Dict[SpawnRule, Tuple[TilePredicate, ...]] = {
    SpawnRule.STAIRS: _STAIRS_PREDICATES,
    SpawnRule.HIDDEN_STAIRS: _STAIRS_PREDICATES,
    SpawnRule.ITEM: (is_open, in_room, not_shop, not_monster_house, not_junction, not_special),
    SpawnRule.BURIED_ITEM: (is_wall,),
    SpawnRule.MONSTER_HOUSE_ITEM: _MONSTER_HOUSE_LOOT_PREDICATES,
    SpawnRule.TRAP: (is_open, in_room, not_shop, no_item_spawn, no_enemy_spawn, not_special),
    SpawnRule.MONSTER_HOUSE_TRAP: _MONSTER_HOUSE_LOOT_PREDICATES,
    SpawnRule.PLAYER: (
        is_open,
        in_room,
        not_shop,
        not_junction,
        no_item_spawn,
        no_enemy_spawn,
        no_trap_spawn,
        not_special,
    ),
    SpawnRule.ENEMY: (is_open, not_shop, no_spawn, not_special),
    SpawnRule.MONSTER_HOUSE_ENEMY: (in_monster_house, not_shop, no_enemy_spawn, no_player_spawn, not_special),
}


def tile_eligible(tile: Tile, rule: SpawnRule) -> bool:
    return all(pred(tile) for pred in SPAWN_RULES[rule])


def eligible_positions(grid: TileGrid, rule: SpawnRule) -> List[Coord2D]:
    """Eligible tiles for ``rule`` in row-major order."""
    preds = SPAWN_RULES[rule]
    return [(x, y) for x, y, t in grid.iter_scan() if all(p(t) for p in preds)]


def shuffle_spawn_positions(positions: Sequence[Coord2D], rng: RandomSource) -> List[Coord2D]:
    shuffled = list(positions)
    rng.shuffle(shuffled)
    return shuffled


def spawn_count(density: int, rng: RandomSource) -> int:
    """Randomised count around ``density``; zero density spawns nothing."""
    if density <= 0:
        return 0
    return rng.rand_range(max(1, density - 2), density + 3)


def _payload(pool: Sequence[object], rng: RandomSource):
    return rng.choice(pool) if pool else None


def place_spawns(
    grid: TileGrid,
    spawns: List[SpawnRecord],
    kind: SpawnKind,
    rule: SpawnRule,
    count: int,
    rng: RandomSource,
    pool: Sequence[object] = (),
    buried: bool = False,
    monster_house: bool = False,
) -> int:
    """Place up to ``count`` spawns of ``kind`` on shuffled eligible tiles. Returns the number placed."""
    if count <= 0:
        return 0
    flag = KIND_FLAGS[kind]
    placed = 0
    for x, y in shuffle_spawn_positions(eligible_positions(grid, rule), rng):
        if placed >= count:
            break
        t = grid.tiles[x][y]
        if not tile_eligible(t, rule):
            continue
        t.set(flag)
        spawns.append(SpawnRecord(kind, x, y, _payload(pool, rng), buried, monster_house))
        placed += 1
    return placed


def room_at(cell_grid: CellGrid, index: int) -> Optional[Room]:
    for room in cell_grid.rooms():
        if room.index == index:
            return room
    return None


def spawn_stairs(
    grid: TileGrid,
    cell_grid: CellGrid,
    props: FloorProperties,
    rng: RandomSource,
    spawns: List[SpawnRecord],
) -> Optional[SpawnRecord]:
    """Place the stairs; on rescue floors the stairs room becomes a Monster House.

    Returns None when no tile qualifies.
    """
    positions = eligible_positions(grid, SpawnRule.STAIRS)
    if not positions:
        return None
    x, y = rng.choice(positions)
    t = grid.tiles[x][y]
    t.set(TileFlag.STAIRS_SPAWN)
    record = SpawnRecord(SpawnKind.STAIRS, x, y)
    spawns.append(record)
    if props.rescue_floor:
        room = room_at(cell_grid, t.room_index)
        if room is not None:
            tag_room(grid, cell_grid, room, TAG_MONSTER_HOUSE)
    return record


def spawn_hidden_stairs(
    grid: TileGrid, props: FloorProperties, rng: RandomSource, spawns: List[SpawnRecord]
) -> Optional[SpawnRecord]:
    if props.hidden_stairs is HiddenStairsType.NONE or props.floors_remaining < 2:
        return None
    positions = [
        (x, y)
        for x, y in eligible_positions(grid, SpawnRule.HIDDEN_STAIRS)
        if not grid.tiles[x][y].flags & TileFlag.STAIRS_SPAWN
    ]
    if not positions:
        return None
    x, y = rng.choice(positions)
    grid.tiles[x][y].set(TileFlag.HIDDEN_STAIRS_SPAWN)
    record = SpawnRecord(SpawnKind.HIDDEN_STAIRS, x, y, props.hidden_stairs.value)
    spawns.append(record)
    return record


def _monster_house_size(grid: TileGrid) -> int:
    return sum(1 for _x, _y, t in grid.iter_scan() if t.flags & TileFlag.IN_MONSTER_HOUSE)


def spawn_non_enemies(
    grid: TileGrid,
    cell_grid: CellGrid,
    props: FloorProperties,
    rng: RandomSource,
    spawns: List[SpawnRecord],
    empty_monster_house: bool = False,
) -> None:
    """Stairs (if not already placed), hidden stairs, items, traps and the player."""
    if not any(s.kind is SpawnKind.STAIRS for s in spawns):
        spawn_stairs(grid, cell_grid, props, rng, spawns)
    spawn_hidden_stairs(grid, props, rng, spawns)

    house = 0 if empty_monster_house else _monster_house_size(grid)
    place_spawns(grid, spawns, SpawnKind.ITEM, SpawnRule.ITEM, spawn_count(props.item_density, rng), rng, props.item_ids)
    place_spawns(
        grid, spawns, SpawnKind.ITEM, SpawnRule.BURIED_ITEM,
        spawn_count(props.buried_item_density, rng), rng, props.item_ids, buried=True,
    )
    if house:
        place_spawns(
            grid, spawns, SpawnKind.ITEM, SpawnRule.MONSTER_HOUSE_ITEM,
            min(house // 5, MAX_MONSTER_HOUSE_ITEMS), rng, props.item_ids, monster_house=True,
        )
    place_spawns(grid, spawns, SpawnKind.TRAP, SpawnRule.TRAP, spawn_count(props.trap_density, rng), rng, props.trap_ids)
    if house:
        place_spawns(
            grid, spawns, SpawnKind.TRAP, SpawnRule.MONSTER_HOUSE_TRAP,
            min(house // 6, MAX_MONSTER_HOUSE_TRAPS), rng, props.trap_ids, monster_house=True,
        )
    if not place_spawns(grid, spawns, SpawnKind.PLAYER, SpawnRule.PLAYER, 1, rng):
        log.error(event="mandatory_spawn_missing", kind=SpawnKind.PLAYER.value)
        raise SpawnPlacementError(SpawnKind.PLAYER.value)


def spawn_enemies(
    grid: TileGrid,
    props: FloorProperties,
    rng: RandomSource,
    spawns: List[SpawnRecord],
    empty_monster_house: bool = False,
) -> None:
    place_spawns(
        grid, spawns, SpawnKind.ENEMY, SpawnRule.ENEMY, spawn_count(props.enemy_density, rng), rng, props.enemy_ids
    )
    house = _monster_house_size(grid)
    if house:
        count = EMPTY_MONSTER_HOUSE_ENEMIES if empty_monster_house else min(house // 3, MAX_MONSTER_HOUSE_ENEMIES)
        place_spawns(
            grid, spawns, SpawnKind.ENEMY, SpawnRule.MONSTER_HOUSE_ENEMY, count, rng, props.enemy_ids,
            monster_house=True,
        )


_STAIRS_FLAGS = TileFlag.STAIRS_SPAWN | TileFlag.HIDDEN_STAIRS_SPAWN


def resolve_invalid_spawns(grid: TileGrid, spawns: List[SpawnRecord]) -> int:
    """Clear spawn flags that are invalid for their terrain or lose a same-tile conflict.

    Precedence is stairs (or hidden stairs) over items over traps, and the
    player over enemies. Items survive on walls (buried). ``spawns`` is
    filtered in place to the records whose flag survived, first record per
    tile and kind. Returns the number of flags cleared.
    """
    cleared = 0
    for _x, _y, t in grid.iter_scan():
        f = t.flags
        if not f & SPAWN_FLAGS:
            continue
        if f & TileFlag.TRAP_SPAWN and (t.terrain != OPEN or f & (_STAIRS_FLAGS | TileFlag.ITEM_SPAWN)):
            t.clear(TileFlag.TRAP_SPAWN)
            cleared += 1
        if f & TileFlag.ITEM_SPAWN and (t.terrain not in (OPEN, WALL) or f & _STAIRS_FLAGS):
            t.clear(TileFlag.ITEM_SPAWN)
            cleared += 1
        if f & TileFlag.ENEMY_SPAWN and (t.terrain != OPEN or f & TileFlag.PLAYER_SPAWN):
            t.clear(TileFlag.ENEMY_SPAWN)
            cleared += 1
    seen = set()
    kept = []
    for s in spawns:
        key = (s.kind, s.x, s.y)
        if key in seen or not grid.tiles[s.x][s.y].flags & KIND_FLAGS[s.kind]:
            continue
        seen.add(key)
        kept.append(s)
    spawns[:] = kept
    return cleared


__all__ = [
    "SpawnKind",
    "SpawnRecord",
    "SpawnRule",
    "SPAWN_RULES",
    "KIND_FLAGS",
    "tile_eligible",
    "eligible_positions",
    "shuffle_spawn_positions",
    "spawn_count",
    "place_spawns",
    "spawn_stairs",
    "spawn_hidden_stairs",
    "spawn_non_enemies",
    "spawn_enemies",
    "resolve_invalid_spawns",
]
