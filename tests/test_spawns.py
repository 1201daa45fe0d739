import pytest

from floorgen.dungeon import FloorProperties, SpawnKind, SpawnPlacementError, generate_floor
from floorgen.dungeon.cells import TAG_MONSTER_HOUSE, CellGrid
from floorgen.dungeon.config import HiddenStairsType
from floorgen.dungeon.rng import SeededRandom
from floorgen.dungeon.spawns import (
    SPAWN_RULES,
    SpawnRecord,
    SpawnRule,
    eligible_positions,
    resolve_invalid_spawns,
    shuffle_spawn_positions,
    spawn_count,
    spawn_enemies,
    spawn_non_enemies,
    spawn_stairs,
    tile_eligible,
)
from floorgen.dungeon.features import room_tags, tag_room
from floorgen.dungeon.tiles import OPEN, SECONDARY, Tile, TileFlag

from floor_test_utils import blank_grid, carve_room


def room_tile(*flags):
    t = Tile(OPEN, 0)
    for f in flags:
        t.set(f)
    return t


def single_room_floor(width=20, height=14):
    g = blank_grid(width, height)
    room = carve_room(g, 3, 3, width - 6, height - 6, index=0)
    cg = CellGrid([0, width], [0, height])
    cg.at(0, 0).room = room
    return g, cg, room


@pytest.mark.parametrize(
    "flag",
    [TileFlag.IN_KECLEON_SHOP, TileFlag.JUNCTION, TileFlag.SPECIAL, TileFlag.ENEMY_SPAWN],
)
def test_stairs_rule_rejects(flag):
    assert tile_eligible(room_tile(), SpawnRule.STAIRS)
    assert not tile_eligible(room_tile(flag), SpawnRule.STAIRS)


def test_stairs_need_room_tile():
    hallway = Tile(OPEN)
    assert not tile_eligible(hallway, SpawnRule.STAIRS)
    assert tile_eligible(hallway, SpawnRule.ENEMY)


def test_buried_items_any_wall():
    wall = Tile()
    assert tile_eligible(wall, SpawnRule.BURIED_ITEM)
    wall.set(TileFlag.IMPASSABLE)
    assert tile_eligible(wall, SpawnRule.BURIED_ITEM)
    assert not tile_eligible(room_tile(), SpawnRule.BURIED_ITEM)


def test_monster_house_rules():
    house = room_tile(TileFlag.IN_MONSTER_HOUSE)
    assert tile_eligible(house, SpawnRule.MONSTER_HOUSE_ITEM)
    assert not tile_eligible(house, SpawnRule.ITEM)
    assert tile_eligible(room_tile(TileFlag.IN_MONSTER_HOUSE, TileFlag.ITEM_SPAWN), SpawnRule.MONSTER_HOUSE_ENEMY)
    assert not tile_eligible(room_tile(TileFlag.IN_MONSTER_HOUSE, TileFlag.PLAYER_SPAWN), SpawnRule.MONSTER_HOUSE_ENEMY)
    assert not tile_eligible(room_tile(TileFlag.IN_MONSTER_HOUSE, TileFlag.ENEMY_SPAWN), SpawnRule.MONSTER_HOUSE_ENEMY)


def test_enemy_rule_needs_empty_tile_and_player_rule_avoids_traps():
    assert not tile_eligible(room_tile(TileFlag.TRAP_SPAWN), SpawnRule.ENEMY)
    assert not tile_eligible(room_tile(TileFlag.TRAP_SPAWN), SpawnRule.PLAYER)
    assert tile_eligible(room_tile(TileFlag.TRAP_SPAWN), SpawnRule.STAIRS)


def test_every_rule_has_predicates():
    assert set(SPAWN_RULES) == set(SpawnRule)
    assert all(SPAWN_RULES[r] for r in SpawnRule)


def test_stairs_and_trap_resolve_to_stairs():
    g, _cg, _room = single_room_floor()
    t = g.tiles[5][5]
    t.set(TileFlag.STAIRS_SPAWN | TileFlag.TRAP_SPAWN)
    spawns = [SpawnRecord(SpawnKind.STAIRS, 5, 5), SpawnRecord(SpawnKind.TRAP, 5, 5, 7)]
    cleared = resolve_invalid_spawns(g, spawns)
    assert cleared == 1
    assert t.has(TileFlag.STAIRS_SPAWN) and not t.has(TileFlag.TRAP_SPAWN)
    assert [s.kind for s in spawns] == [SpawnKind.STAIRS]


def test_other_precedence_rules():
    g, _cg, _room = single_room_floor()
    g.tiles[4][4].set(TileFlag.ITEM_SPAWN | TileFlag.TRAP_SPAWN)
    g.tiles[6][6].set(TileFlag.PLAYER_SPAWN | TileFlag.ENEMY_SPAWN)
    g.tiles[7][7].terrain = SECONDARY
    g.tiles[7][7].set(TileFlag.TRAP_SPAWN | TileFlag.ITEM_SPAWN)
    g.tiles[1][1].set(TileFlag.ITEM_SPAWN)  # buried
    spawns = [
        SpawnRecord(SpawnKind.ITEM, 4, 4),
        SpawnRecord(SpawnKind.TRAP, 4, 4),
        SpawnRecord(SpawnKind.PLAYER, 6, 6),
        SpawnRecord(SpawnKind.ENEMY, 6, 6),
        SpawnRecord(SpawnKind.TRAP, 7, 7),
        SpawnRecord(SpawnKind.ITEM, 7, 7),
        SpawnRecord(SpawnKind.ITEM, 1, 1, buried=True),
    ]
    resolve_invalid_spawns(g, spawns)
    assert [(s.kind, s.x, s.y) for s in spawns] == [
        (SpawnKind.ITEM, 4, 4),
        (SpawnKind.PLAYER, 6, 6),
        (SpawnKind.ITEM, 1, 1),
    ]


def test_shuffle_keeps_positions():
    g, _cg, room = single_room_floor()
    positions = eligible_positions(g, SpawnRule.STAIRS)
    assert len(positions) == room.w * room.h
    shuffled = shuffle_spawn_positions(positions, SeededRandom(3))
    assert sorted(shuffled) == sorted(positions)


def test_spawn_count_bounds():
    rng = SeededRandom(1)
    assert spawn_count(0, rng) == 0
    for _ in range(50):
        assert 1 <= spawn_count(2, rng) <= 4
        assert 4 <= spawn_count(6, rng) <= 8


def test_rescue_floor_turns_stairs_room_into_monster_house():
    g, cg, room = single_room_floor()
    spawns = []
    rec = spawn_stairs(g, cg, FloorProperties(rescue_floor=True), SeededRandom(2), spawns)
    assert rec is not None and spawns == [rec]
    assert TAG_MONSTER_HOUSE in room_tags(cg, room)
    assert g.tiles[rec.x][rec.y].has(TileFlag.IN_MONSTER_HOUSE)


def test_hidden_stairs_need_two_floors_remaining():
    for remaining, expected in ((1, 0), (2, 1)):
        g, cg, _room = single_room_floor()
        props = FloorProperties(hidden_stairs=HiddenStairsType.SECRET_ROOM, floors_remaining=remaining)
        spawns = []
        spawn_non_enemies(g, cg, props, SeededRandom(5), spawns)
        hidden = [s for s in spawns if s.kind is SpawnKind.HIDDEN_STAIRS]
        assert len(hidden) == expected
        stairs = [s for s in spawns if s.kind is SpawnKind.STAIRS]
        assert len(stairs) == 1
        if hidden:
            assert (hidden[0].x, hidden[0].y) != (stairs[0].x, stairs[0].y)
            assert hidden[0].payload == "secret_room"


def test_existing_stairs_are_not_duplicated():
    g, cg, _room = single_room_floor()
    spawns = []
    spawn_stairs(g, cg, FloorProperties(), SeededRandom(1), spawns)
    spawn_non_enemies(g, cg, FloorProperties(), SeededRandom(1), spawns)
    assert len([s for s in spawns if s.kind is SpawnKind.STAIRS]) == 1
    assert len([s for s in spawns if s.kind is SpawnKind.PLAYER]) == 1


def test_missing_player_tile_raises():
    g = blank_grid(20, 14)
    cg = CellGrid([0, 20], [0, 14])
    with pytest.raises(SpawnPlacementError):
        spawn_non_enemies(g, cg, FloorProperties(), SeededRandom(1), [])


def test_empty_monster_house_gets_only_a_few_enemies():
    g, cg, room = single_room_floor(30, 20)
    tag_room(g, cg, room, TAG_MONSTER_HOUSE)
    props = FloorProperties(item_density=0, buried_item_density=0, trap_density=0, enemy_density=0)
    spawns = []
    spawn_non_enemies(g, cg, props, SeededRandom(4), spawns, empty_monster_house=True)
    spawn_enemies(g, props, SeededRandom(4), spawns, empty_monster_house=True)
    assert not [s for s in spawns if s.kind in (SpawnKind.ITEM, SpawnKind.TRAP)]
    enemies = [s for s in spawns if s.kind is SpawnKind.ENEMY]
    assert len(enemies) == 3 and all(s.monster_house for s in enemies)


def test_full_monster_house_is_dense():
    g, cg, room = single_room_floor(30, 20)
    tag_room(g, cg, room, TAG_MONSTER_HOUSE)
    props = FloorProperties(item_ids=(11, 12), enemy_ids=(301,))
    spawns = []
    spawn_non_enemies(g, cg, props, SeededRandom(4), spawns)
    spawn_enemies(g, props, SeededRandom(4), spawns)
    house_items = [s for s in spawns if s.kind is SpawnKind.ITEM and s.monster_house]
    house_enemies = [s for s in spawns if s.kind is SpawnKind.ENEMY and s.monster_house]
    assert house_items and all(s.payload in (11, 12) for s in house_items)
    assert len(house_enemies) > 3
    assert all(s.payload == 301 for s in house_enemies)


def test_monster_house_enemies_skip_occupied_tiles():
    g = blank_grid(12, 10)
    room = carve_room(g, 2, 2, 4, 4)
    spawns = []
    for x, y in room.cells():
        g.tiles[x][y].set(TileFlag.IN_MONSTER_HOUSE)
    occupied = list(room.cells())[:10]
    for x, y in occupied:
        g.tiles[x][y].set(TileFlag.ENEMY_SPAWN)
        spawns.append(SpawnRecord(SpawnKind.ENEMY, x, y))
    spawn_enemies(g, FloorProperties(enemy_density=0), SeededRandom(3), spawns)
    house_enemies = [s for s in spawns if s.monster_house]
    # 16 house tiles -> 5 enemies, all on the 6 free tiles
    assert len(house_enemies) == 5
    assert not {(s.x, s.y) for s in house_enemies} & set(occupied)
    assert resolve_invalid_spawns(g, spawns) == 0


@pytest.mark.structure
@pytest.mark.parametrize("seed", [5, 6, 7, 8, 9, 10])
def test_no_normal_spawns_in_kecleon_shop(seed):
    props = FloorProperties(
        kecleon_shop_chance=100,
        item_density=12,
        trap_density=12,
        enemy_density=14,
        room_density=6,
        grid_columns=3,
        grid_rows=2,
    )
    floor = generate_floor(props, seed=seed)
    grid = floor.grid
    assert floor.metrics["kecleon_shops"] == 1
    assert grid.positions_with(TileFlag.IN_KECLEON_SHOP)
    for s in floor.spawns:
        if s.kind in (SpawnKind.ITEM, SpawnKind.TRAP, SpawnKind.ENEMY, SpawnKind.STAIRS, SpawnKind.PLAYER):
            assert not grid.tiles[s.x][s.y].has(TileFlag.IN_KECLEON_SHOP), f"{s.kind.value} in shop at {(s.x, s.y)}"
