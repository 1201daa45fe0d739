import pytest

from floorgen import create_app
from floorgen.dungeon import (
    FixedRoom,
    FixedRoomCatalog,
    FixedSpawn,
    FloorGenerator,
    FloorProperties,
    FloorState,
    Layout,
    ScriptedRandom,
    SeededRandom,
    SpawnKind,
    generate_floor,
)
from floorgen.dungeon.connectivity import stairs_always_reachable
from floorgen.dungeon.spawns import KIND_FLAGS
from floorgen.dungeon.tiles import TileFlag

from floor_test_utils import bfs_reachable, walkable_set

# outer_rooms with three columns never links its top and bottom middle rooms
BROKEN = dict(layout=Layout.OUTER_ROOMS, grid_columns=3)

FEATURES = dict(
    secondary_terrain=True,
    lake_chance=60,
    imperfect_rooms=True,
    imperfection_chance=60,
    maze_room_chance=50,
    extra_hallway_density=3,
    kecleon_shop_chance=30,
    monster_house_chance=30,
    item_ids=(1, 2, 3),
    trap_ids=(20,),
    enemy_ids=(100, 101),
)


def test_same_seed_same_floor():
    props = FloorProperties(**FEATURES)
    a = generate_floor(props, seed=2024)
    b = generate_floor(props, seed=2024)
    assert a.grid.fingerprint() == b.grid.fingerprint()
    assert [s.to_dict() for s in a.spawns] == [s.to_dict() for s in b.spawns]
    assert a.history == b.history


def test_scripted_stream_replays():
    values = list(range(3, 400, 7))
    a = FloorGenerator(FloorProperties(), ScriptedRandom(values)).run()
    b = FloorGenerator(FloorProperties(), ScriptedRandom(values)).run()
    assert a.grid.fingerprint() == b.grid.fingerprint()
    assert a.spawns == b.spawns


@pytest.mark.structure
@pytest.mark.parametrize("seed", [101, 202, 303, 404, 505, 606])
def test_accepted_floors_are_connected(seed):
    floor = generate_floor(FloorProperties(**FEATURES), seed=seed)
    assert floor.stairs is not None and floor.player is not None
    if floor.used_fallback:
        pytest.skip("fallback floor")
    reach = bfs_reachable(floor.grid, floor.stairs)
    missing = walkable_set(floor.grid) - reach
    assert not missing, f"Seed {seed} has unreachable tiles: {sorted(missing)[:5]}"
    assert not floor.grid.positions_with(TileFlag.UNREACHABLE)


def test_accepted_history():
    floor = generate_floor(FloorProperties(layout=Layout.CROSS), seed=7)
    assert floor.attempts == 1
    assert floor.history == [
        FloorState.RESET_FLOOR,
        FloorState.LAYOUT_SELECTED,
        FloorState.GRID_BUILT,
        FloorState.HALLWAYS_CARVED,
        FloorState.JUNCTIONS_RESOLVED,
        FloorState.FEATURES_APPLIED,
        FloorState.REACHABILITY_CHECKED,
        FloorState.ACCEPTED,
        FloorState.ENTITIES_PLACED,
        FloorState.DONE,
    ]


def test_exhausted_attempts_fall_back_to_monster_house():
    floor = generate_floor(FloorProperties(**BROKEN), seed=3, max_attempts=2)
    assert floor.used_fallback
    assert floor.attempts == 2
    assert floor.layout is Layout.ONE_ROOM_MONSTER_HOUSE
    assert floor.history.count(FloorState.RESET_FLOOR) == 2
    assert floor.history.count(FloorState.RETRY) == 1
    assert floor.history[-3:] == [FloorState.FALLBACK, FloorState.ENTITIES_PLACED, FloorState.DONE]
    assert floor.metrics["fallback_used"] is True
    assert floor.metrics["retries"] == 1
    sx, sy = floor.stairs
    assert floor.grid.tiles[sx][sy].has(TileFlag.IN_MONSTER_HOUSE)
    assert stairs_always_reachable(floor.grid, sx, sy)


def test_fallback_logs(capsys):
    generate_floor(FloorProperties(**BROKEN), seed=3, max_attempts=1)
    out = capsys.readouterr().out
    assert "event=floor_attempt_failed" in out
    assert "event=floor_fallback" in out
    assert "seed=3" in out


@pytest.mark.parametrize("size", [(16, 12), (24, 16), (56, 32), (80, 48), (128, 96)])
def test_one_room_monster_house_always_reachable(size):
    w, h = size
    floor = generate_floor(FloorProperties(width=w, height=h, layout=Layout.ONE_ROOM_MONSTER_HOUSE), seed=w * h)
    assert not floor.used_fallback and floor.attempts == 1
    assert bfs_reachable(floor.grid, floor.stairs) == walkable_set(floor.grid)


def test_force_reachability_accepts_and_annotates():
    floor = generate_floor(FloorProperties(**BROKEN), seed=3, force_reachability=True)
    assert not floor.used_fallback
    assert floor.attempts == 1
    assert floor.layout is Layout.OUTER_ROOMS
    assert floor.grid.positions_with(TileFlag.UNREACHABLE)
    assert floor.metrics["unreachable_tiles"] > 0


def test_spawn_kinds_and_metrics():
    floor = generate_floor(FloorProperties(**FEATURES), seed=55)
    assert len(floor.spawns_of(SpawnKind.STAIRS)) == 1
    assert len(floor.spawns_of(SpawnKind.PLAYER)) == 1
    m = floor.metrics
    assert m["spawns_player"] == 1 and m["spawns_stairs"] == 1
    assert m["attempts"] == floor.attempts
    assert "plan_layout" in m["phase_ms"] and "entities" in m["phase_ms"]
    for s in floor.spawns:
        assert floor.grid.tiles[s.x][s.y].has(KIND_FLAGS[s.kind]), f"{s.kind.value} flag missing at {(s.x, s.y)}"


def test_metrics_disabled():
    floor = generate_floor(FloorProperties(), seed=5, enable_metrics=False)
    assert floor.metrics == {}


def test_rejects_zero_attempts():
    with pytest.raises(ValueError):
        FloorGenerator(FloorProperties(), SeededRandom(1), max_attempts=0)


VAULT = FixedRoom(
    fixed_room_id=7,
    rows=(
        "XXXXXXX",
        "X.....X",
        "X.*.~.X",
        "X.....X",
        "XXX-XXX",
    ),
    spawns=(
        FixedSpawn(SpawnKind.STAIRS, 1, 1),
        FixedSpawn(SpawnKind.PLAYER, 5, 3),
        FixedSpawn(SpawnKind.ENEMY, 3, 1, payload=900),
    ),
)


def test_fixed_room_is_stamped_without_generation():
    props = FloorProperties(fixed_room_id=7)
    floor = generate_floor(props, seed=1, fixed_room_loader=FixedRoomCatalog([VAULT]))
    assert floor.fixed_room_id == 7
    assert floor.history == [
        FloorState.RESET_FLOOR,
        FloorState.LAYOUT_SELECTED,
        FloorState.FIXED_ROOM,
        FloorState.DONE,
    ]
    ox, oy = (56 - 7) // 2, (32 - 5) // 2
    assert floor.grid.tiles[ox][oy].has(TileFlag.IMPASSABLE)
    assert floor.grid.tiles[ox + 2][oy + 2].has(TileFlag.SPECIAL)
    assert floor.grid.tiles[ox + 4][oy + 2].terrain == "secondary"
    assert floor.stairs == (ox + 1, oy + 1)
    assert [s.kind for s in floor.spawns] == [SpawnKind.STAIRS, SpawnKind.PLAYER, SpawnKind.ENEMY]
    assert floor.spawns[2].payload == 900


def test_unknown_fixed_room_falls_back_to_standard(capsys):
    props = FloorProperties(fixed_room_id=99)
    floor = generate_floor(props, seed=1, fixed_room_loader=FixedRoomCatalog([VAULT]))
    assert "event=fixed_room_not_found" in capsys.readouterr().out
    assert floor.fixed_room_id is None
    assert FloorState.GRID_BUILT in floor.history
    assert floor.stairs is not None


def test_fixed_room_walls_as_chasms():
    room = FixedRoom(fixed_room_id=3, rows=("#...#",), walls_are_chasms=True)
    floor = generate_floor(FloorProperties(fixed_room_id=3), seed=1, fixed_room_loader=FixedRoomCatalog([room]))
    assert floor.grid.tiles[1][1].terrain == "chasm"
    assert floor.grid.tiles[0][0].terrain == "wall"


def test_fixed_room_validation():
    with pytest.raises(ValueError):
        FixedRoom(fixed_room_id=1, rows=("..", "..."))
    with pytest.raises(ValueError):
        FixedRoom(fixed_room_id=1, rows=("..?",))
    with pytest.raises(ValueError):
        FixedRoom(fixed_room_id=1, rows=("...",), spawns=(FixedSpawn(SpawnKind.STAIRS, 5, 0),))


def test_app_config_overrides_environment(monkeypatch):
    monkeypatch.setenv("FLOOR_MAX_ATTEMPTS", "7")
    app = create_app(FLOOR_MAX_ATTEMPTS=3, FLOOR_ENABLE_GENERATION_METRICS=False)
    with app.app_context():
        gen = FloorGenerator(FloorProperties(), SeededRandom(1))
        assert gen.max_attempts == 3
        assert gen.enable_metrics is False
        assert FloorGenerator(FloorProperties(), SeededRandom(1), max_attempts=5).max_attempts == 5


def test_create_app_reads_environment(monkeypatch):
    monkeypatch.setenv("FLOOR_MAX_ATTEMPTS", "4")
    monkeypatch.setenv("FLOOR_FORCE_REACHABILITY", "true")
    app = create_app()
    assert app.config["FLOOR_MAX_ATTEMPTS"] == 4
    with app.app_context():
        gen = FloorGenerator(FloorProperties(), SeededRandom(1))
        assert gen.max_attempts == 4
        assert gen.force_reachability is True
