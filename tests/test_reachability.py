from floorgen.dungeon.connectivity import flood_from, stairs_always_reachable, walkable_tiles
from floorgen.dungeon.tiles import TileFlag

from floor_test_utils import blank_grid, carve_hallway, carve_room


def two_rooms(connected):
    g = blank_grid(20, 12)
    carve_room(g, 2, 2, 4, 4, index=0)
    carve_room(g, 12, 2, 4, 4, index=1)
    if connected:
        carve_hallway(g, [(x, 3) for x in range(6, 12)])
    return g


def test_connected_floor_passes_and_clears_stale_flags():
    g = two_rooms(connected=True)
    g.tiles[13][3].set(TileFlag.UNREACHABLE)
    assert stairs_always_reachable(g, 3, 3)
    assert not g.positions_with(TileFlag.UNREACHABLE)


def test_disconnected_floor_fails_and_marks_tiles():
    g = two_rooms(connected=False)
    assert not stairs_always_reachable(g, 3, 3)
    flagged = set(g.positions_with(TileFlag.UNREACHABLE))
    assert flagged == {(x, y) for x in range(12, 16) for y in range(2, 6)}


def test_mark_only_mode_still_annotates():
    g = two_rooms(connected=False)
    assert stairs_always_reachable(g, 3, 3, mark_only=True)
    assert len(g.positions_with(TileFlag.UNREACHABLE)) == 16


def test_impassable_open_tiles_are_not_walkable():
    g = two_rooms(connected=False)
    for x in range(12, 16):
        for y in range(2, 6):
            g.tiles[x][y].set(TileFlag.IMPASSABLE)
    assert stairs_always_reachable(g, 3, 3)
    assert len(walkable_tiles(g)) == 16


def test_flood_from_wall_is_empty():
    g = two_rooms(connected=True)
    assert flood_from(g, 0, 0) == set()
    assert len(flood_from(g, 3, 3)) == 16 + 16 + 6
