"""Special floor features applied after the structural layout is carved.

Order of application (see ``apply_features``):
  * maze room
  * secondary terrain formations (rivers and lakes)
  * room imperfections
  * extra hallways
  * Kecleon shop and Monster House tagging

Each step is gated by the floor properties and draws only from the injected
random source.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from .cells import (
    TAG_IMPERFECT,
    TAG_KECLEON_SHOP,
    TAG_MAZE,
    TAG_MONSTER_HOUSE,
    CellGrid,
    Room,
)
from .config import FloorProperties
from .grid import DIRS4, TileGrid
from .junctions import finalize_junctions, is_next_to_hallway
from .rng import RandomSource
from .tiles import HALLWAY, OPEN, SECONDARY, WALL, Tile, TileFlag

MIN_LAKE_SIZE = 8
MAX_LAKE_SIZE = 24


# --- room tagging -----------------------------------------------------------


def room_tags(cell_grid: CellGrid, room: Room) -> Set[str]:
    tags: Set[str] = set()
    for cell in cell_grid:
        if cell.room is room:
            tags |= cell.tags
    return tags


def tag_room(grid: TileGrid, cell_grid: CellGrid, room: Room, tag: str) -> None:
    """Tag every cell owning ``room`` and flag the matching tiles.

    Monster Houses cover all open room tiles; Kecleon shops cover the room
    interior one tile in from the edge (the whole room if it is too thin).
    """
    for cell in cell_grid:
        if cell.room is room:
            cell.tags.add(tag)
    if tag == TAG_MONSTER_HOUSE:
        for ix, iy in room.cells():
            t = grid.tiles[ix][iy]
            if t.terrain == OPEN and t.room_index == room.index:
                t.set(TileFlag.IN_MONSTER_HOUSE)
    elif tag == TAG_KECLEON_SHOP:
        inset = 1 if room.w >= 3 and room.h >= 3 else 0
        for iy in range(room.y + inset, room.y1 - inset):
            for ix in range(room.x + inset, room.x1 - inset):
                t = grid.tiles[ix][iy]
                if t.terrain == OPEN and t.room_index == room.index and not t.flags & TileFlag.JUNCTION:
                    t.set(TileFlag.IN_KECLEON_SHOP)


def _untagged_rooms(cell_grid: CellGrid, excluded: Set[str]) -> List[Room]:
    return [r for r in cell_grid.rooms() if not room_tags(cell_grid, r) & excluded]


# --- maze rooms -------------------------------------------------------------


def set_terrain_obstacle_checked(tile: Tile, use_secondary: bool, room_index: int) -> None:
    """Make ``tile`` an obstacle; secondary terrain only inside the given room, wall otherwise."""
    if use_secondary and tile.room_index == room_index:
        tile.terrain = SECONDARY
    else:
        tile.terrain = WALL


def generate_maze_line(
    grid: TileGrid,
    x0: int,
    y0: int,
    xmin: int,
    ymin: int,
    xmax: int,
    ymax: int,
    use_secondary: bool,
    room_index: int,
    rng: RandomSource,
) -> int:
    """Random walk with stride 2 from (x0, y0), laying obstacles as it goes.

    A step is possible when its destination lies within [xmin, xmax] x
    [ymin, ymax] (inclusive) and is still open. The walk ends once no step is
    possible. Returns the number of steps taken.
    """
    x, y = x0, y0
    steps = 0
    while True:
        first = rng.rand_int(4)
        for i in range(4):
            dx, dy = DIRS4[(first + i) % 4]
            tx, ty = x + 2 * dx, y + 2 * dy
            if not (xmin <= tx <= xmax and ymin <= ty <= ymax):
                continue
            mid = grid.tiles[x + dx][y + dy]
            dest = grid.tiles[tx][ty]
            if dest.terrain != OPEN or mid.flags & TileFlag.JUNCTION:
                continue
            set_terrain_obstacle_checked(mid, use_secondary, room_index)
            set_terrain_obstacle_checked(dest, use_secondary, room_index)
            x, y = tx, ty
            steps += 1
            break
        else:
            return steps


def generate_maze(grid: TileGrid, room: Room, use_secondary: bool, rng: RandomSource) -> None:
    """Fill an odd-sized room with a maze grown from its perimeter and interior pillars.

    Perimeter seeds that are open (a hallway entering the room) are skipped so
    entrances stay usable.
    """
    xmin, ymin, xmax, ymax = room.x + 1, room.y + 1, room.x1 - 2, room.y1 - 2
    seeds = []
    for x in range(xmin, xmax + 1, 2):
        seeds.append((x, room.y - 1))
        seeds.append((x, room.y1))
    for y in range(ymin, ymax + 1, 2):
        seeds.append((room.x - 1, y))
        seeds.append((room.x1, y))
    for sx, sy in seeds:
        if grid.in_bounds(sx, sy) and grid.tiles[sx][sy].terrain != OPEN:
            generate_maze_line(grid, sx, sy, xmin, ymin, xmax, ymax, use_secondary, room.index, rng)
    for y in range(ymin, ymax + 1, 2):
        for x in range(xmin, xmax + 1, 2):
            t = grid.tiles[x][y]
            if t.terrain == OPEN and not t.flags & TileFlag.JUNCTION:
                set_terrain_obstacle_checked(t, use_secondary, room.index)
                generate_maze_line(grid, x, y, xmin, ymin, xmax, ymax, use_secondary, room.index, rng)


def generate_maze_room(
    grid: TileGrid, cell_grid: CellGrid, props: FloorProperties, rng: RandomSource
) -> Optional[Room]:
    if not rng.chance(props.maze_room_chance):
        return None
    candidates = [
        r for r in _untagged_rooms(cell_grid, {TAG_MAZE, TAG_KECLEON_SHOP, TAG_MONSTER_HOUSE})
        if r.w % 2 == 1 and r.h % 2 == 1 and r.w >= 3 and r.h >= 3
    ]
    if not candidates:
        return None
    room = rng.choice(candidates)
    use_secondary = props.secondary_terrain and rng.rand_int(2) == 0
    generate_maze(grid, room, use_secondary, rng)
    tag_room(grid, cell_grid, room, TAG_MAZE)
    return room


# --- secondary terrain ------------------------------------------------------


def set_secondary_terrain_on_wall(tile: Tile) -> bool:
    """Convert ``tile`` to secondary terrain only if it is a passable wall."""
    if tile.terrain != WALL or tile.flags & TileFlag.IMPASSABLE:
        return False
    tile.terrain = SECONDARY
    return True


def generate_lake(grid: TileGrid, cx: int, cy: int, rng: RandomSource, size: int | None = None) -> int:
    """Grow a blob of secondary terrain outward from (cx, cy). Returns tiles converted."""
    if size is None:
        size = rng.rand_range(MIN_LAKE_SIZE, MAX_LAKE_SIZE + 1)
    frontier = [(cx, cy)]
    seen = set()
    placed = 0
    while frontier and len(seen) < size:
        x, y = frontier.pop(rng.rand_int(len(frontier)))
        if (x, y) in seen or not grid.in_interior(x, y):
            continue
        seen.add((x, y))
        if set_secondary_terrain_on_wall(grid.tiles[x][y]):
            placed += 1
        for dx, dy in DIRS4:
            frontier.append((x + dx, y + dy))
    return placed


def generate_river(grid: TileGrid, props: FloorProperties, rng: RandomSource) -> int:
    """Walk from the top edge down (or bottom edge up) laying secondary terrain on walls.

    Open tiles are crossed untouched, so a river passes through rooms and
    hallways without blocking them. The walk stops on existing secondary
    terrain or when it leaves the interior, and may end early in a lake.
    """
    x = rng.rand_range(2, grid.width - 2)
    top_down = rng.rand_int(2) == 0
    y = 1 if top_down else grid.height - 2
    dy = 1 if top_down else -1
    lake_step = -1
    if rng.chance(props.lake_chance):
        lake_step = rng.rand_range(grid.height // 4, grid.height * 3 // 4)
    placed = 0
    for step in range(grid.width * grid.height):
        if not grid.in_interior(x, y):
            break
        t = grid.tiles[x][y]
        if t.terrain == SECONDARY:
            break
        if set_secondary_terrain_on_wall(t):
            placed += 1
        if step == lake_step:
            placed += generate_lake(grid, x, y, rng)
            break
        if rng.rand_int(3) == 0:
            x += rng.choice((-1, 1))
        else:
            y += dy
    return placed


def generate_secondary_terrain_formations(grid: TileGrid, props: FloorProperties, rng: RandomSource) -> int:
    """Rivers followed by standalone lakes. Returns tiles converted."""
    if not props.secondary_terrain:
        return 0
    placed = 0
    for _ in range(props.secondary_terrain_density):
        placed += generate_river(grid, props, rng)
    for _ in range(rng.rand_int(props.secondary_terrain_density + 1)):
        cx = rng.rand_range(2, grid.width - 2)
        cy = rng.rand_range(2, grid.height - 2)
        placed += generate_lake(grid, cx, cy, rng)
    return placed


# --- room imperfections -----------------------------------------------------


def _add_corner_nubs(grid: TileGrid, room: Room, rng: RandomSource) -> int:
    """Grow wall runs from each corner along one of its two edges.

    Runs cover at most half an edge, so the room interior stays connected.
    """
    added = 0
    corners = (
        (room.x, room.y, 1, 1),
        (room.x1 - 1, room.y, -1, 1),
        (room.x, room.y1 - 1, 1, -1),
        (room.x1 - 1, room.y1 - 1, -1, -1),
    )
    for cx, cy, sx, sy in corners:
        if rng.rand_int(2) == 0:
            dx, dy, limit = sx, 0, (room.w - 1) // 2
        else:
            dx, dy, limit = 0, sy, (room.h - 1) // 2
        length = rng.rand_int(limit + 1)
        for i in range(length):
            x, y = cx + dx * i, cy + dy * i
            t = grid.tiles[x][y]
            if t.terrain != OPEN or t.room_index != room.index or t.flags & TileFlag.JUNCTION:
                break
            if is_next_to_hallway(grid, x, y):
                break
            t.terrain = WALL
            added += 1
    return added


def _remove_wall_nubs(grid: TileGrid, room: Room, rng: RandomSource) -> int:
    """Push the room edge outward by one tile at up to two random spots."""
    removed = 0
    for _ in range(rng.rand_int(3)):
        dx, dy = rng.choice(DIRS4)
        if dx:
            x = room.x1 if dx > 0 else room.x - 1
            y = rng.rand_range(room.y + 1, room.y1 - 1)
        else:
            x = rng.rand_range(room.x + 1, room.x1 - 1)
            y = room.y1 if dy > 0 else room.y - 1
        if not grid.in_interior(x + dx, y + dy):
            continue
        t = grid.tiles[x][y]
        if t.terrain != WALL or t.flags & TileFlag.IMPASSABLE or t.room_index != HALLWAY:
            continue
        if is_next_to_hallway(grid, x, y):
            continue
        # Only join a room tile that corner nubs left open
        inner = grid.tiles[x - dx][y - dy]
        if inner.terrain != OPEN or inner.room_index != room.index:
            continue
        # The tile beyond and both sides must stay wall so the room keeps its wall ring.
        around = [(x + dx, y + dy), (x + dy, y + dx), (x - dy, y - dx)]
        if any(grid.tiles[ax][ay].terrain != WALL for ax, ay in around):
            continue
        t.terrain = OPEN
        t.room_index = room.index
        removed += 1
    return removed


def generate_room_imperfections(
    grid: TileGrid, cell_grid: CellGrid, props: FloorProperties, rng: RandomSource
) -> int:
    """Randomly add and remove wall nubs along room perimeters. Returns tiles changed."""
    if not props.imperfect_rooms:
        return 0
    changed = 0
    for room in _untagged_rooms(cell_grid, {TAG_MAZE, TAG_KECLEON_SHOP, TAG_MONSTER_HOUSE}):
        if room.w < 3 or room.h < 3 or not rng.chance(props.imperfection_chance):
            continue
        changed += _add_corner_nubs(grid, room, rng)
        changed += _remove_wall_nubs(grid, room, rng)
        tag_room(grid, cell_grid, room, TAG_IMPERFECT)
    return changed


# --- extra hallways ---------------------------------------------------------


def _extra_hallway_walk(grid: TileGrid, x: int, y: int, dx: int, dy: int, rng: RandomSource) -> int:
    """Carve out of a room until an open tile is reached; nothing is kept on failure."""
    path = []
    for _ in range(grid.width + grid.height):
        # rows 1 and height - 2 are reset to wall after features run
        if not grid.in_interior(x, y) or y in (1, grid.height - 2):
            return 0
        t = grid.tiles[x][y]
        if t.terrain == OPEN:
            break
        if t.terrain != WALL or t.flags & TileFlag.IMPASSABLE or t.room_index != HALLWAY:
            return 0
        path.append((x, y))
        if len(path) >= 2 and rng.rand_int(4) == 0:
            dx, dy = (dy, dx) if rng.rand_int(2) == 0 else (-dy, -dx)
        x, y = x + dx, y + dy
    else:
        return 0
    for px, py in path:
        t = grid.tiles[px][py]
        t.terrain = OPEN
        t.room_index = HALLWAY
    return len(path)


def generate_extra_hallways(
    grid: TileGrid, cell_grid: CellGrid, props: FloorProperties, rng: RandomSource
) -> int:
    """Add loops by walking hallways out of random rooms into existing open tiles."""
    rooms = _untagged_rooms(cell_grid, {TAG_MAZE})
    carved = 0
    for _ in range(props.extra_hallway_density):
        if not rooms:
            break
        room = rng.choice(rooms)
        dx, dy = rng.choice(DIRS4)
        if dx:
            x = room.x1 if dx > 0 else room.x - 1
            y = rng.rand_range(room.y, room.y1)
        else:
            x = rng.rand_range(room.x, room.x1)
            y = room.y1 if dy > 0 else room.y - 1
        carved += _extra_hallway_walk(grid, x, y, dx, dy, rng)
    if carved:
        finalize_junctions(grid)
    return carved


# --- special rooms ----------------------------------------------------------


def generate_kecleon_shop(
    grid: TileGrid, cell_grid: CellGrid, props: FloorProperties, rng: RandomSource
) -> Optional[Room]:
    if not rng.chance(props.kecleon_shop_chance):
        return None
    candidates = [
        r for r in _untagged_rooms(cell_grid, {TAG_MAZE, TAG_MONSTER_HOUSE, TAG_IMPERFECT, TAG_KECLEON_SHOP})
        if r.w >= 3 and r.h >= 3
    ]
    # The stairs need a room outside the shop.
    if not candidates or len(cell_grid.rooms()) < 2:
        return None
    room = rng.choice(candidates)
    tag_room(grid, cell_grid, room, TAG_KECLEON_SHOP)
    return room


def generate_monster_house(
    grid: TileGrid, cell_grid: CellGrid, props: FloorProperties, rng: RandomSource
) -> Optional[Room]:
    if not rng.chance(props.monster_house_chance):
        return None
    candidates = _untagged_rooms(cell_grid, {TAG_MAZE, TAG_KECLEON_SHOP, TAG_MONSTER_HOUSE})
    if not candidates:
        return None
    room = rng.choice(candidates)
    tag_room(grid, cell_grid, room, TAG_MONSTER_HOUSE)
    return room


def apply_features(
    grid: TileGrid,
    cell_grid: CellGrid,
    props: FloorProperties,
    rng: RandomSource,
    metrics: Dict[str, Any],
) -> None:
    """Run every feature step in order and record what each produced."""
    maze = generate_maze_room(grid, cell_grid, props, rng)
    secondary = generate_secondary_terrain_formations(grid, props, rng)
    imperfections = generate_room_imperfections(grid, cell_grid, props, rng)
    extra = generate_extra_hallways(grid, cell_grid, props, rng)
    shop = generate_kecleon_shop(grid, cell_grid, props, rng)
    house = generate_monster_house(grid, cell_grid, props, rng)
    if metrics:
        metrics["maze_rooms"] += int(maze is not None)
        metrics["secondary_tiles"] += secondary
        metrics["imperfect_tiles"] += imperfections
        metrics["extra_hallway_tiles"] += extra
        metrics["kecleon_shops"] += int(shop is not None)
        metrics["monster_houses"] += int(house is not None)
