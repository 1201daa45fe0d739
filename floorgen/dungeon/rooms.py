"""Grid layout planning: cell partitioning, room/anchor creation and cell links.

Every macro layout returns a ``CellGrid`` whose rooms and hallway anchors are
already stamped onto the tile grid and whose cell ``connections`` say which
neighbors the hallway carver must join. Layouts whose structure cannot be
satisfied for the requested grid size are not patched here; the resulting
disconnection is caught by the reachability check.
"""
from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Tuple

from .cells import (
    DIRECTIONS,
    DOWN,
    LEFT,
    RIGHT,
    ROLE_ANCHOR,
    ROLE_ROOM,
    ROLE_UNUSED,
    TAG_MONSTER_HOUSE,
    UP,
    CellGrid,
    GridCell,
    Room,
)
from .config import FloorProperties, Layout
from .features import tag_room
from .grid import TileGrid
from .rng import RandomSource
from .tiles import HALLWAY_ANCHOR, MAX_ROOM_INDEX, OPEN

MIN_CELL_WIDTH = 8
MIN_CELL_HEIGHT = 7
MAX_GRID_COLUMNS = 6
MAX_GRID_ROWS = 4
ROOM_MARGIN = 2  # tiles kept free between a room and its cell boundary
MIN_ROOM_SIZE = 2


def grid_positions(size: int, count: int) -> List[int]:
    """Cell boundaries along one axis: ``count + 1`` ascending coordinates."""
    return [i * size // count for i in range(count + 1)]


def grid_size_for(props: FloorProperties, rng: RandomSource, min_size: int = 2) -> Tuple[int, int]:
    max_cols = max(1, min(MAX_GRID_COLUMNS, props.width // MIN_CELL_WIDTH))
    max_rows = max(1, min(MAX_GRID_ROWS, props.height // MIN_CELL_HEIGHT))
    cols = props.grid_columns or rng.rand_range(min(min_size, max_cols), max_cols + 1)
    rows = props.grid_rows or rng.rand_range(min(min_size, max_rows), max_rows + 1)
    return min(cols, max_cols), min(rows, max_rows)


def build_cell_grid(props: FloorProperties, cols: int, rows: int) -> CellGrid:
    return CellGrid(grid_positions(props.width, cols), grid_positions(props.height, rows))


def assign_rooms(cells: List[GridCell], props: FloorProperties, rng: RandomSource) -> None:
    """Weighted room/anchor split: a shuffled prefix of the cells becomes rooms."""
    if not cells:
        return
    density = props.room_density
    target = -density if density < 0 else density + rng.rand_int(3)
    target = max(2, min(target, len(cells)))
    order = list(cells)
    rng.shuffle(order)
    for i, cell in enumerate(order):
        cell.role = ROLE_ROOM if i < target else ROLE_ANCHOR


def stamp_room(grid: TileGrid, room: Room) -> None:
    for ix, iy in room.cells():
        t = grid.tiles[ix][iy]
        t.terrain = OPEN
        t.room_index = room.index


def _random_room_rect(x0: int, y0: int, x1: int, y1: int, rng: RandomSource):
    avail_w = x1 - x0 - 2 * ROOM_MARGIN
    avail_h = y1 - y0 - 2 * ROOM_MARGIN
    if avail_w < MIN_ROOM_SIZE or avail_h < MIN_ROOM_SIZE:
        return None
    w = rng.rand_range(max(MIN_ROOM_SIZE, avail_w // 2), avail_w + 1)
    h = rng.rand_range(max(MIN_ROOM_SIZE, avail_h // 2), avail_h + 1)
    x = x0 + ROOM_MARGIN + rng.rand_int(avail_w - w + 1)
    y = y0 + ROOM_MARGIN + rng.rand_int(avail_h - h + 1)
    return x, y, w, h


def create_rooms_and_anchors(grid: TileGrid, cell_grid: CellGrid, rng: RandomSource, first_index: int = 0) -> List[Room]:
    """Carve a room or place a hallway anchor in every used cell, in scan order.

    Room cells too small to hold a room become anchors. Cells that already own
    a room are left alone.
    """
    rooms: List[Room] = []
    for cell in cell_grid:
        if cell.role == ROLE_ROOM and cell.room is None:
            rect = _random_room_rect(cell.x0, cell.y0, cell.x1, cell.y1, rng)
            if rect is not None and first_index + len(rooms) <= MAX_ROOM_INDEX:
                room = Room(first_index + len(rooms), *rect)
                stamp_room(grid, room)
                cell.room = room
                rooms.append(room)
                continue
            cell.role = ROLE_ANCHOR
        if cell.role == ROLE_ANCHOR:
            ax, ay = (cell.x0 + cell.x1) // 2, (cell.y0 + cell.y1) // 2
            t = grid.tiles[ax][ay]
            t.terrain = OPEN
            t.room_index = HALLWAY_ANCHOR
            cell.anchor = (ax, ay)
    return rooms


def _key(cell: GridCell) -> Tuple[int, int]:
    return (cell.col, cell.row)


def random_spanning_links(cell_grid: CellGrid, cells: List[GridCell], rng: RandomSource) -> None:
    """Grow a random spanning tree over ``cells`` using only links between members."""
    if not cells:
        return
    members = {_key(c) for c in cells}
    tree = [rng.choice(cells)]
    in_tree = {_key(tree[0])}
    while len(in_tree) < len(members):
        candidates = []
        for cell in tree:
            for d in DIRECTIONS:
                n = cell_grid.neighbor(cell, d)
                if n is not None and _key(n) in members and _key(n) not in in_tree:
                    candidates.append((cell, d, n))
        if not candidates:
            break
        cell, d, n = rng.choice(candidates)
        cell_grid.link(cell, d)
        tree.append(n)
        in_tree.add(_key(n))


def extra_links(cell_grid: CellGrid, cells: List[GridCell], count: int, rng: RandomSource) -> None:
    if not cells:
        return
    for _ in range(count):
        cell = rng.choice(cells)
        cell_grid.link(cell, rng.choice(DIRECTIONS))


def remove_dead_ends(cell_grid: CellGrid, rng: RandomSource) -> None:
    """Give hallway-anchor cells with a single link a second one where possible."""
    for cell in cell_grid:
        if cell.role != ROLE_ANCHOR or len(cell.connections) != 1:
            continue
        options = []
        for d in DIRECTIONS:
            n = cell_grid.neighbor(cell, d)
            if d not in cell.connections and n is not None and n.is_used:
                options.append(d)
        if options:
            cell_grid.link(cell, rng.choice(options))


def assign_connections(cell_grid: CellGrid, props: FloorProperties, rng: RandomSource) -> None:
    used = [c for c in cell_grid if c.is_used]
    random_spanning_links(cell_grid, used, rng)
    extra_links(cell_grid, used, props.floor_connectivity, rng)
    if not props.allow_dead_ends:
        remove_dead_ends(cell_grid, rng)


def _set_roles(cell_grid: CellGrid, role_for: Callable[[GridCell], str]) -> None:
    for cell in cell_grid:
        cell.role = role_for(cell)


def _link_all(cell_grid: CellGrid, pairs: Iterable[Tuple[int, int, str]]) -> None:
    for col, row, d in pairs:
        cell_grid.link(cell_grid.at(col, row), d)


# --- macro layouts ----------------------------------------------------------


def plan_standard(grid: TileGrid, props: FloorProperties, rng: RandomSource) -> CellGrid:
    cols, rows = grid_size_for(props, rng)
    cg = build_cell_grid(props, cols, rows)
    assign_rooms(list(cg), props, rng)
    create_rooms_and_anchors(grid, cg, rng)
    assign_connections(cg, props, rng)
    return cg


def plan_outer_ring(grid: TileGrid, props: FloorProperties, rng: RandomSource) -> CellGrid:
    """4x2 rooms surrounded by a ring of hallway anchors (6x4 grid)."""
    cg = build_cell_grid(props, 6, 4)

    def role(c: GridCell) -> str:
        border = c.col in (0, cg.cols - 1) or c.row in (0, cg.rows - 1)
        return ROLE_ANCHOR if border else ROLE_ROOM

    _set_roles(cg, role)
    create_rooms_and_anchors(grid, cg, rng)
    for c in range(cg.cols - 1):
        cg.link(cg.at(c, 0), RIGHT)
        cg.link(cg.at(c, cg.rows - 1), RIGHT)
    for r in range(cg.rows - 1):
        cg.link(cg.at(0, r), DOWN)
        cg.link(cg.at(cg.cols - 1, r), DOWN)
    inner = [c for c in cg if 0 < c.col < cg.cols - 1 and 0 < c.row < cg.rows - 1]
    random_spanning_links(cg, inner, rng)
    extra_links(cg, inner, props.floor_connectivity, rng)
    # Links from the inner block out to the ring; at least one is forced.
    outward = []
    for c in inner:
        for d in DIRECTIONS:
            n = cg.neighbor(c, d)
            if n is not None and n.role == ROLE_ANCHOR:
                outward.append((c, d))
    forced = rng.rand_int(len(outward))
    for i, (c, d) in enumerate(outward):
        if i == forced or rng.rand_int(2) == 0:
            cg.link(c, d)
    return cg


def plan_crossroads(grid: TileGrid, props: FloorProperties, rng: RandomSource) -> CellGrid:
    """Interior 3x2 hallway mesh with boundary rooms as spikes; corners unused (5x4 grid)."""
    cg = build_cell_grid(props, 5, 4)
    last_c, last_r = cg.cols - 1, cg.rows - 1

    def role(c: GridCell) -> str:
        on_col_edge = c.col in (0, last_c)
        on_row_edge = c.row in (0, last_r)
        if on_col_edge and on_row_edge:
            return ROLE_UNUSED
        if on_col_edge or on_row_edge:
            return ROLE_ROOM
        return ROLE_ANCHOR

    _set_roles(cg, role)
    create_rooms_and_anchors(grid, cg, rng)
    for c in range(1, last_c):
        for r in range(1, last_r):
            if c + 1 < last_c:
                cg.link(cg.at(c, r), RIGHT)
            if r + 1 < last_r:
                cg.link(cg.at(c, r), DOWN)
        cg.link(cg.at(c, 0), DOWN)
        cg.link(cg.at(c, last_r), UP)
    for r in range(1, last_r):
        cg.link(cg.at(0, r), RIGHT)
        cg.link(cg.at(last_c, r), LEFT)
    return cg


def plan_line(grid: TileGrid, props: FloorProperties, rng: RandomSource) -> CellGrid:
    """Five cells in a horizontal line, rooms and anchors mixed at random."""
    cg = build_cell_grid(props, 5, 1)
    assign_rooms(list(cg), props, rng)
    create_rooms_and_anchors(grid, cg, rng)
    _link_all(cg, ((c, 0, RIGHT) for c in range(cg.cols - 1)))
    return cg


def plan_cross(grid: TileGrid, props: FloorProperties, rng: RandomSource) -> CellGrid:
    """Five rooms in a plus-sign on a 3x3 grid."""
    cg = build_cell_grid(props, 3, 3)
    _set_roles(cg, lambda c: ROLE_ROOM if c.col == 1 or c.row == 1 else ROLE_UNUSED)
    create_rooms_and_anchors(grid, cg, rng)
    _link_all(cg, ((1, 1, UP), (1, 1, RIGHT), (1, 1, DOWN), (1, 1, LEFT)))
    return cg


def plan_beetle(grid: TileGrid, props: FloorProperties, rng: RandomSource) -> CellGrid:
    """3x3 rooms, rows linked, the center column merged into one tall room."""
    cg = build_cell_grid(props, 3, 3)
    _set_roles(cg, lambda c: ROLE_ROOM)
    top, bottom = cg.at(1, 0), cg.at(1, cg.rows - 1)
    rect = _random_room_rect(top.x0, top.y0, top.x1, bottom.y1, rng)
    if rect is not None:
        body = Room(0, *rect)
        stamp_room(grid, body)
        for r in range(cg.rows):
            cg.at(1, r).room = body
        create_rooms_and_anchors(grid, cg, rng, first_index=1)
    else:
        create_rooms_and_anchors(grid, cg, rng)
    for r in range(cg.rows):
        cg.link(cg.at(0, r), RIGHT)
        cg.link(cg.at(1, r), RIGHT)
    return cg


def plan_outer_rooms(grid: TileGrid, props: FloorProperties, rng: RandomSource) -> CellGrid:
    """Ring of rooms along the grid boundary with an empty interior.

    The links between the corner columns and the rest of the top/bottom rows
    are emitted from the inner column sweep, which is empty below four
    columns; such floors come out disconnected and fail reachability.
    """
    cols, rows = grid_size_for(props, rng, min_size=3)
    cg = build_cell_grid(props, cols, rows)
    _set_roles(
        cg,
        lambda c: ROLE_ROOM if c.col in (0, cols - 1) or c.row in (0, rows - 1) else ROLE_UNUSED,
    )
    create_rooms_and_anchors(grid, cg, rng)
    for c in range(1, cols - 2):
        cg.link(cg.at(c, 0), RIGHT)
        cg.link(cg.at(c, rows - 1), RIGHT)
        if c == 1:
            cg.link(cg.at(0, 0), RIGHT)
            cg.link(cg.at(0, rows - 1), RIGHT)
        if c == cols - 3:
            cg.link(cg.at(cols - 2, 0), RIGHT)
            cg.link(cg.at(cols - 2, rows - 1), RIGHT)
    for r in range(rows - 1):
        cg.link(cg.at(0, r), DOWN)
        cg.link(cg.at(cols - 1, r), DOWN)
    return cg


def plan_one_room_monster_house(grid: TileGrid, props: FloorProperties, rng: RandomSource) -> CellGrid:
    """One large Monster House room; connected by construction."""
    cg = build_cell_grid(props, 1, 1)
    cell = cg.at(0, 0)
    cell.role = ROLE_ROOM
    cell.room = Room(0, ROOM_MARGIN, ROOM_MARGIN, props.width - 2 * ROOM_MARGIN, props.height - 2 * ROOM_MARGIN)
    stamp_room(grid, cell.room)
    tag_room(grid, cg, cell.room, TAG_MONSTER_HOUSE)
    return cg


def plan_two_rooms_with_monster_house(grid: TileGrid, props: FloorProperties, rng: RandomSource) -> CellGrid:
    cg = build_cell_grid(props, 2, 1)
    _set_roles(cg, lambda c: ROLE_ROOM)
    rooms = create_rooms_and_anchors(grid, cg, rng)
    cg.link(cg.at(0, 0), RIGHT)
    if rooms:
        tag_room(grid, cg, rng.choice(rooms), TAG_MONSTER_HOUSE)
    return cg


LAYOUT_PLANNERS: Dict[Layout, Callable[[TileGrid, FloorProperties, RandomSource], CellGrid]] = {
    Layout.STANDARD: plan_standard,
    Layout.OUTER_RING: plan_outer_ring,
    Layout.CROSSROADS: plan_crossroads,
    Layout.LINE: plan_line,
    Layout.CROSS: plan_cross,
    Layout.BEETLE: plan_beetle,
    Layout.OUTER_ROOMS: plan_outer_rooms,
    Layout.ONE_ROOM_MONSTER_HOUSE: plan_one_room_monster_house,
    Layout.TWO_ROOMS_WITH_MONSTER_HOUSE: plan_two_rooms_with_monster_house,
}


def plan_layout(grid: TileGrid, props: FloorProperties, rng: RandomSource, layout: Layout | None = None) -> CellGrid:
    return LAYOUT_PLANNERS[layout or props.layout](grid, props, rng)


__all__ = [
    "grid_positions",
    "grid_size_for",
    "build_cell_grid",
    "assign_rooms",
    "stamp_room",
    "create_rooms_and_anchors",
    "random_spanning_links",
    "extra_links",
    "remove_dead_ends",
    "assign_connections",
    "plan_layout",
    "LAYOUT_PLANNERS",
]
