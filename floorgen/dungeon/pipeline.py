"""Floor generation orchestration.

``FloorGenerator`` walks an explicit state machine:

    reset_floor -> layout_selected -> grid_built -> hallways_carved
    -> junctions_resolved -> features_applied -> reachability_checked
    -> accepted | retry | fallback -> entities_placed -> done

A failed reachability check (or a floor with nowhere to put the stairs)
re-enters ``reset_floor`` until the attempt cap is reached, after which the
one-room Monster House layout is generated without features or checks. A
fixed room id short-circuits after ``layout_selected`` when the loader knows
the room; otherwise standard generation continues.

Every transition is appended to the history so a run can be compared state
by state with a replay using the same random stream.
"""
from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from flask import current_app, has_app_context

from ..logging_utils import get_logger
from .cells import CellGrid
from .config import FEATURE_LAYOUTS, FloorProperties, Layout
from .connectivity import stairs_always_reachable
from .errors import AttemptOutcome
from .features import apply_features
from .fixed_rooms import FixedRoom, FixedRoomLoader, stamp_fixed_room
from .grid import TileGrid
from .junctions import finalize_junctions, flag_hallway_junctions
from .metrics import init_metrics
from .rng import RandomSource, SeededRandom
from .rooms import plan_layout
from .spawns import (
    SpawnKind,
    SpawnRecord,
    resolve_invalid_spawns,
    spawn_enemies,
    spawn_non_enemies,
    spawn_stairs,
)
from .tiles import HALLWAY, OPEN, TileFlag
from .tunnels import create_grid_cell_connections

log = get_logger("pipeline")

DEFAULT_MAX_ATTEMPTS = 10
FALLBACK_LAYOUT = Layout.ONE_ROOM_MONSTER_HOUSE

# Feature counters describe the last attempt only
_ATTEMPT_COUNTERS = (
    "maze_rooms",
    "secondary_tiles",
    "imperfect_tiles",
    "extra_hallway_tiles",
    "kecleon_shops",
    "monster_houses",
)


class FloorState(str, Enum):
    RESET_FLOOR = "reset_floor"
    LAYOUT_SELECTED = "layout_selected"
    GRID_BUILT = "grid_built"
    HALLWAYS_CARVED = "hallways_carved"
    JUNCTIONS_RESOLVED = "junctions_resolved"
    FEATURES_APPLIED = "features_applied"
    REACHABILITY_CHECKED = "reachability_checked"
    ACCEPTED = "accepted"
    RETRY = "retry"
    FALLBACK = "fallback"
    ENTITIES_PLACED = "entities_placed"
    FIXED_ROOM = "fixed_room"
    DONE = "done"


@dataclass
class Floor:
    grid: TileGrid
    spawns: List[SpawnRecord]
    layout: Layout
    attempts: int
    used_fallback: bool = False
    fixed_room_id: Optional[int] = None
    history: List[FloorState] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)
    seed: Optional[int] = None

    def spawns_of(self, kind: SpawnKind) -> List[SpawnRecord]:
        return [s for s in self.spawns if s.kind is kind]

    @property
    def stairs(self) -> Optional[Tuple[int, int]]:
        found = self.spawns_of(SpawnKind.STAIRS)
        return (found[0].x, found[0].y) if found else None

    @property
    def player(self) -> Optional[Tuple[int, int]]:
        found = self.spawns_of(SpawnKind.PLAYER)
        return (found[0].x, found[0].y) if found else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seed": self.seed,
            "layout": self.layout.value,
            "attempts": self.attempts,
            "used_fallback": self.used_fallback,
            "fixed_room_id": self.fixed_room_id,
            "history": [s.value for s in self.history],
            "spawns": [s.to_dict() for s in self.spawns],
            "map": self.grid.to_ascii().splitlines(),
        }


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.lower() not in {"0", "false", "no", ""}
    return bool(value)


def resolve_setting(explicit, key: str, default, cast: Callable[[Any], Any]):
    """Explicit argument, then Flask app config (inside an app context), then env, then default."""
    if explicit is not None:
        return cast(explicit)
    if has_app_context() and key in current_app.config:
        return cast(current_app.config[key])
    if key in os.environ:
        return cast(os.environ[key])
    return default


class FloorGenerator:
    """Generates one floor from ``props`` using ``rng`` for every random decision."""

    def __init__(
        self,
        props: Optional[FloorProperties] = None,
        rng: Optional[RandomSource] = None,
        fixed_room_loader: Optional[FixedRoomLoader] = None,
        max_attempts: Optional[int] = None,
        force_reachability: Optional[bool] = None,
        enable_metrics: Optional[bool] = None,
    ):
        self.props = props or FloorProperties()
        self.rng = rng or SeededRandom()
        self.fixed_room_loader = fixed_room_loader
        self.max_attempts = resolve_setting(max_attempts, "FLOOR_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS, int)
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        self.force_reachability = resolve_setting(force_reachability, "FLOOR_FORCE_REACHABILITY", False, _as_bool)
        self.enable_metrics = resolve_setting(enable_metrics, "FLOOR_ENABLE_GENERATION_METRICS", True, _as_bool)
        self.metrics: Dict[str, Any] = init_metrics() if self.enable_metrics else {}
        self.grid = TileGrid(self.props.width, self.props.height)
        self.spawns: List[SpawnRecord] = []
        self.history: List[FloorState] = []
        self.layout = self.props.layout
        self.attempts = 0
        self.used_fallback = False
        self.fixed_room: Optional[FixedRoom] = None
        self._fixed_room_pending = self.props.fixed_room_id is not None
        self._cell_grid: Optional[CellGrid] = None
        self.log = log.bind(seed=getattr(self.rng, "seed", None))

    def _enter(self, state: FloorState) -> None:
        self.history.append(state)
        self.log.debug(event="floor_state", state=state.value, attempt=self.attempts)

    def run(self) -> Floor:
        start = time.perf_counter()
        phase_times: Dict[str, int] = {}
        if self.enable_metrics:
            def _phase(label, fn, *a, **k):
                ps = time.perf_counter(); r = fn(*a, **k); pe = time.perf_counter()
                phase_times[label] = phase_times.get(label, 0) + int((pe - ps) * 1000)
                return r
        else:
            def _phase(label, fn, *a, **k):
                return fn(*a, **k)

        outcome = AttemptOutcome.STRUCTURAL_FAILURE
        while self.attempts < self.max_attempts:
            outcome = self._attempt(_phase)
            if outcome is AttemptOutcome.ACCEPTED:
                break
            if self.attempts < self.max_attempts:
                self._enter(FloorState.RETRY)

        if self.fixed_room is not None:
            self._enter(FloorState.DONE)
            return self._finish(start, phase_times)

        if outcome is AttemptOutcome.ACCEPTED:
            self._enter(FloorState.ACCEPTED)
        else:
            self._enter(FloorState.FALLBACK)
            self.log.warn(
                event="floor_fallback",
                reason=AttemptOutcome.ATTEMPTS_EXHAUSTED.value,
                attempts=self.attempts,
                layout=self.layout.value,
            )
            _phase("fallback", self._build_fallback)

        _phase("entities", self._place_entities)
        self._enter(FloorState.ENTITIES_PLACED)
        self._enter(FloorState.DONE)
        return self._finish(start, phase_times)

    # --- attempt ------------------------------------------------------------

    def _attempt(self, _phase) -> AttemptOutcome:
        self.attempts += 1
        self._enter(FloorState.RESET_FLOOR)
        self.grid.reset()
        self.spawns.clear()
        if self.enable_metrics:
            for key in _ATTEMPT_COUNTERS:
                self.metrics[key] = 0
        self._enter(FloorState.LAYOUT_SELECTED)

        if self._fixed_room_pending:
            self._fixed_room_pending = False
            if self._load_fixed_room():
                _phase("fixed_room", self._build_fixed_room)
                self._enter(FloorState.FIXED_ROOM)
                return AttemptOutcome.ACCEPTED

        grid, props, rng = self.grid, self.props, self.rng
        cell_grid = _phase("plan_layout", plan_layout, grid, props, rng, self.layout)
        self._cell_grid = cell_grid
        self._enter(FloorState.GRID_BUILT)
        _phase("hallways", create_grid_cell_connections, grid, cell_grid, rng)
        self._enter(FloorState.HALLWAYS_CARVED)
        _phase("junctions", finalize_junctions, grid)
        self._enter(FloorState.JUNCTIONS_RESOLVED)
        if self.layout in FEATURE_LAYOUTS:
            _phase("features", apply_features, grid, cell_grid, props, rng, self.metrics)
        _phase("terrain_passes", self._finalize_terrain)
        self._enter(FloorState.FEATURES_APPLIED)

        stairs = _phase("stairs", spawn_stairs, grid, cell_grid, props, rng, self.spawns)
        reachable = stairs is not None and _phase(
            "reachability", stairs_always_reachable, grid, stairs.x, stairs.y, self.force_reachability
        )
        self._enter(FloorState.REACHABILITY_CHECKED)
        if self.enable_metrics:
            self.metrics["unreachable_tiles"] = len(grid.positions_with(TileFlag.UNREACHABLE))
        if not reachable:
            self.log.info(
                event="floor_attempt_failed",
                outcome=AttemptOutcome.STRUCTURAL_FAILURE.value,
                attempt=self.attempts,
                layout=self.layout.value,
                stairs=stairs is not None,
            )
            return AttemptOutcome.STRUCTURAL_FAILURE
        return AttemptOutcome.ACCEPTED

    def _finalize_terrain(self) -> None:
        if self.props.secondary_terrain_as_chasms:
            self.grid.convert_secondary_terrain_to_chasms()
        self.grid.ensure_impassable_tiles_are_walls()
        self.grid.reset_inner_boundary_tile_rows()

    # --- fallback -----------------------------------------------------------

    def _build_fallback(self) -> None:
        self.used_fallback = True
        self.layout = FALLBACK_LAYOUT
        self.grid.reset()
        self.spawns.clear()
        self._cell_grid = plan_layout(self.grid, self.props, self.rng, FALLBACK_LAYOUT)
        self.grid.ensure_impassable_tiles_are_walls()

    # --- fixed rooms --------------------------------------------------------

    def _load_fixed_room(self) -> bool:
        fixed_room_id = self.props.fixed_room_id
        room = self.fixed_room_loader.load(fixed_room_id) if self.fixed_room_loader is not None else None
        if room is None:
            self.log.warn(
                event="fixed_room_not_found",
                outcome=AttemptOutcome.FIXED_ROOM_NOT_FOUND.value,
                fixed_room_id=fixed_room_id,
            )
            return False
        self.fixed_room = room
        return True

    def _build_fixed_room(self) -> None:
        room = self.fixed_room
        ox, oy = stamp_fixed_room(self.grid, room, self.spawns)
        flag_hallway_junctions(self.grid, ox, oy, ox + room.width, oy + room.height)
        if room.walls_are_chasms:
            self.grid.convert_walls_to_chasms()
        self.grid.ensure_impassable_tiles_are_walls()

    # --- entities -----------------------------------------------------------

    def _place_entities(self) -> None:
        grid, props, rng = self.grid, self.props, self.rng
        empty_house = False
        if grid.positions_with(TileFlag.IN_MONSTER_HOUSE):
            empty_house = rng.chance(props.empty_monster_house_chance)
        spawn_non_enemies(grid, self._cell_grid, props, rng, self.spawns, empty_house)
        spawn_enemies(grid, props, rng, self.spawns, empty_house)
        cleared = resolve_invalid_spawns(grid, self.spawns)
        if self.enable_metrics:
            self.metrics["spawns_cleared"] = cleared

    # --- result -------------------------------------------------------------

    def _finish(self, start: float, phase_times: Dict[str, int]) -> Floor:
        floor = Floor(
            grid=self.grid,
            spawns=list(self.spawns),
            layout=self.layout,
            attempts=self.attempts,
            used_fallback=self.used_fallback,
            fixed_room_id=self.fixed_room.fixed_room_id if self.fixed_room is not None else None,
            history=list(self.history),
            metrics=self.metrics,
            seed=getattr(self.rng, "seed", None),
        )
        if self.enable_metrics:
            m = self.metrics
            m["attempts"] = self.attempts
            m["retries"] = self.history.count(FloorState.RETRY)
            m["fallback_used"] = self.used_fallback
            m["rooms"] = len(self._cell_grid.rooms()) if self._cell_grid is not None else int(self.fixed_room is not None)
            m["hallway_tiles"] = sum(
                1 for _x, _y, t in self.grid.iter_scan() if t.terrain == OPEN and t.room_index == HALLWAY
            )
            m["junctions"] = len(self.grid.positions_with(TileFlag.JUNCTION))
            for kind in SpawnKind:
                m[f"spawns_{kind.value}"] = len(floor.spawns_of(kind))
            m["runtime_ms"] = int((time.perf_counter() - start) * 1000)
            m["phase_ms"] = phase_times
        self.log.info(
            event="floor_generated",
            layout=floor.layout.value,
            attempts=floor.attempts,
            fallback=floor.used_fallback,
            fixed_room_id=floor.fixed_room_id,
            spawns=len(floor.spawns),
        )
        return floor


def generate_floor(
    props: Optional[FloorProperties] = None,
    seed: Optional[int] = None,
    rng: Optional[RandomSource] = None,
    **kwargs,
) -> Floor:
    """Generate a floor; ``rng`` wins over ``seed`` when both are given."""
    return FloorGenerator(props or FloorProperties(), rng or SeededRandom(seed), **kwargs).run()


__all__ = ["FloorState", "Floor", "FloorGenerator", "generate_floor", "resolve_setting", "DEFAULT_MAX_ATTEMPTS"]
