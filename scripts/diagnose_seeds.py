#!/usr/bin/env python3
"""Floor structural diagnostics for specific seeds.

Usage:
  python scripts/diagnose_seeds.py 292372 730727
  FLOOR_LAYOUT=outer_rooms python scripts/diagnose_seeds.py 5 6 7

If no seeds are provided as CLI args, a default list is used.
Exits with non-zero status if structural issues are detected.
"""

from __future__ import annotations

import json
import os
import sys
from typing import List

# Ensure project root on path if executed directly
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from floorgen.dungeon import FloorProperties, SpawnKind, TileFlag, generate_floor  # noqa: E402 import after path fix
from floorgen.dungeon.connectivity import flood_from, walkable_tiles  # noqa: E402 import after path fix
from floorgen.logging_utils import configure  # noqa: E402 import after path fix

DEFAULT_SEEDS = [292372, 730727]


def run_for_seed(seed: int) -> dict:
    props = FloorProperties(
        layout=os.getenv("FLOOR_LAYOUT", "standard"),
        secondary_terrain=True,
        imperfect_rooms=True,
        extra_hallway_density=2,
        maze_room_chance=50,
    )
    floor = generate_floor(props, seed=seed)
    stairs = floor.stairs
    reach = flood_from(floor.grid, *stairs) if stairs else set()
    walkable = walkable_tiles(floor.grid)
    issues = {
        "unreachable_tiles": sum(1 for p in walkable if p not in reach),
        "flagged_unreachable": len(floor.grid.positions_with(TileFlag.UNREACHABLE)),
        "missing_stairs": int(stairs is None),
        "missing_player": int(not floor.spawns_of(SpawnKind.PLAYER)),
    }
    return {
        "seed": seed,
        "layout": floor.layout.value,
        "attempts": floor.attempts,
        "fallback": floor.used_fallback,
        "issues": issues,
        "ok": all(v == 0 for v in issues.values()),
    }


def main(argv: List[str]) -> int:
    # Only errors (stderr) by default so stdout stays parseable JSON
    configure(level=os.getenv("FLOORGEN_LOG_LEVEL", "error"))
    seeds = [int(a) for a in argv] if argv else DEFAULT_SEEDS
    results = [run_for_seed(s) for s in seeds]
    print(json.dumps({"results": results}, indent=2))
    # Non-zero exit if any failure
    if not all(r["ok"] for r in results):
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
