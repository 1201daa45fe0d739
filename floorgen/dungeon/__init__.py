"""Public floor generation interface."""

from .config import FloorProperties, HiddenStairsType, Layout  # noqa: F401
from .errors import AttemptOutcome, FloorGenerationError, SpawnPlacementError  # noqa: F401
from .fixed_rooms import FixedRoom, FixedRoomCatalog, FixedSpawn  # noqa: F401
from .grid import TileGrid  # noqa: F401
from .pipeline import Floor, FloorGenerator, FloorState, generate_floor  # noqa: F401
from .rng import RandomSource, ScriptedRandom, SeededRandom  # noqa: F401
from .spawns import SpawnKind, SpawnRecord  # noqa: F401
from .tiles import Tile, TileFlag  # noqa: F401

__all__ = [
    "FloorProperties",
    "HiddenStairsType",
    "Layout",
    "AttemptOutcome",
    "FloorGenerationError",
    "SpawnPlacementError",
    "FixedRoom",
    "FixedRoomCatalog",
    "FixedSpawn",
    "TileGrid",
    "Floor",
    "FloorGenerator",
    "FloorState",
    "generate_floor",
    "RandomSource",
    "ScriptedRandom",
    "SeededRandom",
    "SpawnKind",
    "SpawnRecord",
    "Tile",
    "TileFlag",
]
