from typing import Dict


def init_metrics() -> Dict[str, int | float | bool]:
    return {
        'attempts': 0,
        'retries': 0,
        'fallback_used': False,
        'rooms': 0,
        'hallway_tiles': 0,
        'junctions': 0,
        'maze_rooms': 0,
        'secondary_tiles': 0,
        'imperfect_tiles': 0,
        'extra_hallway_tiles': 0,
        'kecleon_shops': 0,
        'monster_houses': 0,
        'unreachable_tiles': 0,
        'spawns_stairs': 0,
        'spawns_hidden_stairs': 0,
        'spawns_item': 0,
        'spawns_trap': 0,
        'spawns_enemy': 0,
        'spawns_player': 0,
        'spawns_cleared': 0,
        'runtime_ms': 0.0,
    }
