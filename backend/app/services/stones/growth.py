import random
from typing import Optional


STONE_TYPES = (
    'andesite',
    'basalt',
    'conglomerate',
    'gneiss',
    'granite',
    'limestone',
    'quartzite',
    'sandstone',
    'shale',
    'tuff',
)

BASE_SIZE = 1


def random_stone_type(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(STONE_TYPES)


def grown_size(total_elapsed: int, growth_sec: int, base_size: int = BASE_SIZE) -> int:
    """Size after ``total_elapsed`` seconds: one unit per ``growth_sec``."""
    if growth_sec <= 0:
        return base_size
    return base_size + max(0, int(total_elapsed)) // growth_sec
