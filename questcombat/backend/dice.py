"""Dice helpers.

System rolls (enemies only) go through a caller supplied ``random.Random`` so a
request replays identically for the same encounter version. Player dice are
never rolled here, only validated.
"""

from __future__ import annotations

import random
import re

from questcombat.backend.errors import InvalidInputError

_NOTATION = re.compile(r"^\s*(\d+)d(\d+)\s*(?:([+-])\s*(\d+))?\s*$")


def roll_d20(rng: random.Random) -> int:
    return rng.randint(1, 20)


def parse_notation(notation: str) -> tuple[int, int, int]:
    """Split dice notation such as ``2d6+1`` into (count, sides, modifier)."""
    match = _NOTATION.match(notation)
    if match is None:
        raise InvalidInputError(f"Invalid dice notation: {notation!r}")
    count, sides = int(match.group(1)), int(match.group(2))
    if count < 1 or sides < 1:
        raise InvalidInputError(f"Invalid dice notation: {notation!r}")
    modifier = int(match.group(4) or 0)
    if match.group(3) == "-":
        modifier = -modifier
    return count, sides, modifier


def roll_notation(notation: str, rng: random.Random) -> int:
    count, sides, modifier = parse_notation(notation)
    total = modifier + sum(rng.randint(1, sides) for _ in range(count))
    return max(0, total)


def require_die(value: object, low: int, high: int, label: str) -> int:
    """Validate a player-supplied die result."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{label} must be an integer, got {value!r}")
    if not low <= value <= high:
        raise InvalidInputError(f"{label} must be between {low} and {high}, got {value}")
    return value
