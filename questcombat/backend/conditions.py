"""Condition tracking: modifier aggregation and round-boundary countdown."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Protocol

from questcombat.backend.models import Condition

STAT_CODES: tuple[str, ...] = ("STR", "DEX", "CON", "INT", "WIS", "CHA")


class ConditionSource(Protocol):
    def get_active_conditions(self, actor_id: str) -> list[Condition]:
        """Return the externally computed conditions currently affecting the actor."""

    def get_total_stat_modifiers(self, actor_id: str) -> dict[str, int]:
        """Return the summed stat modifiers of the actor's active conditions."""


@dataclass
class StaticConditionSource:
    conditions: dict[str, list[Condition]] = field(default_factory=dict)

    def set_conditions(self, actor_id: str, conditions: Iterable[Condition]) -> None:
        self.conditions[actor_id] = list(conditions)

    def get_active_conditions(self, actor_id: str) -> list[Condition]:
        return list(self.conditions.get(actor_id, []))

    def get_total_stat_modifiers(self, actor_id: str) -> dict[str, int]:
        return apply_modifiers(self.get_active_conditions(actor_id))


def apply_modifiers(conditions: Iterable[Condition]) -> dict[str, int]:
    """Sum stat modifiers over non-expired conditions.

    All six ability codes are always present. Extra codes such as ``AC`` are
    carried through when a condition defines them.
    """
    totals = {code: 0 for code in STAT_CODES}
    for condition in conditions:
        if condition.rounds_remaining <= 0:
            continue
        for code, value in condition.stat_modifiers.items():
            key = code.upper()
            totals[key] = totals.get(key, 0) + int(value)
    return totals


def on_round_advance(conditions: Iterable[Condition]) -> tuple[list[Condition], list[Condition]]:
    """Tick every condition down by one round.

    Returns ``(kept, expired)``. A condition that reaches zero is dropped here,
    so a condition with one round remaining disappears after exactly one call.
    """
    kept: list[Condition] = []
    expired: list[Condition] = []
    for condition in conditions:
        remaining = condition.rounds_remaining - 1
        if remaining <= 0:
            expired.append(replace(condition, rounds_remaining=0))
        else:
            kept.append(replace(condition, rounds_remaining=remaining))
    return kept, expired


def merge_refreshed(
    current: Iterable[Condition],
    fresh: Iterable[Condition],
    expired_keys: Iterable[str],
) -> list[Condition]:
    """Add newly reported conditions without resetting tracked countdowns."""
    merged = list(current)
    known = {condition.key for condition in merged}
    known.update(expired_keys)
    for condition in fresh:
        if condition.key in known or condition.rounds_remaining <= 0:
            continue
        merged.append(condition)
        known.add(condition.key)
    return merged
