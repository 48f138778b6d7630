"""Narrative collaborator contract and a template-based default narrator."""

from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence

logger = logging.getLogger(__name__)


class Narrator(Protocol):
    def narrate(self, hooks: Sequence[dict[str, Any]]) -> str:
        """Turn structured narrative hooks into prose."""


class TemplateNarrator:
    """Deterministic prose for each hook type, one sentence per hook."""

    def narrate(self, hooks: Sequence[dict[str, Any]]) -> str:
        sentences = [sentence for sentence in (self._sentence(hook) for hook in hooks) if sentence]
        return " ".join(sentences)

    def _sentence(self, hook: dict[str, Any]) -> str | None:
        kind = hook.get("type")
        who = hook.get("combatant", "Someone")
        if kind == "attack":
            if hook.get("criticalMiss"):
                return f"{who} swings wildly at {hook['target']} and fumbles the {hook['weapon']}."
            if not hook.get("hit"):
                return f"{who}'s {hook['weapon']} misses {hook['target']} ({hook['attackTotal']} vs AC {hook['targetArmorClass']})."
            if hook.get("critical"):
                return f"{who} lands a critical blow on {hook['target']} with the {hook['weapon']}!"
            return f"{who}'s {hook['weapon']} connects with {hook['target']}."
        if kind == "damage":
            if hook.get("targetDown"):
                return f"{hook['target']} takes {hook['damage']} damage and falls."
            return f"{hook['target']} takes {hook['damage']} damage ({hook['targetHp']}/{hook['targetMaxHp']} HP)."
        if kind == "awaiting_roll":
            dice = hook.get("dice", 1)
            noun = "d20s" if hook.get("roll") == "attack" and dice > 1 else "roll"
            return f"{who} must make the {hook['roll']} {noun} ({dice} needed)."
        if kind in ("move", "enemy_move"):
            return f"{who} moves from {hook['fromZone']} to {hook['toZone']} range."
        if kind == "enemy_hold":
            return f"{who} holds position at {hook['zone']} range."
        if kind == "defend":
            return f"{who} takes a defensive stance."
        if kind == "custom":
            return f"{who}: {hook['text']}"
        if kind == "flee":
            return f"{who} breaks away and escapes the fight."
        if kind == "enemy_attack":
            if not hook.get("hit"):
                return f"{who} attacks {hook['target']} and misses."
            return f"{who} hits {hook['target']} for {hook['damage']} damage ({hook['targetHp']}/{hook['targetMaxHp']} HP)."
        if kind == "condition_expired":
            return f"{hook['condition']} wears off."
        if kind == "combat_ended":
            return f"The battle is over: {hook['outcome']}."
        return None


def narrate_safely(narrator: Narrator | None, hooks: Sequence[dict[str, Any]]) -> str | None:
    """Ask the narrator for prose without letting its failure affect the result."""
    if narrator is None or not hooks:
        return None
    try:
        return narrator.narrate(hooks)
    except Exception:
        logger.warning("Narration failed; returning the mechanical result only", exc_info=True)
        return None
