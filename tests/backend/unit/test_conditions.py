from questcombat.backend.conditions import (
    StaticConditionSource,
    apply_modifiers,
    merge_refreshed,
    on_round_advance,
)
from questcombat.backend.models import Condition

RESTED = Condition(name="Well-Rested", source="sleep", stat_modifiers={"CON": 2, "WIS": 1}, rounds_remaining=3)
TIRED = Condition(name="Fatigued", source="steps", stat_modifiers={"STR": -1, "CON": -1}, rounds_remaining=1)
EXPIRED = Condition(name="Hydrated", source="water", stat_modifiers={"CON": 5}, rounds_remaining=0)


def test_apply_modifiers_sums_active_conditions_over_all_codes() -> None:
    totals = apply_modifiers([RESTED, TIRED, EXPIRED])

    assert totals == {"STR": -1, "DEX": 0, "CON": 1, "INT": 0, "WIS": 1, "CHA": 0}


def test_apply_modifiers_carries_extra_codes_and_leaves_input_untouched() -> None:
    shield = Condition(name="Steady", source="hrv", stat_modifiers={"ac": 1}, rounds_remaining=2)
    conditions = [shield]

    totals = apply_modifiers(conditions)

    assert totals["AC"] == 1
    assert conditions == [shield]
    assert shield.rounds_remaining == 2


def test_on_round_advance_decrements_and_drops_conditions_reaching_zero() -> None:
    kept, expired = on_round_advance([RESTED, TIRED])

    assert [(condition.name, condition.rounds_remaining) for condition in kept] == [("Well-Rested", 2)]
    assert [condition.name for condition in expired] == ["Fatigued"]
    assert RESTED.rounds_remaining == 3


def test_merge_refreshed_adds_new_conditions_only() -> None:
    ticked = Condition(name="Well-Rested", source="sleep", stat_modifiers={"CON": 2}, rounds_remaining=1)
    fresh = [RESTED, TIRED, Condition(name="Focused", source="meditation", stat_modifiers={"WIS": 1}, rounds_remaining=2)]

    merged = merge_refreshed([ticked], fresh, expired_keys=[TIRED.key])

    assert [(condition.name, condition.rounds_remaining) for condition in merged] == [
        ("Well-Rested", 1),
        ("Focused", 2),
    ]


def test_static_condition_source_reports_conditions_and_totals() -> None:
    source = StaticConditionSource()
    source.set_conditions("actor-1", [RESTED, TIRED])

    assert source.get_active_conditions("actor-1") == [RESTED, TIRED]
    assert source.get_active_conditions("someone-else") == []
    assert source.get_total_stat_modifiers("actor-1")["CON"] == 1
