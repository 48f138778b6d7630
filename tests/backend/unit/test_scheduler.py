import pytest
from conftest import make_bare_encounter, make_combatant

from questcombat.backend.models import Condition, Side
from questcombat.backend.scheduler import advance

SHORT = Condition(name="Fatigued", source="steps", stat_modifiers={"STR": -1}, rounds_remaining=1)


def _trio():
    return [
        make_combatant("Aria", side=Side.ACTOR),
        make_combatant("Goblin"),
        make_combatant("Wolf"),
    ]


def test_advance_without_wrap_emits_turn_events() -> None:
    encounter = make_bare_encounter(_trio())

    events = advance(encounter)

    assert encounter.turn_cursor == 1
    assert encounter.round == 1
    assert [event["timing"] for event in events] == ["turn_end", "turn_start"]
    assert events[-1]["combatant"] == "Goblin"


def test_advance_wrap_starts_next_round() -> None:
    encounter = make_bare_encounter(_trio())
    encounter.turn_cursor = 2

    events = advance(encounter)

    assert encounter.turn_cursor == 0
    assert encounter.round == 2
    assert [event["timing"] for event in events] == ["turn_end", "round_end", "round_start", "turn_start"]


def test_advance_skips_downed_combatants() -> None:
    order = _trio()
    order[1].hp = 0
    encounter = make_bare_encounter(order)

    advance(encounter)

    assert encounter.current.name == "Wolf"


def test_advance_skips_downed_combatant_after_wrap() -> None:
    order = _trio()
    order[0], order[1] = order[1], order[0]
    order[0].hp = 0
    encounter = make_bare_encounter(order)
    encounter.turn_cursor = 2

    advance(encounter)

    assert encounter.round == 2
    assert encounter.current.name == "Aria"


def test_nine_advances_over_three_combatants_reach_round_four() -> None:
    encounter = make_bare_encounter(_trio())

    for _ in range(9):
        advance(encounter)

    assert encounter.round == 4
    assert encounter.turn_cursor == 0


def test_one_round_condition_survives_mid_round_and_expires_at_wrap() -> None:
    encounter = make_bare_encounter(_trio(), conditions=[SHORT])

    advance(encounter)
    advance(encounter)
    assert encounter.conditions == [SHORT]

    events = advance(encounter)

    assert encounter.conditions == []
    assert encounter.expired_conditions == [SHORT.key]
    assert {"type": "condition_expired", "condition": "Fatigued", "source": "steps"} in events


def test_refresh_adds_new_conditions_but_not_expired_ones() -> None:
    focused = Condition(name="Focused", source="meditation", stat_modifiers={"WIS": 1}, rounds_remaining=2)
    encounter = make_bare_encounter(_trio()[:2], conditions=[SHORT])
    encounter.turn_cursor = 1

    advance(encounter, refresh_conditions=lambda: [SHORT, focused])

    assert encounter.conditions == [focused]


def test_advance_refuses_when_everyone_is_down() -> None:
    order = _trio()
    for combatant in order:
        combatant.hp = 0
    encounter = make_bare_encounter(order)

    with pytest.raises(RuntimeError):
        advance(encounter)
