from __future__ import annotations

import pytest

from quill.engine.rules.attributes import AttributeStore
from quill.engine.rules.evaluator import evaluate_all
from quill.engine.rules.expressions import ExpressionError
from quill.engine.rules.notes import compile_note
from quill.engine.rules.notes import format_value
from quill.engine.rules.notes import render_note
from quill.engine.rules.notes import render_section
from quill.engine.rules.notes import render_template
from quill.engine.rules.registry import RuleRegistry


@pytest.mark.parametrize(
    "value,expected",
    [(2.0, "2"), (1.5, "1.5"), (None, ""), ("Dwarf", "Dwarf"), (-3, "-3")],
)
def test_format_value(value, expected):
    assert format_value(value) == expected


@pytest.mark.parametrize(
    "template,value,expected",
    [
        ("%V (%1)", 2, "2 (4)"),
        ("+%V Armor Class", -1, "-1 Armor Class"),
        ("%N: %V", 2, "rage: 2"),
        ("%2 missing", 2, " missing"),
    ],
)
def test_render_template(template, value, expected):
    lookup = {"combatNotes.rage.1": 4}.get
    assert render_template(template, "combatNotes.rage", value, lookup) == expected


@pytest.fixture
def registry() -> RuleRegistry:
    return RuleRegistry()


def evaluated(registry: RuleRegistry, **inputs) -> AttributeStore:
    return evaluate_all(registry, AttributeStore(inputs))


def test_embedded_expression(registry):
    template = compile_note(
        registry, "combatNotes.toughness", "+%{level} Hit Points", "features.Toughness"
    )
    assert template == "+%V Hit Points"
    store = evaluated(registry, **{"features.Toughness": 1, "level": 5})
    assert render_note(registry, store, "combatNotes.toughness") == "+5 Hit Points"
    store = evaluated(registry, level=5)
    assert render_note(registry, store, "combatNotes.toughness") is None


def test_several_embedded_expressions(registry):
    template = compile_note(
        registry, "combatNotes.x", "%{level} and %{level * 2}", "features.X"
    )
    assert template == "%V and %1"
    store = evaluated(registry, **{"features.X": 1, "level": 3})
    assert render_note(registry, store, "combatNotes.x") == "3 and 6"


def test_plain_note_follows_source(registry):
    compile_note(registry, "featureNotes.darkvision", "See in darkness", "features.Darkvision")
    store = evaluated(registry, **{"features.Darkvision": 1})
    assert store.get("featureNotes.darkvision") == 1
    assert render_note(registry, store, "featureNotes.darkvision") == "See in darkness"


def test_literal_value_placeholder(registry):
    compile_note(registry, "combatNotes.rage", "+%V damage", "features.Rage")
    assert registry.rules_for("combatNotes.rage") == []
    registry.add_rule("combatNotes.rage", "features.Rage", "=", 2)
    store = evaluated(registry, **{"features.Rage": 1})
    assert render_note(registry, store, "combatNotes.rage") == "+2 damage"


def test_bad_embedded_expression(registry):
    with pytest.raises(ExpressionError):
        compile_note(registry, "combatNotes.x", "%{level +} damage", "features.X")
    assert registry.note_template("combatNotes.x") is None


def test_note_without_template(registry):
    registry.add_rule("combatNotes.x", "", "=", 3)
    store = evaluated(registry)
    assert render_note(registry, store, "combatNotes.x") == "3"


def test_untriggered_note(registry):
    registry.define_note("combatNotes.x", "%V")
    registry.add_rule("combatNotes.x", "", "=", 0)
    store = evaluated(registry)
    assert render_note(registry, store, "combatNotes.x") is None


def test_render_section(registry):
    registry.define_note("combatNotes.rage", "+%V damage (%1 temporary Hit Points)")
    registry.add_rule("combatNotes.rage", "features.Rage", "=", 2)
    registry.add_rule("combatNotes.rage.1", "features.Rage", "=", 4)
    compile_note(registry, "combatNotes.slow", "-5 Speed", "features.Slow")
    compile_note(registry, "skillNotes.lore", "Lore Trained", "features.Lore")
    store = evaluated(registry, **{"features.Rage": 1, "features.Lore": 1})
    assert render_section(registry, store, "combat") == {
        "combatNotes.rage": "+2 damage (4 temporary Hit Points)"
    }
    assert render_section(registry, store, "skill") == {"skillNotes.lore": "Lore Trained"}
    assert render_section(registry, store, "magic") == {}
