from __future__ import annotations

import pytest

from quill.engine.rules.pf2e.controllers.character_controller import PF2ECharacter


def test_bonus_before_name(character: PF2ECharacter):
    character.set("notes", "Found in the crypt:\n* +1 AC from a ring of protection")
    assert character.get("goodies.Armor Class") == "+1"
    assert character.get("armorClass") == 11
    assert character.notes("combat") == {
        "combatNotes.goodiesArmorClass": "+1 Armor Class",
    }


def test_bonus_after_name(character: PF2ECharacter):
    character.set("notes", "* Armor Class +2")
    assert character.get("armorClass") == 12
    assert character.render_note("combatNotes.goodiesArmorClass") == "+2 Armor Class"


def test_unstarred_lines_are_ignored(character: PF2ECharacter):
    character.set("notes", "+1 AC from a ring of protection")
    assert character.get("goodies.Armor Class") is None
    assert character.get("armorClass") == 10


@pytest.mark.parametrize(
    "line,attr,expected",
    [
        ("* -5 speed while encumbered", "speed", 20),
        ("* +6 HP from the toughness tonic", "hitPoints", 6),
        ("* Perception +1", "perception", 1),
    ],
)
def test_goodies(character: PF2ECharacter, line, attr, expected):
    character.set("notes", line)
    assert character.get(attr) == expected


def test_several_goodies(character: PF2ECharacter):
    character.set("notes", "* +1 AC\n* +2 Speed")
    assert character.get("armorClass") == 11
    assert character.get("speed") == 27
    assert character.notes("ability") == {"abilityNotes.goodiesSpeed": "+2 Speed"}


def test_removing_notes(character: PF2ECharacter):
    character.set("notes", "* +1 AC")
    assert character.get("armorClass") == 11
    character.set("notes", None)
    assert character.get("armorClass") == 10
    assert "combatNotes.goodiesArmorClass" not in character.notes("combat")
