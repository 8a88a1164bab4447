from __future__ import annotations

import pytest

from quill.engine.rules.pf2e.controllers.character_controller import PF2ECharacter


def test_unarmored(barbarian: PF2ECharacter):
    assert barbarian.get("armor") == "None"
    assert barbarian.get("armorProficiencyBonus") == 3
    assert barbarian.get("armorClass") == 13


def test_medium_armor(barbarian: PF2ECharacter):
    assert barbarian.choose("Armor", "Hide")
    assert barbarian.get("armorClass") == 10 + 0 + 3 + 3
    assert barbarian.get("speed") == 20
    assert (
        barbarian.notes("skill")["skillNotes.armorCheckPenalty"]
        == "-2 Strength and Dexterity skill checks"
    )


def test_strength_offsets_armor(barbarian: PF2ECharacter):
    assert barbarian.boost("Strength")
    assert barbarian.get("strength") == 14
    assert barbarian.choose("Armor", "Hide")
    assert barbarian.get("speed") == 25
    assert "skillNotes.armorCheckPenalty" not in barbarian.notes("skill")


def test_dexterity_cap(barbarian: PF2ECharacter):
    assert barbarian.boost("Dexterity")
    assert barbarian.boost("Dexterity")
    assert barbarian.get("combatNotes.dexterityArmorClassAdjustment") == 2
    assert barbarian.get("armorClass") == 10 + 2 + 3
    assert barbarian.choose("Armor", "Breastplate")
    assert barbarian.get("combatNotes.dexterityArmorClassAdjustment") == 1
    assert barbarian.get("armorClass") == 10 + 1 + 3 + 4


def test_untrained_armor(barbarian: PF2ECharacter):
    assert barbarian.choose("Armor", "Full Plate")
    assert barbarian.get("armorProficiencyBonus") is None
    assert barbarian.get("armorClass") == 10 + 6
    assert barbarian.get("speed") == 15


@pytest.mark.parametrize(
    "shield,ac,hardness,speed",
    [
        ("None", 0, 0, 25),
        ("Buckler", 1, 3, 25),
        ("Steel Shield", 2, 5, 25),
        ("Tower Shield", 2, 5, 20),
    ],
)
def test_shields(character: PF2ECharacter, shield, ac, hardness, speed):
    assert character.choose("Shield", shield)
    assert character.get("shieldArmorClass") == ac
    assert character.get("shieldHardness") == hardness
    assert character.get("speed") == speed


def test_melee_weapon(barbarian: PF2ECharacter):
    assert barbarian.choose("Weapon", "Longsword")
    assert barbarian.get("weaponProficiencyBonus.Longsword") == 3
    assert barbarian.get("attackBonus.Longsword") == 4
    assert barbarian.weapons == {"Longsword": "+4 1d8+1 S"}


def test_ranged_weapon(barbarian: PF2ECharacter):
    assert barbarian.choose("Weapon", "Crossbow")
    assert barbarian.weapons == {"Crossbow": "+3 1d8 P R120'"}


def test_finesse_weapon(barbarian: PF2ECharacter):
    assert barbarian.boost("Dexterity")
    assert barbarian.boost("Dexterity")
    assert barbarian.choose("Weapon", "Rapier")
    assert barbarian.get("betterAttackModifier") == 2
    assert barbarian.weapons == {"Rapier": "+5 1d6+1 P"}


def test_nonproficient_weapon(character: PF2ECharacter):
    assert character.choose("Weapon", "Dwarven War Axe")
    assert character.weapons == {"Dwarven War Axe": "+0 1d8 S"}
    assert character.validate()
    rd = character.fully_valid()
    assert not rd
    assert rd.reason == (
        "sanityNotes.nonproficientWeapons: 1 weapon(s) used without proficiency"
    )


def test_weak_wielder(character: PF2ECharacter):
    character.set("abilityFlaws.Strength", 1)
    assert character.choose("Weapon", "Club")
    assert character.weapons == {"Club": "-1 1d6-1 B"}


def test_dropped_weapon(barbarian: PF2ECharacter):
    assert barbarian.choose("Weapon", "Longsword")
    assert barbarian.unchoose("Weapon", "Longsword")
    assert barbarian.weapons == {}
    assert barbarian.get("attackBonus.Longsword") is None
