"""Basic tests for the character controller."""
from __future__ import annotations

import logging

import pytest

from quill.engine import loader
from quill.engine.rules.pf2e.controllers.character_controller import PF2ECharacter
from quill.engine.rules.pf2e.engine import PF2EEngine
from quill.engine.rules.resolver import CycleError


def test_core_ruleset_builds_cleanly(caplog):
    """Every bundled choice compiles without complaint."""
    caplog.set_level(logging.WARNING)
    engine = loader.load_ruleset("$quill.pf2e.core").engine
    assert engine.registry.is_built
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


def test_new_character(character: PF2ECharacter):
    assert character.level == 1
    assert character.abilities == {
        "Strength": 10,
        "Dexterity": 10,
        "Constitution": 10,
        "Intelligence": 10,
        "Wisdom": 10,
        "Charisma": 10,
    }
    assert character.get("strengthModifier") == 0
    assert character.render_note("strength") == "10 (+0)"
    assert character.get("hitPoints") == 0
    assert character.get("speed") == 25
    assert character.get("armorClass") == 10
    assert character.get("perception") == 0
    assert character.get("proficiencyBonus") == 3
    assert character.get("abilityBoostCount") == 4
    assert character.get("maxSpellLevel") == 1
    assert character.validate()
    assert character.fully_valid()
    assert character.issues() == []


def test_level_progression(character: PF2ECharacter):
    character.level = 5
    assert character.get("abilityBoostCount") == 8
    assert character.get("featCount.General") == 2
    assert character.get("featCount.Skill") == 2
    assert character.get("skillIncreaseCount") == 2
    assert character.get("maxSpellLevel") == 3
    counts = []
    for level in range(1, 21):
        character.level = level
        counts.append(character.get("generalAndSkillFeatCount"))
    assert counts == sorted(counts)
    assert counts[-1] == 16


def test_boosts(character: PF2ECharacter):
    assert character.boost("Strength")
    assert character.boost("Strength")
    assert character.get("strength") == 14
    assert character.get("strengthModifier") == 2
    assert character.render_note("strength") == "14 (+2)"
    assert character.get("abilityBoostsAllocated") == 2


def test_too_many_boosts(character: PF2ECharacter):
    for ability in ("Strength", "Dexterity", "Constitution", "Wisdom"):
        assert character.boost(ability)
    rd = character.boost("Charisma")
    assert not rd
    assert rd.attribute == "validationNotes.abilityBoostAllocation"
    assert rd.reason == (
        "validationNotes.abilityBoostAllocation: 4 available vs. 5 allocated"
    )
    assert rd.issues == (rd.reason,)


def test_unknown_boost(character: PF2ECharacter):
    rd = character.boost("Luck")
    assert not rd
    assert "Luck" in rd.reason


def test_dry_run(character: PF2ECharacter):
    rd = character.boost("Strength", dry_run=True)
    assert rd
    assert not rd.mutation_applied
    assert character.boost("Dexterity").mutation_applied
    assert character.get("abilityBoostsChosen.Strength") is None
    assert character.get("strength") == 10
    assert not character.choose("Feat", "Incredible Initiative", dry_run=True)
    assert character.feats == []


def test_dry_run_keeps_earlier_inputs(character: PF2ECharacter):
    character.level = 5
    character.set("abilityGeneration", "All 10s; standard ancestry boosts")
    assert character.choose("Feat", "Toughness", dry_run=True)
    assert character.level == 5
    assert character.get("abilityGeneration") == "All 10s; standard ancestry boosts"
    assert character.feats == []
    assert character.get("featCount.General") == 2


def test_non_finite_input(character: PF2ECharacter):
    character.set("abilityBoostsChosen.Strength", "inf")
    assert character.get("strength") == 10
    assert character.get("strengthModifier") == 0
    assert character.render_note("strength") == "10 (+0)"


def test_choose_and_unchoose(character: PF2ECharacter):
    assert character.choose("Ancestry", "Elf")
    assert character.get("ancestry") == "Elf"
    assert character.choose("Ancestry", "Dwarf")
    assert character.get("ancestry") == "Dwarf"
    assert not character.unchoose("Ancestry", "Elf")
    assert character.unchoose("Ancestry", "Dwarf")
    assert character.get("ancestry") is None
    assert character.choose("Feat", "Toughness")
    assert character.unchoose("Feat", "Toughness")
    assert character.feats == []


def test_choose_unknown(character: PF2ECharacter):
    rd = character.choose("Feat", "Improbable Luck")
    assert not rd
    assert rd.reason == "Unknown feat 'Improbable Luck'."
    assert not character.choose("Feature", "Darkvision")


def test_serialization_flow(engine: PF2EEngine, character: PF2ECharacter):
    """A character with data in it can be serialized and deserialized safely."""
    character.level = 3
    assert character.choose("Ancestry", "Dwarf")
    assert character.choose("Class", "Barbarian")
    assert character.choose("Feat", "Toughness")
    assert character.boost("Constitution")

    data = character.dump_dict()
    assert data
    assert "hitPoints" not in data["attributes"]

    loaded = engine.load_character(data)
    assert character is not loaded
    assert loaded.is_current
    assert loaded.model.attributes == character.model.attributes
    assert loaded.get("hitPoints") == character.get("hitPoints")
    assert loaded.get("combatNotes.toughness") == 3


def test_load_incompatible(engine: PF2EEngine, character: PF2ECharacter):
    data = character.dump_dict()
    with pytest.raises(ValueError):
        engine.load_character(data | {"ruleset_version": "2.0"})
    with pytest.raises(ValueError):
        engine.load_character(data | {"ruleset_id": "other"})
    assert engine.load_character(data | {"ruleset_version": "0.9"})


def test_stale_after_rule_change(engine: PF2EEngine, character: PF2ECharacter):
    """Changing the ruleset's content invalidates evaluated characters."""
    assert character.choose("Feat", "Toughness")
    character.level = 5
    assert character.get("hitPoints") == 5
    assert character.is_current

    rd = engine.register_choice(
        "Feature", "Toughness", 'Section=combat Note="+%{level * 2} Hit Points"'
    )
    assert rd
    assert not character.is_current
    assert character.get("hitPoints") == 10
    assert character.render_note("combatNotes.toughness") == "+10 Hit Points"

    assert engine.remove_choice("Feature", "Toughness")
    assert character.get("hitPoints") == 5
    assert not engine.remove_choice("Feature", "Sturdiness")


def test_rejected_choices(engine: PF2EEngine, character: PF2ECharacter):
    assert not engine.register_choice("Feat", "Broken", 'Require="level >=')
    assert not engine.register_choice("Feature", "Broken", 'Section=combat Note="%{level +}"')
    assert not engine.register_choice("Skill", "Broken", "Ability=Luck")
    assert not engine.register_choice("Widget", "Broken", "")
    assert "Broken" not in engine.get_choices("Feat")
    assert character.validate()


def test_cycle_is_reported(engine: PF2EEngine):
    with pytest.raises(CycleError) as exc_info:
        engine.register_choice("Goody", "Echo", 'Pattern="echo" Attribute=notes')
    assert set(exc_info.value.cycle) == {"notes", "goodies.Echo"}
    # The rejected choice is gone and the engine still evaluates.
    assert "Echo" not in engine.get_choices("Goody")
    character = engine.new_character()
    assert character.get("level") == 1
    assert character.get("strength") == 10


def test_cycle_keeps_previous_definition(engine: PF2EEngine):
    assert engine.register_choice("Goody", "Echo", 'Pattern="echo" Attribute=speed')
    with pytest.raises(CycleError):
        engine.register_choice("Goody", "Echo", 'Pattern="echo" Attribute=notes')
    assert engine.get_choices("Goody")["Echo"] == 'Pattern="echo" Attribute=speed'
    assert engine.new_character().get("speed") == 25
