"""End-to-end checks against the bundled core content."""
from __future__ import annotations

from quill.engine.rules.pf2e.controllers.character_controller import PF2ECharacter
from quill.engine.rules.pf2e.engine import PF2EEngine


def test_toughness_note(character: PF2ECharacter):
    """The Toughness note embeds the character level."""
    assert character.choose("Feat", "Toughness")
    character.level = 5
    assert character.get("combatNotes.toughness") == 5
    assert character.render_note("combatNotes.toughness") == "+5 Hit Points"
    assert "5 Hit Points" in character.notes("combat")["combatNotes.toughness"]
    assert character.get("hitPoints") == 5


def test_standard_dwarf_boosts(character: PF2ECharacter):
    """Dwarves with standard boosts get the conditional boost and flaw features."""
    character.set("abilityGeneration", "All 10s; standard ancestry boosts")
    assert character.choose("Ancestry", "Dwarf")
    features = character.features
    assert features["Ability Boost (Constitution; Wisdom; Choose 1 from any)"] == 1
    assert features["Ability Flaw (Charisma)"] == 1
    assert "Ability Boost (Choose 2 from any)" not in features
    assert character.get("constitution") == 12
    assert character.get("wisdom") == 12
    assert character.get("charisma") == 8
    assert character.get("abilityBoostCount") == 5


def test_alternate_dwarf_boosts(character: PF2ECharacter):
    character.set("abilityGeneration", "All 10s; alternate ancestry boosts")
    assert character.choose("Ancestry", "Dwarf")
    features = character.features
    assert features["Ability Boost (Choose 2 from any)"] == 1
    assert "Ability Boost (Constitution; Wisdom; Choose 1 from any)" not in features
    assert character.get("constitution") == 10
    assert character.get("charisma") == 10
    assert character.get("abilityBoostCount") == 6


def test_too_many_general_feats(character: PF2ECharacter):
    """Two general feats don't fit in a first level character's one slot."""
    assert character.get("featCount.General") == 1
    assert character.choose("Feat", "Toughness")
    rd = character.choose("Feat", "Fleet")
    assert not rd
    assert rd.attribute == "validationNotes.generalAndSkillFeatAllocation"
    note = character.render_note("validationNotes.generalAndSkillFeatAllocation")
    assert note == "1 available vs. 2 allocated"
    # Invalid choices are still recorded.
    assert character.feats == ["Fleet", "Toughness"]
    # A skill feat slot opens up at level 2.
    character.level = 2
    assert character.validate()


def test_barbarian_ancestry_feats(barbarian: PF2ECharacter):
    assert barbarian.level == 1
    assert barbarian.get("featureNotes.ancestryFeats") == 1
    assert barbarian.get("featCount.Ancestry") == 1
    assert barbarian.notes("feature")["featureNotes.ancestryFeats"] == "1 selections"
    barbarian.level = 5
    assert barbarian.get("featureNotes.ancestryFeats") == 2


def test_reregistering_is_idempotent(engine: PF2EEngine, character: PF2ECharacter):
    """Loading the same choices again doesn't stack their effects."""
    assert character.choose("Feat", "Toughness")
    character.level = 5
    assert character.get("hitPoints") == 5

    feature = engine.get_choices("Feature")["Toughness"]
    for _ in range(2):
        assert engine.register_choice("Feat", "Toughness", "Trait=General")
        assert engine.register_choice("Feature", "Toughness", feature)

    registry = engine.registry
    assert len(registry.note_templates("combatNotes.toughness")) == 1
    assert len(registry.rules_for("features.Toughness")) == 1
    sources = [r.source for r in registry.rules_for("hitPoints")]
    assert sources.count("combatNotes.toughness") == 1
    assert character.get("combatNotes.toughness") == 5
    assert character.get("hitPoints") == 5
    assert character.render_note("combatNotes.toughness") == "+5 Hit Points"
