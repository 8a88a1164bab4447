"""Rules every character gets, whatever they choose."""
from __future__ import annotations

from quill.engine.rules.registry import RuleRegistry
from quill.engine.rules.validation import valid_allocation_rules

from .defs import ABILITIES
from .defs import Ruleset

# Proficiency bonus for the rank in `source`: untrained adds nothing, any
# other rank adds twice the rank plus the character level.
PROFICIENCY = 'source > 0 ? source * 2 + dict["level"] : 0'

SAVES: dict[str, str] = {
    "Fortitude": "constitution",
    "Reflex": "dexterity",
    "Will": "wisdom",
}


def core_rules(registry: RuleRegistry, ruleset: Ruleset) -> None:
    ability_rules(registry, ruleset)
    combat_rules(registry)
    feat_rules(registry)
    talent_rules(registry)
    magic_rules(registry)


def ability_rules(registry: RuleRegistry, ruleset: Ruleset) -> None:
    """Scores start at 10; each boost is +2 and each flaw -2.

    Four free boosts come at each boost level. Free boosts are spent through
    `abilityBoostsChosen.<Ability>`, and spending more than are available is
    a validation error.
    """
    boost_levels = " + ".join(f"(source >= {level})" for level in ruleset.boost_levels)
    registry.define_rule("abilityBoostCount", "level", "+=", f"4 * ({boost_levels})")
    for ability in ABILITIES:
        attr = ability.lower()
        registry.define_rule(attr, "", "=", 10)
        registry.define_rule(attr, f"abilityBoosts.{ability}", "+", "source * 2")
        registry.define_rule(attr, f"abilityBoostsChosen.{ability}", "+", "source * 2")
        registry.define_rule(attr, f"abilityFlaws.{ability}", "+", "source * -2")
        registry.define_rule(f"{attr}Modifier", attr, "=", "Math.floor((source - 10) / 2)")
        registry.define_rule(
            f"{attr}.1", f"{attr}Modifier", "=", 'source >= 0 ? "+" + source : source'
        )
        registry.define_note(attr, "%V (%1)")
        registry.define_rule(
            "abilityBoostsAllocated", f"abilityBoostsChosen.{ability}", "+=", None
        )
    valid_allocation_rules(
        registry, "abilityBoost", "abilityBoostCount", "abilityBoostsAllocated"
    )


def combat_rules(registry: RuleRegistry) -> None:
    registry.define_rule("proficiencyBonus", "level", "=", "source + 2")
    registry.define_rule("hitPoints", "", "=", 0)
    registry.define_rule("speed", "", "=", 25)

    registry.define_rule("armorClass", "", "=", 10)
    registry.define_rule(
        "armorClass", "combatNotes.dexterityArmorClassAdjustment", "+", None
    )
    registry.define_rule("armorClass", "armorProficiencyBonus", "+", None)
    registry.define_rule(
        "combatNotes.dexterityArmorClassAdjustment", "dexterityModifier", "=", None
    )
    registry.define_note(
        "combatNotes.dexterityArmorClassAdjustment", "+%V Armor Class"
    )

    registry.define_rule("perception", "wisdomModifier", "=", None)
    registry.define_rule("perception", "rank.Perception", "+", PROFICIENCY)
    for save, ability in SAVES.items():
        registry.define_rule(f"saves.{save}", f"{ability}Modifier", "=", None)
        registry.define_rule(f"saves.{save}", f"rank.{save}", "+", PROFICIENCY)

    # Finesse weapons use whichever of Strength and Dexterity is better.
    registry.define_rule("betterAttackModifier", "strengthModifier", "=", None)
    registry.define_rule("betterAttackModifier", "dexterityModifier", "^", None)
    registry.define_note(
        "sanityNotes.nonproficientWeapons", "%V weapon(s) used without proficiency"
    )
    registry.define_note(
        "skillNotes.armorCheckPenalty", "%V Strength and Dexterity skill checks"
    )


def feat_rules(registry: RuleRegistry) -> None:
    """Feat slots by level and the limits the chosen feats must fit."""
    registry.define_rule(
        "featCount.General",
        "level",
        "=",
        "source < 3 ? 1 : 1 + Math.floor((source + 1) / 4)",
    )
    registry.define_rule("featCount.Skill", "level", "=", "Math.floor(source / 2)")
    registry.define_rule("generalAndSkillFeatCount", "featCount.General", "+=", None)
    registry.define_rule("generalAndSkillFeatCount", "featCount.Skill", "+=", None)
    valid_allocation_rules(
        registry,
        "generalAndSkillFeat",
        "generalAndSkillFeatCount",
        "sumGeneralAndSkillFeats",
    )
    valid_allocation_rules(
        registry, "ancestryFeat", "featCount.Ancestry", "sumAncestryFeats"
    )
    valid_allocation_rules(registry, "classFeat", "featCount.Class", "sumClassFeats")


def talent_rules(registry: RuleRegistry) -> None:
    registry.define_rule(
        "skillChoiceCount", "intelligenceModifier", "+", "source > 0 ? source : 0"
    )
    valid_allocation_rules(
        registry, "skillChoice", "skillChoiceCount", "skillChoicesAllocated"
    )
    registry.define_rule(
        "skillIncreaseCount", "level", "=", "Math.floor((source - 1) / 2)"
    )
    valid_allocation_rules(
        registry, "skillIncrease", "skillIncreaseCount", "skillIncreasesAllocated"
    )
    registry.define_rule(
        "languageCount", "intelligenceModifier", "+", "source > 0 ? source : 0"
    )
    valid_allocation_rules(registry, "language", "languageCount", "languagesAllocated")


def magic_rules(registry: RuleRegistry) -> None:
    registry.define_rule("maxSpellLevel", "level", "=", "Math.ceil(source / 2)")
