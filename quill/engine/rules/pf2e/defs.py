from __future__ import annotations

from typing import ClassVar

from quill.engine.rules import base_models

ABILITIES: tuple[str, ...] = (
    "Strength",
    "Dexterity",
    "Constitution",
    "Intelligence",
    "Wisdom",
    "Charisma",
)

# Keys each category's encoded attributes may use.
CHOICE_KEYS: dict[str, tuple[str, ...]] = {
    "Alignment": (),
    "Ancestry": ("Require", "Features", "Selectables", "HitPoints", "Languages"),
    "Armor": ("AC", "Dex", "Str", "Check", "Speed", "Bulk", "Category"),
    "Background": ("Features", "Skill", "Feat"),
    "Class": (
        "Require",
        "Ability",
        "HitPoints",
        "Features",
        "Selectables",
        "Languages",
        "SpellSlots",
        "CasterLevelArcane",
        "CasterLevelDivine",
    ),
    "Deity": ("Alignment", "Domain", "Font", "Skill", "Weapon"),
    "Feat": ("Trait", "Require", "Imply"),
    "Feature": ("Section", "Note", "Action"),
    "Goody": ("Pattern", "Effect", "Value", "Attribute", "Section", "Note"),
    "Language": (),
    "Shield": ("AC", "Hardness", "Speed", "Bulk"),
    "Skill": ("Ability", "Class"),
    "Spell": ("School", "Level", "Tradition", "Description"),
    "Weapon": ("Category", "Damage", "Range", "Trait", "Bulk"),
}


class Ruleset(base_models.BaseRuleset):
    engine_class: str = "quill.engine.rules.pf2e.engine.PF2EEngine"
    # Levels at which a free boost to four abilities is granted.
    boost_levels: list[int] = [1, 5, 10, 15, 20]
    max_level: int = 20

    categories: ClassVar[tuple[str, ...]] = (
        "Alignment",
        "Language",
        "Skill",
        "Armor",
        "Shield",
        "Weapon",
        "Spell",
        "Deity",
        "Feature",
        "Feat",
        "Ancestry",
        "Background",
        "Class",
        "Goody",
    )
    choice_keys: ClassVar[dict[str, tuple[str, ...]]] = CHOICE_KEYS
