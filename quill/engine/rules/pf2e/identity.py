"""Ancestries, backgrounds, classes, deities, and the other identity choices."""
from __future__ import annotations

from quill.engine.rules.attrstring import AttrDict
from quill.engine.rules.attrstring import AttributeSyntaxError
from quill.engine.rules.attrstring import get_attr_value
from quill.engine.rules.attrstring import get_attr_value_array
from quill.engine.rules.expressions import quote
from quill.engine.rules.registry import RuleRegistry
from quill.engine.rules.validation import prerequisite_rules
from quill.engine.utils import camel

from .defs import ABILITIES
from .features import feature_list_rules
from .magic import spellcasting_rules


def alignment_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    # Alignments are a plain choice with no rules of their own.
    pass


def language_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    registry.define_rule("languagesAllocated", f"languages.{name}", "+=", None)


def ancestry_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    """While `ancestry` is `name`, `<ancestry>Level` follows the character
    level and drives the ancestry's features."""
    level_attr = f"{camel(name)}Level"
    registry.define_rule(
        level_attr, "ancestry", "?", f"source == {quote(name)}", "level", "=", None
    )
    prerequisite_rules(
        registry,
        "validation",
        f"{camel(name)}Ancestry",
        level_attr,
        [str(r) for r in get_attr_value_array(attrs, "Require")],
    )
    selectables = get_attr_value_array(attrs, "Selectables")
    feature_list_rules(
        registry,
        name,
        level_attr,
        get_attr_value_array(attrs, "Features"),
        selectables,
    )
    if selectables:
        registry.define_rule(f"selectableFeatureCount.{name}", level_attr, "=", 1)
    if (hit_points := get_attr_value(attrs, "HitPoints")) is not None:
        registry.define_rule("hitPoints", level_attr, "+=", hit_points)
    _granted_languages(registry, level_attr, get_attr_value_array(attrs, "Languages"))


def background_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    level_attr = f"{camel(name)}Level"
    registry.define_rule(
        level_attr, "background", "?", f"source == {quote(name)}", "level", "=", None
    )
    feature_list_rules(registry, name, level_attr, get_attr_value_array(attrs, "Features"))
    for skill in get_attr_value_array(attrs, "Skill"):
        registry.define_rule(f"rank.{skill}", level_attr, "^=", 1)
    for feat in get_attr_value_array(attrs, "Feat"):
        registry.define_rule(f"features.{feat}", level_attr, "=", 1)


def class_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    """While `class` is `name`, `levels.<class>` follows the character level.

    A single key ability is boosted outright; a list of them grants one
    free boost instead. Classes with `SpellSlots=` also get caster levels
    and spell statistics.
    """
    class_attr = f"levels.{name}"
    registry.define_rule(
        class_attr, "class", "?", f"source == {quote(name)}", "level", "=", None
    )
    prerequisite_rules(
        registry,
        "validation",
        f"{camel(name)}Class",
        class_attr,
        [str(r) for r in get_attr_value_array(attrs, "Require")],
    )
    abilities = [str(a) for a in get_attr_value_array(attrs, "Ability")]
    for ability in abilities:
        if ability not in ABILITIES:
            raise AttributeSyntaxError(f"Unknown key ability {ability!r} for class {name!r}")
    if len(abilities) == 1:
        registry.define_rule(f"abilityBoosts.{abilities[0]}", class_attr, "+=", 1)
    elif abilities:
        registry.define_rule("abilityBoostCount", class_attr, "+=", 1)
    if (hit_points := get_attr_value(attrs, "HitPoints")) is not None:
        registry.define_rule(
            "hitPoints",
            class_attr,
            "+=",
            f'source * ({hit_points} + dict["constitutionModifier"])',
        )
    feature_list_rules(
        registry,
        name,
        class_attr,
        get_attr_value_array(attrs, "Features"),
        get_attr_value_array(attrs, "Selectables"),
    )
    _granted_languages(registry, class_attr, get_attr_value_array(attrs, "Languages"))
    spellcasting_rules(registry, name, class_attr, attrs)
    class_rules_extra(registry, name)


def class_rules_extra(registry: RuleRegistry, name: str) -> None:
    """Class mechanics that feature notes alone can't express."""
    match name:
        case "Barbarian":
            registry.define_rule("selectableFeatureCount.Barbarian", "levels.Barbarian", "=", 1)
            registry.define_rule(
                "combatNotes.rage",
                "features.Rage",
                "?",
                None,
                "levels.Barbarian",
                "=",
                "source < 7 ? 2 : source < 15 ? 6 : 12",
            )
            registry.define_rule(
                "combatNotes.rage.1",
                "features.Rage",
                "?",
                None,
                "levels.Barbarian",
                "=",
                'source + dict["constitutionModifier"]',
            )


def deity_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    """`deityAlignment`, `deityDomains`, etc. describe the chosen deity."""
    gate = ("deity", "?", f"source == {quote(name)}")
    for key, target in (
        ("Alignment", "deityAlignment"),
        ("Domain", "deityDomains"),
        ("Font", "deityFont"),
        ("Skill", "deitySkill"),
        ("Weapon", "deityWeapon"),
    ):
        if values := get_attr_value_array(attrs, key):
            text = "/".join(str(v) for v in values)
            registry.define_rule(target, *gate, "deity", "=", quote(text))


def _granted_languages(registry: RuleRegistry, level_attr: str, languages: list) -> None:
    """Fixed languages are known outright; each "any" is a free pick."""
    if not languages:
        return
    registry.define_rule("languageCount", level_attr, "+=", len(languages))
    for language in languages:
        if language != "any":
            registry.define_rule(f"languages.{language}", level_attr, "=", 1)
