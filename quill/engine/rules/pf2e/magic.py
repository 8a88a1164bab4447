"""Spells and spellcasting classes."""
from __future__ import annotations

import re

from quill.engine.rules.attrstring import AttrDict
from quill.engine.rules.attrstring import AttributeSyntaxError
from quill.engine.rules.attrstring import get_attr_value
from quill.engine.rules.attrstring import get_attr_value_array
from quill.engine.rules.registry import RuleRegistry
from quill.engine.rules.validation import prerequisite_rules
from quill.engine.utils import camel

from .defs import ABILITIES

# "Arcane1:1=2;3=3": level 1 Arcane slots, 2 from caster level 1 and 3 from
# caster level 3.
_SLOTS = re.compile(r"^(?P<kind>[A-Za-z]+)(?P<level>\d+):(?P<table>.+)$")
_STEP = re.compile(r"^\s*(?P<caster_level>\d+)\s*=\s*(?P<count>\d+)\s*$")


def spell_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    """A known spell (`spells.<name>`) shows its description and counts
    toward `spellsKnown.<tradition>`.

    Knowing a spell above `maxSpellLevel` raises a sanity note.
    """
    spell_attr = f"spells.{name}"
    level = get_attr_value(attrs, "Level") or 0
    school = get_attr_value(attrs, "School") or ""
    description = get_attr_value(attrs, "Description") or ""
    heading = f"{school} {level}".strip() if level else f"{school} Cantrip".strip()
    registry.define_note(spell_attr, f"({heading}) {description}".rstrip())
    for tradition in get_attr_value_array(attrs, "Tradition"):
        registry.define_rule(f"spellsKnown.{tradition}", spell_attr, "+=", None)
    if level:
        prerequisite_rules(
            registry, "sanity", f"{camel(name)}Spell", spell_attr, [f"maxSpellLevel >= {level}"]
        )


def spellcasting_rules(
    registry: RuleRegistry, name: str, class_attr: str, attrs: AttrDict
) -> None:
    """Caster levels, spell slots, spell attack and spell DC for a class.

    `casterLevels.<class>` follows the class level, or the class's
    `CasterLevelArcane=`/`CasterLevelDivine=` expression when given. Each
    `SpellSlots=` entry names a kind of slot and a level, e.g. `Arcane1`;
    the kind gets its own caster level (`casterLevels.Arcane`), attack
    modifier, and difficulty class, based on the class's key ability.

    Raises:
        AttributeSyntaxError: for a malformed slot entry, or slots on a class
            without a key ability.
    """
    slots = [str(s) for s in get_attr_value_array(attrs, "SpellSlots")]
    if not slots:
        return
    abilities = [str(a) for a in get_attr_value_array(attrs, "Ability")]
    if not abilities or abilities[0] not in ABILITIES:
        raise AttributeSyntaxError(f"Spellcasting class {name!r} needs a key ability")
    modifier = f"{abilities[0].lower()}Modifier"

    caster_attr = f"casterLevels.{name}"
    arcane = get_attr_value(attrs, "CasterLevelArcane")
    divine = get_attr_value(attrs, "CasterLevelDivine")
    expression = arcane if arcane is not None else divine
    registry.define_rule(
        caster_attr, class_attr, "=", "source" if expression is None else str(expression)
    )
    if arcane is not None:
        registry.define_rule("casterLevelArcane", caster_attr, "+=", None)
    if divine is not None:
        registry.define_rule("casterLevelDivine", caster_attr, "+=", None)

    kinds: list[str] = []
    for entry in slots:
        kind, level, expression = _slot_expression(name, entry)
        registry.define_rule(f"spellSlots.{kind}{level}", caster_attr, "+=", expression)
        if kind not in kinds:
            kinds.append(kind)
    for kind in kinds:
        kind_attr = f"casterLevels.{kind}"
        if kind != name:
            registry.define_rule(kind_attr, caster_attr, "^=", None)
        registry.define_rule(
            f"spellAttackModifier.{kind}",
            kind_attr,
            "?",
            None,
            modifier,
            "=",
            None,
            "proficiencyBonus",
            "+",
            None,
        )
        registry.define_rule(
            f"spellDifficultyClass.{kind}",
            kind_attr,
            "?",
            None,
            modifier,
            "=",
            "8 + source",
            "proficiencyBonus",
            "+",
            None,
        )


def _slot_expression(name: str, entry: str) -> tuple[str, str, str]:
    """Parses a slot entry into (kind, level, slot count expression)."""
    match = _SLOTS.match(entry.strip())
    if not match:
        raise AttributeSyntaxError(f"Bad spell slots {entry!r} for class {name!r}")
    steps = []
    for step in match.group("table").split(";"):
        if not (step_match := _STEP.match(step)):
            raise AttributeSyntaxError(f"Bad spell slots {entry!r} for class {name!r}")
        steps.append((int(step_match.group("caster_level")), int(step_match.group("count"))))
    expression = "null"
    for caster_level, count in sorted(steps):
        expression = f"source >= {caster_level} ? {count} : {expression}"
    return match.group("kind"), match.group("level"), expression
