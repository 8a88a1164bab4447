"""Feats and skills."""
from __future__ import annotations

from quill.engine.rules.attrstring import AttrDict
from quill.engine.rules.attrstring import AttributeSyntaxError
from quill.engine.rules.attrstring import get_attr_value
from quill.engine.rules.attrstring import get_attr_value_array
from quill.engine.rules.registry import RuleRegistry
from quill.engine.rules.validation import prerequisite_rules
from quill.engine.utils import camel

from .core_rules import PROFICIENCY
from .defs import ABILITIES

# Feats with these traits share one pool of slots.
GENERAL_TRAITS = frozenset({"General", "Skill"})

MAX_RANK = 4


def feat_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    """A chosen feat (`feats.<name>`) grants the feature of the same name.

    `Require=` entries are hard prerequisites, `Imply=` entries only raise
    a sanity note. Each trait counts the feat toward `sum<Trait>Feats`;
    General and Skill feats count toward `sumGeneralAndSkillFeats`.
    """
    feat_attr = f"feats.{name}"
    prefix = camel(name)
    prerequisite_rules(
        registry,
        "validation",
        f"{prefix}Feat",
        feat_attr,
        [str(r) for r in get_attr_value_array(attrs, "Require")],
    )
    prerequisite_rules(
        registry,
        "sanity",
        f"{prefix}Feat",
        feat_attr,
        [str(r) for r in get_attr_value_array(attrs, "Imply")],
    )
    registry.define_rule(f"features.{name}", feat_attr, "=", None)
    traits = [str(t) for t in get_attr_value_array(attrs, "Trait")]
    if GENERAL_TRAITS.intersection(traits):
        registry.define_rule("sumGeneralAndSkillFeats", feat_attr, "+=", None)
    for trait in traits:
        if trait not in GENERAL_TRAITS:
            registry.define_rule(f"sum{trait.replace(' ', '')}Feats", feat_attr, "+=", None)


def skill_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    """`skills.<name>` is the skill's modifier.

    Training comes from class lists, from `skillChoices.<name>` (spending a
    free training), and from phrases elsewhere; `skillIncreases.<name>` then
    raises the rank one step per increase, up to Legendary.
    """
    ability = str(get_attr_value(attrs, "Ability") or "")
    if ability not in ABILITIES:
        raise AttributeSyntaxError(f"Unknown ability {ability!r} for skill {name!r}")
    rank_attr = f"rank.{name}"
    choice = f"skillChoices.{name}"
    increase = f"skillIncreases.{name}"
    for class_name in get_attr_value_array(attrs, "Class"):
        registry.define_rule(rank_attr, f"levels.{class_name}", "^=", 1)
    registry.define_rule(rank_attr, choice, "^=", "source ? 1 : null")
    registry.define_rule(rank_attr, increase, "+", None)
    registry.define_rule(rank_attr, "", "v", MAX_RANK)
    registry.define_rule("skillChoicesAllocated", choice, "+=", None)
    registry.define_rule("skillIncreasesAllocated", increase, "+=", None)
    registry.define_rule(
        f"skills.{name}",
        f"{ability.lower()}Modifier",
        "=",
        None,
        rank_attr,
        "+",
        PROFICIENCY,
    )
