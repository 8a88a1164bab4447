from __future__ import annotations

from typing import Callable

from quill.engine.rules.attrstring import AttrDict
from quill.engine.rules.attrstring import AttributeSyntaxError
from quill.engine.rules.registry import RuleRegistry

from . import equipment
from . import features
from . import goodies
from . import identity
from . import magic
from . import talents

ChoiceCompiler = Callable[[RuleRegistry, str, AttrDict], None]

COMPILERS: dict[str, ChoiceCompiler] = {
    "Alignment": identity.alignment_rules,
    "Ancestry": identity.ancestry_rules,
    "Armor": equipment.armor_rules,
    "Background": identity.background_rules,
    "Class": identity.class_rules,
    "Deity": identity.deity_rules,
    "Feat": talents.feat_rules,
    "Feature": features.feature_rules,
    "Goody": goodies.goody_rules,
    "Language": identity.language_rules,
    "Shield": equipment.shield_rules,
    "Skill": talents.skill_rules,
    "Spell": magic.spell_rules,
    "Weapon": equipment.weapon_rules,
}


def choice_rules(registry: RuleRegistry, category: str, name: str, attrs: AttrDict) -> None:
    """Declares the rules for one choice of any known category.

    Raises:
        AttributeSyntaxError: if the category is unknown.
    """
    if category not in COMPILERS:
        raise AttributeSyntaxError(f"Unknown choice category {category!r}")
    COMPILERS[category](registry, name, attrs)
