"""Armor, shields, and weapons."""
from __future__ import annotations

from quill.engine.rules.attrstring import AttrDict
from quill.engine.rules.attrstring import AttributeSyntaxError
from quill.engine.rules.attrstring import get_attr_value
from quill.engine.rules.attrstring import get_attr_value_array
from quill.engine.rules.expressions import quote
from quill.engine.rules.registry import RuleRegistry

from .core_rules import PROFICIENCY

ARMOR_CATEGORIES: dict[str, str] = {
    "Unarmored": "Unarmored Defense",
    "Light": "Light Armor",
    "Medium": "Medium Armor",
    "Heavy": "Heavy Armor",
}

WEAPON_CATEGORIES: dict[str, str] = {
    "Unarmed": "Unarmed Attacks",
    "Simple": "Simple Weapons",
    "Martial": "Martial Weapons",
    "Advanced": "Advanced Weapons",
}


def _number(attrs: AttrDict, key: str, default: int | float = 0) -> int | float:
    value = get_attr_value(attrs, key)
    if value is None:
        return default
    if isinstance(value, str):
        raise AttributeSyntaxError(f"{key} must be a number, got {value!r}")
    return value


def armor_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    """Adjustments that apply while `armor` is `name`.

    Armor adds its AC bonus and proficiency, caps the Dexterity adjustment,
    and slows its wearer. Meeting the Strength requirement lessens the speed
    penalty and removes the check penalty.
    """
    category = str(get_attr_value(attrs, "Category") or "Unarmored")
    if category not in ARMOR_CATEGORIES:
        raise AttributeSyntaxError(f"Unknown armor category {category!r} for {name!r}")
    gate = ("armor", "?", f"source == {quote(name)}")
    ac = _number(attrs, "AC")
    strength = _number(attrs, "Str")
    check = _number(attrs, "Check")
    speed = _number(attrs, "Speed")
    if ac:
        registry.define_rule("armorClass", *gate, "armor", "+", ac)
    if get_attr_value(attrs, "Dex") is not None:
        registry.define_rule(
            "combatNotes.dexterityArmorClassAdjustment",
            *gate,
            "armor",
            "v",
            _number(attrs, "Dex"),
        )
    registry.define_rule(
        "armorProficiencyBonus",
        *gate,
        f"rank.{ARMOR_CATEGORIES[category]}",
        "=",
        PROFICIENCY,
    )
    if speed:
        reduced = min(speed + 5, 0) if strength else speed
        registry.define_rule(
            "speed",
            *gate,
            "strength",
            "+",
            f"source >= {strength} ? {reduced} : {speed}",
        )
    if check:
        registry.define_rule(
            "skillNotes.armorCheckPenalty",
            *gate,
            "strength",
            "=",
            f"source >= {strength} ? null : {check}",
        )


def shield_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    gate = ("shield", "?", f"source == {quote(name)}")
    registry.define_rule("shieldArmorClass", *gate, "shield", "=", _number(attrs, "AC"))
    registry.define_rule("shieldHardness", *gate, "shield", "=", _number(attrs, "Hardness"))
    if speed := _number(attrs, "Speed"):
        registry.define_rule("speed", *gate, "shield", "+", speed)


def weapon_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    """A wielded weapon (`weapons.<name>`) gets an attack line like
    "+7 1d8+4 S".

    The attack uses Strength, Dexterity for ranged weapons, or the better of
    the two for finesse weapons. Melee weapons add Strength to damage.
    Wielding a weapon without any proficiency in its category raises a
    sanity note.
    """
    category = str(get_attr_value(attrs, "Category") or "Simple")
    if category not in WEAPON_CATEGORIES:
        raise AttributeSyntaxError(f"Unknown weapon category {category!r} for {name!r}")
    damage = str(get_attr_value(attrs, "Damage") or "1d4 B").split()
    dice = damage[0]
    damage_type = " ".join(damage[1:])
    weapon_range = get_attr_value(attrs, "Range")
    traits = [str(t) for t in get_attr_value_array(attrs, "Trait")]
    weapon_attr = f"weapons.{name}"
    rank_attr = f"rank.{WEAPON_CATEGORIES[category]}"
    bonus = f"weaponProficiencyBonus.{name}"
    attack = f"attackBonus.{name}"

    if weapon_range:
        modifier = "dexterityModifier"
    elif "Finesse" in traits:
        modifier = "betterAttackModifier"
    else:
        modifier = "strengthModifier"
    registry.define_rule(bonus, weapon_attr, "?", None, rank_attr, "=", PROFICIENCY)
    registry.define_rule(attack, weapon_attr, "?", None, modifier, "=", None)
    registry.define_rule(attack, bonus, "+", None)
    registry.define_rule(
        f"{weapon_attr}.1", attack, "=", 'source >= 0 ? "+" + source : source'
    )
    registry.define_rule(
        "sanityNotes.nonproficientWeapons",
        weapon_attr,
        "+=",
        f"source && !dict[{quote(rank_attr)}] ? 1 : null",
    )

    template = f"%1 {dice}"
    if not weapon_range:
        damage_bonus = f"damageBonus.{name}"
        registry.define_rule(
            damage_bonus, weapon_attr, "?", None, "strengthModifier", "=", None
        )
        registry.define_rule(
            f"{weapon_attr}.2",
            damage_bonus,
            "=",
            'source > 0 ? "+" + source : source < 0 ? source : ""',
        )
        template += "%2"
    if damage_type:
        template += f" {damage_type}"
    if weapon_range:
        template += f" R{weapon_range}'"
    registry.define_note(weapon_attr, template)
