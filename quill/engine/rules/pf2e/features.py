"""Feature lists, feature notes, and the phrases embedded in both."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from quill.engine.rules.attrstring import AttrDict
from quill.engine.rules.attrstring import AttributeSyntaxError
from quill.engine.rules.attrstring import get_attr_value
from quill.engine.rules.attrstring import get_attr_value_array
from quill.engine.rules.notes import compile_note
from quill.engine.rules.phrases import AbilityPhrase
from quill.engine.rules.phrases import Phrase
from quill.engine.rules.phrases import PhraseError
from quill.engine.rules.phrases import TrainingPhrase
from quill.engine.rules.phrases import parse_phrase
from quill.engine.rules.phrases import split_phrases
from quill.engine.rules.registry import RuleRegistry
from quill.engine.rules.validation import valid_allocation_rules
from quill.engine.utils import camel

from .defs import ABILITIES

# "<condition> ? <level>:<name>"; the condition is everything before the
# last '?' that is followed by a level.
_CONDITIONAL = re.compile(r"^(?P<condition>.+)\?\s*(?P<entry>\d+:.+)$")
_LEVELED = re.compile(r"^(?P<level>\d+):\s*(?P<name>.+)$")

ACTIONS: dict[str, str] = {
    "1": "(1 action)",
    "2": "(2 actions)",
    "3": "(3 actions)",
    "Free": "(free action)",
    "Reaction": "(reaction)",
}


@dataclass(frozen=True)
class FeatureEntry:
    name: str
    level: int = 1
    condition: str | None = None


def parse_feature_entry(text: str | int | float) -> FeatureEntry:
    """Parses a `Features=` entry.

        "Darkvision"                          -> level 1
        "3:Deny Advantage"                    -> level 3
        "abilityGeneration =~ 'x' ? 1:Slow"   -> level 1, only when the test holds
    """
    text = str(text).strip()
    condition = None
    if match := _CONDITIONAL.match(text):
        condition = match.group("condition").strip()
        text = match.group("entry")
    level = 1
    if match := _LEVELED.match(text):
        level = int(match.group("level"))
        text = match.group("name")
    name = text.strip()
    if not name:
        raise AttributeSyntaxError(f"Feature entry without a name: {text!r}")
    return FeatureEntry(name=name, level=level, condition=condition)


def feature_list_rules(
    registry: RuleRegistry,
    owner: str,
    level_attr: str,
    features: Iterable[str | int | float],
    selectables: Iterable[str | int | float] = (),
) -> None:
    """Grants `owner`'s features as `level_attr` reaches each feature's level.

    Features land in `<owner>Features.<name>` and `features.<name>`.
    Selectable features are only granted when the player picks them through
    `selectableFeatures.<name>`; picking more than
    `selectableFeatureCount.<owner>` allows is a validation error.
    """
    set_attr = f"{camel(owner)}Features"
    for text in features:
        entry = parse_feature_entry(text)
        member = f"{set_attr}.{entry.name}"
        triples: list = []
        if entry.condition:
            triples += [level_attr, "?", entry.condition]
        triples += [level_attr, "=", f"source >= {entry.level} ? 1 : null"]
        registry.define_rule(member, *triples)
        _granted(registry, entry.name, member)

    selectables = list(selectables)
    if not selectables:
        return
    allocated = f"selectableFeaturesAllocated.{owner}"
    for text in selectables:
        entry = parse_feature_entry(text)
        member = f"{set_attr}.{entry.name}"
        selection = f"selectableFeatures.{entry.name}"
        triples = [level_attr, "?", f"source >= {entry.level}"]
        if entry.condition:
            triples += [level_attr, "?", entry.condition]
        triples += [selection, "=", None]
        registry.define_rule(member, *triples)
        _granted(registry, entry.name, member)
        registry.define_rule(allocated, selection, "+=", None)
    valid_allocation_rules(
        registry,
        f"{camel(owner)}SelectableFeature",
        f"selectableFeatureCount.{owner}",
        allocated,
    )


def _granted(registry: RuleRegistry, name: str, member: str) -> None:
    registry.define_rule(f"features.{name}", member, "+=", None)
    if phrase := parse_phrase(name):
        phrase_rules(registry, phrase, member)


def phrase_rules(registry: RuleRegistry, phrase: Phrase, source: str) -> None:
    """Declares what a phrase grants while `source` is truthy.

    Raises:
        PhraseError: for an ability phrase naming an unknown ability, or a
            flaw the player would have to choose.
    """
    match phrase:
        case TrainingPhrase():
            for item in phrase.items:
                registry.define_rule(
                    f"rank.{item}", source, "^=", f"source ? {phrase.rank_value} : null"
                )
            for choice in phrase.choices:
                registry.define_rule(
                    f"{camel(phrase.capability)}ChoiceCount",
                    source,
                    "+=",
                    f"source ? {choice.count} : null",
                )
        case AbilityPhrase():
            family = "abilityBoosts" if phrase.kind == "Boost" else "abilityFlaws"
            for ability in phrase.abilities:
                if ability not in ABILITIES:
                    raise PhraseError(f"Unknown ability {ability!r} in ability {phrase.kind.lower()}")
                registry.define_rule(f"{family}.{ability}", source, "+=", "source ? 1 : null")
            if phrase.choices and phrase.kind == "Flaw":
                raise PhraseError("Ability flaws can't be chosen")
            for choice in phrase.choices:
                registry.define_rule(
                    "abilityBoostCount", source, "+=", f"source ? {choice.count} : null"
                )


def feature_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    """Notes for a feature, shown while `features.<name>` is set.

    Each `Note=` pairs with the `Section=` at the same position; a single
    section applies to every note.
    """
    sections = [str(s) for s in get_attr_value_array(attrs, "Section")]
    notes = [str(n) for n in get_attr_value_array(attrs, "Note")]
    if len(sections) == 1:
        sections *= len(notes)
    if len(sections) != len(notes):
        raise AttributeSyntaxError(
            f"Feature {name!r} has {len(notes)} notes for {len(sections)} sections"
        )
    prefix = ""
    if (action := get_attr_value(attrs, "Action")) is not None:
        if str(action) not in ACTIONS:
            raise AttributeSyntaxError(f"Unknown action {action!r} for feature {name!r}")
        prefix = ACTIONS[str(action)] + " "
    source = f"features.{name}"
    for section, note in zip(sections, notes):
        compile_note(registry, f"{section}Notes.{camel(name)}", prefix + note, source)
        for part in split_phrases(note):
            if phrase := parse_phrase(part):
                phrase_rules(registry, phrase, source)
    feature_rules_extra(registry, name)


def feature_rules_extra(registry: RuleRegistry, name: str) -> None:
    """Effects of specific features beyond their notes."""
    match name:
        case "Ancestry Feats":
            registry.define_rule("featCount.Ancestry", "featureNotes.ancestryFeats", "=", None)
        case "Class Feats":
            registry.define_rule("featCount.Class", "featureNotes.classFeats", "=", None)
        case "Elf Speed":
            registry.define_rule("speed", "abilityNotes.elfSpeed", "+", 5)
        case "Fleet":
            registry.define_rule("speed", "abilityNotes.fleet", "+", 5)
        case "Slow":
            registry.define_rule("speed", "abilityNotes.slow", "+", -5)
        case "Toughness":
            registry.define_rule("hitPoints", "combatNotes.toughness", "+", None)
