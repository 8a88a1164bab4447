"""Goodies: bonuses written into the character's free-form notes.

A goody watches the `notes` attribute for starred lines that match its
pattern, such as

    * +1 AC from a ring of protection

and applies the matched value to one or more attributes.
"""
from __future__ import annotations

import re

from quill.engine.rules.attrstring import AttrDict
from quill.engine.rules.attrstring import AttributeSyntaxError
from quill.engine.rules.attrstring import get_attr_value
from quill.engine.rules.attrstring import get_attr_value_array
from quill.engine.rules.expressions import quote
from quill.engine.rules.registry import RuleRegistry

EFFECTS: dict[str, str] = {
    "add": "+=",
    "set": "=",
    "raise": "^",
    "lower": "v",
}


def goody_rules(registry: RuleRegistry, name: str, attrs: AttrDict) -> None:
    """`goodies.<name>` takes the goody's value while a starred line matches.

    `Value=` may refer to the pattern's groups as `$1`..`$9`, e.g.
    `Value="$1 || $2"`; without a value, a match counts as 1.

    Raises:
        AttributeSyntaxError: for a missing or malformed pattern, or an
            unknown effect.
    """
    pattern = get_attr_value(attrs, "Pattern")
    if not pattern:
        raise AttributeSyntaxError(f"Goody {name!r} has no Pattern")
    effect = str(get_attr_value(attrs, "Effect") or "add")
    if effect not in EFFECTS:
        raise AttributeSyntaxError(f"Unknown effect {effect!r} for goody {name!r}")
    line = rf"(?im)^\s*\*.*?(?:{pattern})"
    try:
        re.compile(line)
    except re.error as exc:
        raise AttributeSyntaxError(f"Bad pattern for goody {name!r}: {exc}") from exc
    line_literal = quote(line)
    value = str(get_attr_value(attrs, "Value") or 1)
    value = re.sub(
        r"\$(\d)", lambda m: f"capture(source, {line_literal}, {m.group(1)})", value
    )

    goody = f"goodies.{name}"
    registry.define_rule(
        goody, "notes", "?", f"source =~ {line_literal}", "notes", "=", value
    )
    for attribute in get_attr_value_array(attrs, "Attribute"):
        registry.define_rule(str(attribute), goody, EFFECTS[effect], None)

    sections = [str(s) for s in get_attr_value_array(attrs, "Section")]
    notes = [str(n) for n in get_attr_value_array(attrs, "Note")]
    if len(sections) == 1:
        sections *= len(notes)
    if len(sections) != len(notes):
        raise AttributeSyntaxError(
            f"Goody {name!r} has {len(notes)} notes for {len(sections)} sections"
        )
    for section, note in zip(sections, notes):
        note_attr = f"{section}Notes.goodies{name.replace(' ', '')}"
        registry.define_rule(note_attr, goody, "=", None)
        registry.define_note(note_attr, note)
