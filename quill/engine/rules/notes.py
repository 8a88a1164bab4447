"""Note templates.

A note attribute (`combatNotes.toughness`, `validationNotes.featAllocation`)
holds a trigger value; its template turns that value into display text:

    %V      the note's value
    %1..%9  the value of `<note>.1` .. `<note>.9`
    %N      the note's member name (`toughness` for `combatNotes.toughness`)

Feature texts may also embed expressions as `%{level}`. Those are compiled
into ordinary placeholders plus the rules that compute their values.
"""
from __future__ import annotations

import re

from .attributes import AttributeStore
from .attributes import Value
from .attributes import split_name
from .expressions import parse
from .expressions import truthy
from .registry import RuleRegistry

_PLACEHOLDER = re.compile(r"%([VN1-9])")
_EMBEDDED = re.compile(r"%\{([^}]*)\}")


def format_value(value: Value) -> str:
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:g}"
    return "" if value is None else str(value)


def render_template(template: str, attribute: str, value: Value, lookup) -> str:
    def substitute(match: re.Match) -> str:
        key = match.group(1)
        if key == "V":
            return format_value(value)
        if key == "N":
            return split_name(attribute)[1] or attribute
        return format_value(lookup(f"{attribute}.{key}"))

    return _PLACEHOLDER.sub(substitute, template).replace("+-", "-")


def render_note(registry: RuleRegistry, store: AttributeStore, attribute: str) -> str | None:
    """Renders a note attribute from its current value.

    Returns None if the note isn't triggered. A triggered note without a
    template renders as its bare value.
    """
    value = store.get(attribute)
    if not truthy(value):
        return None
    template = registry.note_template(attribute)
    if template is None:
        return format_value(value)
    return render_template(template, attribute, value, store.get)


def render_section(
    registry: RuleRegistry, store: AttributeStore, section: str
) -> dict[str, str]:
    """Every triggered note in a section (`combat` -> `combatNotes.*`)."""
    family = f"{section}Notes"
    rendered = {}
    for member in sorted(store.family(family)):
        if "." in member:
            # `<note>.1` etc. are placeholder values, not notes.
            continue
        attribute = f"{family}.{member}"
        if (text := render_note(registry, store, attribute)) is not None:
            rendered[attribute] = text
    return rendered


def compile_note(registry: RuleRegistry, attribute: str, text: str, source: str) -> str:
    """Declares a note whose value follows `source`.

    Embedded `%{expr}` segments become placeholders: the first one becomes
    the note's own value (%V), later ones `%1`, `%2`, ... Each is computed
    by a rule gated on `source`. Without embedded expressions, the note's
    value is the source value, unless the text has its own %V; a value for
    that has to come from rules declared elsewhere.

    Returns the template that was declared.

    Raises:
        ExpressionError: if an embedded expression is malformed.
    """
    expressions: list[str] = []

    def placeholder(match: re.Match) -> str:
        expressions.append(match.group(1))
        index = len(expressions) - 1
        return "%V" if index == 0 else f"%{index}"

    template = _EMBEDDED.sub(placeholder, text)

    for expression in expressions:
        parse(expression)
    if not expressions and "%V" not in text:
        registry.define_rule(attribute, source, "=", None)
    for index, expression in enumerate(expressions):
        target = attribute if index == 0 else f"{attribute}.{index}"
        registry.define_rule(target, source, "?", None, source, "=", expression)
    registry.define_note(attribute, template)
    return template
