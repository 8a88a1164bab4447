"""Validation and sanity notes.

Constraint violations are ordinary derived attributes under
`validationNotes.*` (hard: an invalid combination) and `sanityNotes.*` (soft:
probably a content mistake). They never stop evaluation; the reporter just
collects the triggered ones after a pass.
"""
from __future__ import annotations

import re
from typing import Iterable

from .attributes import AttributeStore
from .base_models import Issue
from .expressions import ExpressionError
from .expressions import quote
from .notes import render_note
from .registry import RuleRegistry

SEVERITIES: dict[str, str] = {
    "validationNotes": "validation",
    "sanityNotes": "sanity",
}

_REQUIREMENT = re.compile(
    r"""^\s*(?P<attr>[^=!<>~]+?)\s*
    (?:(?P<op>==|!=|<=|>=|<|>|=~|!~)\s*(?P<value>.+?))?\s*$""",
    re.VERBOSE,
)


class ValidationReporter:
    """Collects triggered validation and sanity notes from an evaluated store."""

    def __init__(self, registry: RuleRegistry):
        self.registry = registry

    def issues(self, store: AttributeStore) -> list[Issue]:
        issues: list[Issue] = []
        for family, severity in SEVERITIES.items():
            for member, value in sorted(store.family(family).items()):
                if "." in member:
                    continue
                attribute = f"{family}.{member}"
                message = render_note(self.registry, store, attribute)
                if message is None:
                    continue
                issues.append(
                    Issue(
                        attribute=attribute,
                        severity=severity,  # type: ignore[arg-type]
                        value=value,
                        message=message,
                    )
                )
        return issues

    def errors(self, store: AttributeStore) -> list[Issue]:
        return [i for i in self.issues(store) if i.severity == "validation"]


def valid_allocation_rules(
    registry: RuleRegistry, pool: str, count_attr: str, allocated_attr: str
) -> str:
    """Flags a pool whose allocation is over its count or negative.

    `validationNotes.<pool>Allocation` is triggered exactly when the value of
    `allocated_attr` is greater than `count_attr` or below zero. Absent values
    count as 0. Returns the note attribute.
    """
    note = f"validationNotes.{pool}Allocation"
    available = f"{note}.1"
    allocated = f"{note}.2"
    registry.define_note(note, "%1 available vs. %2 allocated")
    registry.define_rule(available, count_attr, "=", None)
    registry.define_rule(available, "", "=", 0)
    registry.define_rule(allocated, allocated_attr, "=", None)
    registry.define_rule(allocated, "", "=", 0)
    registry.define_rule(
        note,
        allocated,
        "=",
        f'source > dict["{available}"] ? source - dict["{available}"]'
        " : source < 0 ? source : null",
    )
    return note


def requirement_expression(requirement: str) -> str:
    """Translates `attr [op value]` (alternatives joined by '||') into an
    expression that is truthy when the requirement is met.

        "level >= 3"                      -> dict["level"] >= 3
        "features.Fleet || feats.Toughness" -> (dict["features.Fleet"] || ...)
    """
    alternatives = []
    for part in requirement.split("||"):
        match = _REQUIREMENT.match(part)
        if not match:
            raise ExpressionError("Bad requirement", requirement)
        lhs = f'dict["{match.group("attr")}"]'
        if match.group("op"):
            alternatives.append(f"{lhs} {match.group('op')} {_literal(match.group('value'))}")
        else:
            alternatives.append(lhs)
    if len(alternatives) == 1:
        return alternatives[0]
    return "(" + " || ".join(alternatives) + ")"


def _literal(text: str) -> str:
    text = text.strip()
    if len(text) > 1 and text[0] in "'\"" and text[-1] == text[0]:
        return text
    try:
        float(text)
    except ValueError:
        return quote(text)
    return text


def prerequisite_rules(
    registry: RuleRegistry,
    section: str,
    name: str,
    level_attr: str,
    requirements: Iterable[str],
) -> str | None:
    """Flags `<section>Notes.<name>` when `level_attr` is set and any
    requirement is unmet. Returns the note attribute.

    Raises:
        ExpressionError: if a requirement can't be parsed.
    """
    requirements = list(requirements)
    if not requirements:
        return None
    note = f"{section}Notes.{name}"
    checks = [requirement_expression(r) for r in requirements]
    unmet = " || ".join(f"!({check})" for check in checks)
    registry.define_note(note, "Requires " + "/".join(requirements))
    registry.define_rule(note, level_attr, "?", None, level_attr, "=", f"{unmet} ? 1 : null")
    return note
