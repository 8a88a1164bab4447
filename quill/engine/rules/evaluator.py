"""Folds rule contributions into derived attribute values."""
from __future__ import annotations

import logging
from typing import Iterable

from .attributes import AttributeStore
from .attributes import Value
from .base_models import DEFINING_OPERATORS
from .base_models import MODIFYING_OPERATORS
from .base_models import Rule
from .expressions import Scope
from .expressions import truthy
from .registry import RuleRegistry
from ..utils import as_number


def evaluate_all(registry: RuleRegistry, store: AttributeStore) -> AttributeStore:
    """Recomputes every derived attribute of `store`.

    Evaluation starts over from the raw inputs each time, so running it again
    on an unchanged store gives the same values. The store is current
    afterward.

    Raises:
        CycleError: if the registry hasn't been built and its rules contain a
            cycle.
    """
    order = registry.build()
    values = store.inputs.copy()
    lookup = values.get
    for target in order:
        values[target] = evaluate_target(
            registry.rules_for(target), values.get(target), lookup
        )
    store._publish(values)
    return store


def evaluate_target(rules: Iterable[Rule], initial: Value, lookup) -> Value:
    """Combines the rules for one target, starting from its raw value.

    Gates are checked first, per group. Then defining operators fire in
    declaration order, followed by modify-only operators.
    """
    rules = [r for r in rules if not r.is_trigger]
    closed: set[int] = set()
    for rule in rules:
        if rule.is_gate and rule.group not in closed:
            if not truthy(_contribution(rule, lookup)):
                closed.add(rule.group)
    value = initial
    for operators in (DEFINING_OPERATORS, MODIFYING_OPERATORS):
        for rule in rules:
            if rule.operator not in operators or rule.group in closed:
                continue
            if rule.operator == "=" and value is not None:
                continue
            if (contribution := _contribution(rule, lookup)) is None:
                continue
            value = _fold(rule.operator, value, contribution)
    return value


def _contribution(rule: Rule, lookup) -> Value:
    if rule.source:
        source = lookup(rule.source)
        if source is None:
            return None
    else:
        source = None
    if rule.expr is None:
        return source
    result = rule.expr.evaluate(Scope(source=source, lookup=lookup))
    if isinstance(result, bool):
        return int(result)
    return result


def _fold(operator: str, current: Value, contribution: Value) -> Value:
    match operator:
        case "=":
            return contribution
        case "+=" | "+":
            if current is None:
                return contribution if operator == "+=" else None
            return _sum(current, contribution)
        case "^=" | "^":
            if current is None:
                return contribution if operator == "^=" else None
            return _extreme(max, current, contribution)
        case "v=" | "v":
            if current is None:
                return contribution if operator == "v=" else None
            return _extreme(min, current, contribution)
    raise ValueError(f"Unknown operator {operator!r}")


def _sum(current: Value, contribution: Value) -> Value:
    if isinstance(current, str) or isinstance(contribution, str):
        a, b = as_number(current), as_number(contribution)
        if a is None or b is None:
            return f"{current}{contribution}"
        return a + b
    return current + contribution  # type: ignore[operator]


def _extreme(fn, current: Value, contribution: Value) -> Value:
    a, b = as_number(current), as_number(contribution)
    if a is None or b is None:
        logging.debug("Can't compare %r and %r; keeping %r", current, contribution, current)
        return current
    return fn(a, b)
