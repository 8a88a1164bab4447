"""The rule registry.

A registry owns every rule, note template, and choice for one ruleset. It is
built once (core rules, then every choice in the content pack) and is then
shared read-only by any number of characters. Content can be hot-swapped
through `register_choice` and `remove_choice`.
"""
from __future__ import annotations

import contextlib
import itertools
import logging
from typing import Callable
from typing import Iterator
from typing import TypeAlias

from .attrstring import AttrDict
from .attrstring import AttributeSyntaxError
from .attrstring import parse_attrs
from .base_models import OPERATORS
from .base_models import NoteTemplate
from .base_models import Owner
from .base_models import Rule
from .expressions import ExpressionError
from .expressions import compile_value
from .phrases import PhraseError
from .resolver import resolve

Compiler: TypeAlias = Callable[["RuleRegistry", str, str, AttrDict], None]

# Errors caused by bad content rather than bad code.
DATA_ERRORS = (AttributeSyntaxError, ExpressionError, PhraseError)


class RuleRegistry:
    """Rules grouped by target, in declaration order.

    Args:
        compiler: Turns one parsed choice into rules. Called with the
            registry, the choice's category and name, and its parsed
            attributes. Rules it declares are owned by the choice.
    """

    def __init__(self, compiler: Compiler | None = None):
        self.compiler = compiler
        self._rules: dict[str, list[Rule]] = {}
        self._notes: dict[str, list[NoteTemplate]] = {}
        self._seq = itertools.count()
        self._groups = itertools.count(1)
        self._owner: Owner | None = None
        self._choices: dict[str, dict[str, str]] = {}
        # The first definition of each choice. A later registration with a
        # different encoding shadows it until the override is removed.
        self._defaults: dict[Owner, str] = {}
        self._order: list[str] | None = None
        # Bumped on every change, so evaluated stores can tell they are out of date.
        self.revision = 0

    # Rules

    def add_rule(
        self, target: str, source: str, operator: str, value=None
    ) -> Rule | None:
        """Declares a single rule in its own group."""
        rules = self.define_rule(target, source, operator, value)
        return rules[0] if rules else None

    def define_rule(self, target: str, *triples) -> list[Rule]:
        """Declares a group of rules for one target.

        `triples` is a flat sequence of (source, operator, value) triples. A
        gate ('?') in the group suppresses the rules after it when its value
        is falsy.

        Malformed groups are logged and dropped as a whole, so a gate is never
        lost while the rules it guards survive.
        """
        if not target:
            logging.warning("Rule declared without a target: %r", triples)
            return []
        if not triples or len(triples) % 3:
            logging.warning(
                "Rule for %s needs (source, operator, value) triples, got %r",
                target,
                triples,
            )
            return []
        compiled = []
        for source, operator, value in zip(*[iter(triples)] * 3):
            if operator not in OPERATORS:
                logging.warning("Bad operator %r in rule for %s", operator, target)
                return []
            try:
                expr = compile_value(value)
            except ExpressionError as exc:
                logging.warning("Bad expression in rule for %s: %s", target, exc)
                return []
            compiled.append((source or "", operator, value, expr))
        group = next(self._groups)
        declared = []
        for source, operator, value, expr in compiled:
            rule = Rule(
                target=target,
                source=source,
                operator=operator,
                value=value,
                expr=expr,
                group=group,
                seq=next(self._seq),
                owner=self._owner,
                dependency="trigger" if source == target else "data",
            )
            self._rules.setdefault(target, []).append(rule)
            declared.append(rule)
        self._changed()
        return declared

    def rules_for(self, target: str) -> list[Rule]:
        return list(self._rules.get(target, ()))

    def targets(self) -> list[str]:
        return list(self._rules)

    def all_rules(self) -> Iterator[Rule]:
        for rules in self._rules.values():
            yield from rules

    def __len__(self) -> int:
        return sum(len(rules) for rules in self._rules.values())

    # Notes

    def define_note(self, attribute: str, template: str, separator: str = "/") -> None:
        """Declares display text for a note attribute.

        Templates declared separately for the same attribute are joined in
        declaration order.
        """
        self._notes.setdefault(attribute, []).append(
            NoteTemplate(
                attribute=attribute,
                template=template,
                separator=separator,
                seq=next(self._seq),
                owner=self._owner,
            )
        )
        self.revision += 1

    def note_templates(self, attribute: str) -> list[NoteTemplate]:
        return list(self._notes.get(attribute, ()))

    def note_template(self, attribute: str) -> str | None:
        """The combined template for a note attribute, if any."""
        templates = self._notes.get(attribute)
        if not templates:
            return None
        text = templates[0].template
        for note in templates[1:]:
            text += note.separator + note.template
        return text

    def notes(self) -> list[str]:
        return list(self._notes)

    # Ownership

    @contextlib.contextmanager
    def authoring(self, owner: Owner | None) -> Iterator[RuleRegistry]:
        """Attributes rules and notes declared within the block to `owner`."""
        previous = self._owner
        self._owner = owner
        try:
            yield self
        finally:
            self._owner = previous

    def remove_owner(self, owner: Owner) -> int:
        """Drops every rule and note declared by `owner`.

        Returns the number of rules removed.
        """
        removed = 0
        for target in list(self._rules):
            kept = [r for r in self._rules[target] if r.owner != owner]
            removed += len(self._rules[target]) - len(kept)
            if kept:
                self._rules[target] = kept
            else:
                del self._rules[target]
        for attribute in list(self._notes):
            kept_notes = [n for n in self._notes[attribute] if n.owner != owner]
            if kept_notes:
                self._notes[attribute] = kept_notes
            else:
                del self._notes[attribute]
        self._changed()
        return removed

    # Choices

    def register_choice(self, category: str, name: str, encoded: str) -> bool:
        """Compiles a choice into rules.

        Registering a choice that is already present replaces its previous
        rules, so registration is idempotent. The first definition of a
        choice is remembered as its default.

        Returns False (after logging) if the choice was rejected.
        """
        if not name:
            logging.warning("Empty %s name", category.lower())
            return False
        try:
            attrs = parse_attrs(encoded or "")
        except AttributeSyntaxError as exc:
            logging.warning("Bad %s '%s': %s", category.lower(), name, exc)
            return False
        owner = (category, name)
        previous = self._choices.get(category, {}).get(name)
        self.remove_owner(owner)
        if self.compiler:
            with self.authoring(owner):
                try:
                    self.compiler(self, category, name, attrs)
                except DATA_ERRORS as exc:
                    logging.warning("Bad %s '%s': %s", category.lower(), name, exc)
                    self.remove_owner(owner)
                    if previous is not None and previous != encoded:
                        # Keep the last good definition in place.
                        self.register_choice(category, name, previous)
                    return False
        self._choices.setdefault(category, {})[name] = encoded
        self._defaults.setdefault(owner, encoded)
        return True

    def remove_choice(self, category: str, name: str) -> bool:
        """Drops a choice's rules.

        If the choice had overridden its default definition, the default is
        registered again. Returns False if the choice wasn't registered.
        """
        owner = (category, name)
        current = self._choices.get(category, {}).get(name)
        if current is None:
            return False
        self.remove_owner(owner)
        del self._choices[category][name]
        default = self._defaults.pop(owner)
        if default != current:
            return self.register_choice(category, name, default)
        if not self._choices[category]:
            del self._choices[category]
        return True

    def get_choices(self, category: str) -> dict[str, str]:
        return dict(self._choices.get(category, {}))

    def categories(self) -> list[str]:
        return list(self._choices)

    # Ordering

    def _changed(self) -> None:
        self._order = None
        self.revision += 1

    def build(self) -> list[str]:
        """Resolves and caches the evaluation order.

        Raises:
            CycleError: if the rules contain a dependency cycle.
        """
        if self._order is None:
            self._order = resolve(self.all_rules())
        return self._order

    @property
    def is_built(self) -> bool:
        return self._order is not None
