from __future__ import annotations

import logging
from abc import ABC
from abc import abstractmethod
from functools import cached_property
from typing import Type

from packaging import version

from ..utils import dump_dict
from . import base_models
from .attributes import AttributeStore
from .attributes import Value
from .attrstring import AttrDict
from .attrstring import check_attr_table
from .decision import Decision
from .evaluator import evaluate_all
from .notes import render_note
from .notes import render_section
from .registry import RuleRegistry
from .resolver import CycleError
from .validation import ValidationReporter


class CharacterController:
    """Binds one character's attribute store to an engine's rules.

    The store is only recomputed on demand: reading a derived value, asking
    for notes, or validating evaluates first if anything changed since the
    last pass (an input, or the engine's rules).
    """

    model: base_models.CharacterModel
    engine: Engine
    mutated: bool = False

    # Copy of the model, restored when a dry run finishes.
    _dumped_model: base_models.CharacterModel

    def __init__(self, engine: Engine, model: base_models.CharacterModel):
        self.model = model
        self.engine = engine
        self.store = AttributeStore(model.attributes)
        self._revision: int | None = None
        self._save_dump()

    @property
    def ruleset(self) -> base_models.BaseRuleset:
        return self.engine.ruleset

    @property
    def registry(self) -> RuleRegistry:
        return self.engine.registry

    def _save_dump(self) -> None:
        """Store the _dumped_model attribute."""
        self._dumped_model = self.dump_model()

    def _reload_dump(self) -> None:
        """Load the model from its serialized state."""
        self.model = self._dumped_model.model_copy(deep=True)
        self.store = AttributeStore(self.model.attributes)
        self._revision = None

    def dump_dict(self) -> dict:
        """Returns a copy of the serialized model dictionary."""
        return dump_dict(self.model, exclude_unset=False, exclude_defaults=True)

    def dump_model(self) -> base_models.CharacterModel:
        """Returns a copy of the current model."""
        return self.model.model_copy(deep=True)

    @property
    def is_current(self) -> bool:
        return self.store.is_current and self._revision == self.registry.revision

    def evaluate(self) -> AttributeStore:
        """Recomputes every derived attribute from the raw inputs."""
        evaluate_all(self.registry, self.store)
        self._revision = self.registry.revision
        return self.store

    def reconcile(self) -> None:
        if not self.is_current:
            self.evaluate()

    def get(self, name: str, default: Value = None) -> Value:
        self.reconcile()
        return self.store.get(name, default)

    def set(self, name: str, value: Value) -> None:
        """Sets (or with None, clears) a raw input."""
        if value is None:
            self.model.attributes.pop(name, None)
        else:
            self.model.attributes[name] = value
        self.store.set(name, value)

    def update(self, values: dict[str, Value]) -> None:
        for name, value in values.items():
            self.set(name, value)

    def apply(self, name: str, value: Value, dry_run: bool = False) -> Decision:
        """Sets an input and reports whether the result is valid.

        Invalid characters are kept (they can be fixed up later); only a dry
        run is rolled back, to the inputs as they were just before it.
        """
        self._save_dump()
        self.set(name, value)
        issues = [i for i in self.issues() if i.severity == "validation"]
        if dry_run:
            self._reload_dump()
        else:
            self.mutated = True
        return Decision.from_issues(issues, mutation_applied=not dry_run)

    def family(self, name: str) -> dict[str, Value]:
        self.reconcile()
        return self.store.family(name)

    def render_note(self, attribute: str) -> str | None:
        self.reconcile()
        return render_note(self.registry, self.store, attribute)

    def notes(self, section: str) -> dict[str, str]:
        """Rendered notes of a section, e.g. "combat" for `combatNotes.*`."""
        self.reconcile()
        return render_section(self.registry, self.store, section)

    def issues(self) -> list[base_models.Issue]:
        self.reconcile()
        return self.engine.reporter.issues(self.store)

    def validate(self) -> Decision:
        """Checks hard constraints (validation notes) only."""
        return Decision.from_issues(i for i in self.issues() if i.severity == "validation")

    def fully_valid(self) -> Decision:
        """Checks validation and sanity notes."""
        return Decision.from_issues(self.issues())


class Engine(ABC):
    def __init__(self, ruleset: base_models.BaseRuleset):
        self._ruleset = ruleset

    @property
    def ruleset(self) -> base_models.BaseRuleset:
        return self._ruleset

    sheet_type: Type[base_models.CharacterModel] = base_models.CharacterModel

    @property
    def character_controller(self) -> Type[CharacterController]:
        return CharacterController

    @cached_property
    def registry(self) -> RuleRegistry:
        """Rules for the ruleset: core rules first, then every loaded choice.

        Raises:
            CycleError: if the combined rules contain a dependency cycle.
        """
        registry = RuleRegistry(compiler=self.compile_choice)
        for category, table in self.ruleset.choices.items():
            self.check_choices(category, table)
        self.core_rules(registry)
        rejected = 0
        for category, name, encoded in self.ruleset.ordered_choices():
            if not registry.register_choice(category, name, encoded):
                rejected += 1
        registry.build()
        logging.debug(
            "Ruleset %s: %d rules, %d choices (%d rejected)",
            self.ruleset.id,
            len(registry),
            self.ruleset.choice_count(),
            rejected,
        )
        return registry

    @cached_property
    def reporter(self) -> ValidationReporter:
        return ValidationReporter(self.registry)

    def core_rules(self, registry: RuleRegistry) -> None:
        """Declares rules that don't come from any choice."""

    def check_choices(self, category: str, table: dict[str, str]) -> bool:
        """Logs entries of `table` that use keys their category doesn't know."""
        keys = self.ruleset.choice_keys.get(category)
        if keys is None:
            return True
        return check_attr_table(table, keys, category)

    @abstractmethod
    def compile_choice(
        self, registry: RuleRegistry, category: str, name: str, attrs: AttrDict
    ) -> None:
        """Declares the rules for one choice."""

    def register_choice(self, category: str, name: str, encoded: str) -> Decision:
        """Adds or replaces a choice.

        Raises:
            CycleError: if the choice's rules close a dependency cycle. The
                choice is backed out before this is raised.
        """
        self.check_choices(category, {name: encoded})
        previous = self.registry.get_choices(category).get(name)
        if not self.registry.register_choice(category, name, encoded):
            return Decision.fail(f"{category} {name!r} was rejected.")
        try:
            self.registry.build()
        except CycleError:
            # Put the rules back the way they were so the engine stays usable.
            if previous is None:
                self.registry.remove_choice(category, name)
            else:
                self.registry.register_choice(category, name, previous)
            self.registry.build()
            raise
        return Decision.OK

    def remove_choice(self, category: str, name: str) -> Decision:
        if not self.registry.remove_choice(category, name):
            return Decision.fail(f"No {category} named {name!r}.")
        self.registry.build()
        return Decision.OK

    def get_choices(self, category: str) -> dict[str, str]:
        return self.registry.get_choices(category)

    def new_character(self, **data) -> CharacterController:
        attributes = dict(self.ruleset.default_attributes)
        attributes.update(data.pop("attributes", None) or {})
        return self.character_controller(
            self,
            self.sheet_type(
                ruleset_id=self.ruleset.id,
                ruleset_version=self.ruleset.version,
                attributes={k: v for k, v in attributes.items() if v is not None},
                **data,
            ),
        )

    def load_character(self, data: dict) -> CharacterController:
        """Load the given character data with this ruleset.

        Returns:
            A character controller of appropriate subclass.

        Raises:
            ValueError: if the character is not compatible with this ruleset.
                By default, characters are only compatible with the ruleset they
                were originally written with.
        """
        updated_data = self.update_data(data)
        model = self.sheet_type(**updated_data)
        c = self.character_controller(self, model)
        c.reconcile()
        return c

    def update_data(self, data: dict) -> dict:
        """If the data is from a different but compatible rules version, update it.

        The default behavior is to reject any character data made with a different ruleset ID,
        and assume newer versions are backward (but not forward) compatible.

        Raises:
            ValueError: if the character is not compatible with this ruleset.
        """
        if data["ruleset_id"] != self.ruleset.id:
            raise ValueError(
                f'Can not load character id={data.get("id")}, ruleset={data["ruleset_id"]} with ruleset {self.ruleset.id}'
            )
        if version.parse(self.ruleset.version) < version.parse(data["ruleset_version"]):
            raise ValueError(
                f'Can not load character id={data.get("id")}, ruleset={data["ruleset_id"]} v{data["ruleset_version"]}'
                f" with ruleset {self.ruleset.id} v{self.ruleset.version}"
            )
        return data
