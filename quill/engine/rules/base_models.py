from __future__ import annotations

import typing
from abc import ABC
from typing import TYPE_CHECKING
from typing import ClassVar
from typing import Literal
from typing import TypeAlias

import pydantic

from .. import utils
from ..utils import make_uuid
from .attrstring import parse_attrs
from .expressions import Expr

if TYPE_CHECKING:
    from . import base_engine

Value: TypeAlias = int | float | str | None
Owner: TypeAlias = tuple[str, str]

Operator: TypeAlias = Literal["=", "+=", "+", "^=", "^", "v=", "v", "?"]
OPERATORS: frozenset[str] = frozenset(typing.get_args(Operator))

# Operators that establish a value even when the target is still undefined.
DEFINING_OPERATORS: tuple[str, ...] = ("=", "+=", "^=", "v=")
# Operators that only adjust a target that already has a value.
MODIFYING_OPERATORS: tuple[str, ...] = ("+", "^", "v")


class BaseModel(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")


class Rule(BaseModel, frozen=True):
    """One contribution to a target attribute.

    Attributes:
        target: The attribute this rule contributes to.
        source: The attribute whose value feeds the rule. An empty source
            marks a constant rule that always fires.
        operator: How the contribution combines with the target's value.
        value: The value expression as written (None passes the source
            value through).
        expr: The compiled form of `value`.
        group: Rules declared in the same `define_rule` call share a group.
            A failing gate ('?') suppresses the other rules in its group.
        seq: Global declaration order.
        owner: The (category, name) of the choice that declared the rule.
        dependency: "trigger" marks a rule whose source is its own target.
            Trigger rules order recomputation but never contribute.
    """

    target: str
    source: str = ""
    operator: Operator
    value: bool | int | float | str | None = None
    expr: Expr | None = pydantic.Field(default=None, exclude=True, repr=False)
    group: int = 0
    seq: int = 0
    owner: Owner | None = None
    dependency: Literal["data", "trigger"] = "data"

    @property
    def is_gate(self) -> bool:
        return self.operator == "?"

    @property
    def is_trigger(self) -> bool:
        return self.dependency == "trigger"

    def identifiers(self) -> set[str]:
        """Every attribute this rule reads, excluding its own target."""
        ids = self.expr.identifiers() if self.expr else set()
        if self.source:
            ids.add(self.source)
        ids.discard(self.target)
        return ids

    def __str__(self) -> str:
        source = self.source or "''"
        return f"{self.target} <- {source} {self.operator} {self.value!r}"


class NoteTemplate(BaseModel, frozen=True):
    attribute: str
    template: str
    separator: str = "/"
    seq: int = 0
    owner: Owner | None = None


class Issue(BaseModel):
    """A constraint violation surfaced by a validation or sanity note.

    Attributes:
        attribute: The note attribute, e.g. `validationNotes.generalFeatAllocation`.
        severity: "validation" for hard violations, "sanity" for likely
            authoring mistakes.
        value: The note's trigger value.
        message: The rendered note text.
    """

    attribute: str
    severity: Literal["validation", "sanity"]
    value: Value = None
    message: str = ""

    @property
    def reason(self) -> str:
        return self.message or self.attribute


class ChoiceDef(BaseModel):
    """A single named choice as written in a content file.

    Attributes:
        category: Choice table the entry belongs to (Feat, Ancestry, ...).
        name: The choice's display name, unique within its category.
        attributes: The encoded attribute string,
            e.g. `Trait=General Require="level >= 3"`.
        def_path: File the choice was loaded from.
    """

    category: str
    name: str
    attributes: str = ""
    def_path: str | None = None

    def post_validate(self, ruleset: BaseRuleset) -> None:
        if ruleset.categories and self.category not in ruleset.categories:
            raise ValueError(
                f"Unknown category {self.category!r} for choice {self.name!r}"
            )
        parse_attrs(self.attributes)


class BadDefinition(BaseModel):
    """Represents a choice definition that could not be parsed.

    Attributes:
        path: The path of the definition file.
        data: Data as parsed from the json/yaml/toml file with defaults applied.
        raw_data: Same data, but without the defaults.
        exception: Exception from the model parser.
    """

    path: str | None
    data: typing.Any = None
    raw_data: typing.Any = None
    exception_type: str
    exception_message: str


class BaseRuleset(BaseModel, ABC):
    """A ruleset file plus the choice tables loaded alongside it.

    Attributes:
        id: Ruleset identifier, recorded on every character built with it.
        version: Characters from newer versions of the ruleset can't be loaded.
        engine_class: Dotted path of the Engine subclass that runs the ruleset.
        default_attributes: Raw inputs seeded into every new character.
        choices: Category -> name -> encoded attribute string.
    """

    id: str
    name: str
    version: str = "0.0a"
    ruleset: str | None = None
    ruleset_model_def: str | None = None
    engine_class: str
    default_attributes: dict[str, Value] = pydantic.Field(default_factory=dict)
    choices: dict[str, dict[str, str]] = pydantic.Field(default_factory=dict)
    bad_defs: list[BadDefinition] = pydantic.Field(default_factory=list)

    # Categories the ruleset's compiler understands, in registration order.
    # An empty tuple accepts any category.
    categories: ClassVar[tuple[str, ...]] = ()
    # Encoded-attribute keys each category understands. Unknown keys are
    # logged, not rejected.
    choice_keys: ClassVar[dict[str, tuple[str, ...]]] = {}

    @property
    def engine(self) -> base_engine.Engine:
        from . import base_engine

        engine_class = utils.import_name(self.engine_class)
        if not issubclass(engine_class, base_engine.Engine):
            raise ValueError(
                f"Ruleset declares {self.engine_class} as its engine, but it isn't an engine."
            )
        return engine_class(self)

    def ordered_choices(self) -> typing.Iterator[tuple[str, str, str]]:
        """Yields (category, name, encoded) in registration order.

        Known categories come first, in the order the ruleset lists them.
        """
        order = {c: i for i, c in enumerate(self.categories)}
        for category in sorted(self.choices, key=lambda c: (order.get(c, len(order)), c)):
            for name, encoded in self.choices[category].items():
                yield category, name, encoded

    def choice_count(self) -> int:
        return sum(len(table) for table in self.choices.values())


class CharacterMetadata(BaseModel):
    """Overarching character data that doesn't come from the attribute bag.

    Attributes:
        id: The character ID this applies to.
        player_id: The player ID this applies to.
        character_name: The actual name of the character.
        player_name: The actual name of the player.
        flags: Extra flags for the engine to interpret.
    """

    id: str = pydantic.Field(default_factory=make_uuid)
    player_id: str | None = None
    character_name: str | None = None
    player_name: str | None = None
    flags: dict[str, Value] = pydantic.Field(default_factory=dict)


class CharacterModel(BaseModel):
    """Represents the serializable data of a character.

    Only raw inputs are stored. Derived attributes, notes, and validation
    results are recomputed from the ruleset whenever the character is loaded.

    Attributes:
        id: The character ID, probably matching a database record.
        ruleset_id: The ID of the ruleset the character was built with.
        ruleset_version: Version of that ruleset.
        name: The sheet name, as specified by the player.
        metadata: Information about the character originating from outside of
            the rules engine.
        attributes: The flat raw attribute map.
    """

    id: str = pydantic.Field(default_factory=make_uuid)
    ruleset_id: str
    ruleset_version: str
    metadata: CharacterMetadata = pydantic.Field(default_factory=CharacterMetadata)
    name: str | None = None
    attributes: dict[str, int | float | str] = pydantic.Field(default_factory=dict)
