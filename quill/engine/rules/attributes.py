from __future__ import annotations

import re
from typing import Iterable
from typing import Iterator
from typing import Mapping
from typing import MutableMapping
from typing import TypeAlias

from ..utils import as_number

Value: TypeAlias = int | float | str | None


def split_name(name: str) -> tuple[str, str | None]:
    """Splits an attribute name into its family and member.

    "feats.Toughness" -> ("feats", "Toughness")
    "combatNotes.rage.1" -> ("combatNotes", "rage.1")
    "level" -> ("level", None)
    """
    family, dot, member = name.partition(".")
    if not dot:
        return name, None
    return family, member


class AttributeMap(MutableMapping[str, Value]):
    """Flat attribute names over a scalar table plus a family table.

    Dotted names live in `families[family][member]`, so family membership,
    enumeration, and sums don't need string scanning of the whole namespace.
    Setting a name to None removes it.
    """

    def __init__(self, data: Mapping[str, Value] | None = None):
        self.scalars: dict[str, Value] = {}
        self.families: dict[str, dict[str, Value]] = {}
        if data:
            self.update(data)

    def __getitem__(self, name: str) -> Value:
        family, member = split_name(name)
        if member is None:
            return self.scalars[name]
        return self.families[family][member]

    def __setitem__(self, name: str, value: Value) -> None:
        if value is None:
            self.pop(name, None)
            return
        family, member = split_name(name)
        if member is None:
            self.scalars[name] = value
        else:
            self.families.setdefault(family, {})[member] = value

    def __delitem__(self, name: str) -> None:
        family, member = split_name(name)
        if member is None:
            del self.scalars[name]
            return
        members = self.families[family]
        del members[member]
        if not members:
            del self.families[family]

    def __iter__(self) -> Iterator[str]:
        yield from self.scalars
        for family, members in self.families.items():
            for member in members:
                yield f"{family}.{member}"

    def __len__(self) -> int:
        return len(self.scalars) + sum(len(m) for m in self.families.values())

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        family, member = split_name(name)
        if member is None:
            return name in self.scalars
        return member in self.families.get(family, {})

    def family(self, name: str) -> dict[str, Value]:
        """Members of a family, keyed by member name."""
        return dict(self.families.get(name, {}))

    def copy(self) -> AttributeMap:
        clone = AttributeMap()
        clone.scalars = dict(self.scalars)
        clone.families = {f: dict(m) for f, m in self.families.items()}
        return clone


class AttributeStore:
    """Raw inputs and derived values for one character.

    Inputs are written with `set`. Derived values are only produced by an
    explicit evaluation pass (see `evaluator.evaluate_all`), which replaces the
    computed layer wholesale. Any `set` discards the computed layer, so the
    store is either *current* (computed layer matches inputs) or *stale*.
    """

    def __init__(self, inputs: Mapping[str, Value] | None = None):
        self._inputs = AttributeMap(inputs)
        self._computed: AttributeMap | None = None

    @property
    def inputs(self) -> AttributeMap:
        return self._inputs

    @property
    def is_current(self) -> bool:
        return self._computed is not None

    @property
    def values(self) -> AttributeMap:
        """The computed layer when current, otherwise the raw inputs."""
        return self._computed if self._computed is not None else self._inputs

    def set(self, name: str, value: Value) -> None:
        self._inputs[name] = value
        self._computed = None

    def update(self, values: Mapping[str, Value]) -> None:
        for name, value in values.items():
            self.set(name, value)

    def get(self, name: str, default: Value = None) -> Value:
        return self.values.get(name, default)

    def has(self, name: str) -> bool:
        return name in self.values

    def family(self, name: str) -> dict[str, Value]:
        return self.values.family(name)

    def family_sum(self, name: str) -> int | float:
        """Sum of the numeric members of a family."""
        total: int | float = 0
        for value in self.values.family(name).values():
            if (number := as_number(value)) is not None:
                total += number
        return total

    def all_matching(self, pattern: str | re.Pattern) -> list[str]:
        """Names matching a prefix (plain string) or a compiled regex, sorted.

        A prefix ending in '.' is answered from the family table directly.
        """
        values = self.values
        if isinstance(pattern, str):
            family, member = split_name(pattern)
            if member == "":
                return sorted(f"{family}.{m}" for m in values.families.get(family, {}))
            return sorted(n for n in values if n.startswith(pattern))
        return sorted(n for n in values if pattern.search(n))

    def items(self) -> Iterable[tuple[str, Value]]:
        return self.values.items()

    def to_dict(self, computed: bool = False) -> dict[str, Value]:
        """Flat copy of the inputs, or of every value if `computed` is set."""
        return dict(self.values.items() if computed else self._inputs.items())

    def _publish(self, computed: AttributeMap) -> None:
        self._computed = computed

    def __repr__(self) -> str:
        state = "current" if self.is_current else "stale"
        return f"<AttributeStore {state} inputs={len(self._inputs)}>"
