"""Structured phrases embedded in feature names and note texts.

Two phrase shapes carry mechanical meaning:

    Attack Trained (Simple Weapons; Martial Weapons)
    Skill Expert (Choose 2 from any)
    Perception Expert
    Ability Boost (Constitution; Wisdom; Choose 1 from any)
    Ability Flaw (Charisma)

Grammar:

    phrase    := training | ability
    training  := capability RANK [ "(" items ")" ]
    ability   := "Ability" ("Boost" | "Flaw") "(" items ")"
    items     := item { ";" item }
    item      := "Choose" NUMBER "from" words | words

Anything that isn't shaped like a phrase (most feature names) parses to None.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from dataclasses import field
from typing import Literal
from typing import TypeAlias

RANKS: dict[str, int] = {
    "Untrained": 0,
    "Trained": 1,
    "Expert": 2,
    "Master": 3,
    "Legendary": 4,
}

# Capabilities that may appear without a parenthesized item list. The
# capability itself is then the trained item.
SOLO_CAPABILITIES = frozenset({"Perception", "Class DC", "Spell"})

_TOKEN = re.compile(r"\s*(?:(?P<punct>[();])|(?P<word>[^\s();]+))")


class PhraseError(ValueError):
    """Raised when text looks like a phrase but doesn't follow the grammar."""


@dataclass(frozen=True)
class Choose:
    count: int
    pool: str


@dataclass(frozen=True)
class TrainingPhrase:
    capability: str
    rank: str
    items: tuple[str, ...] = ()
    choices: tuple[Choose, ...] = ()

    @property
    def rank_value(self) -> int:
        return RANKS[self.rank]


@dataclass(frozen=True)
class AbilityPhrase:
    kind: Literal["Boost", "Flaw"]
    abilities: tuple[str, ...] = ()
    choices: tuple[Choose, ...] = ()


Phrase: TypeAlias = TrainingPhrase | AbilityPhrase


@dataclass
class _Parser:
    text: str
    tokens: list[str] = field(default_factory=list)
    index: int = 0

    def __post_init__(self):
        pos = 0
        stripped = self.text.rstrip()
        while pos < len(stripped):
            match = _TOKEN.match(stripped, pos)
            if not match:
                raise PhraseError(f"Can't tokenize {self.text!r}")
            self.tokens.append(match.group("punct") or match.group("word"))
            pos = match.end()

    def peek(self) -> str | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def take(self) -> str:
        token = self.peek()
        if token is None:
            raise PhraseError(f"Unexpected end of phrase in {self.text!r}")
        self.index += 1
        return token

    def expect(self, token: str) -> None:
        if (found := self.take()) != token:
            raise PhraseError(f"Expected '{token}' but found '{found}' in {self.text!r}")

    def at_end(self) -> bool:
        return self.index >= len(self.tokens)

    def words(self) -> str:
        """Reads words up to the next punctuation token."""
        collected = []
        while (token := self.peek()) is not None and token not in "();":
            collected.append(self.take())
        if not collected:
            raise PhraseError(f"Expected a name in {self.text!r}")
        return " ".join(collected)

    def items(self) -> tuple[tuple[str, ...], tuple[Choose, ...]]:
        names: list[str] = []
        choices: list[Choose] = []
        self.expect("(")
        while True:
            item = self.words()
            if match := re.fullmatch(r"Choose (\d+) from (.+)", item, re.IGNORECASE):
                choices.append(Choose(count=int(match.group(1)), pool=match.group(2)))
            else:
                names.append(item)
            if self.peek() == ";":
                self.take()
                continue
            break
        self.expect(")")
        if not self.at_end():
            raise PhraseError(f"Trailing text after phrase in {self.text!r}")
        return tuple(names), tuple(choices)


def parse_phrase(text: str) -> Phrase | None:
    """Parses a single phrase.

    Returns None if the text doesn't have the shape of a phrase.

    Raises:
        PhraseError: if the text starts like a phrase but is malformed.
    """
    parser = _Parser(text)
    if not parser.tokens or parser.tokens[0] in "();":
        return None
    if parser.tokens[:1] == ["Ability"] and parser.tokens[1:2] in (["Boost"], ["Flaw"]):
        parser.take()
        kind = parser.take()
        if parser.at_end():
            return None
        abilities, choices = parser.items()
        return AbilityPhrase(kind=kind, abilities=abilities, choices=choices)  # type: ignore[arg-type]
    # A training phrase has a rank word right before the item list (or the end).
    words: list[str] = []
    while (token := parser.peek()) is not None and token not in "();":
        words.append(parser.take())
    if len(words) < 2 or words[-1] not in RANKS:
        return None
    capability = " ".join(words[:-1])
    rank = words[-1]
    if parser.at_end():
        if capability not in SOLO_CAPABILITIES:
            return None
        return TrainingPhrase(capability=capability, rank=rank, items=(capability,))
    if parser.peek() != "(":
        return None
    names, choices = parser.items()
    return TrainingPhrase(capability=capability, rank=rank, items=names, choices=choices)


def split_phrases(text: str) -> list[str]:
    """Splits note text on '/' separators that sit outside parentheses."""
    parts: list[str] = []
    depth = 0
    current = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(depth - 1, 0)
        if char == "/" and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    parts.append("".join(current).strip())
    return [p for p in parts if p]
