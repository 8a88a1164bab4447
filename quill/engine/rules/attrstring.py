"""The encoded-attribute mini-language used by choice tables.

Each choice is described by a single string of whitespace-separated
`Key=Value` pairs. A key can carry several comma-separated values, and any
value containing spaces, commas or other delimiters is double-quoted:

    Features=Darkvision,"1:Rock Dwarf" HitPoints=10 Require="level >= 3"

Unquoted values that look like numbers are converted to numbers. Quoted
values are always strings.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable
from typing import TypeAlias

AttrValue: TypeAlias = int | float | str
AttrDict: TypeAlias = dict[str, list[AttrValue]]

_KEY = re.compile(r"[A-Za-z][A-Za-z0-9_]*")
_NUMBER = re.compile(r"[-+]?(\d+(\.\d*)?|\.\d+)")


class AttributeSyntaxError(ValueError):
    """Raised for a malformed encoded-attribute string."""


def parse_attrs(text: str) -> AttrDict:
    """Parses an encoded-attribute string into a dict of value lists.

    Keys may repeat; values of a repeated key are appended in order.

    Raises:
        AttributeSyntaxError: on a missing '=', a bad key, or an unterminated quote.
    """
    attrs: AttrDict = {}
    pos = 0
    length = len(text)
    while True:
        while pos < length and text[pos].isspace():
            pos += 1
        if pos >= length:
            break
        key_match = _KEY.match(text, pos)
        if not key_match:
            raise AttributeSyntaxError(f"Expected a key at position {pos} in {text!r}")
        key = key_match.group()
        pos = key_match.end()
        if pos >= length or text[pos] != "=":
            raise AttributeSyntaxError(f"Key '{key}' is missing '=' in {text!r}")
        pos += 1
        values = attrs.setdefault(key, [])
        while pos < length and not text[pos].isspace():
            if text[pos] == '"':
                end = text.find('"', pos + 1)
                if end < 0:
                    raise AttributeSyntaxError(
                        f"Unterminated quote for key '{key}' in {text!r}"
                    )
                values.append(text[pos + 1 : end])
                pos = end + 1
            else:
                end = pos
                while end < length and not text[end].isspace() and text[end] != ",":
                    end += 1
                raw = text[pos:end]
                if raw:
                    values.append(_convert(raw))
                pos = end
            if pos < length and text[pos] == ",":
                pos += 1
            elif pos < length and not text[pos].isspace():
                raise AttributeSyntaxError(
                    f"Unexpected '{text[pos]}' after value of '{key}' in {text!r}"
                )
    return attrs


def _convert(raw: str) -> AttrValue:
    if _NUMBER.fullmatch(raw):
        number = float(raw)
        return int(number) if number.is_integer() and "." not in raw else number
    return raw


def get_attr_value(attrs: AttrDict, key: str) -> AttrValue | None:
    """First value of `key`, or None if the key is absent."""
    values = attrs.get(key)
    return values[0] if values else None


def get_attr_value_array(attrs: AttrDict, key: str) -> list[AttrValue]:
    """All values of `key`; an empty list if the key is absent."""
    return list(attrs.get(key, []))


def check_attr_table(
    table: dict[str, str], valid_keys: Iterable[str], category: str
) -> bool:
    """Logs any malformed entry or unknown key in a table of encoded choices.

    Returns True if every entry parsed and used only known keys.
    """
    valid = set(valid_keys)
    ok = True
    for name, encoded in table.items():
        try:
            attrs = parse_attrs(encoded or "")
        except AttributeSyntaxError as exc:
            logging.warning("Bad %s '%s': %s", category.lower(), name, exc)
            ok = False
            continue
        for key in attrs:
            if key not in valid:
                logging.warning(
                    "Unknown attribute '%s' for %s '%s'", key, category.lower(), name
                )
                ok = False
    return ok


def encode_attrs(attrs: AttrDict) -> str:
    """Inverse of `parse_attrs`, quoting values where needed.

    Raises:
        AttributeSyntaxError: for a value containing a double quote, which the
            format has no way to escape.
    """
    parts = []
    for key, values in attrs.items():
        rendered = []
        for value in values:
            text = str(value)
            if '"' in text:
                raise AttributeSyntaxError(f"Can't encode {text!r} for '{key}'")
            if isinstance(value, str) and (
                not text or re.search(r"[\s,]", text) or _NUMBER.fullmatch(text)
            ):
                text = f'"{text}"'
            rendered.append(text)
        parts.append(f"{key}={','.join(rendered)}")
    return " ".join(parts)
