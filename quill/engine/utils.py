from __future__ import annotations

import json
import math
import sys
import uuid
from importlib import import_module
from typing import Any

import pydantic


def import_name(name: str) -> Any:
    """Imports the specified thing.

    Args:
        name: A dotted name string of the form 'package.subpackage.attribute'.
              The specified package or subpackage will be imported by Python's
              import machinery if not already loaded, and the named attribute
              will be returned if present.

    Raises:
        ImportError: If the package is not importable.
        AttributeError: If the attribute is not retrievable.
    """
    try:
        module_name, attrib_name = name.rsplit(".", 1)
    except ValueError as exc:
        raise ImportError(f"{name} does not appear to be a dotted path") from exc
    if module_name in sys.modules:
        module = sys.modules[module_name]
    else:
        module = import_module(module_name)
    return getattr(module, attrib_name)


def camel(name: str) -> str:
    """Converts a display name into the attribute-name form used for notes.

    "Barbarian Unarmored Defense" -> "barbarianUnarmoredDefense"
    """
    if not name:
        return name
    squashed = name.replace(" ", "")
    return squashed[0].lower() + squashed[1:]


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def as_number(value: Any) -> int | float | None:
    """Coerces a value to a number where that makes sense.

    Absent values count as 0. Strings holding a finite number are converted.
    Anything else (including "inf" and "nan") returns None.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if is_number(value):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
        try:
            number = float(value)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


class JSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, set):
            return sorted(obj)
        return json.JSONEncoder.default(self, obj)


def dump_dict(
    data: pydantic.BaseModel, exclude_unset=True, exclude_defaults=False
) -> dict:
    return data.model_dump(
        by_alias=True,
        exclude_none=True,
        exclude_unset=exclude_unset,
        exclude_defaults=exclude_defaults,
    )


def dump_json(
    data: pydantic.BaseModel | dict,
    exclude_unset=True,
    exclude_defaults=False,
    *args,
    **kwargs,
) -> str:
    if not isinstance(data, dict):
        data = dump_dict(
            data, exclude_unset=exclude_unset, exclude_defaults=exclude_defaults
        )
    return json.dumps(data, *args, cls=JSONEncoder, **kwargs)


def make_uuid() -> str:
    return str(uuid.uuid4())
