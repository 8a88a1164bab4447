import json
import logging
import pathlib
import typing
import zipfile
from copy import deepcopy
from importlib import resources
from importlib.resources.abc import Traversable

import tomllib

import pydantic
import yaml

from . import utils
from .rules import base_models

Models: typing.TypeAlias = typing.Iterable[
    base_models.ChoiceDef | base_models.BadDefinition
]
PathLike: typing.TypeAlias = pathlib.Path | zipfile.Path | Traversable


def load_ruleset(
    path: str | PathLike, with_bad_defs: bool = True
) -> base_models.BaseRuleset:
    """Load the specified ruleset from disk by path.

    The ruleset path must be a directory containg file named
    "ruleset" with a json, toml, or yaml/yml extension. Every other
    data file in the directory tree holds choice definitions.

    Args:
        path: Path to a directory that contains a ruleset file.
            Alternatively, a path to a zipfile that contains a ruleset
            file and additional ruleset data.
            If the given path is a string beginning with "$" and containing no slashes,
            it is interpreted as a resource path.
        with_bad_defs: If true (the default), will not raise an exception
            if a choice definition file has a bad definition. Instead,
            the returned ruleset will have its `bad_defs` property populated
            with BadDefinition models.
    """
    if isinstance(path, str):
        if path.startswith("$") and "/" not in path:
            # Assume this is a python package resource reference.
            path = resources.files(path[1:])
        elif path.endswith(".zip"):
            path = zipfile.Path(zipfile.ZipFile(path))
        else:
            path = pathlib.Path(path)
    ruleset_path = _find_ruleset_file(path)
    if not ruleset_path:
        raise ValueError(f"No ruleset file found within {path}")
    ruleset = _parse_ruleset(ruleset_path)
    if not ruleset:
        raise ValueError(f"Path {path} does not contain a ruleset definition.")
    choices: dict[str, dict[str, str]] = deepcopy(ruleset.choices)
    bad_defs: list[base_models.BadDefinition] = []
    for model in _parse_directory(path, with_bad_defs=with_bad_defs):
        if isinstance(model, base_models.BadDefinition):
            bad_defs.append(model)
            continue
        try:
            model.post_validate(ruleset)
        except ValueError as exc:
            if not with_bad_defs:
                raise
            bad_defs.append(_bad_def(model.def_path, model, exc))
            continue
        table = choices.setdefault(model.category, {})
        if model.name in table:
            bad_defs.append(
                base_models.BadDefinition(
                    path=model.def_path,
                    data=utils.dump_dict(model),
                    exception_type="NonUniqueName",
                    exception_message=f"Non-unique {model.category} name {model.name}",
                )
            )
            continue
        table[model.name] = model.attributes
    ruleset = ruleset.model_copy(update={"choices": choices, "bad_defs": bad_defs})
    for bad in bad_defs:
        logging.warning(
            "Bad definition in %s: %s: %s",
            bad.path,
            bad.exception_type,
            bad.exception_message,
        )
    try:
        # Ensure the ruleset's engine can be loaded.
        ruleset.engine
    except Exception as exc:
        if not with_bad_defs:
            raise
        ruleset.bad_defs.append(_bad_def(str(ruleset_path), ruleset.engine_class, exc))
    return ruleset


def deserialize_ruleset(json_data: str) -> base_models.BaseRuleset:
    ruleset_dict = json.loads(json_data)
    return _parse_ruleset_dict(ruleset_dict)


def _bad_def(path: str | None, data: typing.Any, exc: Exception) -> base_models.BadDefinition:
    if isinstance(data, pydantic.BaseModel):
        data = utils.dump_dict(data)
    return base_models.BadDefinition(
        path=path,
        data=data,
        exception_type=type(exc).__name__,
        exception_message=str(exc),
    )


def _parse_ruleset(path: PathLike) -> base_models.BaseRuleset:
    """Parse a ruleset from its ruleset.(toml|json|ya?ml) file.

    The actual type of the ruleset depends on its contents, but
    will always be a subclass of BaseRuleset.
    """
    ruleset_dict = list(_parse_raw(path))[0]
    return _parse_ruleset_dict(ruleset_dict)


def _parse_ruleset_dict(ruleset_dict: dict) -> base_models.BaseRuleset:
    if "ruleset_model_def" not in ruleset_dict and "ruleset" not in ruleset_dict:
        raise ValueError(
            "Invalid ruleset definition, does not specifiy ruleset model definition"
        )
    ruleset_def: str
    if "ruleset_model_def" in ruleset_dict:
        ruleset_def = ruleset_dict["ruleset_model_def"]
    else:
        ruleset_def = ruleset_dict["ruleset"] + ".Ruleset"
    ruleset_model = utils.import_name(ruleset_def)
    if not issubclass(ruleset_model, base_models.BaseRuleset):
        raise ValueError(f"{ruleset_def} does not implement BaseRuleset")
    return ruleset_model.model_validate(ruleset_dict)


DATA_SUFFIXES = (".toml", ".json", ".yaml", ".yml")


def _parse_directory(path: PathLike, with_bad_defs: bool = True, defaults=None) -> Models:
    """Yields the choice definitions found under `path`.

    A `__defaults__` file supplies default fields (usually `category`) for
    every file in its directory and below. Files and directories whose
    names start with "_" or "." are skipped, as is the ruleset file itself.
    """
    files, dirs = _listing(path)
    defaults = dict(defaults or {})
    for subpath in files:
        if _stem(subpath) == "__defaults__":
            for raw_defaults in _parse_raw(subpath):
                defaults.update(raw_defaults)
    for subpath in files:
        if _stem(subpath)[0] in "_." or _stem(subpath) == "ruleset":
            continue
        yield from _parse(subpath, with_bad_defs=with_bad_defs, defaults=defaults)
    for subpath in dirs:
        yield from _parse_directory(subpath, with_bad_defs=with_bad_defs, defaults=defaults)


def _listing(path: PathLike) -> tuple[list[PathLike], list[PathLike]]:
    """Data files and visible subdirectories of `path`, sorted by stem."""
    files: list[PathLike] = []
    dirs: list[PathLike] = []
    for subpath in sorted(path.iterdir(), key=_stem):
        stem = _stem(subpath)
        if not stem or stem.startswith("."):
            continue
        if subpath.is_dir():
            if not stem.startswith("_"):
                dirs.append(subpath)
        elif _suffix(subpath) in DATA_SUFFIXES:
            files.append(subpath)
    return files, dirs


def _find_ruleset_file(path: PathLike) -> PathLike | None:
    """The ruleset file at the top of `path`, or one level down.

    Archives often wrap their contents in a single top-level folder.
    """
    files, dirs = _listing(path)
    for subpath in files:
        if _stem(subpath) == "ruleset":
            return subpath
    for subdir in dirs:
        for subpath in _listing(subdir)[0]:
            if _stem(subpath) == "ruleset":
                return subpath
    return None


def _stem(path: PathLike) -> str:
    return pathlib.PurePosixPath(path.name).stem


def _suffix(path: PathLike) -> str:
    return pathlib.PurePosixPath(path.name).suffix


def _parse(path: PathLike, with_bad_defs: bool = True, defaults=None) -> Models:
    for raw_data in _parse_raw(path):
        if not isinstance(raw_data, dict):
            continue
        if raw_data.get("name") == "__defaults__":
            # Defaults embedded in a YAML stream apply to the rest of this file.
            defaults = _dict_merge(defaults, {k: v for k, v in raw_data.items() if k != "name"})
            continue
        data = _dict_merge(defaults, raw_data)
        data["def_path"] = str(path)
        try:
            yield base_models.ChoiceDef.model_validate(data)
        except pydantic.ValidationError as exc:
            if not with_bad_defs:
                raise
            yield base_models.BadDefinition(
                path=str(path),
                data=data,
                raw_data=raw_data,
                exception_type=type(exc).__name__,
                exception_message=str(exc),
            )


def _dict_merge(a: dict | None, b: dict | None) -> dict:
    """Copies 'a' and updates it with 'b'."""
    return deepcopy((a or {}) | (b or {}))


def _parse_raw(path: PathLike) -> typing.Generator[dict, None, None]:
    match _suffix(path):
        case ".toml":
            with path.open("rb") as toml_file:
                yield tomllib.load(toml_file)
        case ".json":
            with path.open("rb") as json_file:
                data = json.load(json_file)
            yield from data if isinstance(data, list) else [data]
        case ".yaml" | ".yml":
            with path.open("rb") as yaml_file:
                yield from yaml.safe_load_all(yaml_file)


def main(argv: list[str]) -> int:
    """Checks a ruleset and prints its bad definitions or a choice summary."""
    if len(argv) != 1:
        print("usage: python -m quill.engine.loader <ruleset path>")
        return 2
    ruleset = load_ruleset(argv[0])
    if ruleset.bad_defs:
        print("Bad defs:")
        for bad in ruleset.bad_defs:
            print(f"- {bad.path}: {bad.exception_type}: {bad.exception_message}")
        return 1
    print(f"Ruleset {ruleset.name} v{ruleset.version} parsed successfully.")
    for category, table in sorted(ruleset.choices.items()):
        print(f"- {category}: {len(table)}")
    return 0


if __name__ == "__main__":
    import sys

    sys.exit(main(sys.argv[1:]))
