"""Shared fixtures for Pathfinder 2E engine tests."""
from typing import cast

import pytest

from quill.engine import loader
from quill.engine.rules.base_engine import Engine
from quill.engine.rules.pf2e.controllers.character_controller import PF2ECharacter
from quill.engine.rules.pf2e.engine import PF2EEngine


@pytest.fixture
def engine() -> PF2EEngine:
    engine = loader.load_ruleset("$quill.pf2e.core").engine
    if not isinstance(engine, PF2EEngine):
        raise Exception("Core ruleset does not specify expected engine")
    return engine


@pytest.fixture
def character(engine: Engine) -> PF2ECharacter:
    return cast(PF2ECharacter, engine.new_character())


@pytest.fixture
def barbarian(character: PF2ECharacter) -> PF2ECharacter:
    assert character.choose("Class", "Barbarian")
    return character
