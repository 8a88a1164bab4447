from __future__ import annotations

from typing import Type

from .. import base_engine
from ..attrstring import AttrDict
from ..registry import RuleRegistry
from . import choices
from . import core_rules
from . import defs
from .controllers import character_controller


class PF2EEngine(base_engine.Engine):
    ruleset: defs.Ruleset

    @property
    def character_controller(self) -> Type[base_engine.CharacterController]:
        return character_controller.PF2ECharacter

    def core_rules(self, registry: RuleRegistry) -> None:
        core_rules.core_rules(registry, self.ruleset)

    def compile_choice(
        self, registry: RuleRegistry, category: str, name: str, attrs: AttrDict
    ) -> None:
        choices.choice_rules(registry, category, name, attrs)
