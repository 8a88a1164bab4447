from __future__ import annotations

from typing import TYPE_CHECKING

from quill.engine.rules import base_engine
from quill.engine.rules.attributes import Value
from quill.engine.rules.decision import Decision

from .. import defs

if TYPE_CHECKING:
    from .. import engine

# Categories chosen once per character, and the attribute holding the choice.
SINGLE_CHOICES: dict[str, str] = {
    "Alignment": "alignment",
    "Ancestry": "ancestry",
    "Armor": "armor",
    "Background": "background",
    "Class": "class",
    "Deity": "deity",
    "Shield": "shield",
}

# Categories chosen any number of times, and the family recording them.
MULTIPLE_CHOICES: dict[str, str] = {
    "Feat": "feats",
    "Language": "languages",
    "Skill": "skillChoices",
    "Spell": "spells",
    "Weapon": "weapons",
}


class PF2ECharacter(base_engine.CharacterController):
    engine: engine.PF2EEngine
    ruleset: defs.Ruleset

    @property
    def level(self) -> int:
        return int(self.get("level") or 0)

    @level.setter
    def level(self, value: int) -> None:
        self.set("level", value)

    @property
    def abilities(self) -> dict[str, Value]:
        """Final ability scores, keyed by ability name."""
        return {ability: self.get(ability.lower()) for ability in defs.ABILITIES}

    @property
    def features(self) -> dict[str, Value]:
        return {name: value for name, value in self.family("features").items() if value}

    @property
    def feats(self) -> list[str]:
        return sorted(name for name, value in self.family("feats").items() if value)

    @property
    def weapons(self) -> dict[str, str | None]:
        """Attack lines of wielded weapons."""
        return {
            name: self.render_note(f"weapons.{name}")
            for name, value in self.family("weapons").items()
            if "." not in name and value
        }

    def choose(
        self, category: str, name: str, value: Value = 1, dry_run: bool = False
    ) -> Decision:
        """Picks a choice for this character.

        Single choices (ancestry, class...) replace the current pick; other
        categories record `value` under the choice's name. The result reports
        whether the character is still valid afterward.
        """
        if name not in self.engine.get_choices(category):
            return Decision.fail(f"Unknown {category.lower()} {name!r}.")
        if attr := SINGLE_CHOICES.get(category):
            return self.apply(attr, name, dry_run=dry_run)
        if family := MULTIPLE_CHOICES.get(category):
            return self.apply(f"{family}.{name}", value, dry_run=dry_run)
        return Decision.fail(f"{category} can't be chosen directly.")

    def unchoose(self, category: str, name: str) -> Decision:
        if attr := SINGLE_CHOICES.get(category):
            if self.model.attributes.get(attr) != name:
                return Decision.fail(f"{name!r} isn't chosen.")
            return self.apply(attr, None)
        if family := MULTIPLE_CHOICES.get(category):
            return self.apply(f"{family}.{name}", None)
        return Decision.fail(f"{category} can't be chosen directly.")

    def boost(self, ability: str, dry_run: bool = False) -> Decision:
        """Spends one free ability boost."""
        if ability not in defs.ABILITIES:
            return Decision.fail(f"Unknown ability {ability!r}.")
        attr = f"abilityBoostsChosen.{ability}"
        current = self.model.attributes.get(attr, 0)
        return self.apply(attr, int(current) + 1, dry_run=dry_run)

    def select_feature(self, name: str, dry_run: bool = False) -> Decision:
        """Picks a selectable feature, such as a heritage or instinct."""
        return self.apply(f"selectableFeatures.{name}", 1, dry_run=dry_run)
