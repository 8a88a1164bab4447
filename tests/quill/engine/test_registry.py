from __future__ import annotations

import logging

import pytest

from quill.engine.rules.attrstring import AttrDict
from quill.engine.rules.attrstring import get_attr_value
from quill.engine.rules.phrases import PhraseError
from quill.engine.rules.registry import RuleRegistry


def compile_choice(registry: RuleRegistry, category: str, name: str, attrs: AttrDict):
    if "Fail" in attrs:
        raise PhraseError(f"Can't compile {name}")
    target = f"{category.lower()}.{name}"
    registry.define_rule(target, "level", "=", get_attr_value(attrs, "Value"))
    registry.define_note(f"featureNotes.{name}", "%V")


@pytest.fixture
def registry() -> RuleRegistry:
    return RuleRegistry(compile_choice)


def values(registry: RuleRegistry, target: str) -> list:
    return [r.value for r in registry.rules_for(target)]


class TestDefineRule:
    def test_group(self, registry):
        rules = registry.define_rule("x", "flag", "?", None, "level", "=", "source + 1")
        assert [r.operator for r in rules] == ["?", "="]
        assert rules[0].group == rules[1].group
        assert rules[0].seq < rules[1].seq
        other = registry.add_rule("x", "", "+=", 1)
        assert other.group != rules[0].group

    @pytest.mark.parametrize(
        "triples",
        [
            ("flag", "?", None, "level", "=>", 1),
            ("flag", "?", None, "level", "=", "1 +"),
            ("flag", "?", None, "level"),
            (),
        ],
    )
    def test_malformed_group_is_dropped(self, registry, triples, caplog):
        caplog.set_level(logging.WARNING)
        assert registry.define_rule("x", *triples) == []
        assert registry.rules_for("x") == []
        assert caplog.records

    def test_missing_target(self, registry):
        assert registry.add_rule("", "level", "=", 1) is None
        assert len(registry) == 0

    def test_trigger(self, registry):
        rule = registry.add_rule("x", "x", "=", 1)
        assert rule.is_trigger
        assert not registry.add_rule("x", "y", "=", 1).is_trigger

    def test_revision_and_build_cache(self, registry):
        revision = registry.revision
        registry.add_rule("b", "a", "=", None)
        assert registry.revision > revision
        assert registry.build() == ["b"]
        assert registry.is_built
        registry.add_rule("c", "b", "=", None)
        assert not registry.is_built
        assert registry.build() == ["b", "c"]


class TestNotes:
    def test_templates_join(self, registry):
        assert registry.note_template("combatNotes.rage") is None
        registry.define_note("combatNotes.rage", "+%V damage")
        registry.define_note("combatNotes.rage", "-1 AC", separator="; ")
        assert registry.note_template("combatNotes.rage") == "+%V damage; -1 AC"
        assert registry.notes() == ["combatNotes.rage"]


class TestChoices:
    def test_register(self, registry):
        assert registry.register_choice("Feat", "Toughness", "Value=1")
        assert values(registry, "feat.Toughness") == [1]
        assert registry.rules_for("feat.Toughness")[0].owner == ("Feat", "Toughness")
        assert registry.get_choices("Feat") == {"Toughness": "Value=1"}
        assert registry.categories() == ["Feat"]

    def test_register_is_idempotent(self, registry):
        registry.register_choice("Feat", "Toughness", "Value=1")
        count = len(registry)
        registry.register_choice("Feat", "Toughness", "Value=1")
        assert len(registry) == count
        assert registry.note_templates("featureNotes.Toughness")[0].template == "%V"
        assert len(registry.note_templates("featureNotes.Toughness")) == 1

    def test_override_and_restore(self, registry):
        registry.register_choice("Feat", "Toughness", "Value=1")
        registry.register_choice("Feat", "Toughness", "Value=2")
        assert values(registry, "feat.Toughness") == [2]
        assert registry.remove_choice("Feat", "Toughness")
        assert values(registry, "feat.Toughness") == [1]
        assert registry.get_choices("Feat") == {"Toughness": "Value=1"}
        assert registry.remove_choice("Feat", "Toughness")
        assert registry.rules_for("feat.Toughness") == []
        assert registry.get_choices("Feat") == {}
        assert registry.categories() == []
        assert not registry.remove_choice("Feat", "Toughness")

    def test_bad_definition_keeps_previous(self, registry, caplog):
        caplog.set_level(logging.WARNING)
        registry.register_choice("Feat", "Toughness", "Value=1")
        assert not registry.register_choice("Feat", "Toughness", "Value=2 Fail=1")
        assert values(registry, "feat.Toughness") == [1]
        assert registry.get_choices("Feat") == {"Toughness": "Value=1"}
        assert "Can't compile Toughness" in caplog.text

    def test_bad_first_definition(self, registry):
        assert not registry.register_choice("Feat", "Toughness", "Fail=1")
        assert registry.get_choices("Feat") == {}
        assert len(registry) == 0

    def test_bad_encoding(self, registry):
        assert not registry.register_choice("Feat", "Toughness", 'Value="1')
        assert not registry.register_choice("Feat", "", "Value=1")
        assert len(registry) == 0

    def test_remove_leaves_other_owners(self, registry):
        registry.register_choice("Feat", "Toughness", "Value=1")
        registry.register_choice("Feat", "Fleet", "Value=1")
        registry.add_rule("feat.Toughness", "", "+=", 5)
        registry.remove_choice("Feat", "Toughness")
        assert values(registry, "feat.Toughness") == [5]
        assert values(registry, "feat.Fleet") == [1]

    def test_authoring(self, registry):
        with registry.authoring(("Core", "combat")):
            registry.add_rule("speed", "", "=", 25)
        registry.add_rule("speed", "", "+", 5)
        assert [r.owner for r in registry.rules_for("speed")] == [("Core", "combat"), None]
        assert registry.remove_owner(("Core", "combat")) == 1
        assert values(registry, "speed") == [5]
