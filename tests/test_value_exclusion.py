"""Tests for submission value exclusion and its three-tier settings."""

import pytest


@pytest.fixture
def make_manager(qapp, runner_factory):
    """Build managers wired to a manual request runner."""
    from pyqt_formlogic import FormLogicManager

    def build(fields, **kwargs):
        return FormLogicManager(fields, request_runner=runner_factory(), **kwargs)
    return build


def test_hidden_field_is_excluded(make_manager):
    """Hidden values are dropped from the submission but kept in the form."""
    manager = make_manager([
        {"key": "subscriptionType", "value": "free"},
        {"key": "paymentMethod", "value": "card", "logic": [{"type": "hidden", "condition": {
            "type": "fieldValue", "fieldPath": "subscriptionType", "operator": "equals", "value": "free"}}]},
    ])
    assert manager.submission_value() == {"subscriptionType": "free"}
    assert manager.value("paymentMethod") == "card"

    manager.set_value("subscriptionType", "premium")
    assert manager.submission_value() == {"subscriptionType": "premium", "paymentMethod": "card"}


def test_field_tier_overrides_form_tier(make_manager):
    """excludeValueIfHidden on a field beats the form setting."""
    from pyqt_formlogic import FormOptions, ValueExclusionConfig

    manager = make_manager([
        {"key": "kept", "value": 1, "hidden": True},
        {"key": "dropped", "value": 2, "hidden": True, "excludeValueIfHidden": True},
    ], options=FormOptions(value_exclusion=ValueExclusionConfig(exclude_value_if_hidden=False)))
    assert manager.submission_value() == {"kept": 1}


def test_form_tier_overrides_global(make_manager):
    """Form options beat the global configuration."""
    from pyqt_formlogic import FormLogicConfig, FormOptions, ValueExclusionConfig, set_form_logic_config

    set_form_logic_config(FormLogicConfig(exclude_value_if_disabled=False))
    fields = [{"key": "locked", "value": "x", "disabled": True}]

    assert make_manager(fields).submission_value() == {"locked": "x"}
    strict = make_manager(fields, options=FormOptions(value_exclusion=ValueExclusionConfig(exclude_value_if_disabled=True)))
    assert strict.submission_value() == {}


def test_readonly_excluded_by_default(make_manager):
    """The global defaults exclude readonly values too."""
    manager = make_manager([{"key": "id", "value": 7, "readonly": True}, {"key": "name", "value": "n"}])
    assert manager.submission_value() == {"name": "n"}


def test_hidden_group_removes_subtree(make_manager):
    """A hidden group drops its whole object."""
    manager = make_manager([
        {"key": "sameAsBilling", "value": True},
        {"key": "shipping", "type": "group", "fields": [{"key": "city", "value": "Oslo"}], "logic": [{
            "type": "hidden", "condition": {
                "type": "fieldValue", "fieldPath": "sameAsBilling", "operator": "equals", "value": True}}]},
    ])
    assert manager.submission_value() == {"sameAsBilling": True}


def test_hidden_row_excludes_children(make_manager):
    """Rows have no value of their own; their flags apply to their children."""
    manager = make_manager([
        {"key": "nameRow", "type": "row", "hidden": True, "fields": [
            {"key": "first", "value": "Ada"},
            {"key": "last", "value": "Lovelace", "excludeValueIfHidden": False},
        ]},
        {"key": "email", "value": "ada@example.com"},
    ])
    assert manager.submission_value() == {"last": "Lovelace", "email": "ada@example.com"}


def test_array_item_exclusion(make_manager):
    """Per-item flags exclude only that item's value."""
    manager = make_manager([
        {"key": "lines", "type": "array", "fields": [
            {"key": "kind"},
            {"key": "note", "logic": [{"type": "hidden", "condition": {
                "type": "javascript", "expression": "itemValue.kind !== 'custom'"}}]},
        ]},
    ], initial_value={"lines": [{"kind": "custom", "note": "a"}, {"kind": "std", "note": "b"}]})
    assert manager.submission_value() == {"lines": [{"kind": "custom", "note": "a"}, {"kind": "std"}]}


@pytest.mark.parametrize("setting, expected", [(None, True), (False, False), (True, True)])
def test_resolve_precedence(setting, expected):
    """None at the field tier defers to the form tier, which defers to global."""
    from pyqt_formlogic import ValueExclusionConfig
    from pyqt_formlogic.services import ValueExclusionService

    service = ValueExclusionService(ValueExclusionConfig(exclude_value_if_hidden=None))
    field_tier = ValueExclusionConfig(exclude_value_if_hidden=setting)
    assert service.resolve("exclude_value_if_hidden", field_tier) is expected
