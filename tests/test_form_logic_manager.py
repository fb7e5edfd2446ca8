"""End-to-end tests for FormLogicManager: derivations, flags, validation, HTTP and arrays."""

import logging

import pytest
from PyQt6.QtTest import QTest


NAME_FIELDS = [
    {"key": "firstName"},
    {"key": "lastName"},
    {"key": "fullName", "derivation": "formValue.firstName + ' ' + formValue.lastName"},
]


def _manager(fields, **kwargs):
    from pyqt_formlogic import FormLogicManager
    return FormLogicManager(fields, **kwargs)


def _record(signal):
    received = []
    signal.connect(lambda *args: received.append(args if len(args) > 1 else args[0]))
    return received


def test_derivation_on_initial_load_and_change(qapp, manual_runner):
    """The derived value is computed at build time and follows its inputs."""
    manager = _manager(NAME_FIELDS, initial_value={"firstName": "John", "lastName": "Doe"},
                       request_runner=manual_runner)
    assert manager.value("fullName") == "John Doe"

    changes = _record(manager.value_changed)
    assert manager.set_value("firstName", "Jane") is True
    assert manager.value("fullName") == "Jane Doe"
    assert changes == [("firstName", "Jane"), ("fullName", "Jane Doe")]


def test_unchanged_write_does_not_settle(qapp, manual_runner):
    """Writing the current value is a no-op."""
    manager = _manager(NAME_FIELDS, initial_value={"firstName": "John", "lastName": "Doe"},
                       request_runner=manual_runner)
    changes = _record(manager.value_changed)
    assert manager.set_value("firstName", "John") is False
    assert changes == []


def test_patch_value_settles_once(qapp, manual_runner):
    """Several writes in one patch produce one pass and one notification per path."""
    manager = _manager(NAME_FIELDS, initial_value={"firstName": "John", "lastName": "Doe"},
                       request_runner=manual_runner)
    changes = _record(manager.value_changed)

    manager.patch_value({"firstName": "Ada", "lastName": "Lovelace"})

    assert manager.value("fullName") == "Ada Lovelace"
    assert [path for path, _ in changes] == ["firstName", "fullName", "lastName"]


def test_batch_context_coalesces_writes(qapp, manual_runner):
    """Writes inside batch() are settled together on exit."""
    manager = _manager(NAME_FIELDS, initial_value={"firstName": "John", "lastName": "Doe"},
                       request_runner=manual_runner)
    changes = _record(manager.value_changed)

    with manager.batch():
        manager.set_value("firstName", "Grace")
        manager.set_value("lastName", "Hopper")
        assert manager.value("fullName") == "John Doe"

    assert manager.value("fullName") == "Grace Hopper"
    assert len([path for path, _ in changes if path == "fullName"]) == 1


def test_value_returns_a_snapshot(qapp, manual_runner):
    """Mutating a returned value does not touch the form."""
    manager = _manager([{"key": "tags"}], initial_value={"tags": ["a"]}, request_runner=manual_runner)
    tags = manager.value("tags")
    tags.append("b")
    assert manager.value("tags") == ["a"]
    assert manager.snapshot() == {"tags": ["a"]}


def test_field_value_condition_toggles_hidden(qapp, manual_runner):
    """subscriptionType free hides paymentMethod; premium shows it."""
    from pyqt_formlogic import FieldRuntimeState

    manager = _manager([
        {"key": "subscriptionType", "value": "free"},
        {"key": "paymentMethod", "logic": [{"type": "hidden", "condition": {
            "type": "fieldValue", "fieldPath": "subscriptionType", "operator": "equals", "value": "free"}}]},
    ], request_runner=manual_runner)
    assert manager.value("subscriptionType") == "free"
    assert manager.field_state("paymentMethod").hidden is True

    states = _record(manager.field_state_changed)
    manager.set_value("subscriptionType", "premium")

    assert manager.field_state("paymentMethod").hidden is False
    assert states == [("paymentMethod", FieldRuntimeState())]


def test_and_condition_requires_both(qapp, manual_runner):
    """regularPrice is hidden only while both flags are set."""
    manager = _manager([
        {"key": "hasDiscount", "value": False},
        {"key": "isPremiumMember", "value": False},
        {"key": "regularPrice", "logic": [{"type": "hidden", "condition": {"type": "and", "conditions": [
            {"type": "fieldValue", "fieldPath": "hasDiscount", "operator": "equals", "value": True},
            {"type": "fieldValue", "fieldPath": "isPremiumMember", "operator": "equals", "value": True},
        ]}}]},
    ], request_runner=manual_runner)

    def hidden():
        return manager.field_state("regularPrice").hidden

    assert hidden() is False
    manager.set_value("hasDiscount", True)
    assert hidden() is False
    manager.set_value("isPremiumMember", True)
    assert hidden() is True
    manager.set_value("hasDiscount", False)
    assert hidden() is False


def test_unknown_field_state_raises(qapp, manual_runner):
    """Only live fields have state."""
    manager = _manager([{"key": "a"}], request_runner=manual_runner)
    with pytest.raises(KeyError):
        manager.field_state("missing")


def test_required_validation_and_submit_button(qapp, manual_runner):
    """A formInvalid rule disables the submit button until the form validates."""
    manager = _manager([
        {"key": "email", "required": True, "email": True},
        {"key": "submit", "type": "submit", "logic": [{"type": "disabled", "condition": "formInvalid"}]},
    ], request_runner=manual_runner)
    assert manager.is_valid is False
    assert manager.field_errors("email") == {"required": "This field is required"}
    assert manager.field_state("submit").disabled is True

    statuses = _record(manager.form_state_changed)
    manager.set_value("email", "not-an-email")
    assert manager.field_errors("email") == {"email": "Enter a valid email address"}
    assert statuses == []

    manager.set_value("email", "ada@example.com")
    assert manager.is_valid is True
    assert manager.field_errors("email") == {}
    assert manager.field_state("submit").disabled is False
    assert [s.valid for s in statuses] == [True]


def test_submitting_state(qapp, manual_runner):
    """formSubmitting follows set_submitting."""
    manager = _manager([
        {"key": "submit", "type": "submit", "logic": [{"type": "disabled", "condition": "formSubmitting"}]},
    ], request_runner=manual_runner)
    assert manager.field_state("submit").disabled is False

    manager.set_submitting(True)
    assert manager.submitting is True
    assert manager.form_status.submitting is True
    assert manager.field_state("submit").disabled is True

    manager.set_submitting(False)
    assert manager.field_state("submit").disabled is False


def test_excluded_hidden_fields_are_not_validated(qapp, manual_runner):
    """Required fields stop blocking validity while hidden and excluded from the submission."""
    manager = _manager([
        {"key": "mode", "value": "simple"},
        {"key": "advanced", "type": "group", "fields": [{"key": "threshold", "required": True}],
         "logic": [{"type": "hidden", "condition": {
             "type": "fieldValue", "fieldPath": "mode", "operator": "equals", "value": "simple"}}]},
    ], request_runner=manual_runner)
    assert manager.is_valid is True

    manager.set_value("mode", "expert")
    assert manager.is_valid is False
    assert "required" in manager.field_errors("advanced.threshold")


def test_hidden_fields_are_validated_when_not_excluded(qapp, manual_runner):
    """With hidden values kept in the submission, a hidden required field still blocks validity."""
    from pyqt_formlogic import FormOptions, ValueExclusionConfig

    manager = _manager([
        {"key": "toggle", "value": False},
        {"key": "password", "required": True, "logic": [{"type": "hidden", "condition": {
            "type": "fieldValue", "fieldPath": "toggle", "operator": "equals", "value": True}}]},
    ], request_runner=manual_runner,
        options=FormOptions(value_exclusion=ValueExclusionConfig(exclude_value_if_hidden=False)))
    assert manager.is_valid is False

    manager.set_value("toggle", True)
    assert manager.field_state("password").hidden is True
    assert manager.is_valid is False
    assert "required" in manager.field_errors("password")


def test_conditional_required(qapp, manual_runner):
    """A required rule adds the required check while its condition holds."""
    manager = _manager([
        {"key": "country", "value": "FR"},
        {"key": "state", "logic": [{"type": "required", "condition": {
            "type": "javascript", "expression": "formValue.country === 'US'"}}]},
    ], request_runner=manual_runner)
    assert manager.is_valid is True

    manager.set_value("country", "US")
    assert manager.field_state("state").required is True
    assert manager.is_valid is False

    manager.set_value("state", "CA")
    assert manager.is_valid is True


def test_pages_and_page_invalid(qapp, manual_runner):
    """pageInvalid reads the validity of the button's own page."""
    manager = _manager([
        {"key": "account", "type": "page", "fields": [
            {"key": "username", "required": True},
            {"key": "next", "type": "next", "logic": [{"type": "disabled", "condition": "pageInvalid"}]},
        ]},
        {"key": "profile", "type": "page", "fields": [{"key": "bio"}]},
    ], request_runner=manual_runner)
    assert manager.form_status.page_validity == (False, True)
    assert manager.is_page_valid(1) is True
    assert manager.field_state("next").disabled is True

    manager.set_value("username", "ada")
    assert manager.is_page_valid(0) is True
    assert manager.field_state("next").disabled is False

    manager.current_page = 1
    assert manager.current_page == 1
    assert manager.form_status.current_page == 1
    with pytest.raises(IndexError):
        manager.current_page = 2


def test_current_page_requires_pages(qapp, manual_runner):
    """Forms without pages reject page navigation."""
    from pyqt_formlogic import FormConfigurationError

    manager = _manager([{"key": "a"}], request_runner=manual_runner)
    with pytest.raises(FormConfigurationError):
        manager.current_page = 1


def test_array_items_with_per_item_logic(qapp, manual_runner):
    """Array items get template defaults, per-item derivations and validation."""
    manager = _manager([
        {"key": "items", "type": "array", "fields": [
            {"key": "qty", "value": 1},
            {"key": "name", "required": True},
            {"key": "total", "derivation": "itemValue.qty * 2"},
        ]},
    ], initial_value={"items": []}, request_runner=manual_runner)
    assert manager.is_valid is True

    assert manager.add_array_item("items") == 0
    assert manager.value("items.0") == {"qty": 1, "total": 2}
    assert "items.0.name" in manager.field_ids
    assert manager.is_valid is False

    manager.set_value("items.0.qty", 5)
    manager.set_value("items[0].name", "Bolt")
    assert manager.value("items.0.total") == 10
    assert manager.is_valid is True

    assert manager.add_array_item("items", {"qty": 3, "name": "Nut"}) == 1
    assert manager.value("items.1.total") == 6

    removed = manager.remove_array_item("items", 0)
    assert removed["name"] == "Bolt"
    assert manager.value("items") == [{"qty": 3, "name": "Nut", "total": 6}]
    assert "items.1.qty" not in manager.field_ids

    with pytest.raises(IndexError):
        manager.remove_array_item("items", 4)


def test_initial_array_items_get_defaults(qapp, manual_runner):
    """Items present at build time are filled from the template."""
    manager = _manager([
        {"key": "lines", "type": "array", "fields": [{"key": "qty", "value": 1}, {"key": "sku"}]},
    ], initial_value={"lines": [{"sku": "A"}, {"sku": "B", "qty": 4}]}, request_runner=manual_runner)
    assert manager.value("lines") == [{"sku": "A", "qty": 1}, {"sku": "B", "qty": 4}]


def test_array_operations_require_array_fields(qapp, manual_runner):
    """add/remove on a non-array path is a configuration error."""
    from pyqt_formlogic import FormConfigurationError

    manager = _manager([{"key": "name"}], request_runner=manual_runner)
    with pytest.raises(FormConfigurationError):
        manager.add_array_item("name")
    with pytest.raises(FormConfigurationError):
        manager.remove_array_item("missing", 0)


def test_derivation_with_target_field_and_condition(qapp, manual_runner):
    """A guarded derivation writes to its targetField only while the guard holds."""
    manager = _manager([
        {"key": "country", "value": "FR", "logic": [{
            "type": "derivation", "targetField": "currency", "value": "USD",
            "condition": {"type": "fieldValue", "fieldPath": "country", "operator": "equals", "value": "US"},
        }]},
        {"key": "currency", "value": "EUR"},
    ], request_runner=manual_runner)
    assert manager.value("currency") == "EUR"

    manager.set_value("country", "US")
    assert manager.value("currency") == "USD"


def test_derivation_error_keeps_previous_value(qapp, manual_runner):
    """A failing derivation is recorded and leaves the target untouched."""
    manager = _manager([
        {"key": "code", "value": "ab"},
        {"key": "upper", "derivation": "formValue.code.toUpperCase()"},
    ], request_runner=manual_runner)
    assert manager.value("upper") == "AB"
    assert manager.derivation_error("upper") is None

    manager.set_value("code", None)
    assert manager.value("upper") == "AB"
    assert manager.derivation_error("upper") is not None

    manager.set_value("code", "xy")
    assert manager.value("upper") == "XY"
    assert manager.derivation_error("upper") is None


def test_custom_function_derivation(qapp, manual_runner):
    """Form-local functions are available to derivations and conditions."""
    manager = _manager([
        {"key": "age", "value": 20},
        {"key": "ageGroup", "logic": [{"type": "derivation", "functionName": "ageGroup"}]},
        {"key": "parentConsent", "logic": [{"type": "hidden", "condition": {
            "type": "custom", "functionName": "isAdult"}}]},
    ], custom_functions={
        "ageGroup": lambda ctx: "adult" if ctx.form_value["age"] >= 18 else "minor",
        "isAdult": lambda ctx: ctx.form_value["age"] >= 18,
    }, request_runner=manual_runner)
    assert manager.value("ageGroup") == "adult"
    assert manager.field_state("parentConsent").hidden is True

    manager.set_value("age", 12)
    assert manager.value("ageGroup") == "minor"
    assert manager.field_state("parentConsent").hidden is False


def test_derivation_cycle_fails_at_build(qapp, manual_runner):
    """Statically cyclic derivations are rejected before the form is live."""
    from pyqt_formlogic import DerivationCycleError

    with pytest.raises(DerivationCycleError):
        _manager([
            {"key": "a", "derivation": "formValue.b + 1"},
            {"key": "b", "derivation": "formValue.a + 1"},
        ], request_runner=manual_runner)


WILDCARD_LOOP = [
    {"key": "a", "logic": [{"type": "derivation", "functionName": "fromB"}]},
    {"key": "b", "logic": [{"type": "derivation", "functionName": "fromA"}]},
]
LOOP_FUNCTIONS = {
    "fromB": lambda ctx: (ctx.form_value.get("b") or 0) + 1,
    "fromA": lambda ctx: (ctx.form_value.get("a") or 0) + 1,
}


def test_runtime_guard_raises_in_strict_mode(qapp, manual_runner):
    """Wildcard derivations that never settle trip the iteration guard."""
    from pyqt_formlogic import DerivationCycleError

    with pytest.raises(DerivationCycleError):
        _manager(WILDCARD_LOOP, custom_functions=LOOP_FUNCTIONS, request_runner=manual_runner)


def test_runtime_guard_logs_when_not_strict(qapp, manual_runner, caplog):
    """Non-strict mode logs the loop and keeps the form usable."""
    from pyqt_formlogic import FormLogicConfig, set_form_logic_config

    set_form_logic_config(FormLogicConfig(strict_cycle_detection=False, max_derivation_iterations=3))
    with caplog.at_level(logging.ERROR, logger="pyqt_formlogic.logic.derivation_engine"):
        manager = _manager(WILDCARD_LOOP, custom_functions=LOOP_FUNCTIONS, request_runner=manual_runner)

    assert "did not settle after 3 iterations" in caplog.text
    assert isinstance(manager.value("a"), int)


LINE_TOTAL_FIELDS = [
    {"key": "quantity"},
    {"key": "unitPrice"},
    {"key": "total", "logic": [{"type": "derivation", "expression": "formValue.quantity * formValue.unitPrice",
                                "stopOnUserOverride": True}]},
]


def _wait_until(predicate, timeout_ms=2000):
    waited = 0
    while not predicate() and waited < timeout_ms:
        QTest.qWait(10)
        waited += 10
    return predicate()


def test_user_edit_stops_derivation(qapp, manual_runner):
    """stopOnUserOverride keeps the user's value until the hold is cleared."""
    manager = _manager(LINE_TOTAL_FIELDS, initial_value={"quantity": 2, "unitPrice": 10},
                       request_runner=manual_runner)
    assert manager.value("total") == 20

    manager.set_value("total", 99)
    assert manager.is_user_override("total")
    manager.set_value("quantity", 3)
    assert manager.value("total") == 99

    manager.clear_user_overrides("total")
    manager.set_value("quantity", 4)
    assert manager.value("total") == 40


def test_dependency_change_re_engages_derivation(qapp, manual_runner):
    """reEngageOnDependencyChange lifts the hold on the next dependency change."""
    fields = [dict(f) for f in LINE_TOTAL_FIELDS]
    fields[2] = dict(fields[2], logic=[dict(fields[2]["logic"][0], reEngageOnDependencyChange=True)])
    manager = _manager(fields, initial_value={"quantity": 2, "unitPrice": 10}, request_runner=manual_runner)

    manager.set_value("total", 99)
    assert manager.value("total") == 99

    manager.set_value("unitPrice", 5)
    assert manager.value("total") == 10
    assert not manager.is_user_override("total")


def test_debounced_derivation_waits_for_quiet_period(qapp, manual_runner):
    """trigger 'debounced' writes once, after the inputs stop changing."""
    manager = _manager([
        {"key": "title", "value": "Draft"},
        {"key": "slug", "logic": [{"type": "derivation", "expression": "formValue.title.toLowerCase()",
                                   "trigger": "debounced", "debounceMs": 30}]},
    ], request_runner=manual_runner)
    assert manager.value("slug") is None
    assert manager.has_pending_derivations()
    assert manager.flush_pending_derivations() == 1
    assert manager.value("slug") == "draft"

    changes = _record(manager.value_changed)
    for text in ("H", "He", "Hello"):
        manager.set_value("title", text)
    assert manager.value("slug") == "draft"

    assert _wait_until(lambda: manager.value("slug") == "hello")
    assert [c for c in changes if c[0] == "slug"] == [("slug", "hello")]


def test_async_function_derivation(qapp, manual_runner):
    """Async functions run off the evaluation thread; their result is written when it arrives."""
    cities = {"75001": "Paris", "10115": "Berlin"}
    manager = _manager([
        {"key": "zip", "value": "75001"},
        {"key": "city", "logic": [{"type": "derivation", "asyncFunctionName": "lookupCity",
                                   "dependsOn": ["zip"], "debounceMs": 10}]},
    ], custom_functions={"lookupCity": lambda ctx: cities.get(ctx.form_value["zip"])},
        request_runner=manual_runner)

    manager.flush_pending_derivations()
    assert _wait_until(lambda: manager.value("city") == "Paris")

    manager.set_value("zip", "10115")
    assert manager.value("city") == "Paris"
    manager.flush_pending_derivations()
    assert _wait_until(lambda: manager.value("city") == "Berlin")
    manager.dispose()


def test_async_derivation_keeps_only_latest_call(qapp, manual_runner):
    """A slow earlier call cannot overwrite the result of a later one."""
    import threading

    release = threading.Event()

    def lookup(ctx):
        if ctx.form_value["query"] == "slow":
            release.wait(2.0)
            return "stale"
        return "fresh"

    manager = _manager([
        {"key": "query", "value": "slow"},
        {"key": "answer", "logic": [{"type": "derivation", "asyncFunctionName": "lookup",
                                     "dependsOn": ["query"], "debounceMs": 10}]},
    ], custom_functions={"lookup": lookup}, request_runner=manual_runner)
    manager.flush_pending_derivations()

    manager.set_value("query", "fast")
    manager.flush_pending_derivations()
    assert _wait_until(lambda: manager.value("answer") == "fresh")

    release.set()
    QTest.qWait(100)
    assert manager.value("answer") == "fresh"
    manager.dispose()


def test_async_derivation_failure_is_recorded(qapp, manual_runner):
    """A raising async function leaves the value alone and records the error."""
    def lookup(ctx):
        raise RuntimeError("service down")

    manager = _manager([
        {"key": "zip", "value": "75001"},
        {"key": "city", "value": "unknown", "logic": [{"type": "derivation", "asyncFunctionName": "lookup",
                                                      "dependsOn": ["zip"], "debounceMs": 10}]},
    ], custom_functions={"lookup": lookup}, request_runner=manual_runner)
    manager.flush_pending_derivations()

    assert _wait_until(lambda: manager.derivation_error("city") is not None)
    assert "service down" in manager.derivation_error("city")
    assert manager.value("city") == "unknown"
    manager.dispose()


HTTP_FIELDS = [
    {"key": "role", "value": "admin"},
    {"key": "adminPanel", "type": "group", "fields": [{"key": "notes"}], "logic": [{
        "type": "hidden",
        "condition": {"type": "http", "http": {
            "url": "https://api.example.com/permissions",
            "params": {"role": "formValue.role"},
            "responsePath": "hideAdminPanel",
            "debounceMs": 20,
        }},
    }]},
]


def test_http_condition_admin_then_viewer(qapp, manual_runner):
    """HTTP responses drive the flag; a repeated selection is served from cache."""
    manager = _manager(HTTP_FIELDS, request_runner=manual_runner)
    assert manager.field_state("adminPanel").hidden is False
    assert manager.has_pending_requests() is True

    assert manager.flush_pending_requests() == 1
    assert manual_runner.requests[0].params == {"role": "admin"}
    manual_runner.calls[0].succeed({"hideAdminPanel": False})
    assert manager.field_state("adminPanel").hidden is False

    states = _record(manager.field_state_changed)
    manager.set_value("role", "viewer")
    manager.flush_pending_requests()
    assert manual_runner.requests[1].params == {"role": "viewer"}
    manual_runner.calls[1].succeed({"hideAdminPanel": True})
    assert manager.field_state("adminPanel").hidden is True
    assert states[-1][0] == "adminPanel"

    manager.set_value("role", "admin")
    assert manager.field_state("adminPanel").hidden is False
    assert manager.flush_pending_requests() == 0
    assert len(manual_runner.calls) == 2
    assert manager.has_pending_requests() is False


def test_http_failure_keeps_pending_value(qapp, manual_runner):
    """A failed request leaves the pending value in place."""
    fields = [dict(f) for f in HTTP_FIELDS]
    http = dict(fields[1]["logic"][0]["condition"]["http"], pendingValue=True)
    fields[1] = dict(fields[1], logic=[{"type": "hidden", "condition": {"type": "http", "http": http}}])

    manager = _manager(fields, request_runner=manual_runner)
    assert manager.field_state("adminPanel").hidden is True
    manager.flush_pending_requests()
    manual_runner.calls[0].fail()
    assert manager.field_state("adminPanel").hidden is True
    assert manager.flush_pending_requests() == 0


def test_rapid_input_is_debounced(qapp, manual_runner):
    """A burst of edits inside the debounce window sends one request for the last value."""
    manager = _manager([
        {"key": "search", "value": ""},
        {"key": "results", "logic": [{"type": "hidden", "condition": {"type": "http", "http": {
            "url": "https://api.example.com/search",
            "params": {"q": "formValue.search"},
            "responsePath": "empty",
            "debounceMs": 40,
        }}}]},
    ], request_runner=manual_runner)

    for text in ("a", "ab", "abc", "final"):
        manager.set_value("search", text)
    QTest.qWait(200)

    assert 1 <= len(manual_runner.calls) <= 2
    assert manual_runner.requests[-1].params == {"q": "final"}
    manual_runner.calls[-1].succeed({"empty": True})
    assert manager.field_state("results").hidden is True


def test_http_derivation_writes_when_resolved(qapp, runner_factory):
    """An HTTP derivation writes its response once it arrives."""
    runner = runner_factory(responder=lambda request: {"rate": 0.2 if request.params["country"] == "FR" else 0.1})
    manager = _manager([
        {"key": "country", "value": "FR"},
        {"key": "vatRate", "logic": [{"type": "derivation", "http": {
            "url": "https://api.example.com/vat",
            "params": {"country": "formValue.country"},
            "debounceMs": 10,
        }, "responsePath": "rate"}]},
    ], request_runner=runner)
    assert manager.value("vatRate") is None

    manager.flush_pending_requests()
    assert manager.value("vatRate") == 0.2

    manager.set_value("country", "DE")
    manager.flush_pending_requests()
    assert manager.value("vatRate") == 0.1


def test_dispose_stops_reacting(qapp, manual_runner):
    """After dispose, writes are stored but no longer settled."""
    manager = _manager(NAME_FIELDS, initial_value={"firstName": "John", "lastName": "Doe"},
                       request_runner=manual_runner)
    manager.dispose()
    manager.dispose()

    manager.set_value("firstName", "Jane")
    assert manager.value("fullName") == "John Doe"
    assert manual_runner.disposed is False


def test_dispose_cancels_pending_http(qapp, manual_runner):
    """Disposing drops debounce timers and the request cache."""
    manager = _manager(HTTP_FIELDS, request_runner=manual_runner)
    assert manager.has_pending_requests() is True

    manager.dispose()
    assert manager.has_pending_requests() is False
    QTest.qWait(60)
    assert manual_runner.calls == []
    assert len(manager.request_cache) == 0


def test_default_runner_is_owned_and_disposed(qapp):
    """Without an injected runner the manager creates and releases its own."""
    manager = _manager([{"key": "a"}])
    manager.dispose()
