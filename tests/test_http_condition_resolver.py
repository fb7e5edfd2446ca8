"""Tests for the HTTP condition resolver: debounce, cache, pending and staleness."""

import pytest


def _http_condition(**http):
    from pyqt_formlogic.models import parse_condition

    config = {"url": "https://api.example.com/permissions", "params": {"role": "formValue.role"},
              "responsePath": "hideAdminPanel", "debounceMs": 20}
    config.update(http)
    return parse_condition({"type": "http", "http": config})


class _Harness:
    """A resolver wired to a manual runner and a mutable form value."""

    def __init__(self, runner):
        from pyqt_formlogic.logic import HttpConditionResolver

        self.runner = runner
        self.form_value = {}
        self.resolved = []
        self.resolver = HttpConditionResolver(runner, self.resolved.append)

    def context(self, owner_id="adminPanel"):
        from pyqt_formlogic.logic import EvaluationContext
        return EvaluationContext(form_value=self.form_value, field_path=owner_id, owner_id=owner_id,
                                 http=self.resolver)

    def resolve(self, condition, owner_id="adminPanel"):
        return self.resolver.resolve_condition(condition, self.context(owner_id))


def test_pending_value_until_first_resolution(qapp, manual_runner):
    """A miss answers the pending value and schedules one request."""
    harness = _Harness(manual_runner)
    condition = _http_condition(pendingValue=True)
    harness.form_value["role"] = "viewer"

    assert harness.resolve(condition) is True
    assert manual_runner.calls == []
    assert harness.resolver.flush() == 1
    assert len(manual_runner.calls) == 1
    assert manual_runner.requests[0].params == {"role": "viewer"}

    manual_runner.calls[0].succeed({"hideAdminPanel": False})
    assert harness.resolved == ["adminPanel"]
    assert harness.resolve(condition) is False


def test_default_pending_value_comes_from_config(qapp, manual_runner):
    """Without pendingValue the global default applies."""
    from pyqt_formlogic.protocols import FormLogicConfig, set_form_logic_config

    set_form_logic_config(FormLogicConfig(default_pending_value=True))
    harness = _Harness(manual_runner)
    assert harness.resolve(_http_condition()) is True


def test_cache_idempotence(qapp, manual_runner):
    """A repeated key after a success is served from the cache without a call."""
    harness = _Harness(manual_runner)
    condition = _http_condition()

    harness.form_value["role"] = "admin"
    harness.resolve(condition)
    harness.resolver.flush()
    manual_runner.calls[0].succeed({"hideAdminPanel": False})

    harness.form_value["role"] = "viewer"
    harness.resolve(condition)
    harness.resolver.flush()
    manual_runner.calls[1].succeed({"hideAdminPanel": True})
    assert harness.resolve(condition) is True

    harness.form_value["role"] = "admin"
    assert harness.resolve(condition) is False
    assert harness.resolver.flush() == 0
    assert len(manual_runner.calls) == 2


def test_debounce_coalesces_to_one_request_with_last_value(qapp, manual_runner):
    """N changes inside one window produce exactly one request."""
    from PyQt6.QtTest import QTest

    harness = _Harness(manual_runner)
    condition = _http_condition(params={"q": "formValue.q"}, debounceMs=40)
    for text in ("a", "ab", "abc", "final"):
        harness.form_value["q"] = text
        harness.resolve(condition)

    QTest.qWait(200)
    assert len(manual_runner.calls) == 1
    assert manual_runner.requests[0].params == {"q": "final"}


def test_error_leaves_pending_value_without_retry(qapp, manual_runner):
    """A failed request keeps the pending value and is not retried for the same key."""
    harness = _Harness(manual_runner)
    condition = _http_condition(pendingValue=True)
    harness.form_value["role"] = "viewer"

    harness.resolve(condition)
    harness.resolver.flush()
    manual_runner.calls[0].fail()

    assert harness.resolve(condition) is True
    assert harness.resolver.flush() == 0
    assert len(manual_runner.calls) == 1
    assert harness.resolved == []
    assert not harness.resolver.has_pending_work()


def test_stale_response_is_discarded(qapp, manual_runner):
    """Only the response for the latest key may update the binding."""
    harness = _Harness(manual_runner)
    condition = _http_condition(pendingValue=True)

    harness.form_value["role"] = "admin"
    harness.resolve(condition)
    harness.resolver.flush()
    harness.form_value["role"] = "viewer"
    harness.resolve(condition)
    harness.resolver.flush()
    first, second = manual_runner.calls

    second.succeed({"hideAdminPanel": True})
    first.succeed({"hideAdminPanel": False})
    assert harness.resolve(condition) is True
    assert harness.resolved == ["adminPanel"]


def test_stale_response_still_fills_the_cache(qapp, manual_runner):
    """A superseded success is cached for when its key comes back."""
    harness = _Harness(manual_runner)
    condition = _http_condition()

    harness.form_value["role"] = "admin"
    harness.resolve(condition)
    harness.resolver.flush()
    harness.form_value["role"] = "viewer"
    harness.resolve(condition)
    manual_runner.calls[0].succeed({"hideAdminPanel": False})

    harness.form_value["role"] = "admin"
    assert harness.resolve(condition) is False
    assert len(manual_runner.calls) == 1


def test_failed_extraction_of_cached_body_falls_back_to_pending(qapp, manual_runner):
    """A cached body whose responseExpression fails never keeps the previous key's value."""
    harness = _Harness(manual_runner)
    condition = _http_condition(pendingValue=False, responsePath=None,
                                responseExpression="response.flag.toLowerCase() == 'abc'")

    harness.form_value["role"] = "admin"
    harness.resolve(condition)
    harness.resolver.flush()
    manual_runner.calls[0].succeed({"flag": "ABC"})
    assert harness.resolve(condition) is True

    harness.form_value["role"] = "viewer"
    harness.resolve(condition)
    harness.resolver.flush()
    manual_runner.calls[1].succeed({"flag": 5})
    assert harness.resolve(condition) is False

    harness.form_value["role"] = "admin"
    assert harness.resolve(condition) is True
    harness.form_value["role"] = "viewer"
    assert harness.resolve(condition) is False
    assert harness.resolve(condition) is False
    assert len(manual_runner.calls) == 2


def test_identical_in_flight_requests_are_shared(qapp, manual_runner):
    """Two owners asking the same key share one request."""
    harness = _Harness(manual_runner)
    condition = _http_condition()
    harness.form_value["role"] = "admin"

    harness.resolve(condition, owner_id="panelA")
    harness.resolve(condition, owner_id="panelB")
    harness.resolver.flush()
    assert len(manual_runner.calls) == 1

    manual_runner.calls[0].succeed({"hideAdminPanel": True})
    assert sorted(harness.resolved) == ["panelA", "panelB"]


def test_url_interpolation_and_post_body(qapp, manual_runner):
    """URL placeholders are quoted; POST payload strings are expressions."""
    harness = _Harness(manual_runner)
    condition = _http_condition(
        url="https://api.example.com/users/{{formValue.name}}/check",
        method="POST", params=None, body={"email": "formValue.email", "strict": True},
        responsePath=None, responseExpression="response.status === 'taken'",
    )
    harness.form_value.update({"name": "a b/c", "email": "x@y.com"})
    harness.resolve(condition)
    harness.resolver.flush()

    request = manual_runner.requests[0]
    assert request.url == "https://api.example.com/users/a%20b%2Fc/check"
    assert request.method == "POST"
    assert request.body == {"email": "x@y.com", "strict": True}

    manual_runner.calls[0].succeed({"status": "taken"})
    assert harness.resolve(condition) is True


def test_cache_scope_none_always_requests(qapp, manual_runner):
    """cacheScope 'none' skips the cache."""
    harness = _Harness(manual_runner)
    condition = _http_condition(cacheScope="none")

    harness.form_value["role"] = "admin"
    harness.resolve(condition)
    harness.resolver.flush()
    manual_runner.calls[0].succeed({"hideAdminPanel": True})

    harness.form_value["role"] = "viewer"
    harness.resolve(condition)
    harness.form_value["role"] = "admin"
    harness.resolve(condition)
    harness.resolver.flush()
    assert len(manual_runner.calls) == 2
    assert len(harness.resolver.cache) == 0


def test_cache_ttl_expires_entries(qapp, manual_runner):
    """Entries older than cacheTtlMs are fetched again."""
    from PyQt6.QtTest import QTest

    harness = _Harness(manual_runner)
    condition = _http_condition(cacheTtlMs=1)

    harness.form_value["role"] = "admin"
    harness.resolve(condition)
    harness.resolver.flush()
    manual_runner.calls[0].succeed({"hideAdminPanel": True})
    QTest.qWait(20)

    harness.form_value["role"] = "viewer"
    harness.resolve(condition)
    harness.form_value["role"] = "admin"
    harness.resolve(condition)
    harness.resolver.flush()
    assert len(manual_runner.calls) == 2


def test_synchronous_runner_answer(qapp, runner_factory):
    """A runner that answers inside submit still resolves the binding."""
    runner = runner_factory(responder=lambda request: {"hideAdminPanel": True})
    harness = _Harness(runner)
    condition = _http_condition()
    harness.form_value["role"] = "viewer"

    harness.resolve(condition)
    harness.resolver.flush()
    assert harness.resolve(condition) is True
    assert not harness.resolver.has_pending_work()


def test_derivation_resolution_uses_raw_value(qapp, manual_runner):
    """HTTP derivations keep the extracted value uncoerced."""
    from pyqt_formlogic.models import parse_logic

    harness = _Harness(manual_runner)
    rule = parse_logic({"type": "derivation", "http": {
        "url": "https://api.example.com/rates", "params": {"currency": "formValue.currency"},
    }, "responsePath": "rate"})
    harness.form_value["currency"] = "EUR"

    has_value, _ = harness.resolver.resolve_derivation(rule, harness.context("rate"))
    assert has_value is False
    harness.resolver.flush()
    manual_runner.calls[0].succeed({"rate": 1.08})
    assert harness.resolver.resolve_derivation(rule, harness.context("rate")) == (True, 1.08)


def test_dispose_cancels_in_flight_work(qapp, manual_runner):
    """After dispose, late responses are ignored."""
    harness = _Harness(manual_runner)
    condition = _http_condition()
    harness.form_value["role"] = "admin"
    harness.resolve(condition)
    harness.resolver.flush()

    harness.resolver.dispose()
    assert manual_runner.calls[0].cancelled
    manual_runner.calls[0].succeed({"hideAdminPanel": True})
    assert harness.resolved == []


def test_request_key_is_stable():
    """Key ignores payload key order."""
    from pyqt_formlogic.logic import request_key
    from pyqt_formlogic.protocols import HttpRequest

    a = HttpRequest("GET", "https://x", params={"a": 1, "b": 2})
    b = HttpRequest("GET", "https://x", params={"b": 2, "a": 1})
    assert request_key(a) == request_key(b)
    assert request_key(a) != request_key(HttpRequest("GET", "https://x", params={"a": 2, "b": 2}))


def test_http_config_requires_url():
    """A config without url is rejected at parse time."""
    from pyqt_formlogic.exceptions import FormConfigurationError
    from pyqt_formlogic.models import parse_condition

    with pytest.raises(FormConfigurationError):
        parse_condition({"type": "http", "http": {"method": "GET"}})
    with pytest.raises(FormConfigurationError):
        parse_condition({"type": "http", "http": {"url": "https://x", "method": "DELETE"}})
