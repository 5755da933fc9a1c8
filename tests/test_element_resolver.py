# /tests/test_element_resolver.py
from unittest.mock import MagicMock

import pytest

from stepengine.core.errors import AIAssistanceError
from stepengine.core.models import (
    ElementContext,
    PageState,
    ResolutionStage,
    SelectorSuggestion,
    SuggestionRequest,
    SuggestionResponse,
)
from stepengine.resolver.element_resolver import ElementResolver, to_playwright_selector

from tests.fakes import FakeElement


def direct_retry(calls):
    """A retry_fn that records its arguments and calls through once."""
    def _retry(api_call, max_retries, base_delay_ms, description):
        calls.append((max_retries, base_delay_ms, description))
        return api_call()
    return _retry


def clock_retry(clock):
    """A retry_fn that backs off on the fake clock instead of sleeping."""
    def _retry(api_call, max_retries, base_delay_ms, description):
        for attempt in range(max_retries):
            try:
                return api_call()
            except AIAssistanceError:
                if attempt == max_retries - 1:
                    raise
                clock.advance(base_delay_ms * 2 ** attempt / 1000)
    return _retry


def suggestion(selector, strategy="css", confidence=0.9, alternatives=None):
    return SuggestionResponse(success=True, data=SelectorSuggestion(
        suggested_selector=selector,
        suggested_strategy=strategy,
        confidence=confidence,
        reasoning="matched by label",
        alternative_selectors=alternatives or [],
    ))


class TestToPlaywrightSelector:
    def test_css(self):
        assert to_playwright_selector("#a") == "css=#a"

    def test_xpath_is_detected(self):
        assert to_playwright_selector("//a[@id='x']") == "xpath=//a[@id='x']"

    def test_explicit_xpath_method_gets_root_prefix(self):
        assert to_playwright_selector("button", "xpath") == "xpath=//button"

    def test_already_prefixed(self):
        assert to_playwright_selector("xpath=//a") == "xpath=//a"


class TestContract:
    def test_missing_frame_is_an_invariant_violation(self, resolver):
        with pytest.raises(ValueError):
            resolver.resolve(None, "#x", "x")

    def test_empty_selector_returns_none(self, resolver, page):
        assert resolver.resolve(page, "  ", "nothing") is None

    def test_element_context_carries_index_and_provenance(self, resolver, page, step_log):
        page.add(".row", FakeElement(text="first"))
        second = page.add(".row", FakeElement(text="second"))
        context = ElementContext(selector=".row", descriptive_term="second row",
                                 previous_attempts=["#row-2"], index=1)

        assert resolver.resolve_context(page, context) is second
        assert any("Previous attempts:" in line for line in step_log.lines())


class TestImmediateLookup:
    def test_id_hint_resolves_without_fallbacks(self, resolver, page):
        button = page.add("#myBtn", FakeElement(tag="button", text="Open Modal", attrs={"id": "myBtn"}))

        resolution = resolver.locate(page, "(id: myBtn)", "(id: myBtn)")

        assert resolution.handle is button
        assert resolution.stage == ResolutionStage.IMMEDIATE
        assert page.wait_calls == []

    def test_index_selects_among_matches_and_disposes_the_rest(self, resolver, page):
        first = page.add(".item", FakeElement(text="one"))
        second = page.add(".item", FakeElement(text="two"))

        handle = resolver.resolve(page, ".item", "item", index=1)

        assert handle is second
        assert first.dispose_count == 1
        assert second.dispose_count == 0

    def test_index_out_of_range_is_a_miss(self, resolver, page):
        page.add(".item", FakeElement())
        assert resolver.resolve(page, ".item", "item", index=3, disable_fallbacks=True) is None


class TestSmartWait:
    def test_login_link_resolves_through_the_href_selector(self, resolver, page):
        link = page.add('a[href*="/login" i]', FakeElement(tag="a", text="Sign In", attrs={"href": "/login"}))

        resolution = resolver.locate(page, "Login", "Login")

        assert resolution.handle is link
        assert resolution.stage == ResolutionStage.SMART_WAIT
        assert resolution.strategy == "href-login-path"

    def test_early_waits_are_short_and_capped(self, resolver, page, clock):
        start = clock()
        resolver.resolve(page, "Nowhere to be found", "nowhere", disable_fallbacks=True)
        early_timeouts = [timeout for _, timeout, _ in page.wait_calls]
        assert all(timeout <= 200 for timeout in early_timeouts)
        assert clock() - start <= 3.0 + 1e-6

    def test_hidden_candidates_are_rejected_and_disposed(self, resolver, page):
        hidden = page.add("#save", FakeElement(visible=False))
        assert resolver.resolve(page, "save", "save") is None
        assert hidden.dispose_count >= 1


class TestBudget:
    def test_unresolvable_target_returns_none_within_budget(self, resolver, page, clock):
        start = clock()

        result = resolver.resolve(page, "Nonexistent widget", "Nonexistent widget")

        assert result is None
        assert clock() - start <= resolver.budget_s + 1e-6

    def test_cascade_stops_when_budget_is_spent(self, step_log, page, clock):
        resolver = ElementResolver(add_log=step_log, clock=clock, budget_s=4.0)
        resolver.resolve(page, "Nonexistent widget", "Nonexistent widget")
        assert any("Timeout reached after 4000ms" in line for line in step_log.lines())

    def test_text_strategies_wait_longer(self, step_log, page, clock):
        resolver = ElementResolver(add_log=step_log, clock=clock, budget_s=120.0)
        resolver.resolve(page, "Nonexistent widget", "Nonexistent widget")
        timeouts = {selector: timeout for selector, timeout, _ in page.wait_calls if timeout > 200}
        assert timeouts['css=[name="Nonexistent widget"]'] == 2000
        assert timeouts['xpath=//*[normalize-space(text())="Nonexistent widget"]'] == 5000


class TestAIRecovery:
    def test_suggestion_is_verified_and_used(self, step_log, page, clock):
        calls = []
        client = MagicMock()
        client.suggest.return_value = suggestion("#checkout-btn", confidence=0.1)
        target = page.add("#checkout-btn", FakeElement(tag="button"))
        resolver = ElementResolver(step_log, client, direct_retry(calls), clock=clock)

        resolution = resolver.locate(page, "Checkout now", "checkout button", original_step="Click checkout")

        assert resolution.handle is target
        assert resolution.stage == ResolutionStage.AI_SUGGESTION
        assert calls == [(3, 1000, "AI selector suggestion")]
        request = client.suggest.call_args[0][0]
        assert isinstance(request, SuggestionRequest)
        assert request.failed_selector == "Checkout now"
        assert request.page_url == page.url
        assert request.original_step == "Click checkout"
        assert request.dom_snippet.startswith("Title:")

    def test_alternative_selector_is_tried(self, step_log, page, clock):
        client = MagicMock()
        client.suggest.return_value = suggestion("#missing", alternatives=["[data-test=pay]"])
        target = page.add("[data-test=pay]", FakeElement(tag="button"))
        resolver = ElementResolver(step_log, client, direct_retry([]), clock=clock)

        resolution = resolver.locate(page, "Pay now", "pay")

        assert resolution.handle is target
        assert resolution.strategy == "ai-alternative"

    def test_failure_is_logged_and_cascade_continues(self, step_log, page, clock):
        client = MagicMock()
        client.suggest.side_effect = AIAssistanceError("service unavailable")
        target = page.add('[data-testid="Checkout now"]', FakeElement(tag="button"), appears_after=4.0)
        resolver = ElementResolver(step_log, client, direct_retry([]), clock=clock)

        resolution = resolver.locate(page, "Checkout now", "checkout")

        assert resolution.handle is target
        assert resolution.stage == ResolutionStage.FALLBACK
        assert any("service unavailable" in line for line in step_log.lines())

    def test_unsuccessful_response_continues(self, step_log, page, clock):
        client = MagicMock()
        client.suggest.return_value = SuggestionResponse(success=False, error="no match")
        resolver = ElementResolver(step_log, client, direct_retry([]), clock=clock)

        assert resolver.resolve(page, "Ghost", "ghost") is None
        assert any("no match" in line for line in step_log.lines())

    def test_unexpected_client_error_does_not_escape(self, step_log, page, clock):
        client = MagicMock()
        client.suggest.side_effect = RuntimeError("boom")
        resolver = ElementResolver(step_log, client, direct_retry([]), clock=clock)

        assert resolver.resolve(page, "Ghost", "ghost") is None

    def test_slow_service_cannot_stretch_the_budget(self, step_log, page, clock):
        timeouts = []

        def slow_suggest(request, timeout_s=None):
            timeouts.append(timeout_s)
            clock.advance(min(timeout_s, 30))
            raise AIAssistanceError("read timed out")

        client = MagicMock()
        client.suggest.side_effect = slow_suggest
        resolver = ElementResolver(step_log, client, clock_retry(clock), clock=clock)
        start = clock()

        assert resolver.resolve(page, "Checkout now", "checkout") is None

        assert len(timeouts) == 1
        assert 0 < timeouts[0] <= resolver.budget_s
        assert clock() - start <= resolver.budget_s + 1e-6
        assert any("spent waiting for an AI suggestion" in line for line in step_log.lines())

    def test_failed_attempt_is_retried_while_budget_remains(self, step_log, page, clock):
        client = MagicMock()
        client.suggest.side_effect = [AIAssistanceError("502"), suggestion("#checkout-btn")]
        target = page.add("#checkout-btn", FakeElement(tag="button"))
        resolver = ElementResolver(step_log, client, clock_retry(clock), clock=clock)

        assert resolver.resolve(page, "Checkout now", "checkout") is target
        first, second = [c.kwargs["timeout_s"] for c in client.suggest.call_args_list]
        assert second < first <= resolver.budget_s

    def test_skipped_when_budget_is_spent(self, step_log, page, clock):
        client = MagicMock()
        resolver = ElementResolver(step_log, client, clock_retry(clock), clock=clock, budget_s=1.0)

        resolver.resolve(page, "Ghost", "ghost")

        client.suggest.assert_not_called()
        assert any("budget spent; skipping AI" in line for line in step_log.lines())

    def test_skipped_when_fallbacks_disabled(self, step_log, page, clock):
        client = MagicMock()
        resolver = ElementResolver(step_log, client, direct_retry([]), clock=clock)
        resolver.resolve(page, "Ghost", "ghost", disable_fallbacks=True)
        client.suggest.assert_not_called()

    def test_skipped_for_non_interactive_runner(self, step_log, page, clock, monkeypatch):
        monkeypatch.setenv("RUNNER_NON_INTERACTIVE", "1")
        client = MagicMock()
        resolver = ElementResolver(step_log, client, direct_retry([]), clock=clock)
        resolver.resolve(page, "Ghost", "ghost")
        client.suggest.assert_not_called()


class TestLateStages:
    def test_login_scan(self, resolver, page):
        scanned = FakeElement(tag="button", text="Log in")
        page.login_scan_result = scanned

        resolution = resolver.locate(page, "Log in", "Log in")

        assert resolution.handle is scanned
        assert resolution.stage == ResolutionStage.DYNAMIC_SCAN

    def test_interactive_capture_runs_after_budget(self, step_log, page, clock):
        capture = MagicMock(return_value="#picked")
        resolver = ElementResolver(step_log, interactive_capture=capture, clock=clock)
        picked = page.add("#picked", FakeElement())

        resolution = resolver.locate(page, "Mystery", "mystery element", page=page)

        assert resolution.handle is picked
        assert resolution.stage == ResolutionStage.INTERACTIVE
        capture.assert_called_once_with(page, 'Please click the element for "mystery element"')

    def test_interactive_capture_without_selector(self, step_log, page, clock):
        capture = MagicMock(return_value=None)
        resolver = ElementResolver(step_log, interactive_capture=capture, clock=clock)
        assert resolver.resolve(page, "Mystery", "mystery", page=page) is None

    def test_submit_shortcut_after_form_submission(self, resolver, page):
        body = page.add("body", FakeElement(tag="body"))

        resolution = resolver.locate(page, "Submit", "Submit button",
                                     disable_fallbacks=True, page_state=PageState(form_submitted=True))

        assert resolution.handle is body
        assert resolution.stage == ResolutionStage.SUBMIT_SHORTCUT

    def test_exact_only_skips_every_stand_in_stage(self, step_log, page, clock):
        capture = MagicMock(return_value="body")
        resolver = ElementResolver(step_log, interactive_capture=capture, clock=clock)
        page.add("body", FakeElement(tag="body"))
        page.login_scan_result = FakeElement(tag="button", text="Log in")

        result = resolver.resolve(page, "Log in", "Log in", page=page,
                                  page_state=PageState(form_submitted=True), exact_only=True)

        assert result is None
        capture.assert_not_called()
        assert any("Exact lookup only" in line for line in step_log.lines())

    def test_no_submit_shortcut_without_submission(self, resolver, page):
        page.add("body", FakeElement(tag="body"))
        assert resolver.resolve(page, "Submit", "Submit button", disable_fallbacks=True,
                                page_state=PageState()) is None
