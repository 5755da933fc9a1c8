# /stepengine/execution/handlers/assertion.py
"""
Typed assertions evaluated against the current page or a resolved element.

| type           | subject                 | default                    | condition="contains" |
|----------------|-------------------------|----------------------------|----------------------|
| url            | page URL                | exact                      | substring            |
| pageText       | body innerText          | substring, case-insensitive| same                 |
| elementText    | element textContent     | exact, trimmed, lowercased | substring            |
| elementValue   | element .value          | exact, trimmed, lowercased | substring            |
| elementVisible | visibility verifier     | visible unless "false"     | n/a                  |
| enabled/disabled | element .disabled     | boolean                    | n/a                  |
"""
import logging
from typing import Optional

from ...browser import page_scripts
from ...core.errors import AssertionFailedError, StepExecutionError
from ...core.models import ParsedTestStep
from ...resolver.visibility import VisibilityVerifier
from ..context import StepContext

logger = logging.getLogger(__name__)

ELEMENT_TYPES = {"elementText", "elementValue", "elementVisible", "visible", "present", "enabled", "disabled"}
VISIBILITY_TYPES = {"elementVisible", "visible", "present"}

_verifier = VisibilityVerifier()


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def compare_text(actual: Optional[str], expected: Optional[str], condition: Optional[str]) -> bool:
    """Trimmed, case-insensitive comparison; equality unless condition is 'contains'."""
    if condition == "contains":
        return _normalize(expected) in _normalize(actual)
    return _normalize(actual) == _normalize(expected)


def _fail(message: str, assertion_type: str, selector=None, actual=None, expected=None):
    raise AssertionFailedError(f"Assertion Failed: {message}", assertion_type, selector, actual, expected)


def _assert_url(ctx: StepContext, expected: Optional[str], condition: Optional[str]) -> None:
    if not expected:
        raise StepExecutionError("Expected text not provided for url assertion")
    actual = ctx.page.url
    if condition == "contains":
        if expected not in actual:
            _fail(f"URL \"{actual}\" does not contain \"{expected}\".", "url", None, actual, expected)
    elif actual != expected:
        _fail(f"URL is \"{actual}\", expected \"{expected}\".", "url", None, actual, expected)
    ctx.add_log(f"Assertion Passed: URL is \"{actual}\".")


def _assert_page_text(ctx: StepContext, expected: Optional[str]) -> None:
    if not _normalize(expected):
        raise StepExecutionError("Expected text not provided for pageText assertion")
    body_text = page_scripts.body_inner_text(ctx.page)
    if _normalize(expected) not in body_text.lower():
        _fail(f"Did not find text \"{expected}\" in page content.", "pageText", None, None, expected)
    ctx.add_log(f"Assertion Passed: Found text \"{expected}\" in page content.")


def _assert_visibility(ctx: StepContext, element, assertion_type: str, selector: str,
                       expected: Optional[str]) -> None:
    expect_hidden = _normalize(expected) == "false"
    visible = element is not None and _verifier.is_visible(element)
    if expect_hidden and visible:
        _fail(f"Element \"{selector}\" is visible, but expected to be hidden.", assertion_type, selector, True, False)
    if not expect_hidden and not visible:
        _fail(f"Element \"{selector}\" is not visible.", assertion_type, selector, False, True)
    ctx.add_log(f"Assertion Passed: Element \"{selector}\" visibility/presence is as expected.")


def _assert_element(ctx: StepContext, element, assertion_type: str, selector: str,
                    expected: Optional[str], condition: Optional[str]) -> None:
    if assertion_type == "elementText":
        actual = page_scripts.element_text(element)
        if not compare_text(actual, expected, condition):
            verb = "does not contain" if condition == "contains" else "is not"
            _fail(f"Element \"{selector}\" text \"{actual}\" {verb} \"{expected}\".", assertion_type, selector, actual, expected)
        ctx.add_log(f"Assertion Passed: Element text is \"{actual}\".")
    elif assertion_type == "elementValue":
        actual = page_scripts.element_value(element)
        if not compare_text(actual, expected, condition):
            verb = "does not contain" if condition == "contains" else "is not"
            _fail(f"Element \"{selector}\" value \"{actual}\" {verb} \"{expected}\".", assertion_type, selector, actual, expected)
        ctx.add_log(f"Assertion Passed: Element value is \"{actual}\".")
    elif assertion_type == "enabled":
        if page_scripts.is_disabled(element):
            _fail(f"Element \"{selector}\" is not enabled.", assertion_type, selector, "disabled", "enabled")
        ctx.add_log(f"Assertion Passed: Element \"{selector}\" is enabled.")
    elif assertion_type == "disabled":
        if not page_scripts.is_disabled(element):
            _fail(f"Element \"{selector}\" is not disabled.", assertion_type, selector, "enabled", "disabled")
        ctx.add_log(f"Assertion Passed: Element \"{selector}\" is disabled.")


def _assert_overall(ctx: StepContext, assertion_type: Optional[str], step: ParsedTestStep) -> None:
    expected = ctx.expected_result
    if expected:
        body_text = page_scripts.body_inner_text(ctx.page)
        if expected.lower() in body_text.lower():
            ctx.add_log(f"Assertion Passed (Overall): Found overall expected result \"{expected}\" in page content.")
            return
        raise AssertionFailedError(
            f"Assertion Failed (Overall): Did not find overall expected result \"{expected}\" in page content. "
            f"Also, specific assertion type \"{assertion_type}\" was not handled.",
            assertion_type or "", None, None, expected,
        )
    raise StepExecutionError(f"Unsupported or incomplete assertion type: {assertion_type} for step: {step.original_step}")


def handle_assertion(ctx: StepContext, step: ParsedTestStep) -> None:
    details = step.assertion
    assertion_type = (details.type if details else None) or step.assertion_type
    selector = (details.selector if details else None) or step.target
    expected = (details.expected_text if details else None) or step.expected_text
    condition = details.condition if details else None
    ctx.add_log(f"Starting assertion: Type=\"{assertion_type}\", Selector=\"{selector or 'N/A'}\", "
                f"Expected=\"{expected or 'N/A'}\", Condition=\"{condition or 'N/A'}\"")

    if assertion_type == "url":
        _assert_url(ctx, expected, condition)
        return
    if assertion_type == "pageText":
        _assert_page_text(ctx, expected)
        return
    if assertion_type not in ELEMENT_TYPES:
        _assert_overall(ctx, assertion_type, step)
        return
    if not selector:
        raise StepExecutionError(f"Selector not provided for assertion type: {assertion_type}")

    expect_hidden = assertion_type in VISIBILITY_TYPES and _normalize(expected) == "false"
    # Hidden elements never pass the fallback visibility gate; only the exact lookups apply
    element = ctx.find(selector, step.original_step, step.index, exact_only=expect_hidden)
    try:
        if assertion_type in VISIBILITY_TYPES:
            _assert_visibility(ctx, element, assertion_type, selector, expected)
            return
        if element is None:
            _fail(f"Element not found for selector: {selector}", assertion_type, selector, None, expected)
        _assert_element(ctx, element, assertion_type, selector, expected, condition)
    finally:
        if element is not None:
            element.dispose()
