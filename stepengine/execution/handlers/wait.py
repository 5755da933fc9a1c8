# /stepengine/execution/handlers/wait.py
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ...core.models import ParsedTestStep
from ...resolver.element_resolver import to_playwright_selector
from ...resolver.hint_parser import parse_selector_hint
from ..context import StepContext

DEFAULT_SLEEP_MS = 3000
DEFAULT_SELECTOR_TIMEOUT_MS = 10000


def _as_milliseconds(value):
    if value is None:
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def handle_wait(ctx: StepContext, step: ParsedTestStep) -> None:
    target = (step.target or "").strip()
    numeric_target = _as_milliseconds(target) if target else None

    if not target or numeric_target is not None:
        candidates = (numeric_target, step.timeout, _as_milliseconds(step.value))
        wait_ms = next((ms for ms in candidates if ms is not None), DEFAULT_SLEEP_MS)
        ctx.add_log(f"Waiting for {wait_ms}ms")
        ctx.sleep(wait_ms / 1000)
        return

    timeout_ms = step.timeout or DEFAULT_SELECTOR_TIMEOUT_MS
    hint = parse_selector_hint(target)
    selector = to_playwright_selector(hint.value or hint.remainder, hint.type)
    ctx.add_log(f"[HandleWait] Waiting for selector: {selector} (timeout {timeout_ms}ms)")
    try:
        handle = ctx.frame.wait_for_selector(selector, timeout=timeout_ms)
        if handle is not None:
            handle.dispose()
        ctx.add_log("[HandleWait] Selector appeared.")
    except PlaywrightTimeoutError:
        ctx.add_log("[HandleWait] Timeout waiting for selector.")
