# /stepengine/execution/handlers/click.py
import logging

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ...browser import page_scripts
from ...core.errors import ElementNotFoundError, NavigationError
from ...core.models import ParsedTestStep
from ...resolver.hint_parser import parse_selector_hint
from ..context import StepContext, require
from ..heuristics import SettleRule

logger = logging.getLogger(__name__)

NAVIGATION_WAIT_MS = 10000
REWRITE_NAVIGATION_MS = 10000
REWRITE_VERIFY_MS = 5000


def _dismiss_overlays(ctx: StepContext, target: str) -> None:
    selectors = ctx.heuristics.overlay_selectors(ctx.page.url, target)
    if not selectors:
        return
    # Overlays live on the main document even when the target is inside an iframe
    ctx.add_log(f"[Pre-Click] Attempting to dismiss {len(selectors)} known overlay(s) on the main page...")
    for selector in selectors:
        try:
            overlay = ctx.page.query_selector(selector)
            if overlay is None:
                continue
            try:
                ctx.add_log(f"[Pre-Click] Found overlay: \"{selector}\". Attempting to click.")
                overlay.click(delay=50)
            finally:
                overlay.dispose()
        except PlaywrightError as e:
            ctx.add_log(f"[Pre-Click] Error interacting with overlay \"{selector}\": {str(e).splitlines()[0]}")


def _is_form_submission(element) -> bool:
    """True for controls that submit a form: type=submit buttons/inputs, or untyped buttons inside a form."""
    try:
        attrs = page_scripts.element_attributes(element)
    except PlaywrightError:
        return False
    tag = attrs.get("tag")
    input_type = (attrs.get("type") or "").lower()
    if tag in ("button", "input") and input_type == "submit":
        return True
    return tag == "button" and input_type == "" and bool(attrs.get("inForm"))


def _click_with_js_fallback(ctx: StepContext, element, target: str) -> None:
    try:
        element.click()
    except PlaywrightError as click_error:
        ctx.add_log(f"Standard click failed for selector \"{target}\": {click_error}. Attempting JavaScript click fallback.")
        try:
            page_scripts.js_click(element)
        except PlaywrightError as js_error:
            ctx.add_log(f"JavaScript click fallback also failed: {js_error}")
            raise click_error
        ctx.add_log("JavaScript click fallback successful.")


def _state_reached(ctx: StepContext, rule: SettleRule, timeout_ms: int) -> bool:
    try:
        if rule.wait_selector:
            ctx.page.wait_for_selector(rule.wait_selector, timeout=timeout_ms)
        if rule.wait_url_contains:
            fragment = rule.wait_url_contains
            ctx.page.wait_for_url(lambda url: fragment in url, timeout=timeout_ms)
        return True
    except PlaywrightTimeoutError:
        return False


def _apply_settle_rule(ctx: StepContext, rule: SettleRule) -> None:
    ctx.add_log(f"[Post-Click] {rule.name}: waiting for downstream state...")
    if _state_reached(ctx, rule, rule.timeout_ms):
        ctx.add_log(f"[Post-Click] {rule.name}: expected state detected.")
        return

    next_url = rule.rewrite(ctx.page.url)
    if next_url is None:
        ctx.add_log(f"[Post-Click] {rule.name}: expected state not detected and no URL fallback applies.")
        return

    ctx.add_log(f"[Post-Click] {rule.name}: expected state not found. Navigating directly to {next_url}")
    try:
        ctx.page.goto(next_url, wait_until="domcontentloaded", timeout=REWRITE_NAVIGATION_MS)
    except PlaywrightError as e:
        raise NavigationError(f"{rule.name}: direct navigation to {next_url} failed: {e}") from e
    ctx.frame = ctx.page
    if not _state_reached(ctx, rule, REWRITE_VERIFY_MS):
        raise NavigationError(f"{rule.name}: expected state still absent after navigating to {next_url}")
    ctx.add_log(f"[Post-Click] {rule.name}: expected state detected after direct navigation.")


def handle_click(ctx: StepContext, step: ParsedTestStep) -> None:
    target = require(step.target, "Click selector not provided")
    ctx.add_log(f"Attempting to click on element identified by: \"{target}\" at index: {step.index}")
    core_value = parse_selector_hint(target).value or target

    _dismiss_overlays(ctx, target)

    element = ctx.find(target, step.original_step, step.index)
    if element is None:
        raise ElementNotFoundError(target, step.original_step)

    submitted = False
    try:
        ctx.add_log("Scrolling element into view before clicking.")
        page_scripts.scroll_into_view(element)
        submitted = _is_form_submission(element)
        click_failures = []
        # The navigation listener must be armed before the click
        try:
            with ctx.page.expect_navigation(wait_until="domcontentloaded", timeout=NAVIGATION_WAIT_MS):
                try:
                    _click_with_js_fallback(ctx, element, target)
                except PlaywrightError as e:
                    click_failures.append(e)
                    raise
        except PlaywrightTimeoutError:
            if click_failures:
                raise
            logger.debug("No navigation followed the click.")
    finally:
        element.dispose()
    ctx.add_log("Click successful (navigation awaited if triggered).")

    if submitted:
        ctx.page_state.form_submitted = True

    for rule in ctx.heuristics.settle_rules(ctx.page.url, core_value):
        _apply_settle_rule(ctx, rule)
