# /stepengine/execution/handlers/iframe.py
import logging
from typing import Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ...browser import page_scripts
from ...core.errors import ElementNotFoundError
from ...core.models import ParsedTestStep
from ...resolver.element_resolver import to_playwright_selector
from ...resolver.hint_parser import parse_selector_hint
from ..context import StepContext, require

logger = logging.getLogger(__name__)

IFRAME_BODY_WAIT_MS = 5000
FALLBACK_IFRAME_SELECTORS = [
    'iframe.demo-frame',
    'iframe[class*="demo"]',
    'iframe[src*="photo"]',
    'iframe[src*="gallery"]',
    'iframe[src*="drag"]',
    'iframe:not([src*="google"]):not([src*="ad"])',
]
AD_SRC_MARKERS = ("google", "ad", "doubleclick")


def _query(ctx: StepContext, selector: str, method: Optional[str] = None):
    try:
        return ctx.page.query_selector(to_playwright_selector(selector, method))
    except PlaywrightError as e:
        logger.debug(f"Iframe selector '{selector}' failed: {e}")
        return None


def _largest_iframe(ctx: StepContext):
    """The largest iframe by area whose src does not look like an ad."""
    best, best_area = None, 0.0
    for iframe in ctx.page.query_selector_all("iframe"):
        try:
            src = page_scripts.iframe_src(iframe)
            box = iframe.bounding_box()
        except PlaywrightError:
            box, src = None, ""
        area = box["width"] * box["height"] if box else 0.0
        if any(marker in src for marker in AD_SRC_MARKERS) or area <= best_area:
            iframe.dispose()
            continue
        if best is not None:
            best.dispose()
        best, best_area = iframe, area
    if best is not None:
        ctx.add_log(f"[SwitchToIframe] Using largest iframe (area: {best_area:.0f})")
    return best


def _locate_iframe(ctx: StepContext, target: str):
    hint = parse_selector_hint(target)
    selector = hint.value or hint.remainder
    ctx.add_log(f"[SwitchToIframe] Trying {hint.type or 'auto'} selector: {selector}")
    element = _query(ctx, selector, hint.type)
    if element is not None:
        return element

    ctx.add_log("[SwitchToIframe] Primary selector failed, trying fallbacks...")
    for fallback in FALLBACK_IFRAME_SELECTORS:
        element = _query(ctx, fallback, "css")
        if element is not None:
            ctx.add_log(f"[SwitchToIframe] Found iframe using fallback: {fallback}")
            return element

    ctx.add_log("[SwitchToIframe] All selectors failed, finding largest visible iframe...")
    return _largest_iframe(ctx)


def handle_switch_to_iframe(ctx: StepContext, step: ParsedTestStep) -> None:
    target = require(step.target, "Iframe selector not provided for switching")
    ctx.add_log(f"[SwitchToIframe] Looking for iframe: \"{target}\"")

    element = _locate_iframe(ctx, target)
    if element is None:
        raise ElementNotFoundError(target, "iframe", "No suitable iframe found")
    try:
        frame = element.content_frame()
        if frame is None:
            raise ElementNotFoundError(target, "iframe", "Could not access iframe content")
        try:
            body = frame.wait_for_selector("body", timeout=IFRAME_BODY_WAIT_MS)
            if body is not None:
                body.dispose()
        except PlaywrightTimeoutError:
            ctx.add_log("[SwitchToIframe] Content may still be loading, continuing...")
        src = page_scripts.iframe_src(element)
    finally:
        element.dispose()

    ctx.frame = frame
    ctx.add_log(f"[SwitchToIframe] Switched to iframe (src: {src[:100]})")


def handle_switch_to_main_content(ctx: StepContext, step: ParsedTestStep) -> None:
    ctx.frame = ctx.page
    ctx.add_log("[SwitchToMainContent] Switched back to the main page.")
