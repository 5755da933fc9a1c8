# /stepengine/execution/handlers/scroll.py
from playwright.sync_api import Error as PlaywrightError

from ...browser import page_scripts
from ...core.models import ParsedTestStep
from ..context import StepContext

SCROLL_SETTLE_S = 0.5


def handle_scroll(ctx: StepContext, step: ParsedTestStep) -> None:
    """Scrolls a target into view; without a target, or when it cannot be found, scrolls half a viewport."""
    if not step.target:
        ctx.add_log("No scroll target specified, scrolling current context window down by a bit.")
        page_scripts.scroll_half_viewport(ctx.frame)
        return

    ctx.add_log(f"Attempting to scroll with target: \"{step.target}\" in current context")
    element = None
    try:
        element = ctx.find(step.target, step.original_step, step.index)
        if element is None:
            ctx.add_log("Scroll target element not found, attempting generic page scroll as fallback.")
            page_scripts.scroll_half_viewport(ctx.frame)
            return
        page_scripts.scroll_into_view(element)
        ctx.sleep(SCROLL_SETTLE_S)
        ctx.add_log("Successfully scrolled to element.")
    except PlaywrightError as e:
        ctx.add_log(f"Error scrolling to target \"{step.target}\": {e}. Attempting generic page scroll.")
        page_scripts.scroll_half_viewport(ctx.frame)
    finally:
        if element is not None:
            element.dispose()
