# /stepengine/execution/handlers/type_text.py
import logging

from playwright.sync_api import Error as PlaywrightError

from ...browser import page_scripts
from ...core.errors import ElementNotFoundError, StepExecutionError
from ...core.models import ParsedTestStep
from ..context import StepContext, require

logger = logging.getLogger(__name__)

SEARCH_INPUT_DELAY_S = 0.75


def _looks_like_search_input(attrs: dict) -> bool:
    tag = attrs.get("tag")
    name = attrs.get("name") or ""
    if tag == "input":
        return "q" in name or attrs.get("type") == "search" or "search" in (attrs.get("placeholder") or "").lower()
    return tag == "textarea" and "q" in name


def handle_type(ctx: StepContext, step: ParsedTestStep) -> None:
    target = require(step.target, "Type selector not provided")
    if step.value is None:
        raise StepExecutionError("Text to type not provided")
    ctx.add_log(f"Attempting to type \"{step.value}\" into element identified by: \"{target}\"")

    element = ctx.find(target, step.original_step, step.index)
    if element is None:
        raise ElementNotFoundError(target, step.original_step)
    try:
        if _looks_like_search_input(page_scripts.element_attributes(element)):
            ctx.add_log("Common search input detected, adding small delay for page stability...")
            ctx.sleep(SEARCH_INPUT_DELAY_S)
        try:
            element.fill(step.value)
        except PlaywrightError as e:
            # Content-editable widgets and some masked inputs reject fill()
            logger.warning(f"Fill failed for '{target}', falling back to typing: {e}")
            element.click()
            page_scripts.clear_value(element)
            element.type(step.value, delay=20)
    finally:
        element.dispose()
    ctx.add_log(f"Successfully typed \"{step.value}\" into element identified by \"{target}\"")
