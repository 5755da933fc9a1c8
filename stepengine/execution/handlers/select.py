# /stepengine/execution/handlers/select.py
import logging

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ...browser import page_scripts
from ...core.errors import ElementNotFoundError, StepExecutionError
from ...core.models import ParsedTestStep
from ..context import StepContext, require

logger = logging.getLogger(__name__)

DROPDOWN_OPEN_S = 0.5
OPTION_WAIT_MS = 2000


def option_selectors(value: str):
    """Looks for an option inside an opened custom dropdown, most specific first."""
    quoted = value.replace('"', '\\"')
    return [
        f'[data-value="{quoted}"]',
        f'[value="{quoted}"]',
        f'li:has-text("{quoted}")',
        f'div[role="option"]:has-text("{quoted}")',
        f'span:has-text("{quoted}")',
        f'div:has-text("{quoted}")',
        f'option:has-text("{quoted}")',
    ]


def _select_native(ctx: StepContext, element, value: str) -> None:
    try:
        element.select_option(value=value)
        ctx.add_log(f"Successfully selected value \"{value}\" in select dropdown")
        return
    except PlaywrightError as e:
        ctx.add_log(f"Direct select failed, trying click approach: {e}")
    element.click()
    ctx.sleep(DROPDOWN_OPEN_S)
    try:
        element.select_option(label=value)
    except PlaywrightError as e:
        raise StepExecutionError(f"Failed to select value \"{value}\": {e}") from e
    ctx.add_log(f"Successfully selected \"{value}\" using fallback approach")


def _select_custom(ctx: StepContext, element, value: str) -> None:
    ctx.add_log("Non-standard select element detected, using click-based selection")
    element.click()
    ctx.sleep(DROPDOWN_OPEN_S)
    for selector in option_selectors(value):
        try:
            option = ctx.frame.wait_for_selector(f"css={selector}", state="visible", timeout=OPTION_WAIT_MS)
        except PlaywrightTimeoutError:
            continue
        except PlaywrightError as e:
            logger.debug(f"Option lookup '{selector}' failed: {e}")
            continue
        if option is None:
            continue
        try:
            option.click()
        finally:
            option.dispose()
        ctx.add_log(f"Successfully clicked option \"{value}\" using selector: {selector}")
        return
    raise StepExecutionError(f"Could not find option \"{value}\" in custom dropdown")


def handle_select(ctx: StepContext, step: ParsedTestStep) -> None:
    target = require(step.target, "Select selector not provided")
    value = require(step.value, "Value not provided for select action")
    ctx.add_log(f"Attempting to select value \"{value}\" in dropdown identified by: \"{target}\"")

    element = ctx.find(target, step.original_step, step.index)
    if element is None:
        raise ElementNotFoundError(target, step.original_step)
    try:
        if page_scripts.tag_name(element) == "select":
            _select_native(ctx, element, value)
        else:
            _select_custom(ctx, element, value)
    finally:
        element.dispose()
