# /stepengine/execution/handlers/hover.py
from ...core.errors import ElementNotFoundError
from ...core.models import ParsedTestStep
from ..context import StepContext, require


def handle_hover(ctx: StepContext, step: ParsedTestStep) -> None:
    target = require(step.target, "Hover selector not provided")
    ctx.add_log(f"Attempting to hover over element identified by \"{target}\"")
    element = ctx.find(target, step.original_step, step.index)
    if element is None:
        raise ElementNotFoundError(target, step.original_step)
    try:
        element.hover()
    finally:
        element.dispose()
    ctx.add_log(f"Successfully hovered over element \"{target}\"")
