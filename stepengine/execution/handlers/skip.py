# /stepengine/execution/handlers/skip.py
from ...core.models import ParsedTestStep
from ..context import StepContext


def handle_skip(ctx: StepContext, step: ParsedTestStep) -> None:
    reason = step.value or step.original_step
    ctx.add_log(f"[Skip] Step intentionally skipped{f': {reason}' if reason else ''}")
