# /stepengine/execution/dispatch.py
from typing import Callable, Dict

from ..core.models import ActionKind, ParsedTestStep
from .context import StepContext
from .handlers.assertion import handle_assertion
from .handlers.click import handle_click
from .handlers.drag_and_drop import handle_drag_and_drop
from .handlers.hover import handle_hover
from .handlers.iframe import handle_switch_to_iframe, handle_switch_to_main_content
from .handlers.navigate import handle_navigate
from .handlers.scroll import handle_scroll
from .handlers.select import handle_select
from .handlers.skip import handle_skip
from .handlers.type_text import handle_type
from .handlers.upload import handle_upload
from .handlers.wait import handle_wait

ActionHandler = Callable[[StepContext, ParsedTestStep], None]

ACTION_HANDLERS: Dict[ActionKind, ActionHandler] = {
    ActionKind.NAVIGATE: handle_navigate,
    ActionKind.CLICK: handle_click,
    ActionKind.TYPE: handle_type,
    ActionKind.WAIT: handle_wait,
    ActionKind.SELECT: handle_select,
    ActionKind.SCROLL: handle_scroll,
    ActionKind.HOVER: handle_hover,
    ActionKind.UPLOAD: handle_upload,
    ActionKind.DRAG_AND_DROP: handle_drag_and_drop,
    ActionKind.SWITCH_TO_IFRAME: handle_switch_to_iframe,
    ActionKind.SWITCH_TO_MAIN_CONTENT: handle_switch_to_main_content,
    ActionKind.ASSERT: handle_assertion,
    ActionKind.SKIP: handle_skip,
}

_missing = set(ActionKind) - set(ACTION_HANDLERS)
if _missing:
    raise RuntimeError(f"No handler registered for action(s): {sorted(kind.value for kind in _missing)}")


def dispatch(ctx: StepContext, step: ParsedTestStep) -> None:
    ACTION_HANDLERS[step.action](ctx, step)
