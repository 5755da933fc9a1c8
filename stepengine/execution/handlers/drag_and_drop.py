# /stepengine/execution/handlers/drag_and_drop.py
import logging

from playwright.sync_api import Error as PlaywrightError

from ...browser import page_scripts
from ...core.errors import ElementNotFoundError
from ...core.models import ParsedTestStep
from ..context import StepContext, require

logger = logging.getLogger(__name__)

IFRAME_SETTLE_S = 3.0
DRAG_DELAY_S = 0.2
DROP_DELAY_S = 0.2
MOVE_STEPS = 20


def _center(box):
    return box["x"] + box["width"] / 2, box["y"] + box["height"] / 2


def _simulate_mouse_drag(ctx: StepContext, source_box, target_box) -> None:
    """Drags with real mouse events; bounding boxes are relative to the main viewport, so page.mouse works in iframes too."""
    sx, sy = _center(source_box)
    tx, ty = _center(target_box)
    mouse = ctx.page.mouse
    mouse.move(sx, sy, steps=5)
    mouse.down()
    ctx.sleep(DRAG_DELAY_S)
    mouse.move(tx, ty, steps=MOVE_STEPS)
    ctx.sleep(DROP_DELAY_S)
    mouse.up()
    # Small wiggle so drop targets that track dragover register the drop
    mouse.move(tx + 2, ty + 2, steps=2)
    mouse.move(tx, ty, steps=2)


def handle_drag_and_drop(ctx: StepContext, step: ParsedTestStep) -> None:
    source_target = require(step.target, "Source selector not provided")
    destination_target = require(step.destination_target or step.value, "Destination selector not provided")

    if ctx.in_iframe:
        ctx.add_log(f"[DragAndDrop] Currently in an iframe. Pausing {IFRAME_SETTLE_S}s for content to load.")
        ctx.sleep(IFRAME_SETTLE_S)

    source = ctx.find(source_target, step.original_step, descriptive_term=f"source element ({source_target})")
    if source is None:
        raise ElementNotFoundError(source_target, "drag source")
    try:
        destination = ctx.find(destination_target, step.original_step,
                               descriptive_term=f"destination element ({destination_target})")
        if destination is None:
            raise ElementNotFoundError(destination_target, "drop destination")
        try:
            source_box = source.bounding_box()
            destination_box = destination.bounding_box()
            if source_box and destination_box:
                ctx.add_log("[DragAndDrop] Element positions:", {"source": source_box, "destination": destination_box})
                _simulate_mouse_drag(ctx, source_box, destination_box)
                ctx.add_log("[DragAndDrop] Mouse drag completed.")
            else:
                ctx.add_log("[DragAndDrop] Bounding boxes unavailable, dispatching HTML5 drag events instead.")
                page_scripts.html5_drag_and_drop(ctx.frame, source, destination)
                ctx.add_log("[DragAndDrop] HTML5 drag events dispatched.")
        except PlaywrightError as e:
            logger.warning(f"Mouse drag failed, falling back to HTML5 drag events: {e}")
            ctx.add_log(f"[DragAndDrop] Mouse drag failed ({e}); dispatching HTML5 drag events.")
            page_scripts.html5_drag_and_drop(ctx.frame, source, destination)
        finally:
            destination.dispose()
    finally:
        source.dispose()
