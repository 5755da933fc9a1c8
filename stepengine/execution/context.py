# /stepengine/execution/context.py
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from ..core.errors import StepExecutionError
from ..core.models import ElementContext, PageState
from ..resolver.element_resolver import ElementResolver
from ..utils.step_log import AddLog, null_log
from .heuristics import SiteHeuristics


@dataclass
class StepContext:
    """
    Everything a handler needs for one step. `frame` is the current frame context and is
    replaced by the iframe handlers; the rest is borrowed from the step sequencer.
    """
    page: Any
    frame: Any
    resolver: ElementResolver
    add_log: AddLog = null_log
    page_state: PageState = field(default_factory=PageState)
    heuristics: SiteHeuristics = field(default_factory=SiteHeuristics)
    expected_result: Optional[str] = None
    disable_fallbacks: bool = False
    sleep: Callable[[float], None] = time.sleep

    @property
    def in_iframe(self) -> bool:
        return self.frame is not self.page

    def find(self, target: str, original_step: str = "", index: int = 0,
             descriptive_term: Optional[str] = None, disable_fallbacks: Optional[bool] = None,
             previous_attempts: Optional[List[str]] = None, exact_only: bool = False):
        """Resolves `target` in the current frame. Returns an owned handle or None."""
        element_context = ElementContext(
            selector=target,
            descriptive_term=descriptive_term or target,
            original_step=original_step,
            previous_attempts=list(previous_attempts or []),
            index=index,
        )
        return self.resolver.resolve_context(
            self.frame,
            element_context,
            disable_fallbacks=self.disable_fallbacks if disable_fallbacks is None else disable_fallbacks,
            page=self.page,
            page_state=self.page_state,
            exact_only=exact_only,
        )


def require(value: Optional[str], message: str) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise StepExecutionError(message)
    return value
