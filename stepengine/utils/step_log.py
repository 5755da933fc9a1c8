# /stepengine/utils/step_log.py
import json
import logging
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger("stepengine.steps")

# add_log(message, data=None): the diagnostics callback threaded through every stage
AddLog = Callable[..., None]


class StepLog:
    """
    Collects the diagnostic lines emitted while running steps and mirrors them to logging.
    Instances are passed wherever an `add_log` callback is expected.
    """

    def __init__(self, prefix: str = ""):
        self.prefix = prefix
        self.entries: List[Tuple[str, Any]] = []

    def __call__(self, message: str, data: Any = None) -> None:
        line = f"{self.prefix}{message}"
        self.entries.append((line, data))
        if data is None:
            logger.info(line)
        else:
            logger.info(f"{line} {_render(data)}")

    def lines(self) -> List[str]:
        return [line if data is None else f"{line} {_render(data)}" for line, data in self.entries]


def _render(data: Any) -> str:
    if isinstance(data, str):
        return data
    try:
        return json.dumps(data, default=str)
    except (TypeError, ValueError):
        return repr(data)


def null_log(message: str, data: Optional[Any] = None) -> None:
    """add_log that only forwards to the debug logger."""
    logger.debug(message if data is None else f"{message} {_render(data)}")
