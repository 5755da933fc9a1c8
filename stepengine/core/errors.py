# /stepengine/core/errors.py


class StepExecutionError(Exception):
    """Base class for failures surfaced to the test report. Messages are self-contained."""


class ElementNotFoundError(StepExecutionError):
    """The resolver exhausted every stage without locating the target."""

    def __init__(self, selector: str, descriptive_term: str = "", detail: str = ""):
        self.selector = selector
        self.descriptive_term = descriptive_term
        message = f"Element not found for selector: '{selector}'"
        if descriptive_term and descriptive_term != selector:
            message += f" ({descriptive_term})"
        if detail:
            message += f". {detail}"
        super().__init__(message)


class AssertionFailedError(StepExecutionError):
    """An assertion compared actual vs expected and they did not match."""

    def __init__(self, message: str, assertion_type: str = "", selector: str | None = None,
                 actual=None, expected=None):
        self.assertion_type = assertion_type
        self.selector = selector
        self.actual = actual
        self.expected = expected
        super().__init__(message)


class TimeoutExceededError(StepExecutionError):
    """A stage wait or the overall resolution budget elapsed."""


class AIAssistanceError(StepExecutionError):
    """The selector suggestion call failed or returned nothing usable. Never fatal."""


class NavigationError(StepExecutionError):
    """A post-click settle step could not confirm the expected downstream state."""
