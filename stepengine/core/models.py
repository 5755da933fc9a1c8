# /stepengine/core/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ActionKind(str, Enum):
    """Every action a parsed step can carry. The dispatch table must cover all of them."""
    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    WAIT = "wait"
    SELECT = "select"
    SCROLL = "scroll"
    HOVER = "hover"
    UPLOAD = "upload"
    DRAG_AND_DROP = "dragAndDrop"
    SWITCH_TO_IFRAME = "switchToIframe"
    SWITCH_TO_MAIN_CONTENT = "switchToMainContent"
    ASSERT = "assert"
    SKIP = "skip"


class _StepModel(BaseModel):
    # Steps arrive from the parser in camelCase; snake_case works too.
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class AssertionDetails(_StepModel):
    type: str
    selector: Optional[str] = None
    expected_text: Optional[str] = Field(None, alias="expectedText")
    condition: Optional[Literal["equals", "contains", "isVisible"]] = None


class DialogExpectation(_StepModel):
    type: Literal["alert", "confirm", "prompt"] = "alert"
    action: Literal["accept", "dismiss"] = "accept"
    prompt_text: Optional[str] = Field(None, alias="promptText")


class ParsedTestStep(_StepModel):
    """One parsed step. Created by the step parser, never mutated by the engine."""
    action: ActionKind
    target: Optional[str] = None
    value: Optional[str] = None
    timeout: Optional[int] = None  # milliseconds
    file_path: Optional[str] = Field(None, alias="filePath")
    destination_target: Optional[str] = Field(None, alias="destinationTarget")
    assertion: Optional[AssertionDetails] = None
    # Legacy flat assertion fields
    assertion_type: Optional[str] = Field(None, alias="assertionType")
    expected_text: Optional[str] = Field(None, alias="expectedText")
    original_step: str = Field("", alias="originalStep")
    index: int = 0
    expects_dialog: Optional[DialogExpectation] = Field(None, alias="expectsDialog")

    @field_validator("action", mode="before")
    @classmethod
    def _accept_assertion_alias(cls, value):
        # Older step files spell the assert action "assertion"
        if isinstance(value, str) and value.lower() == "assertion":
            return ActionKind.ASSERT
        return value


class SelectorSuggestion(BaseModel):
    """Schema for an AI-suggested replacement selector. Always re-verified before use."""
    model_config = ConfigDict(populate_by_name=True)

    suggested_selector: str = Field(..., alias="suggestedSelector", description="The best CSS or XPath selector for the intended element.")
    suggested_strategy: Literal["css", "xpath"] = Field("css", alias="suggestedStrategy", description="Whether suggested_selector is CSS or XPath.")
    confidence: Optional[float] = Field(None, description="Confidence between 0 and 1.")
    reasoning: Optional[str] = Field(None, description="Why this element was chosen.")
    alternative_selectors: List[str] = Field(default_factory=list, alias="alternativeSelectors", description="Other selectors worth trying, most likely first.")


class SuggestionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    failed_selector: str = Field(..., alias="failedSelector")
    descriptive_term: str = Field("", alias="descriptiveTerm")
    page_url: str = Field("", alias="pageUrl")
    dom_snippet: str = Field("", alias="domSnippet")
    original_step: str = Field("", alias="originalStep")


class SuggestionResponse(BaseModel):
    success: bool = False
    data: Optional[SelectorSuggestion] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class FallbackStrategy:
    type: str
    selector: str
    method: Literal["css", "xpath"] = "css"


@dataclass
class ElementContext:
    selector: str
    descriptive_term: str
    original_step: str = ""
    previous_attempts: List[str] = field(default_factory=list)
    index: int = 0


@dataclass
class PageState:
    """State scoped to one browser page, owned by the step sequencer and passed by reference."""
    form_submitted: bool = False


class ResolutionStage(str, Enum):
    SMART_WAIT = "smart_wait"
    IMMEDIATE = "immediate"
    AI_SUGGESTION = "ai_suggestion"
    FALLBACK = "fallback"
    DYNAMIC_SCAN = "dynamic_scan"
    INTERACTIVE = "interactive"
    SUBMIT_SHORTCUT = "submit_shortcut"


@dataclass
class Resolution:
    handle: Any  # playwright ElementHandle, owned by the caller
    stage: ResolutionStage
    selector: str
    strategy: Optional[str] = None


class TestCase(BaseModel):
    """A runnable file of parsed steps."""
    __test__ = False  # not a pytest test class

    model_config = ConfigDict(populate_by_name=True)

    test_name: str = Field("Unnamed Test", alias="testName")
    expected_result: Optional[str] = Field(None, alias="expectedResult")
    steps: List[ParsedTestStep]
