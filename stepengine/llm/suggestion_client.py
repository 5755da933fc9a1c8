# /stepengine/llm/suggestion_client.py
import logging
from typing import List, Optional, Protocol

import requests
from pydantic import BaseModel, Field, ValidationError

from ..core.errors import AIAssistanceError
from ..core.models import SelectorSuggestion, SuggestionRequest, SuggestionResponse
from ..utils.utils import load_suggestion_api_token, load_suggestion_api_url
from .llm_client import LLMClient

logger = logging.getLogger(__name__)

SUGGEST_SELECTOR_PATH = "/ai/suggest-selector"
DEFAULT_REQUEST_TIMEOUT_S = 30


class SelectorSuggestionClient(Protocol):
    def suggest(self, request: SuggestionRequest, timeout_s: Optional[float] = None) -> SuggestionResponse:
        """`timeout_s` caps this one call; the resolver passes what is left of its budget."""
        ...


class HttpSuggestionClient:
    """Asks the selector suggestion service over HTTP. Failures raise AIAssistanceError so callers can retry."""

    def __init__(self, api_url: Optional[str] = None, api_token: Optional[str] = None,
                 timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S, session: Optional[requests.Session] = None):
        self.api_url = (api_url or load_suggestion_api_url()).rstrip("/")
        self.api_token = api_token if api_token is not None else load_suggestion_api_token()
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        logger.info(f"HttpSuggestionClient initialized for {self.api_url}")

    def suggest(self, request: SuggestionRequest, timeout_s: Optional[float] = None) -> SuggestionResponse:
        timeout = self.timeout_s if timeout_s is None else min(self.timeout_s, timeout_s)
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        url = f"{self.api_url}{SUGGEST_SELECTOR_PATH}"
        try:
            response = self.session.post(
                url,
                json=request.model_dump(by_alias=True),
                headers=headers,
                timeout=timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout as e:
            raise AIAssistanceError(f"Selector suggestion request timed out after {timeout:g}s: {e}") from e
        except requests.RequestException as e:
            raise AIAssistanceError(f"Selector suggestion request failed: {e}") from e
        except ValueError as e:
            raise AIAssistanceError(f"Selector suggestion response was not JSON: {e}") from e

        try:
            return SuggestionResponse.model_validate(payload)
        except ValidationError as e:
            raise AIAssistanceError(f"Selector suggestion response had an unexpected shape: {e}") from e


class LLMSelectorSuggestion(BaseModel):
    """Schema for the LLM's suggested selector. Plain field names keep provider schemas simple."""
    suggested_selector: Optional[str] = Field(None, description="The best CSS or XPath selector for the intended element, or null if none can be identified.")
    suggested_strategy: str = Field("css", description="'css' or 'xpath', matching suggested_selector.")
    confidence: Optional[float] = Field(None, description="Confidence between 0 and 1.")
    reasoning: str = Field(..., description="Explanation for the selector choice, or why no element could be identified.")
    alternative_selectors: List[str] = Field(default_factory=list, description="Up to three other selectors worth trying.")


class LLMSuggestionClient:
    """Asks an LLM directly for a replacement selector, given the failed selector and a DOM summary."""

    def __init__(self, llm_client: LLMClient):
        self.llm_client = llm_client

    def _build_prompt(self, request: SuggestionRequest) -> str:
        return f"""You are an AI Test Self-Healing Assistant. A step in an automated browser test could not locate its target element. Suggest a robust selector for the element the step intended.

**Failed Step Information:**
- Step Description: "{request.original_step or 'N/A'}"
- Descriptive Term: "{request.descriptive_term or 'N/A'}"
- Failed Selector: `{request.failed_selector}`

**Current Page State:**
- URL: {request.page_url}
- DOM summary (truncated):
```html
{request.dom_snippet}
```

**Your Task:**
1. Identify the element the step most likely intended, using the description and the DOM summary.
2. Suggest a **single, robust selector** built from native attributes (`id`, `name`, `data-testid`, `aria-label`, `placeholder`, visible text with a tag). Use XPath only when text matching is required.
3. Avoid dynamic classes and positional selectors unless nothing else is unique.
4. If you cannot identify the element, return `null` for `suggested_selector` and explain why.
"""

    def suggest(self, request: SuggestionRequest, timeout_s: Optional[float] = None) -> SuggestionResponse:
        logger.info("Requesting selector suggestion from LLM...")
        result = self.llm_client.generate_json(LLMSelectorSuggestion, self._build_prompt(request), timeout_s=timeout_s)

        if isinstance(result, str):
            raise AIAssistanceError(f"LLM selector suggestion failed: {result}")
        if isinstance(result, dict):
            try:
                result = LLMSelectorSuggestion.model_validate(result)
            except ValidationError as e:
                raise AIAssistanceError(f"LLM selector suggestion had an unexpected shape: {e}") from e
        if not isinstance(result, LLMSelectorSuggestion):
            raise AIAssistanceError(f"LLM selector suggestion returned {type(result).__name__}")

        if not result.suggested_selector:
            logger.info(f"LLM could not suggest a selector. Reasoning: {result.reasoning}")
            return SuggestionResponse(success=False, error=result.reasoning or "No selector suggested")

        strategy = "xpath" if result.suggested_strategy.lower() == "xpath" else "css"
        return SuggestionResponse(
            success=True,
            data=SelectorSuggestion(
                suggested_selector=result.suggested_selector,
                suggested_strategy=strategy,
                confidence=result.confidence,
                reasoning=result.reasoning,
                alternative_selectors=result.alternative_selectors,
            ),
        )
