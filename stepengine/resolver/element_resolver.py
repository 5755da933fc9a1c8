# /stepengine/resolver/element_resolver.py
import logging
import re
import time
from typing import Any, Callable, List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..browser import page_scripts
from ..core.errors import AIAssistanceError, TimeoutExceededError
from ..core.models import ElementContext, PageState, Resolution, ResolutionStage, SuggestionRequest
from ..utils.retry import retry_api_call
from ..utils.step_log import AddLog, null_log
from ..utils.utils import is_non_interactive_runner
from .dom_snippet import capture_dom_snippet
from .hint_parser import parse_selector_hint
from .strategies import generate_fallback_strategies, looks_like_xpath
from .visibility import VisibilityVerifier

logger = logging.getLogger(__name__)

RESOLUTION_BUDGET_S = 20.0
SMART_WAIT_STRATEGIES = 15
SMART_WAIT_ATTEMPT_MS = 200
SMART_WAIT_CAP_S = 3.0
AI_SUGGESTION_WAIT_MS = 5000
AI_RETRY_ATTEMPTS = 3
AI_RETRY_BASE_DELAY_MS = 1000
TEXT_STRATEGY_WAIT_MS = 5000
ATTRIBUTE_STRATEGY_WAIT_MS = 2000
CAPTURED_SELECTOR_WAIT_MS = 5000

LOGIN_INTENT = re.compile(r"(login|log in|sign in)", re.IGNORECASE)
SUBMIT_INTENT = re.compile(r"(submit|sign in|log in|login)", re.IGNORECASE)

# interactive_capture(page, prompt) -> selector synthesized from the operator's click, or None
InteractiveCapture = Callable[[Any, str], Optional[str]]


def to_playwright_selector(selector: str, method: Optional[str] = None) -> str:
    """Prefixes a raw selector with the Playwright engine name so CSS and XPath are never confused."""
    selector = selector.strip()
    if selector.startswith(("css=", "xpath=")):
        return selector
    if method is None:
        method = "xpath" if looks_like_xpath(selector) else "css"
    if method == "xpath":
        if not selector.startswith(("/", "(", ".")):
            selector = f"//{selector}"
        return f"xpath={selector}"
    return f"css={selector}"


class ElementResolver:
    """
    Locates a DOM element through a bounded cascade of increasingly expensive stages:
    smart-wait pre-pass, immediate lookup, AI suggestion, fallback strategies, a login
    DOM scan, interactive capture and finally the submitted-form shortcut.

    A miss is not an error: `resolve` returns None and the calling handler decides.
    Every returned handle is owned by the caller, who must dispose it.
    """

    def __init__(self,
                 add_log: AddLog = null_log,
                 suggestion_client=None,
                 retry_fn: Callable = retry_api_call,
                 interactive_capture: Optional[InteractiveCapture] = None,
                 clock: Callable[[], float] = time.monotonic,
                 budget_s: float = RESOLUTION_BUDGET_S,
                 verifier: Optional[VisibilityVerifier] = None):
        self.add_log = add_log
        self.suggestion_client = suggestion_client
        self.retry_fn = retry_fn
        self.interactive_capture = interactive_capture
        self.clock = clock
        self.budget_s = budget_s
        self.verifier = verifier or VisibilityVerifier()
        logger.info(f"ElementResolver initialized (AI assistance: {'on' if suggestion_client else 'off'}, "
                    f"interactive capture: {'on' if interactive_capture else 'off'}).")

    def resolve(self, frame, selector_or_text: str, descriptive_term: str, original_step: str = "",
                disable_fallbacks: bool = False, index: int = 0, page=None,
                page_state: Optional[PageState] = None, exact_only: bool = False):
        """
        Returns an owned ElementHandle for the target, or None if every stage missed.

        With `exact_only` only the smart-wait and immediate lookups run: no AI, fallback
        cascade, login scan, operator capture or submitted-form `body` stand-in.
        """
        resolution = self.locate(frame, selector_or_text, descriptive_term, original_step,
                                 disable_fallbacks, index, page, page_state, exact_only)
        return resolution.handle if resolution else None

    def resolve_context(self, frame, context: ElementContext, disable_fallbacks: bool = False, page=None,
                        page_state: Optional[PageState] = None, exact_only: bool = False):
        """Resolves an ElementContext, logging the selectors already tried for this target."""
        if context.previous_attempts:
            self.add_log("[Resolver] Previous attempts:", context.previous_attempts)
        return self.resolve(frame, context.selector, context.descriptive_term, context.original_step,
                            disable_fallbacks, context.index, page, page_state, exact_only)

    def locate(self, frame, selector_or_text: str, descriptive_term: str, original_step: str = "",
               disable_fallbacks: bool = False, index: int = 0, page=None,
               page_state: Optional[PageState] = None, exact_only: bool = False) -> Optional[Resolution]:
        """
        Same as `resolve` but reports which stage and strategy produced the handle.

        Raises:
            ValueError: If no frame context is given.
        """
        if frame is None:
            raise ValueError("ElementResolver.locate requires a frame context.")
        if not selector_or_text or not selector_or_text.strip():
            self.add_log("[Resolver] No selector provided")
            return None

        start = self.clock()
        self.add_log(f"[Resolver] Looking for: \"{selector_or_text}\" ({descriptive_term}) at index: {index}")

        hint = parse_selector_hint(selector_or_text)
        primary = (hint.value or hint.remainder or selector_or_text).strip()
        method = hint.type
        strategies = generate_fallback_strategies(primary)

        resolution = self._smart_wait(frame, strategies, index)
        if resolution:
            return resolution

        resolution = self._immediate(frame, primary, method, index)
        if resolution:
            return resolution

        if exact_only:
            self.add_log("[Resolver] Exact lookup only; no further stages.")
            return None

        if disable_fallbacks:
            self.add_log("[Resolver] Fallbacks disabled; skipping AI assistance and fallback strategies.")
        else:
            resolution = self._ai_recovery(frame, page, primary, descriptive_term, original_step, index, start)
            if resolution:
                return resolution
            resolution = self._cascade(frame, strategies, index, start)
            if resolution:
                return resolution

        resolution = self._login_scan(frame, primary)
        if resolution:
            return resolution

        resolution = self._interactive(frame, page, descriptive_term or primary)
        if resolution:
            return resolution

        resolution = self._submit_shortcut(frame, primary, descriptive_term, page_state)
        if resolution:
            return resolution

        elapsed = self.clock() - start
        self.add_log(f"[Resolver] Failed to find element after all attempts ({elapsed:.1f}s)")
        return None

    # --- stages ---

    def _smart_wait(self, frame, strategies, index: int) -> Optional[Resolution]:
        candidates = [s for s in strategies if not s.type.endswith("-original")][:SMART_WAIT_STRATEGIES]
        if not candidates:
            return None
        deadline = self.clock() + SMART_WAIT_CAP_S
        for strategy in candidates:
            remaining_ms = int((deadline - self.clock()) * 1000)
            if remaining_ms <= 0:
                logger.debug("Smart-wait pre-pass cap reached.")
                break
            handle = self._wait_for(frame, strategy.selector, strategy.method,
                                    min(SMART_WAIT_ATTEMPT_MS, remaining_ms), index)
            if handle is None:
                continue
            if self.verifier.is_visible(handle):
                self.add_log(f"[SmartWait] Found element via early wait ({strategy.type})")
                return Resolution(handle, ResolutionStage.SMART_WAIT, strategy.selector, strategy.type)
            handle.dispose()
        return None

    def _immediate(self, frame, selector: str, method: Optional[str], index: int) -> Optional[Resolution]:
        handle = self._query_now(frame, selector, method, index)
        if handle is None:
            return None
        self.add_log("[Resolver] Found element immediately")
        return Resolution(handle, ResolutionStage.IMMEDIATE, selector)

    def _ai_recovery(self, frame, page, primary: str, descriptive_term: str, original_step: str,
                     index: int, start: float) -> Optional[Resolution]:
        if self.suggestion_client is None:
            return None
        if is_non_interactive_runner():
            self.add_log("[AI] Non-interactive runner; AI assistance disabled.")
            return None
        if self._remaining_ms(start) <= 0:
            self.add_log("[AI] Resolution budget spent; skipping AI assistance.")
            return None

        self.add_log("[Resolver] Element not found immediately. Requesting AI assistance...")
        try:
            request = SuggestionRequest(
                failed_selector=primary,
                descriptive_term=descriptive_term,
                page_url=(page or frame).url,
                dom_snippet=capture_dom_snippet(frame, primary),
                original_step=original_step,
            )
            payload = request.model_dump_json(by_alias=True)
            self.add_log("[Resolver] AI Request Payload:", payload[:500] + ("... (truncated)" if len(payload) > 500 else ""))

            def _request_suggestion():
                # Each attempt, retries included, is capped by what is left of the budget
                remaining_s = self._remaining_ms(start) / 1000
                if remaining_s <= 0:
                    raise TimeoutExceededError(f"Resolution budget of {self.budget_s:g}s spent before an AI suggestion arrived")
                try:
                    return self.suggestion_client.suggest(request, timeout_s=remaining_s)
                except AIAssistanceError as e:
                    # A retry would only start once the budget is gone
                    if self._remaining_ms(start) <= AI_RETRY_BASE_DELAY_MS:
                        raise TimeoutExceededError(f"Resolution budget of {self.budget_s:g}s spent waiting for an AI suggestion: {e}") from e
                    raise

            response = self.retry_fn(_request_suggestion, AI_RETRY_ATTEMPTS, AI_RETRY_BASE_DELAY_MS, "AI selector suggestion")
            if not response.success or response.data is None:
                raise AIAssistanceError(f"AI response failed or no suggestion: {response.error or 'Unknown error'}")

            suggestion = response.data
            self.add_log(f"[AI] Suggested: {suggestion.suggested_selector} "
                         f"({suggestion.suggested_strategy}, confidence: {suggestion.confidence})")
            if suggestion.reasoning:
                self.add_log(f"[AI] Reasoning: {suggestion.reasoning}")

            wait_ms = max(min(AI_SUGGESTION_WAIT_MS, self._remaining_ms(start)), 1)
            handle = self._wait_for(frame, suggestion.suggested_selector, suggestion.suggested_strategy, wait_ms, index)
            if handle is not None:
                if self.verifier.is_visible(handle):
                    self.add_log("[AI] Found element using AI suggestion")
                    return Resolution(handle, ResolutionStage.AI_SUGGESTION, suggestion.suggested_selector, "ai-suggested")
                handle.dispose()

            for alternative in suggestion.alternative_selectors:
                handle = self._query_now(frame, alternative, None, index)
                if handle is None:
                    continue
                if self.verifier.is_visible(handle):
                    self.add_log(f"[AI] Found element using alternative selector: {alternative}")
                    return Resolution(handle, ResolutionStage.AI_SUGGESTION, alternative, "ai-alternative")
                handle.dispose()
            self.add_log("[AI] Suggested selectors did not match a visible element.")
        except (AIAssistanceError, TimeoutExceededError) as e:
            self.add_log(f"[AI] {e}")
        except Exception as e:
            # Recovery-stage failures never abort the cascade
            error = AIAssistanceError(f"AI assistance failed: {e}")
            logger.warning(str(error), exc_info=True)
            self.add_log(f"[Resolver] {error}")
        return None

    def _cascade(self, frame, strategies, index: int, start: float) -> Optional[Resolution]:
        for strategy in strategies:
            remaining_ms = self._remaining_ms(start)
            if remaining_ms <= 0:
                self.add_log(f"[Resolver] Timeout reached after {int(self.budget_s * 1000)}ms")
                break
            self.add_log(f"[Resolver] Trying {strategy.type}: \"{strategy.selector}\"")
            wait_ms = TEXT_STRATEGY_WAIT_MS if "text" in strategy.type else ATTRIBUTE_STRATEGY_WAIT_MS
            handle = self._wait_for(frame, strategy.selector, strategy.method, min(wait_ms, remaining_ms), index)
            if handle is None:
                continue
            if self.verifier.is_visible(handle):
                self.add_log(f"[Resolver] Found element using {strategy.type} strategy")
                return Resolution(handle, ResolutionStage.FALLBACK, strategy.selector, strategy.type)
            self.add_log("[Resolver] Element found but not visible/interactable")
            handle.dispose()
        return None

    def _login_scan(self, frame, primary: str) -> Optional[Resolution]:
        if not LOGIN_INTENT.search(primary):
            return None
        self.add_log("[DynamicScan] Performing broad scan for login/sign-in elements.")
        try:
            handle = page_scripts.scan_for_login_element(frame)
        except PlaywrightError as e:
            self.add_log(f"[DynamicScan] Error during dynamic scan: {e}")
            return None
        if handle is None:
            return None
        self.add_log("[DynamicScan] Found element via dynamic scan fallback.")
        return Resolution(handle, ResolutionStage.DYNAMIC_SCAN, "login-scan", "login-scan")

    def _interactive(self, frame, page, prompt_term: str) -> Optional[Resolution]:
        if self.interactive_capture is None or page is None:
            return None
        self.add_log("[InteractiveCapture] No element found. Prompting user to click desired element in the browser.")
        try:
            selector = self.interactive_capture(page, f"Please click the element for \"{prompt_term}\"")
            if not selector:
                self.add_log("[InteractiveCapture] No selector captured.")
                return None
            self.add_log(f"[InteractiveCapture] User provided selector: {selector}")
            handle = self._wait_for(frame, selector, None, CAPTURED_SELECTOR_WAIT_MS, 0)
            if handle is None and frame is not page:
                handle = self._wait_for(page, selector, None, CAPTURED_SELECTOR_WAIT_MS, 0)
            if handle is None:
                return None
            return Resolution(handle, ResolutionStage.INTERACTIVE, selector, "interactive")
        except Exception as e:
            logger.warning(f"Interactive capture failed: {e}", exc_info=True)
            self.add_log(f"[InteractiveCapture] Error: {e}")
            return None

    def _submit_shortcut(self, frame, primary: str, descriptive_term: str,
                         page_state: Optional[PageState]) -> Optional[Resolution]:
        if page_state is None or not page_state.form_submitted:
            return None
        if not (SUBMIT_INTENT.search(primary) or SUBMIT_INTENT.search(descriptive_term or "")):
            return None
        try:
            body = frame.query_selector("body")
        except PlaywrightError as e:
            logger.debug(f"Submit shortcut could not read body: {e}")
            return None
        if body is None:
            return None
        self.add_log("[SubmitSkip] Form submission already detected, skipping missing submit element.")
        return Resolution(body, ResolutionStage.SUBMIT_SHORTCUT, "body")

    # --- primitives ---

    def _remaining_ms(self, start: float) -> int:
        return int((self.budget_s - (self.clock() - start)) * 1000)

    def _wait_for(self, frame, selector: str, method: Optional[str], timeout_ms: int, index: int):
        """Waits up to timeout_ms for the selector to attach; returns the index-th match or None."""
        if timeout_ms <= 0:
            return None
        engine_selector = to_playwright_selector(selector, method)
        try:
            first = frame.wait_for_selector(engine_selector, state="attached", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            return None
        except PlaywrightError as e:
            logger.debug(f"Selector '{engine_selector}' failed: {e}")
            return None
        if first is None or index == 0:
            return first
        first.dispose()
        return self._query_now(frame, selector, method, index)

    def _query_now(self, frame, selector: str, method: Optional[str], index: int):
        """Zero-wait lookup. Extra matches are disposed; only the index-th is kept."""
        engine_selector = to_playwright_selector(selector, method)
        try:
            handles: List[Any] = frame.query_selector_all(engine_selector)
        except PlaywrightError as e:
            logger.debug(f"Immediate lookup of '{engine_selector}' failed: {e}")
            return None
        chosen = handles[index] if 0 <= index < len(handles) else None
        for handle in handles:
            if handle is not chosen:
                handle.dispose()
        if chosen is None and handles:
            self.add_log(f"[Resolver] {len(handles)} match(es) for '{selector}' but none at index {index}")
        return chosen
