# /stepengine/execution/executor.py
import json
import logging
import os
import re
import time
from typing import Any, Dict, List, Optional

from playwright.sync_api import Error as PlaywrightError
from pydantic import ValidationError

from ..browser.browser_controller import BrowserController
from ..core.errors import StepExecutionError
from ..core.models import DialogExpectation, PageState, ParsedTestStep, TestCase
from ..resolver.element_resolver import ElementResolver
from ..utils.retry import retry_api_call
from ..utils.step_log import StepLog
from .context import StepContext
from .dispatch import dispatch
from .heuristics import SiteHeuristics

logger = logging.getLogger(__name__)


class StepExecutor:
    """
    Runs a file of parsed steps against one browser page, in order, stopping at the
    first failing step. Owns the page-scoped state and the current frame context.
    """

    def __init__(self,
                 suggestion_client=None,
                 headless: bool = True,
                 default_timeout: int = 10000,
                 disable_fallbacks: bool = False,
                 heuristics: Optional[SiteHeuristics] = None,
                 output_dir: str = "output"):
        self.suggestion_client = suggestion_client
        self.headless = headless
        self.default_timeout = default_timeout
        self.disable_fallbacks = disable_fallbacks
        self.heuristics = heuristics or SiteHeuristics.default()
        self.output_dir = output_dir
        self.browser_controller: Optional[BrowserController] = None
        logger.info(f"StepExecutor initialized (headless={headless}, timeout={default_timeout}ms, "
                    f"AI assistance={'on' if suggestion_client else 'off'}).")

    @staticmethod
    def load_test(json_file_path: str) -> TestCase:
        logger.info(f"Loading test case from: {json_file_path}")
        if not os.path.exists(json_file_path):
            raise FileNotFoundError(f"Test file not found: {json_file_path}")
        with open(json_file_path, 'r', encoding='utf-8') as f:
            test_case = TestCase.model_validate(json.load(f))
        if not test_case.steps:
            raise ValueError("No steps found in the test file.")
        return test_case

    def _arm_dialog(self, page, expectation: DialogExpectation, step_log: StepLog) -> None:
        def _on_dialog(dialog):
            step_log(f"[Dialog] {dialog.type} opened: \"{dialog.message}\". Action: {expectation.action}")
            if dialog.type != expectation.type:
                logger.warning(f"Expected a {expectation.type} dialog but got {dialog.type}")
            if expectation.action == "accept" and expectation.prompt_text is not None:
                dialog.accept(expectation.prompt_text)
            elif expectation.action == "accept":
                dialog.accept()
            else:
                dialog.dismiss()
        page.once("dialog", _on_dialog)

    def _save_failure_screenshot(self, page, test_name: str, step_number: int) -> Optional[str]:
        ts = time.strftime("%Y%m%d_%H%M%S")
        safe_test_name = re.sub(r'[^\w\-]+', '_', test_name)[:50]
        path = os.path.join(self.output_dir, f"failure_{safe_test_name}_step{step_number}_{ts}.png")
        try:
            os.makedirs(self.output_dir, exist_ok=True)
            page.screenshot(path=path)
            logger.info(f"Failure screenshot saved to: {path}")
            return path
        except (PlaywrightError, OSError) as e:
            logger.error(f"Could not save failure screenshot: {e}")
            return None

    def run_steps(self, page, steps: List[ParsedTestStep], test_name: str = "Unnamed Test",
                  expected_result: Optional[str] = None, resolver: Optional[ElementResolver] = None,
                  step_log: Optional[StepLog] = None, ctx: Optional[StepContext] = None) -> Dict[str, Any]:
        """Executes steps on an already open page. Returns the run status dict."""
        start_time = time.time()
        step_log = step_log or StepLog()
        if resolver is None:
            capture = self.browser_controller.capture_selector if (
                self.browser_controller and self.browser_controller.interactive) else None
            resolver = ElementResolver(step_log, self.suggestion_client, retry_api_call, capture)
        ctx = ctx or StepContext(
            page=page,
            frame=page,
            resolver=resolver,
            add_log=step_log,
            page_state=PageState(),
            heuristics=self.heuristics,
            expected_result=expected_result,
            disable_fallbacks=self.disable_fallbacks,
        )

        run_status: Dict[str, Any] = {
            "test_name": test_name,
            "status": "FAIL",
            "message": "Execution initiated.",
            "steps_executed": 0,
            "failed_step": None,
            "error_details": None,
            "screenshot_on_failure": None,
            "log": [],
            "duration_seconds": 0.0,
        }

        try:
            for i, step in enumerate(steps):
                step_number = i + 1
                run_status["steps_executed"] = step_number
                description = step.original_step or f"{step.action.value} {step.target or ''}".strip()
                logger.info(f"--- Executing Step {step_number}: {step.action.value} - {description} ---")
                if step.expects_dialog:
                    self._arm_dialog(page, step.expects_dialog, step_log)
                try:
                    dispatch(ctx, step)
                except (StepExecutionError, PlaywrightError) as e:
                    logger.error(f"Step {step_number} ('{description}') failed: {e}")
                    run_status["message"] = f"Test failed on step {step_number}: {description}"
                    run_status["failed_step"] = step.model_dump(by_alias=True, exclude_none=True, mode="json")
                    run_status["error_details"] = f"{type(e).__name__}: {e}"
                    run_status["screenshot_on_failure"] = self._save_failure_screenshot(page, test_name, step_number)
                    logger.info("Stopping test execution due to step failure.")
                    return run_status
                logger.info(f"Step {step_number} completed.")

            run_status["status"] = "PASS"
            run_status["message"] = "Test executed successfully."
            logger.info(run_status["message"])
            return run_status
        finally:
            run_status["log"] = step_log.lines()
            run_status["duration_seconds"] = round(time.time() - start_time, 2)

    def run_test(self, json_file_path: str) -> Dict[str, Any]:
        """Loads the JSON test file, starts a browser and executes its steps."""
        run_status: Dict[str, Any] = {
            "test_file": json_file_path,
            "status": "FAIL",
            "message": "Execution initiated.",
        }
        try:
            test_case = self.load_test(json_file_path)
        except (FileNotFoundError, ValueError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Error loading or parsing test file '{json_file_path}': {e}")
            run_status["message"] = f"Failed to load/parse test file: {e}"
            run_status["error_details"] = str(e)
            return run_status

        logger.info(f"Executing test: '{test_case.test_name}' with {len(test_case.steps)} steps.")
        self.browser_controller = BrowserController(headless=self.headless)
        try:
            page = self.browser_controller.start()
            page.set_default_timeout(self.default_timeout)
            result = self.run_steps(page, test_case.steps, test_case.test_name, test_case.expected_result)
            run_status.update(result)
        except PlaywrightError as e:
            logger.critical(f"Playwright setup error during execution: {e}", exc_info=True)
            run_status["message"] = f"Playwright setup failed: {e}"
            run_status["error_details"] = str(e)
        finally:
            self.browser_controller.close()
            self.browser_controller = None
        return run_status
