# /tests/test_executor.py
import json

import pytest

from stepengine.core.models import ParsedTestStep
from stepengine.execution import executor as executor_module
from stepengine.execution.executor import StepExecutor
from stepengine.execution.heuristics import SiteHeuristics
from stepengine.resolver.element_resolver import ElementResolver

from tests.fakes import FakeDialog, FakeElement, FakePage


def steps(*raw):
    return [ParsedTestStep.model_validate(s) for s in raw]


@pytest.fixture
def executor(tmp_path):
    return StepExecutor(heuristics=SiteHeuristics(), output_dir=str(tmp_path / "output"))


@pytest.fixture
def run(executor, page, step_log, clock):
    """Runs steps on the fake page with a resolver on the fake clock."""
    def _run(raw_steps, **kwargs):
        resolver = ElementResolver(add_log=step_log, clock=clock)
        return executor.run_steps(page, steps(*raw_steps), resolver=resolver, step_log=step_log, **kwargs)
    return _run


class TestRunSteps:
    def test_all_steps_pass(self, run, page):
        email = page.add("#email", FakeElement(tag="input"))
        go = page.add("#go", FakeElement(tag="button"))
        page.body_text = "Welcome, Ada"

        result = run([
            {"action": "type", "target": "#email", "value": "ada@example.com"},
            {"action": "click", "target": "#go"},
            {"action": "assert", "assertion": {"type": "pageText", "expectedText": "welcome"}},
        ], test_name="login")

        assert result["status"] == "PASS"
        assert result["steps_executed"] == 3
        assert result["failed_step"] is None
        assert email.filled == "ada@example.com"
        assert go.clicks
        assert any("Assertion Passed" in line for line in result["log"])

    def test_stops_at_first_failure(self, executor, run, page):
        executor.disable_fallbacks = True
        after = page.add("#after", FakeElement(tag="button"))

        result = run([
            {"action": "click", "target": "#missing", "originalStep": "Click the missing button"},
            {"action": "click", "target": "#after"},
        ], test_name="broken flow")

        assert result["status"] == "FAIL"
        assert result["steps_executed"] == 1
        assert result["failed_step"]["target"] == "#missing"
        assert result["error_details"].startswith("ElementNotFoundError")
        assert "Click the missing button" in result["message"]
        assert after.clicks == []
        assert page.screenshots == [result["screenshot_on_failure"]]
        assert "failure_broken_flow_step1_" in result["screenshot_on_failure"]

    def test_assertion_failure_is_reported(self, run, page):
        page.url = "https://app.test/dashboard/home"
        result = run([{"action": "assert", "assertion": {"type": "url", "expectedText": "/dashboard"}}])
        assert result["status"] == "FAIL"
        assert result["error_details"].startswith("AssertionFailedError: Assertion Failed:")

    def test_expected_result_reaches_assertions(self, run, page):
        page.body_text = "Order confirmed"
        result = run([{"action": "assert", "assertion": {"type": "custom"}}], expected_result="order confirmed")
        assert result["status"] == "PASS"


class TestDialogs:
    def test_accepts_with_prompt_text(self, run, page):
        page.add("#rename", FakeElement(tag="button"))
        run([{"action": "click", "target": "#rename",
              "expectsDialog": {"type": "prompt", "action": "accept", "promptText": "Quarterly"}}])

        dialog = FakeDialog("prompt", "New name?")
        page.emit("dialog", dialog)

        assert dialog.accepted_with == ("Quarterly",)

    def test_dismisses(self, run, page):
        page.add("#delete", FakeElement(tag="button"))
        run([{"action": "click", "target": "#delete", "expectsDialog": {"type": "confirm", "action": "dismiss"}}])

        dialog = FakeDialog("confirm", "Delete?")
        page.emit("dialog", dialog)

        assert dialog.dismissed
        assert dialog.accepted_with is None

    def test_listener_is_not_armed_without_expectation(self, run, page):
        page.add("#plain", FakeElement(tag="button"))
        run([{"action": "click", "target": "#plain"}])
        assert page.listeners == []


class TestLoadTest:
    def test_loads_camel_case_file(self, tmp_path):
        path = tmp_path / "flow.json"
        path.write_text(json.dumps({
            "testName": "Checkout",
            "expectedResult": "Thank you",
            "steps": [{"action": "navigate", "value": "https://shop.test/"}, {"action": "click", "target": "#buy"}],
        }))

        test_case = StepExecutor.load_test(str(path))

        assert test_case.test_name == "Checkout"
        assert test_case.expected_result == "Thank you"
        assert len(test_case.steps) == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            StepExecutor.load_test(str(tmp_path / "nope.json"))

    def test_empty_steps(self, tmp_path):
        path = tmp_path / "flow.json"
        path.write_text(json.dumps({"test_name": "empty", "steps": []}))
        with pytest.raises(ValueError):
            StepExecutor.load_test(str(path))


class FakeBrowserController:
    instances = []

    def __init__(self, headless=True, **kwargs):
        self.headless = headless
        self.page = FakePage(url="about:blank")
        self.page.add("#buy", FakeElement(tag="button"))
        self.closed = False
        FakeBrowserController.instances.append(self)

    @property
    def interactive(self):
        return not self.headless

    def start(self):
        return self.page

    def close(self):
        self.closed = True

    def capture_selector(self, page, prompt):
        return None


class TestRunTest:
    def test_invalid_file_fails_without_browser(self, executor, tmp_path, monkeypatch):
        monkeypatch.setattr(executor_module, "BrowserController", FakeBrowserController)
        FakeBrowserController.instances = []
        path = tmp_path / "bad.json"
        path.write_text("{not json")

        result = executor.run_test(str(path))

        assert result["status"] == "FAIL"
        assert result["message"].startswith("Failed to load/parse test file")
        assert FakeBrowserController.instances == []

    def test_runs_file_and_closes_browser(self, executor, tmp_path, monkeypatch):
        monkeypatch.setattr(executor_module, "BrowserController", FakeBrowserController)
        FakeBrowserController.instances = []
        path = tmp_path / "flow.json"
        path.write_text(json.dumps({"test_name": "buy", "steps": [{"action": "click", "target": "#buy"}]}))

        result = executor.run_test(str(path))

        controller = FakeBrowserController.instances[0]
        assert result["status"] == "PASS"
        assert result["test_file"] == str(path)
        assert result["test_name"] == "buy"
        assert controller.closed
        assert controller.page.default_timeout == 10000
        assert executor.browser_controller is None
