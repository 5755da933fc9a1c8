# /tests/conftest.py
import pytest

from stepengine.core.models import PageState
from stepengine.execution.context import StepContext
from stepengine.execution.heuristics import SiteHeuristics
from stepengine.resolver.element_resolver import ElementResolver
from stepengine.utils.step_log import StepLog

from tests.fakes import FakeClock, FakePage


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keeps a developer's shell or .env from switching runner behaviour under test."""
    for name in ("RUNNER_NON_INTERACTIVE", "STEPENGINE_QUIRKS_FILE", "STEPENGINE_CAPTURE_TIMEOUT_S",
                 "STEPENGINE_API_URL", "STEPENGINE_API_TOKEN"):
        monkeypatch.setenv(name, "")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def page(clock):
    return FakePage(clock=clock, url="https://app.test/home")


@pytest.fixture
def step_log():
    return StepLog()


@pytest.fixture
def resolver(step_log, clock):
    return ElementResolver(add_log=step_log, clock=clock)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def ctx(page, resolver, step_log, sleeps):
    return StepContext(
        page=page,
        frame=page,
        resolver=resolver,
        add_log=step_log,
        page_state=PageState(),
        heuristics=SiteHeuristics(),
        sleep=sleeps.append,
    )
