# /tests/test_dom_snippet.py
from playwright.sync_api import Error as PlaywrightError

from stepengine.resolver.dom_snippet import (
    CAPTURE_FAILED,
    MAX_SNIPPET_CHARS,
    capture_dom_snippet,
    render_element,
    render_summary,
)

from tests.fakes import FakeFrame


def test_render_element_includes_attributes_and_text():
    line = render_element({"tag": "button", "attrs": {"id": "go", "class": "btn"}, "text": "Go now", "hasOnclick": True})
    assert line == '<button id="go" class="btn" onclick>Go now</button>'


def test_render_element_truncates_long_text():
    line = render_element({"tag": "span", "attrs": {}, "text": "x" * 100})
    assert "..." in line
    assert len(line) < 60


def test_render_summary_sections_and_cap():
    summary = {
        "title": "Shop",
        "url": "https://shop.test/",
        "buttons": [{"tag": "button", "attrs": {"id": f"b{i}"}, "text": "Buy " * 20} for i in range(10)],
        "inputs": [{"tag": "input", "attrs": {"name": "q", "type": "search"}, "text": ""}],
        "links": [],
    }
    snippet = render_summary(summary)
    assert snippet.startswith("Title: Shop\nURL: https://shop.test/")
    assert "Buttons:" in snippet
    assert "Links:" not in snippet
    assert len(snippet) <= MAX_SNIPPET_CHARS


def test_render_summary_is_capped():
    summary = {"title": "t", "url": "u",
               "containers": [{"tag": "div", "attrs": {"class": "c" * 60}, "text": "y" * 40} for _ in range(100)]}
    assert len(render_summary(summary)) == MAX_SNIPPET_CHARS


def test_capture_returns_marker_on_script_error():
    frame = FakeFrame()
    frame.dom_summary = PlaywrightError("Execution context was destroyed")
    assert capture_dom_snippet(frame, "#x") == CAPTURE_FAILED


def test_capture_returns_marker_on_unexpected_result():
    frame = FakeFrame()
    frame.dom_summary = None
    assert capture_dom_snippet(frame, "#x") == CAPTURE_FAILED


def test_capture_renders_summary():
    frame = FakeFrame(url="https://app.test/login")
    frame.dom_summary = {"title": "Login", "url": frame.url,
                         "inputs": [{"tag": "input", "attrs": {"name": "user"}, "text": ""}]}
    snippet = capture_dom_snippet(frame, "#x")
    assert "Inputs:" in snippet
    assert '<input name="user"></input>' in snippet
