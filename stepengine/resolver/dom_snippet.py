# /stepengine/resolver/dom_snippet.py
import logging
from typing import Any, Dict, List

from playwright.sync_api import Error as PlaywrightError

from ..browser import page_scripts

logger = logging.getLogger(__name__)

MAX_SNIPPET_CHARS = 2000
MAX_ATTR_CHARS = 60
MAX_TEXT_CHARS = 40
CAPTURE_FAILED = "Failed to capture DOM snippet"

SECTIONS = (
    ("buttons", "Buttons"),
    ("inputs", "Inputs"),
    ("images", "Images"),
    ("links", "Links"),
    ("containers", "Containers"),
    ("spans", "Spans"),
)


def _truncate(value: str, limit: int) -> str:
    value = " ".join(str(value).split())
    return value if len(value) <= limit else value[:limit - 3] + "..."


def render_element(item: Dict[str, Any]) -> str:
    """Renders one summarized element as a single pseudo-HTML line."""
    tag = item.get("tag", "div")
    attrs = " ".join(
        f'{name}="{_truncate(value, MAX_ATTR_CHARS)}"' for name, value in (item.get("attrs") or {}).items()
    )
    extras = []
    if item.get("hasOnclick"):
        extras.append("onclick")
    if item.get("hasChildren"):
        extras.append("data-has-children")
    opening = " ".join(part for part in (tag, attrs, " ".join(extras)) if part)
    text = _truncate(item.get("text") or "", MAX_TEXT_CHARS)
    return f"<{opening}>{text}</{tag}>"


def render_summary(summary: Dict[str, Any]) -> str:
    lines: List[str] = [
        f"Title: {_truncate(summary.get('title') or '', 80)}",
        f"URL: {summary.get('url') or ''}",
    ]
    for key, label in SECTIONS:
        items = summary.get(key) or []
        if not items:
            continue
        lines.append(f"{label}:")
        lines.extend(f"  {render_element(item)}" for item in items)
    snippet = "\n".join(lines)
    if len(snippet) > MAX_SNIPPET_CHARS:
        snippet = snippet[:MAX_SNIPPET_CHARS - 3] + "..."
    return snippet


def capture_dom_snippet(frame, failed_selector: str) -> str:
    """
    Captures a compact summary of the interactive elements in `frame` for AI assistance.
    Never raises: on any evaluation error it logs and returns a fixed marker string.
    """
    try:
        summary = page_scripts.dom_summary(frame)
    except PlaywrightError as e:
        logger.warning(f"DOM snippet capture failed for '{failed_selector}': {e}")
        return CAPTURE_FAILED
    if not isinstance(summary, dict):
        logger.warning(f"DOM snippet capture for '{failed_selector}' returned {type(summary).__name__}")
        return CAPTURE_FAILED
    return render_summary(summary)
