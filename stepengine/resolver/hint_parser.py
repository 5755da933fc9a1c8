# /stepengine/resolver/hint_parser.py
import logging
import re
from dataclasses import dataclass
from typing import Literal, Optional

logger = logging.getLogger(__name__)

PREFIX_PATTERN = re.compile(r"^\s*(xpath|css)://(.+)$", re.IGNORECASE | re.DOTALL)
# Whole-string hint is greedy so values may contain parentheses, e.g. (css: li:nth-child(2))
WHOLE_HINT_PATTERN = re.compile(r"^\s*\(\s*([\w-]+)\s*:\s*(.+)\s*\)\s*$", re.DOTALL)
EMBEDDED_HINT_PATTERN = re.compile(
    r"\(\s*(css|xpath|id|class|name|testid|data-testid|test-id|aria|aria-label|label|text)\s*:\s*(.+?)\s*\)",
    re.IGNORECASE,
)


@dataclass
class HintExtraction:
    remainder: str
    type: Optional[Literal["css", "xpath"]] = None
    value: Optional[str] = None


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _normalize_hint(hint_type: str, value: str):
    """Maps a parenthetical hint onto a concrete (method, selector) pair."""
    hint_type = hint_type.lower()
    value = value.strip().strip("'\"")
    if hint_type == "xpath":
        return "xpath", value
    if hint_type == "css":
        return "css", value
    if hint_type == "id":
        return "css", f"#{value}" if re.fullmatch(r"[A-Za-z_][\w-]*", value) else f'[id="{_quote(value)}"]'
    if hint_type == "class":
        return "css", "." + ".".join(value.split())
    if hint_type == "name":
        return "css", f'[name="{_quote(value)}"]'
    if hint_type in ("testid", "data-testid", "test-id"):
        return "css", f'[data-testid="{_quote(value)}"]'
    if hint_type in ("aria", "aria-label", "label"):
        return "css", f'[aria-label="{_quote(value)}"]'
    if hint_type == "text":
        return "xpath", f'//*[normalize-space(text())="{value}"]'
    logger.debug(f"Unknown hint type '{hint_type}', treating value as CSS.")
    return "css", value


def parse_selector_hint(raw: str) -> HintExtraction:
    """
    Extracts an explicit selector hint from a raw target string.

    Recognizes `xpath://...` / `css://...` prefixes and `(type: value)` hints, either as the
    whole string or embedded in a longer phrase. Returns the remainder with the hint removed.
    A string with no hint is not an error: it comes back as the remainder, trimmed.
    """
    raw = raw or ""
    prefix = PREFIX_PATTERN.match(raw)
    if prefix:
        return HintExtraction(remainder="", type=prefix.group(1).lower(), value=prefix.group(2).strip())

    whole = WHOLE_HINT_PATTERN.match(raw)
    if whole:
        method, value = _normalize_hint(whole.group(1), whole.group(2))
        return HintExtraction(remainder="", type=method, value=value)

    embedded = EMBEDDED_HINT_PATTERN.search(raw)
    if embedded:
        method, value = _normalize_hint(embedded.group(1), embedded.group(2))
        remainder = (raw[:embedded.start()] + " " + raw[embedded.end():]).strip()
        remainder = re.sub(r"\s{2,}", " ", remainder)
        return HintExtraction(remainder=remainder, type=method, value=value)

    return HintExtraction(remainder=raw.strip())
