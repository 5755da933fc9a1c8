# /stepengine/execution/heuristics.py
"""
Registry of site quirks applied around clicks.

Quirks are data: overlay rules list selectors to dismiss before a click, settle
rules describe the downstream state a click should produce and the direct URL
to fall back to when it does not appear. Both are matched by regular
expressions against the page URL and the click target. The built-in table can
be extended from a JSON file with the same shape as `QuirkTable`.
"""
import json
import logging
import re
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from ..utils.utils import load_quirks_file

logger = logging.getLogger(__name__)


class OverlayRule(BaseModel):
    """Overlays to dismiss on the main page before clicking a matching target."""
    name: str
    url_pattern: str = Field(..., description="Regex searched in the page URL.")
    target_pattern: str = Field(".*", description="Regex searched in the click target.")
    selectors: List[str]

    def matches(self, url: str, target: str) -> bool:
        return bool(re.search(self.url_pattern, url or "", re.IGNORECASE)
                    and re.search(self.target_pattern, target or "", re.IGNORECASE))


class SettleRule(BaseModel):
    """Expected state after clicking a matching target, with a direct-URL fallback."""
    name: str
    target_pattern: str = Field(..., description="Regex matched against the whole click target.")
    url_pattern: str = Field(".*", description="Regex searched in the page URL.")
    wait_selector: Optional[str] = None
    wait_url_contains: Optional[str] = None
    timeout_ms: int = 10000
    rewrite_from: Optional[str] = Field(None, description="URL fragment replaced when the state does not appear.")
    rewrite_to: Optional[str] = None

    def matches(self, url: str, target: str) -> bool:
        return bool(re.fullmatch(self.target_pattern, (target or "").strip(), re.IGNORECASE)
                    and re.search(self.url_pattern, url or "", re.IGNORECASE))

    def rewrite(self, url: str) -> Optional[str]:
        if not self.rewrite_from or self.rewrite_to is None or self.rewrite_from not in (url or ""):
            return None
        return url.replace(self.rewrite_from, self.rewrite_to)


class QuirkTable(BaseModel):
    overlays: List[OverlayRule] = Field(default_factory=list)
    settle: List[SettleRule] = Field(default_factory=list)


BUILTIN_QUIRKS = QuirkTable(
    overlays=[
        OverlayRule(
            name="w3schools-modal-demo",
            url_pattern=r"w3schools\.com",
            target_pattern=r"myBtn|open modal",
            selectors=[
                '#snigel-cmp-widget #snigel-cmp-framework button.snigel-cmp-button.snigel-cmp-accept-all',
                '#accept-choices',
                'button[aria-label="Close Welcome Banner"]',
                'button[id^="close-"]',
                '#signup_prompt_background + #signup_prompt > .w3-modal-content > .w3-container > .w3-display-topright',
                '#mypagediv > .fa-times',
            ],
        ),
    ],
    settle=[
        SettleRule(
            name="cart-shows-checkout",
            target_pattern=r".*shopping\s*cart.*",
            wait_selector='#checkout, [data-test="checkout" i], button[id*="checkout" i]',
            rewrite_from="/inventory.html",
            rewrite_to="/cart.html",
        ),
        SettleRule(
            name="checkout-opens-step-one",
            target_pattern=r"checkout",
            wait_url_contains="/checkout-step-one",
            timeout_ms=8000,
            rewrite_from="/cart.html",
            rewrite_to="/checkout-step-one.html",
        ),
        SettleRule(
            name="continue-shows-finish",
            target_pattern=r"continue",
            wait_selector='#finish, [data-test="finish" i], button[id*="finish" i]',
            rewrite_from="/checkout-step-one.html",
            rewrite_to="/checkout-step-two.html",
        ),
    ],
)


class SiteHeuristics:
    """Looks up the quirks that apply to a page URL and click target."""

    def __init__(self, table: Optional[QuirkTable] = None):
        self.table = table or QuirkTable()

    @classmethod
    def default(cls, quirks_file: Optional[str] = None) -> "SiteHeuristics":
        """Built-in quirks, extended from `quirks_file` (or STEPENGINE_QUIRKS_FILE) when given."""
        table = BUILTIN_QUIRKS.model_copy(deep=True)
        path = quirks_file or load_quirks_file()
        if path:
            extra = cls.load_table(path)
            table.overlays.extend(extra.overlays)
            table.settle.extend(extra.settle)
            logger.info(f"Loaded {len(extra.overlays)} overlay and {len(extra.settle)} settle quirks from {path}")
        return cls(table)

    @staticmethod
    def load_table(path: str) -> QuirkTable:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return QuirkTable.model_validate(json.load(f))
        except FileNotFoundError:
            logger.error(f"Quirks file not found: {path}")
            raise
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Invalid quirks file {path}: {e}")
            raise ValueError(f"Invalid quirks file {path}: {e}") from e

    def overlay_selectors(self, url: str, target: str) -> List[str]:
        selectors: List[str] = []
        for rule in self.table.overlays:
            if rule.matches(url, target):
                logger.debug(f"Overlay quirk '{rule.name}' applies to {url}")
                selectors.extend(rule.selectors)
        return selectors

    def settle_rules(self, url: str, target: str) -> List[SettleRule]:
        return [rule for rule in self.table.settle if rule.matches(url, target)]
