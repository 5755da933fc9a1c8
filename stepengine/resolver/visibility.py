# /stepengine/resolver/visibility.py
import logging
from typing import Any, Dict, Optional

from playwright.sync_api import Error as PlaywrightError

from ..browser import page_scripts

logger = logging.getLogger(__name__)


def metrics_are_visible(metrics: Optional[Dict[str, Any]]) -> bool:
    """
    Decides visibility from computed style and bounding box metrics.

    Visible means display is not 'none', visibility is not 'hidden', opacity is
    above zero and the box has a positive width and height.
    """
    if not metrics:
        return False
    if metrics.get("display") == "none":
        return False
    if metrics.get("visibility") == "hidden":
        return False
    try:
        opacity = float(metrics.get("opacity", 1))
    except (TypeError, ValueError):
        opacity = 1.0
    if opacity <= 0:
        return False
    return (metrics.get("width") or 0) > 0 and (metrics.get("height") or 0) > 0


class VisibilityVerifier:
    """Acceptance gate applied to every candidate handle outside the immediate lookup."""

    def is_visible(self, handle) -> bool:
        if handle is None:
            return False
        try:
            return metrics_are_visible(page_scripts.visibility_metrics(handle))
        except PlaywrightError as e:
            # Detached or navigated-away nodes cannot be measured
            logger.debug(f"Visibility check failed: {e}")
            return False
