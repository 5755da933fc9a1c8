# /stepengine/execution/handlers/navigate.py
import logging

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ...core.models import ParsedTestStep
from ..context import StepContext, require

logger = logging.getLogger(__name__)

CONSENT_WAIT_MS = 300
CONSENT_SETTLE_S = 1.5

_LOWER = "translate(normalize-space(.), 'ABCDEFGHIJKLMNOPQRSTUVWXYZ', 'abcdefghijklmnopqrstuvwxyz')"
CONSENT_BUTTON_SELECTORS = [
    f"xpath=//button[contains({_LOWER}, 'accept')]",
    f"xpath=//button[contains({_LOWER}, 'agree')]",
    f"xpath=//button[contains({_LOWER}, 'got it')]",
    f"xpath=//button[contains({_LOWER}, 'allow all')]",
    f"xpath=//button[{_LOWER}='ok']",
    f"xpath=//button[contains({_LOWER}, 'i understand')]",
    'css=button#hs-eu-confirmation-button',
    'css=button.cc-btn.cc-dismiss',
    'css=button[data-testid="GDPR-accept"]',
    'css=[id*="consent"] button[class*="accept"]',
]


def dismiss_consent_banner(ctx: StepContext) -> bool:
    """Best effort: clicks the first visible consent button. Returns True if one was clicked."""
    for selector in CONSENT_BUTTON_SELECTORS:
        try:
            button = ctx.page.wait_for_selector(selector, state="visible", timeout=CONSENT_WAIT_MS)
        except PlaywrightTimeoutError:
            continue
        except PlaywrightError as e:
            logger.debug(f"Consent button '{selector}' failed: {e}")
            continue
        if button is None:
            continue
        try:
            ctx.add_log(f"Found potential consent button with selector: \"{selector}\". Attempting to click.")
            button.click(delay=100)
        except PlaywrightError as e:
            ctx.add_log(f"Consent button click failed: {e}")
            continue
        finally:
            button.dispose()
        ctx.sleep(CONSENT_SETTLE_S)
        return True
    return False


def handle_navigate(ctx: StepContext, step: ParsedTestStep) -> None:
    url = require(step.value or step.target, "Navigation URL not provided")
    # Navigation always happens on the main page
    ctx.frame = ctx.page
    ctx.page_state.form_submitted = False
    ctx.add_log(f"Navigating to {url}")
    ctx.page.goto(url, wait_until="domcontentloaded")
    ctx.add_log(f"Navigation to {url} complete (DOM content loaded). Attempting to dismiss potential cookie/consent banners.")

    if dismiss_consent_banner(ctx):
        ctx.add_log("A consent button was clicked. Page should be clearer now.")
    else:
        ctx.add_log("No common consent buttons found or clicked. Continuing...")
