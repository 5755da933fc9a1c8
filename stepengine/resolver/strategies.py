# /stepengine/resolver/strategies.py
"""
Ordered fallback strategies for a primary selector or descriptive term.

Cheap, specific lookups (exact attributes) come before broad ones (attribute
substrings, visible-text XPath scans). The function is pure: the same input
always yields the same list in the same order.
"""
import re
from typing import List

from ..core.models import FallbackStrategy

LOWER_TRANSLATE = "translate(normalize-space(text()), 'ABCDEFGHIJKLMNOPQRSTUVWXYZ', 'abcdefghijklmnopqrstuvwxyz')"

LOGIN_PATTERN = re.compile(r"^(login|log\s*in)$", re.IGNORECASE)
SIGN_IN_PATTERN = re.compile(r"^sign\s*-?\s*in$", re.IGNORECASE)
USER_PATTERN = re.compile(r"user(name)?", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"e-?mail", re.IGNORECASE)
VERBOSE_EMAIL_PATTERN = re.compile(r"locate the email input field", re.IGNORECASE)
IDENTIFIER_PATTERN = re.compile(r"^-?[A-Za-z_][\w-]*$")
TEXT_PREDICATE_PATTERN = re.compile(r"text\(\)\s*=\s*['\"]([^'\"]+)['\"]")


def looks_like_xpath(selector: str) -> bool:
    return "//" in selector or selector.startswith("/") or selector.startswith("(/")


def looks_like_css(selector: str) -> bool:
    return any(c in selector for c in ("#", ".", "["))


def _css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _xpath_literal(value: str) -> str:
    """Quotes a string for XPath 1.0, which has no escape sequences."""
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    parts = value.split('"')
    return "concat(" + ", '\"', ".join(f'"{p}"' for p in parts) + ")"


def _attribute_strategies(token: str) -> List[FallbackStrategy]:
    strategies = []
    quoted = _css_string(token)
    if IDENTIFIER_PATTERN.match(token):
        strategies.append(FallbackStrategy("id", f"#{token}"))
        strategies.append(FallbackStrategy("class", f".{token}"))
    strategies.append(FallbackStrategy("name", f'[name="{quoted}"]'))
    strategies.append(FallbackStrategy("data-testid", f'[data-testid="{quoted}"]'))
    strategies.append(FallbackStrategy("aria-label", f'[aria-label="{quoted}"]'))

    for attr in ("id", "class", "name", "data-testid", "aria-label"):
        strategies.append(FallbackStrategy(f"{attr}-contains", f'[{attr}*="{quoted}" i]'))

    if " " in token.strip():
        kebab = re.sub(r"\s+", "-", token.strip().lower())
        kebab_quoted = _css_string(kebab)
        strategies.append(FallbackStrategy("data-test-kebab", f'[data-test*="{kebab_quoted}" i]'))
        strategies.append(FallbackStrategy("id-kebab-contains", f'[id*="{kebab_quoted}" i]'))
        strategies.append(FallbackStrategy("class-kebab-contains", f'[class*="{kebab_quoted}" i]'))
    return strategies


def _text_strategies(token: str) -> List[FallbackStrategy]:
    literal = _xpath_literal(token)
    strategies = [
        FallbackStrategy("exact-text", f"//*[normalize-space(text())={literal}]", "xpath"),
        FallbackStrategy("contains-text", f"//*[contains(normalize-space(text()), {literal})]", "xpath"),
        FallbackStrategy("button-text", f"//button[contains(normalize-space(.), {literal})]", "xpath"),
    ]

    # "LogIn" may be rendered as "Log In"
    if re.fullmatch(r"[A-Za-z]+", token):
        spaced = re.sub(r"([a-z])([A-Z])", r"\1 \2", token)
        if spaced != token:
            strategies.append(FallbackStrategy(
                "contains-text-spaced",
                f"//*[contains(normalize-space(text()), {_xpath_literal(spaced)})]",
                "xpath",
            ))

    # Every word must be present; tolerates &nbsp; and markup splitting the phrase
    words = token.split()
    if len(words) > 1:
        conditions = " and ".join(
            f"contains({LOWER_TRANSLATE}, {_xpath_literal(w.lower())})" for w in words
        )
        strategies.append(FallbackStrategy("contains-all-words", f"//*[{conditions}]", "xpath"))
    return strategies


def _login_strategies() -> List[FallbackStrategy]:
    login_text = " or ".join(
        f"contains({LOWER_TRANSLATE}, '{phrase}')" for phrase in ("login", "log in", "sign in")
    )
    return [
        FallbackStrategy("href-login-path", 'a[href*="/login" i], a[href*="auth" i][href*="login" i]'),
        FallbackStrategy("href-login", 'a[href*="login" i]'),
        FallbackStrategy("href-signin", 'a[href*="sign" i][href*="in" i]'),
        FallbackStrategy("button-login", 'button[id*="login" i], button[class*="login" i]'),
        FallbackStrategy("button-signin", 'button[id*="sign" i][id*="in" i], button[class*="sign" i][class*="in" i]'),
        FallbackStrategy("xpath-login-text", f"//a[{login_text}] | //button[{login_text}]", "xpath"),
    ]


def _modal_strategies() -> List[FallbackStrategy]:
    return [
        FallbackStrategy("modal-onclick", 'button[onclick*="modal" i]'),
        FallbackStrategy("modal-toggle", '[data-toggle="modal"], [data-bs-toggle="modal"]'),
        FallbackStrategy("modal-aria", 'button[aria-haspopup="dialog"], button[aria-controls*="modal" i]'),
    ]


def _close_strategies() -> List[FallbackStrategy]:
    return [
        FallbackStrategy("close-aria", '[aria-label="close" i], [title="close" i]'),
        FallbackStrategy("close-dismiss", '[data-dismiss="modal"], [data-bs-dismiss="modal"]'),
        FallbackStrategy("close-class", '[role="dialog"] .close, .modal .close, button.close, [class*="modal" i] [class*="close" i]'),
        FallbackStrategy("close-onclick", "[onclick*=\"display='none'\"], [onclick*='display=\"none\"']"),
    ]


def _user_to_email() -> List[FallbackStrategy]:
    return [
        FallbackStrategy("email-input", 'input[type="email"]'),
        FallbackStrategy("email-placeholder", '[placeholder*="email" i]'),
        FallbackStrategy("email-name", '[name*="email" i]'),
        FallbackStrategy("email-id", "#email"),
    ]


def _email_to_user() -> List[FallbackStrategy]:
    return [
        FallbackStrategy("user-placeholder", '[placeholder*="user" i]'),
        FallbackStrategy("user-name", '[name*="user" i]'),
        FallbackStrategy("user-id", "#user"),
        FallbackStrategy("username-id", "#username"),
    ]


def _verbose_email() -> List[FallbackStrategy]:
    return [
        FallbackStrategy("email-placeholder", '[placeholder*="email" i]'),
        FallbackStrategy("email-name", '[name="email" i]'),
        FallbackStrategy("email-id", "#email"),
        FallbackStrategy("email-input", 'input[type="email"]'),
    ]


def generate_fallback_strategies(primary_selector: str) -> List[FallbackStrategy]:
    """
    Builds the ordered candidate list for a selector or descriptive term.

    Args:
        primary_selector: The hint-free selector or text from the step.

    Returns:
        List of FallbackStrategy, most specific first. Duplicates are removed.
    """
    clean = re.sub(r"^[\"']|[\"']$", "", (primary_selector or "").strip()).strip()
    if not clean:
        return []

    strategies: List[FallbackStrategy] = []
    if looks_like_xpath(clean):
        strategies.append(FallbackStrategy("xpath-original", clean, "xpath"))
        text_match = TEXT_PREDICATE_PATTERN.search(clean)
        if text_match:
            text = text_match.group(1)
            strategies.append(FallbackStrategy(
                "xpath-contains-text", f"//*[contains(normalize-space(text()), {_xpath_literal(text)})]", "xpath"))
            strategies.append(FallbackStrategy(
                "css-button-generic", f'button:has-text("{_css_string(text)}")', "css"))
    elif looks_like_css(clean):
        strategies.append(FallbackStrategy("css-original", clean, "css"))
    else:
        strategies.extend(_attribute_strategies(clean))
        strategies.extend(_text_strategies(clean))

    # Known-pattern shortcuts go last: broad and only meaningful for these intents
    if LOGIN_PATTERN.match(clean) or SIGN_IN_PATTERN.match(clean):
        strategies.extend(_login_strategies())
    lowered = clean.lower()
    if "modal" in lowered:
        strategies.extend(_modal_strategies())
    if "close" in lowered:
        strategies.extend(_close_strategies())

    # Synonym expansion is prepended: identity fields are labelled inconsistently
    prefix: List[FallbackStrategy] = []
    if VERBOSE_EMAIL_PATTERN.search(clean):
        prefix = _verbose_email()
    else:
        if USER_PATTERN.search(clean):
            prefix.extend(_user_to_email())
        if EMAIL_PATTERN.search(clean):
            prefix.extend(_email_to_user())
    strategies = prefix + strategies

    seen = set()
    unique: List[FallbackStrategy] = []
    for strategy in strategies:
        key = (strategy.method, strategy.selector)
        if key in seen:
            continue
        seen.add(key)
        unique.append(strategy)
    return unique
