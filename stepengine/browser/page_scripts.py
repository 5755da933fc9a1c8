# /stepengine/browser/page_scripts.py
"""
In-page scripts evaluated by the engine, each paired with a typed wrapper.

Nothing outside this module hands raw JavaScript to `evaluate`; callers work with
the wrappers below and plain Python values. Frame arguments accept either a
Playwright `Page` or `Frame`, handle arguments an `ElementHandle`.
"""
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

VISIBILITY_METRICS_JS = """
(el) => {
    const style = window.getComputedStyle(el);
    const rect = el.getBoundingClientRect();
    return {
        display: style.display,
        visibility: style.visibility,
        opacity: style.opacity,
        width: rect.width,
        height: rect.height
    };
}
"""

ELEMENT_TEXT_JS = "(el) => el.textContent"
ELEMENT_VALUE_JS = "(el) => el.value"
ELEMENT_DISABLED_JS = "(el) => !!el.disabled"
ELEMENT_TAG_JS = "(el) => el.tagName.toLowerCase()"
JS_CLICK_JS = "(el) => el.click()"
SCROLL_INTO_VIEW_JS = "(el) => el.scrollIntoView({ behavior: 'smooth', block: 'center' })"
SCROLL_HALF_VIEWPORT_JS = "() => window.scrollBy(0, window.innerHeight / 2)"
BODY_TEXT_JS = "() => document.body ? document.body.innerText : ''"
IFRAME_SRC_JS = "(el) => el.src || ''"

ELEMENT_ATTRIBUTES_JS = """
(el) => ({
    tag: el.tagName.toLowerCase(),
    type: (el.getAttribute('type') || '').toLowerCase(),
    name: el.getAttribute('name') || '',
    placeholder: el.getAttribute('placeholder') || '',
    inForm: !!el.closest('form')
})
"""

DOM_SUMMARY_JS = """
() => {
    const attrs = (el, names) => {
        const out = {};
        for (const n of names) {
            const v = el.getAttribute(n);
            if (v) out[n] = v;
        }
        return out;
    };
    const text = (el) => (el.textContent || '').trim();
    const pick = (sel, limit) => Array.from(document.querySelectorAll(sel)).slice(0, limit);
    return {
        title: document.title,
        url: window.location.href,
        buttons: pick('button', 10).map(b => ({ tag: 'button', attrs: attrs(b, ['id', 'class', 'type']), hasOnclick: !!b.onclick, text: text(b) })),
        inputs: pick('input', 5).map(i => ({ tag: 'input', attrs: attrs(i, ['id', 'class', 'type', 'name', 'placeholder']), text: '' })),
        images: pick('img', 5).map(i => ({ tag: 'img', attrs: attrs(i, ['id', 'class', 'alt', 'src']), text: '' })),
        links: pick('a', 5).map(a => ({ tag: 'a', attrs: attrs(a, ['id', 'class', 'href']), text: text(a) })),
        containers: pick('div[id], div[class*="gallery"], div[class*="trash"], div[class*="modal"], div[class*="popup"]', 5)
            .map(d => ({ tag: 'div', attrs: attrs(d, ['id', 'class']), hasChildren: d.children.length > 0, text: text(d) })),
        spans: pick('span[id], span[class]', 5).map(s => ({ tag: 'span', attrs: attrs(s, ['id', 'class']), text: text(s) }))
    };
}
"""

LOGIN_SCAN_JS = """
() => {
    const candidates = Array.from(document.querySelectorAll('a, button, [role="button"], input[type="button"], input[type="submit"]'));
    return candidates.find(el => {
        const txt = (el.innerText || el.textContent || el.value || '').toLowerCase().trim();
        const href = (el.getAttribute('href') || '').toLowerCase();
        const id = (el.id || '').toLowerCase();
        const cls = (typeof el.className === 'string' ? el.className : '').toLowerCase();
        if (txt.includes('login') || txt.includes('log in') || txt.includes('sign in')) return true;
        if (href.includes('login') || href.includes('sign')) return true;
        return id.includes('login') || cls.includes('login');
    }) || null;
}
"""

HTML5_DRAG_DROP_JS = """
([source, target]) => {
    const dataTransfer = new DataTransfer();
    const fire = (el, type) => el.dispatchEvent(new DragEvent(type, { bubbles: true, cancelable: true, dataTransfer }));
    fire(source, 'dragstart');
    fire(target, 'dragenter');
    fire(target, 'dragover');
    fire(target, 'drop');
    fire(source, 'dragend');
}
"""


def visibility_metrics(handle) -> Dict[str, Any]:
    return handle.evaluate(VISIBILITY_METRICS_JS)

def element_text(handle) -> str:
    return handle.evaluate(ELEMENT_TEXT_JS) or ""

def element_value(handle) -> str:
    value = handle.evaluate(ELEMENT_VALUE_JS)
    return "" if value is None else str(value)

def is_disabled(handle) -> bool:
    return bool(handle.evaluate(ELEMENT_DISABLED_JS))

def tag_name(handle) -> str:
    return handle.evaluate(ELEMENT_TAG_JS)

def element_attributes(handle) -> Dict[str, Any]:
    return handle.evaluate(ELEMENT_ATTRIBUTES_JS)

def js_click(handle) -> None:
    handle.evaluate(JS_CLICK_JS)

def scroll_into_view(handle) -> None:
    handle.evaluate(SCROLL_INTO_VIEW_JS)

def iframe_src(handle) -> str:
    return handle.evaluate(IFRAME_SRC_JS) or ""

def scroll_half_viewport(frame) -> None:
    frame.evaluate(SCROLL_HALF_VIEWPORT_JS)

def body_inner_text(frame) -> str:
    return frame.evaluate(BODY_TEXT_JS) or ""

def dom_summary(frame) -> Dict[str, List[Dict[str, Any]]]:
    return frame.evaluate(DOM_SUMMARY_JS)

def html5_drag_and_drop(frame, source, target) -> None:
    frame.evaluate(HTML5_DRAG_DROP_JS, [source, target])

def scan_for_login_element(frame) -> Optional[Any]:
    """Returns an owned ElementHandle for the first login-like control, or None."""
    js_handle = frame.evaluate_handle(LOGIN_SCAN_JS)
    element = js_handle.as_element()
    if element is None:
        js_handle.dispose()
    return element

# --- Interactive capture: overlay prompt plus a one-shot capture-phase click listener ---
CAPTURE_INSTALL_JS = """
(message) => {
    window._stepengine_capture_selector = undefined;
    const OVERLAY_ID = 'stepengine-capture-overlay';
    if (!document.getElementById(OVERLAY_ID)) {
        const overlay = document.createElement('div');
        overlay.id = OVERLAY_ID;
        Object.assign(overlay.style, {
            position: 'fixed', top: '0', left: '0', right: '0', padding: '10px',
            background: 'rgba(0,0,0,0.8)', color: '#fff', fontSize: '16px',
            zIndex: '2147483647', textAlign: 'center', pointerEvents: 'none'
        });
        overlay.innerText = message;
        document.body.appendChild(overlay);
    }
    const handler = (event) => {
        event.preventDefault();
        event.stopPropagation();
        const el = event.target;
        let selector = '';
        if (el.id) selector = `#${CSS.escape(el.id)}`;
        else if (el.getAttribute('data-testid')) selector = `[data-testid="${el.getAttribute('data-testid')}"]`;
        else if (typeof el.className === 'string' && el.className.trim()) selector = '.' + Array.from(el.classList).map(c => CSS.escape(c)).join('.');
        else selector = el.tagName.toLowerCase();
        document.removeEventListener('click', handler, true);
        delete window._stepengineCaptureListener;
        const overlay = document.getElementById(OVERLAY_ID);
        if (overlay) overlay.remove();
        window._stepengine_capture_selector = selector;
    };
    if (window._stepengineCaptureListener) {
        document.removeEventListener('click', window._stepengineCaptureListener, true);
    }
    document.addEventListener('click', handler, true);
    window._stepengineCaptureListener = handler;
}
"""

CAPTURE_DONE_JS = "() => window._stepengine_capture_selector !== undefined"
CAPTURE_RESULT_JS = "() => window._stepengine_capture_selector || null"

CAPTURE_REMOVE_JS = """
() => {
    if (window._stepengineCaptureListener) {
        document.removeEventListener('click', window._stepengineCaptureListener, true);
        delete window._stepengineCaptureListener;
    }
    const overlay = document.getElementById('stepengine-capture-overlay');
    if (overlay) overlay.remove();
    delete window._stepengine_capture_selector;
}
"""


def install_click_capture(page, message: str) -> None:
    page.evaluate(CAPTURE_INSTALL_JS, message)

def wait_for_captured_selector(page, timeout_ms: float) -> Optional[str]:
    """Blocks until the operator clicks. Raises Playwright's TimeoutError if nobody does."""
    page.wait_for_function(CAPTURE_DONE_JS, timeout=timeout_ms)
    return page.evaluate(CAPTURE_RESULT_JS)

def remove_click_capture(page) -> None:
    page.evaluate(CAPTURE_REMOVE_JS)

CLEAR_VALUE_JS = "(el) => { if ('value' in el) el.value = ''; }"


def clear_value(handle) -> None:
    handle.evaluate(CLEAR_VALUE_JS)
