# /tests/test_hint_parser.py
import pytest

from stepengine.resolver.hint_parser import parse_selector_hint


class TestPrefixHints:
    def test_xpath_prefix(self):
        hint = parse_selector_hint("xpath://button")
        assert hint.type == "xpath"
        assert hint.value == "button"
        assert hint.remainder == ""

    def test_css_prefix_is_case_insensitive(self):
        hint = parse_selector_hint("CSS://div.card > a")
        assert hint.type == "css"
        assert hint.value == "div.card > a"


class TestParentheticalHints:
    @pytest.mark.parametrize("raw, expected_type, expected_value", [
        ("(id: myBtn)", "css", "#myBtn"),
        ("(css: li:nth-child(2))", "css", "li:nth-child(2)"),
        ("(xpath: //a[@href='/x'])", "xpath", "//a[@href='/x']"),
        ("(class: btn primary)", "css", ".btn.primary"),
        ("(name: q)", "css", '[name="q"]'),
        ("(testid: submit-btn)", "css", '[data-testid="submit-btn"]'),
        ("(aria-label: Close)", "css", '[aria-label="Close"]'),
        ("(text: Sign up)", "xpath", '//*[normalize-space(text())="Sign up"]'),
    ])
    def test_whole_string_hint(self, raw, expected_type, expected_value):
        hint = parse_selector_hint(raw)
        assert (hint.type, hint.value, hint.remainder) == (expected_type, expected_value, "")

    def test_id_with_spaces_uses_attribute_selector(self):
        assert parse_selector_hint("(id: my button)").value == '[id="my button"]'

    def test_unknown_whole_hint_type_is_treated_as_css(self):
        hint = parse_selector_hint("(role: dialog)")
        assert hint.type == "css"
        assert hint.value == "dialog"

    def test_embedded_hint_is_removed_from_remainder(self):
        hint = parse_selector_hint("the Login button (id: login-btn) on the header")
        assert hint.type == "css"
        assert hint.value == "#login-btn"
        assert hint.remainder == "the Login button on the header"

    def test_plain_parenthetical_text_is_not_a_hint(self):
        hint = parse_selector_hint("Save (draft: yes)")
        assert hint.type is None
        assert hint.remainder == "Save (draft: yes)"


class TestNoHint:
    def test_plain_text_comes_back_as_remainder(self):
        hint = parse_selector_hint("plain text")
        assert hint.type is None
        assert hint.value is None
        assert hint.remainder == "plain text"

    def test_whitespace_is_trimmed(self):
        assert parse_selector_hint("  Submit  ").remainder == "Submit"

    def test_empty_input(self):
        assert parse_selector_hint("").remainder == ""
