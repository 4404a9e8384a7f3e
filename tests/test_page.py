"""
Tests for the Playwright page adapter.

Most tests use mocked Playwright page and locator objects. The in-browser
tests run the page scripts in headless Chromium and skip when it is missing.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from playwright.async_api import Error as PlaywrightError, async_playwright

from form_discovery.errors import FieldInteractionError
from form_discovery.models import ChoiceOption, FieldDescriptor, FieldKind
from form_discovery.page import (
    EXTRACT_FIELDS_SCRIPT, FORM_HTML_SCRIPT, REF_ATTRIBUTE, PlaywrightFormPage, clean_label, parse_snapshot,
)

from fakes import radio_field, select_field, text_field


# ============ Fixtures ============

@pytest.fixture
def mock_target():
    """Create a mock locator for a single element."""
    target = MagicMock()
    target.get_attribute = AsyncMock(return_value="text")
    target.fill = AsyncMock()
    target.check = AsyncMock()
    target.set_checked = AsyncMock()
    target.select_option = AsyncMock()
    target.dispatch_event = AsyncMock()
    return target


@pytest.fixture
def mock_page(mock_target):
    """Create a mock Playwright page whose locators resolve to mock_target."""
    locator = MagicMock()
    locator.first = mock_target
    locator.nth = MagicMock(return_value=mock_target)

    page = MagicMock()
    page.locator = MagicMock(return_value=locator)
    page.evaluate = AsyncMock(return_value=[])
    page.wait_for_timeout = AsyncMock()
    return page


def _adapter(page):
    return PlaywrightFormPage(page, settle_ms=2000, option_settle_ms=1000, field_settle_ms=100)


# ============ Label cleanup Tests ============

class TestCleanLabel:

    def test_strips_required_markers(self):
        assert clean_label("First Name *") == "First Name"
        assert clean_label("Email (required)") == "Email"
        assert clean_label("Phone (Required) ") == "Phone"

    def test_strips_hash_suffix(self):
        assert clean_label("Location 3fa85f64") == "Location"

    def test_collapses_whitespace(self):
        assert clean_label("  Why   do you\nwant this job? ") == "Why do you want this job?"

    def test_empty(self):
        assert clean_label(None) == ""
        assert clean_label("") == ""


# ============ parse_snapshot Tests ============

class TestParseSnapshot:
    """Tests for turning raw page records into descriptors."""

    def test_parses_records(self):
        records = [
            {"kind": "email", "label": "Email *", "id": "email", "name": "email",
             "selector": f'[{REF_ATTRIBUTE}="1"]', "options": None},
            {"kind": "select", "label": "Country", "id": None, "name": "country",
             "selector": f'[{REF_ATTRIBUTE}="2"]',
             "options": [{"value": "", "text": "Select..."}, {"value": "ca", "text": "Canada"}]},
            {"kind": "radio", "label": "Remote?", "id": "remote", "name": "remote",
             "selector": 'input[type="radio"][name="remote"]',
             "options": [{"value": "yes", "text": ""}, {"value": "no", "text": "No"}]},
        ]

        email, country, remote = parse_snapshot(records)

        assert email.kind == FieldKind.EMAIL
        assert email.label == "Email"
        assert email.selector == '[data-form-discovery-ref="1"]'
        assert country.kind == FieldKind.SELECT
        assert country.dom_id is None
        assert [o.text for o in country.choice_options] == ["Select...", "Canada"]
        assert remote.kind == FieldKind.RADIO
        # an option without text falls back to its value
        assert remote.choice_options[0].text == "yes"
        assert all(f.visible and not f.conditional for f in (email, country, remote))

    def test_radio_options_keep_their_own_selectors(self):
        records = [{
            "kind": "radio", "label": "Need visa?", "id": "visa", "name": "visa",
            "selector": 'input[type="radio"][name="visa"]',
            "options": [
                {"value": "yes", "text": "Yes", "selector": f'[{REF_ATTRIBUTE}="2"]'},
                {"value": "no", "text": "No", "selector": f'[{REF_ATTRIBUTE}="3"]'},
            ],
        }]

        group, = parse_snapshot(records)

        assert [o.selector for o in group.choice_options] == [
            '[data-form-discovery-ref="2"]', '[data-form-discovery-ref="3"]',
        ]
        # selectors are page handles, not part of an option's identity
        assert group.choice_options[0] == ChoiceOption("yes", "Yes")

    def test_keeps_raw_input_type(self):
        timer, = parse_snapshot([{"kind": "time", "label": "Start time", "selector": "#t"}])

        assert timer.kind == FieldKind.OTHER
        assert timer.input_type == "time"
        assert timer.to_dict()["input_type"] == "time"

    def test_empty(self):
        assert parse_snapshot(None) == []
        assert parse_snapshot([]) == []


# ============ PlaywrightFormPage Tests ============

class TestPlaywrightFormPage:
    """Tests for PlaywrightFormPage with mocked locators."""

    def test_extract_runs_script_with_form_selector(self, mock_page):
        mock_page.evaluate.return_value = [{"kind": "text", "label": "City", "selector": "#city"}]

        fields = asyncio.run(PlaywrightFormPage(mock_page, form_selector="#apply").extract_visible_fields())

        mock_page.evaluate.assert_awaited_once_with(EXTRACT_FIELDS_SCRIPT, "#apply")
        assert [f.label for f in fields] == ["City"]

    def test_apply_value_fills_text(self, mock_page, mock_target):
        field = text_field("City", selector="#city")

        asyncio.run(_adapter(mock_page).apply_value(field, "test"))

        mock_page.locator.assert_called_with("#city")
        mock_target.fill.assert_awaited_once_with("test", timeout=3000)
        dispatched = [c.args[0] for c in mock_target.dispatch_event.await_args_list]
        assert dispatched == ["change", "blur"]
        mock_page.wait_for_timeout.assert_awaited_once_with(100)

    def test_apply_value_skips_file_inputs(self, mock_page, mock_target):
        mock_target.get_attribute.return_value = "file"

        asyncio.run(_adapter(mock_page).apply_value(text_field("Resume", kind=FieldKind.OTHER, selector="#cv"), "x"))

        mock_target.fill.assert_not_awaited()

    def test_apply_value_checks_checkbox(self, mock_page, mock_target):
        field = text_field("Agree", kind=FieldKind.CHECKBOX, selector="#agree")

        asyncio.run(_adapter(mock_page).apply_value(field, "true"))

        mock_target.set_checked.assert_awaited_once_with(True, timeout=3000)

    def test_apply_value_selects_by_value(self, mock_page, mock_target):
        field = select_field("Country", ["Select...", "Canada"], dom_id="country", selector="#country")

        asyncio.run(_adapter(mock_page).apply_value(field, "canada"))

        mock_target.select_option.assert_awaited_once_with(value="canada", timeout=3000)

    def test_apply_value_checks_matching_radio(self, mock_page, mock_target):
        group = radio_field("Remote", ["Yes", "No"], selector='input[type="radio"][name="remote"]')
        locator = mock_page.locator.return_value

        asyncio.run(_adapter(mock_page).apply_value(group, "no"))

        locator.nth.assert_called_with(1)
        mock_target.check.assert_awaited_once()

    def test_select_option_checks_radio_by_its_own_ref(self, mock_page, mock_target):
        """A hidden first radio sharing the name must not shift the option picked."""
        group = FieldDescriptor(
            kind=FieldKind.RADIO, label="Need visa?", dom_id="visa", name="visa",
            selector='input[type="radio"][name="visa"]',
            choice_options=(
                ChoiceOption("yes", "Yes", selector=f'[{REF_ATTRIBUTE}="2"]'),
                ChoiceOption("no", "No", selector=f'[{REF_ATTRIBUTE}="3"]'),
            ),
        )

        asyncio.run(_adapter(mock_page).select_option(group, 0))

        mock_page.locator.assert_called_once_with('[data-form-discovery-ref="2"]')
        mock_page.locator.return_value.nth.assert_not_called()
        mock_target.check.assert_awaited_once_with(timeout=3000)
        mock_target.dispatch_event.assert_awaited_with("change")

    def test_apply_value_checks_radio_by_its_own_ref(self, mock_page, mock_target):
        group = FieldDescriptor(
            kind=FieldKind.RADIO, label="Need visa?",
            choice_options=(
                ChoiceOption("yes", "Yes", selector=f'[{REF_ATTRIBUTE}="2"]'),
                ChoiceOption("no", "No", selector=f'[{REF_ATTRIBUTE}="3"]'),
            ),
        )

        asyncio.run(_adapter(mock_page).apply_value(group, "no"))

        mock_page.locator.assert_called_once_with('[data-form-discovery-ref="3"]')
        mock_target.check.assert_awaited_once()

    def test_interaction_timeout_is_used(self, mock_page, mock_target):
        adapter = PlaywrightFormPage(mock_page, field_settle_ms=0, interaction_timeout=750)

        asyncio.run(adapter.apply_value(text_field("City", selector="#city"), "test"))

        mock_target.fill.assert_awaited_once_with("test", timeout=750)

    def test_extract_form_html(self, mock_page):
        mock_page.evaluate.return_value = '<form><input name="email"></form>'

        html = asyncio.run(PlaywrightFormPage(mock_page, form_selector="#apply").extract_form_html())

        assert html == '<form><input name="email"></form>'
        mock_page.evaluate.assert_awaited_once_with(FORM_HTML_SCRIPT, "#apply")

    def test_extract_form_html_without_forms(self, mock_page):
        mock_page.evaluate.return_value = None
        assert asyncio.run(_adapter(mock_page).extract_form_html()) is None

    def test_extract_form_html_failure_returns_none(self, mock_page):
        mock_page.evaluate.side_effect = PlaywrightError("Execution context was destroyed")
        assert asyncio.run(_adapter(mock_page).extract_form_html()) is None

    def test_playwright_error_wrapped(self, mock_page, mock_target):
        """A detached element becomes a per-field FieldInteractionError."""
        mock_target.fill.side_effect = PlaywrightError("Element is not attached to the DOM")

        with pytest.raises(FieldInteractionError) as excinfo:
            asyncio.run(_adapter(mock_page).apply_value(text_field("City", selector="#city"), "test"))

        assert excinfo.value.field_label == "City"
        assert "not attached" in excinfo.value.reason

    def test_missing_selector(self, mock_page):
        with pytest.raises(FieldInteractionError):
            asyncio.run(_adapter(mock_page).apply_value(text_field("Ghost"), "test"))

    def test_select_option_on_select(self, mock_page, mock_target):
        field = select_field("Shift", ["Day", "Night"], selector="#shift")

        asyncio.run(_adapter(mock_page).select_option(field, 1))

        mock_target.select_option.assert_awaited_once_with(index=1, timeout=3000)
        mock_target.dispatch_event.assert_awaited_with("change")
        mock_page.wait_for_timeout.assert_awaited_once_with(1000)

    def test_select_option_out_of_range(self, mock_page):
        field = select_field("Shift", ["Day", "Night"])
        with pytest.raises(FieldInteractionError):
            asyncio.run(_adapter(mock_page).select_option(field, 2))

    def test_settle_waits(self, mock_page):
        asyncio.run(_adapter(mock_page).settle())
        mock_page.wait_for_timeout.assert_awaited_once_with(2000)


# ============ Snapshot script Tests ============

class TestSnapshotScript:
    """Checks on the in-page scripts that need no browser."""

    def test_ref_attribute_substituted(self):
        for script in (EXTRACT_FIELDS_SCRIPT, FORM_HTML_SCRIPT):
            assert REF_ATTRIBUTE in script
            assert "%(ref)s" not in script

    def test_label_sources_tried_in_order(self):
        """Should try for=, then the wrapping label, then sibling text, then placeholder/aria-label."""
        body = EXTRACT_FIELDS_SCRIPT.split("const labelFor", 1)[1].split("const optionText", 1)[0]
        steps = [
            "label[for=",
            "el.closest('label')",
            "siblingText(el.previousElementSibling)",
            "siblingText(el.parentElement.previousElementSibling)",
            "el.placeholder || el.getAttribute('aria-label')",
        ]
        positions = [body.index(step) for step in steps]
        assert positions == sorted(positions)

    def test_radios_grouped_by_name_with_per_option_refs(self):
        body = EXTRACT_FIELDS_SCRIPT.split("if (kind === 'radio' && el.name)", 1)[1].split("const record", 1)[0]
        assert "groups[el.name]" in body
        assert "selector: `[${REF}=\"${refOf(el)}\"]`" in body

    def test_button_like_inputs_skipped(self):
        for input_type in ("hidden", "submit", "button", "reset", "image"):
            assert f"'{input_type}'" in EXTRACT_FIELDS_SCRIPT.split("const SKIP_TYPES", 1)[1].split(";", 1)[0]


# ============ In-browser Tests ============

_NO_BROWSER = object()

SIGNUP_FORM = """
<form id="apply">
  <div><input name="city" placeholder="City"></div>
  <div><label for="fn">First Name *</label><input id="fn" name="first_name"></div>
  <div><label>Email <input type="email" name="email"></label></div>
  <div><span>Phone</span><input type="tel" name="phone"></div>
  <input type="hidden" name="token" value="abc">
  <input name="honeypot" style="display:none">
  <fieldset>
    <legend>Need visa?</legend>
    <input type="radio" name="visa" value="none" style="display:none">
    <label><input type="radio" name="visa" value="yes"> Yes</label>
    <label><input type="radio" name="visa" value="no"> No</label>
  </fieldset>
  <textarea name="notes">draft</textarea>
  <script>window.secret = 1;</script>
  <button type="submit">Send</button>
</form>
<input name="newsletter" placeholder="Outside the form">
"""


async def _in_browser(html, action):
    async with async_playwright() as p:
        try:
            browser = await p.chromium.launch(headless=True)
        except PlaywrightError:
            return _NO_BROWSER
        try:
            page = await browser.new_page()
            await page.set_content(html)
            adapter = PlaywrightFormPage(page, form_selector="#apply", settle_ms=0,
                                         option_settle_ms=0, field_settle_ms=0)
            return await action(page, adapter)
        finally:
            await browser.close()


def run_in_browser(html, action):
    result = asyncio.run(_in_browser(html, action))
    if result is _NO_BROWSER:
        pytest.skip("Chromium is not installed (run: playwright install chromium)")
    return result


class TestSnapshotScriptInBrowser:
    """Runs the in-page scripts against a real Chromium page; skipped without one."""

    def test_labels_and_skipped_inputs(self):
        async def action(page, adapter):
            return await adapter.extract_visible_fields()

        fields = run_in_browser(SIGNUP_FORM, action)

        labels = [f.label for f in fields]
        assert [f.kind for f in fields] == [
            FieldKind.TEXT, FieldKind.TEXT, FieldKind.EMAIL, FieldKind.TEL, FieldKind.RADIO, FieldKind.TEXTAREA,
        ]
        assert labels[:5] == ["City", "First Name", "Email", "Phone", "Need visa?"]
        assert "Outside the form" not in labels
        assert len(fields) == 6

    def test_hidden_radio_not_an_option(self):
        async def action(page, adapter):
            fields = await adapter.extract_visible_fields()
            group = next(f for f in fields if f.kind == FieldKind.RADIO)
            await adapter.select_option(group, 0)
            checked = await page.evaluate(
                "() => document.querySelector('input[name=visa]:checked').value"
            )
            return group, checked

        group, checked = run_in_browser(SIGNUP_FORM, action)

        assert [o.text for o in group.choice_options] == ["Yes", "No"]
        assert checked == "yes"

    def test_form_html_is_cleaned(self):
        async def action(page, adapter):
            await page.fill("#fn", "Ada")
            return await adapter.extract_form_html()

        html = run_in_browser(SIGNUP_FORM, action)

        assert html.startswith('<form id="apply">')
        assert "<script" not in html
        assert "draft" not in html
        assert 'value="abc"' not in html
        assert "Ada" not in html
        assert 'value="yes"' in html
        assert "Outside the form" not in html
