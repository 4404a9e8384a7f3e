"""
Page collaborators for the discovery engine.

The engine only talks to a ``FormPage``: take a snapshot of the visible
fields, put a value into one field, pick one option of a choice field.
``PlaywrightFormPage`` implements that against a live Playwright page or
frame; tests use an in-memory double.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError

from .errors import FieldInteractionError
from .models import ChoiceOption, FieldDescriptor, FieldKind

logger = logging.getLogger(__name__)

REF_ATTRIBUTE = "data-form-discovery-ref"

# Runs inside the page. Returns one record per visible input, with radio
# buttons sharing a name collapsed into a single group record. Each radio also
# carries its own ref, used to check that one option.
EXTRACT_FIELDS_SCRIPT = """
(rootSelector) => {
    const SKIP_TYPES = ['hidden', 'submit', 'button', 'reset', 'image'];
    const REF = '%(ref)s';
    window.__formDiscoveryRef = window.__formDiscoveryRef || 0;

    const textOf = (el) => (el && el.textContent ? el.textContent.trim() : '');

    const isHidden = (el) => {
        const style = window.getComputedStyle(el);
        return el.type === 'hidden' ||
               el.style.display === 'none' ||
               el.style.visibility === 'hidden' ||
               el.hasAttribute('hidden') ||
               style.display === 'none' ||
               style.visibility === 'hidden';
    };

    const siblingText = (start) => {
        let sibling = start;
        while (sibling) {
            if (sibling.tagName === 'LABEL' || textOf(sibling)) {
                return textOf(sibling);
            }
            sibling = sibling.previousElementSibling;
        }
        return '';
    };

    const labelFor = (el) => {
        if (el.id) {
            const explicit = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
            if (explicit && textOf(explicit)) return textOf(explicit);
        }
        const parentLabel = el.closest('label');
        if (parentLabel && textOf(parentLabel)) return textOf(parentLabel);
        let text = siblingText(el.previousElementSibling);
        if (!text && el.parentElement) {
            text = siblingText(el.parentElement.previousElementSibling);
        }
        if (text) return text;
        return el.placeholder || el.getAttribute('aria-label') || '';
    };

    const optionText = (radio) => {
        if (radio.id) {
            const explicit = document.querySelector(`label[for="${CSS.escape(radio.id)}"]`);
            if (explicit && textOf(explicit)) return textOf(explicit);
        }
        const parentLabel = radio.closest('label');
        if (parentLabel && textOf(parentLabel)) return textOf(parentLabel);
        if (textOf(radio.nextElementSibling)) return textOf(radio.nextElementSibling);
        return radio.value;
    };

    const groupLabel = (radio) => {
        const fieldset = radio.closest('fieldset');
        if (fieldset) {
            const legend = fieldset.querySelector('legend');
            if (textOf(legend)) return textOf(legend);
        }
        const radioGroup = radio.closest('[role="radiogroup"]');
        if (radioGroup && radioGroup.getAttribute('aria-label')) {
            return radioGroup.getAttribute('aria-label').trim();
        }
        let container = radio.parentElement;
        while (container && container.tagName === 'LABEL') {
            container = container.parentElement;
        }
        const text = container ? siblingText(container.previousElementSibling) : '';
        return text || radio.name;
    };

    const refOf = (el) => {
        if (!el.hasAttribute(REF)) {
            window.__formDiscoveryRef += 1;
            el.setAttribute(REF, String(window.__formDiscoveryRef));
        }
        return el.getAttribute(REF);
    };

    const roots = Array.from(document.querySelectorAll(rootSelector));
    const scopes = roots.length ? roots : [document];
    const seen = new Set();
    const groups = {};
    const records = [];

    scopes.forEach(scope => {
        scope.querySelectorAll('input, textarea, select').forEach(el => {
            if (seen.has(el)) return;
            seen.add(el);

            const tag = el.tagName.toLowerCase();
            const type = (el.type || 'text').toLowerCase();
            if (tag === 'input' && SKIP_TYPES.includes(type)) return;
            if (isHidden(el)) return;

            let kind = type;
            if (tag === 'textarea') kind = 'textarea';
            if (tag === 'select') kind = 'select';

            if (kind === 'radio' && el.name) {
                let group = groups[el.name];
                if (!group) {
                    group = {
                        kind: 'radio',
                        label: groupLabel(el),
                        id: el.name,
                        name: el.name,
                        selector: `input[type="radio"][name="${CSS.escape(el.name)}"]`,
                        options: []
                    };
                    groups[el.name] = group;
                    records.push(group);
                }
                group.options.push({
                    value: el.value,
                    text: optionText(el),
                    selector: `[${REF}="${refOf(el)}"]`
                });
                return;
            }

            const record = {
                kind: kind,
                label: labelFor(el),
                id: el.id || null,
                name: el.name || null,
                selector: `[${REF}="${refOf(el)}"]`,
                options: null
            };
            if (tag === 'select') {
                record.options = Array.from(el.options).map(option => ({
                    value: option.value,
                    text: textOf(option)
                }));
            }
            records.push(record);
        });
    });

    return records;
}
""" % {"ref": REF_ATTRIBUTE}

# Runs inside the page. Returns a copy of the matched forms with entered
# values, checked/selected state, refs and <script> tags removed, or null
# when nothing matches. Several forms are wrapped in one container.
FORM_HTML_SCRIPT = """
(rootSelector) => {
    const REF = '%(ref)s';
    const forms = Array.from(document.querySelectorAll(rootSelector));
    if (forms.length === 0) return null;

    const cleanForm = (form) => {
        const copy = form.cloneNode(true);
        copy.querySelectorAll('input, textarea, select').forEach(el => {
            const type = (el.getAttribute('type') || '').toLowerCase();
            if (type !== 'radio' && type !== 'checkbox') el.removeAttribute('value');
            if (el.tagName === 'TEXTAREA') el.textContent = '';
            el.removeAttribute('checked');
        });
        copy.querySelectorAll('option[selected]').forEach(option => option.removeAttribute('selected'));
        copy.querySelectorAll(`[${REF}]`).forEach(el => el.removeAttribute(REF));
        copy.querySelectorAll('script').forEach(script => script.remove());
        return copy;
    };

    if (forms.length === 1) return cleanForm(forms[0]).outerHTML;

    const container = document.createElement('div');
    container.className = 'extracted-forms';
    forms.forEach(form => {
        const wrapper = document.createElement('div');
        wrapper.className = 'form-wrapper';
        wrapper.appendChild(cleanForm(form));
        container.appendChild(wrapper);
    });
    return container.outerHTML;
}
""" % {"ref": REF_ATTRIBUTE}

_HASH_SUFFIX = re.compile(r'\s+[a-f0-9]{8}$')
_REQUIRED_MARKER = re.compile(r'\s*\(required\)\s*', re.IGNORECASE)
_WHITESPACE = re.compile(r'\s+')


def clean_label(text: Optional[str]) -> str:
    """Strip asterisks, "(required)" markers, hash suffixes and extra whitespace."""
    if not text:
        return ""
    text = text.replace('*', '').strip()
    text = _HASH_SUFFIX.sub('', text)
    text = _REQUIRED_MARKER.sub(' ', text)
    return _WHITESPACE.sub(' ', text).strip()


def parse_snapshot(records: Optional[List[Dict[str, Any]]]) -> List[FieldDescriptor]:
    """Turn the raw records returned by EXTRACT_FIELDS_SCRIPT into descriptors."""
    fields = []
    for record in records or []:
        options = tuple(
            ChoiceOption(
                value=str(opt.get("value") or ""),
                text=clean_label(opt.get("text")) or str(opt.get("value") or ""),
                selector=opt.get("selector") or None,
            )
            for opt in record.get("options") or []
        )
        raw_kind = str(record.get("kind") or "text").strip().lower()
        fields.append(FieldDescriptor(
            kind=FieldKind.from_raw(raw_kind),
            input_type=raw_kind,
            label=clean_label(record.get("label")),
            dom_id=record.get("id") or None,
            name=record.get("name") or None,
            selector=record.get("selector") or None,
            choice_options=options,
        ))
    return fields


class FormPage(ABC):
    """Narrow capability interface the discovery engine drives."""

    @abstractmethod
    async def extract_visible_fields(self) -> List[FieldDescriptor]:
        """Return descriptors for every currently visible input."""
        pass

    @abstractmethod
    async def apply_value(self, field: FieldDescriptor, value: str) -> None:
        """
        Put ``value`` into ``field`` and fire input/change/blur.

        Must return only after the page's reactive logic had a chance to run.
        Raises FieldInteractionError when the field cannot be driven.
        """
        pass

    @abstractmethod
    async def select_option(self, field: FieldDescriptor, option_index: int) -> None:
        """Choose option ``option_index`` of a radio group or select."""
        pass

    async def settle(self) -> None:
        """Give the page time to react after a full fill pass."""
        return None


class PlaywrightFormPage(FormPage):
    """FormPage backed by a Playwright async Page or Frame."""

    def __init__(self, page, form_selector: str = "form", settle_ms: int = 2000,
                 option_settle_ms: int = 1000, field_settle_ms: int = 100,
                 interaction_timeout: int = 3000):
        self.page = page
        self.logger = logger
        self.form_selector = form_selector
        self.settle_ms = settle_ms
        self.option_settle_ms = option_settle_ms
        self.field_settle_ms = field_settle_ms
        self.interaction_timeout = interaction_timeout

    async def extract_visible_fields(self) -> List[FieldDescriptor]:
        records = await self.page.evaluate(EXTRACT_FIELDS_SCRIPT, self.form_selector)
        fields = parse_snapshot(records)
        self.logger.debug(f"Snapshot: {len(fields)} visible fields")
        return fields

    def _locator(self, field: FieldDescriptor):
        if not field.selector:
            raise FieldInteractionError(field.label, "no selector recorded for field")
        return self.page.locator(field.selector)

    def _radio_target(self, field: FieldDescriptor, index: int):
        if not field.choice_options:
            raise FieldInteractionError(field.label, "radio group has no options")
        option = field.choice_options[index]
        if option.selector:
            return self.page.locator(option.selector).first
        return self._locator(field).nth(index)

    async def apply_value(self, field: FieldDescriptor, value: str) -> None:
        timeout = self.interaction_timeout
        try:
            if field.kind == FieldKind.RADIO:
                values = [opt.value for opt in field.choice_options]
                index = values.index(value) if value in values else 0
                target = self._radio_target(field, index)
                await target.check(timeout=timeout)
            else:
                target = self._locator(field).first
                input_type = (await target.get_attribute('type', timeout=timeout) or '').lower()
                if input_type == 'file':
                    self.logger.debug(f"Leaving file input untouched: {field.label}")
                    return
                if field.kind == FieldKind.CHECKBOX:
                    await target.set_checked(value == 'true', timeout=timeout)
                elif field.kind == FieldKind.SELECT:
                    await target.select_option(value=value, timeout=timeout)
                else:
                    await target.fill(value, timeout=timeout)
                    await target.dispatch_event('change')
            await target.dispatch_event('blur')
        except PlaywrightError as e:
            raise FieldInteractionError(field.label, str(e)) from e
        await self.page.wait_for_timeout(self.field_settle_ms)

    async def select_option(self, field: FieldDescriptor, option_index: int) -> None:
        if not 0 <= option_index < len(field.choice_options):
            raise FieldInteractionError(field.label, f"option index {option_index} out of range")
        timeout = self.interaction_timeout
        try:
            if field.kind == FieldKind.RADIO:
                target = self._radio_target(field, option_index)
                await target.check(timeout=timeout)
            elif field.kind == FieldKind.SELECT:
                target = self._locator(field).first
                await target.select_option(index=option_index, timeout=timeout)
            else:
                raise FieldInteractionError(field.label, f"{field.kind.value} fields have no options")
            await target.dispatch_event('change')
        except PlaywrightError as e:
            raise FieldInteractionError(field.label, str(e)) from e
        await self.page.wait_for_timeout(self.option_settle_ms)

    async def settle(self) -> None:
        await self.page.wait_for_timeout(self.settle_ms)

    async def extract_form_html(self) -> Optional[str]:
        """Cleaned HTML of the matched forms, or None when there are none."""
        try:
            html = await self.page.evaluate(FORM_HTML_SCRIPT, self.form_selector)
        except PlaywrightError as e:
            self.logger.warning(f"Failed to extract form HTML: {e}")
            return None
        if not html:
            self.logger.info(f"No forms matching '{self.form_selector}' found on the page")
            return None
        self.logger.info("Form HTML extracted (values and scripts stripped)")
        return html
