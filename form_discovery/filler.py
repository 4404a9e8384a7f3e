"""
Dummy-fill driver: puts canned, type-valid values into every visible field
so the form's show/hide logic reacts as if a person had filled it in.

Values are fixed so repeated runs against the same form behave the same.
"""

import logging
from typing import Iterable, Optional

from .models import FieldDescriptor, FieldKind
from .page import FormPage
from .session import DiscoverySession

logger = logging.getLogger(__name__)

DUMMY_VALUES = {
    FieldKind.TEXT: "test",
    FieldKind.EMAIL: "test@example.com",
    FieldKind.TEL: "+1234567890",
    FieldKind.NUMBER: "42",
    FieldKind.DATE: "2024-01-01",
    FieldKind.URL: "https://example.com",
    FieldKind.PASSWORD: "testpassword123",
    FieldKind.TEXTAREA: "This is a test textarea content for form validation.",
    FieldKind.CHECKBOX: "true",
    FieldKind.OTHER: "test",
}

# Canned values for input types that map to FieldKind.OTHER. Playwright's
# fill() only accepts these in their exact wire format.
OTHER_TYPE_VALUES = {
    "time": "12:00",
    "month": "2024-01",
    "week": "2024-W01",
    "datetime-local": "2024-01-01T12:00",
    "color": "#000000",
    "range": "50",
}

# fill() rejects these outright
UNFILLABLE_TYPES = ("file",)


def dummy_value_for(field: FieldDescriptor) -> Optional[str]:
    """Canned value for ``field``, or None when there is nothing to choose."""
    if field.kind == FieldKind.RADIO:
        return field.choice_options[0].value if field.choice_options else None
    if field.kind == FieldKind.SELECT:
        options = field.choice_options
        if not options:
            return None
        # first option is usually a "Select..." placeholder
        return options[1].value if len(options) > 1 else options[0].value
    if field.kind == FieldKind.OTHER and field.input_type:
        if field.input_type in UNFILLABLE_TYPES:
            return None
        return OTHER_TYPE_VALUES.get(field.input_type, DUMMY_VALUES[FieldKind.OTHER])
    return DUMMY_VALUES.get(field.kind, DUMMY_VALUES[FieldKind.OTHER])


class DummyFiller:
    """Fills a snapshot field by field; a failing field never stops the pass."""

    def __init__(self):
        self.logger = logger

    async def fill(self, page: FormPage, fields: Iterable[FieldDescriptor], session: DiscoverySession) -> int:
        fields = [f for f in fields if f.visible]
        filled = 0
        self.logger.info(f"Filling {len(fields)} visible fields with dummy data (iteration {session.iteration})")
        for field in fields:
            value = dummy_value_for(field)
            if value is None:
                self.logger.debug(f"No dummy value for {field.label} ({field.input_type or field.kind.value}), skipping")
                continue
            try:
                await page.apply_value(field, value)
                filled += 1
            except Exception as e:
                session.record_error("fill", field, e)
                continue
        await page.settle()
        self.logger.info(f"Filled {filled}/{len(fields)} fields")
        return filled
