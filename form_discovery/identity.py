"""
Stable identity for form fields across snapshots.

Dynamically inserted fields often get a freshly generated DOM id on every
render, so the id alone cannot tell two snapshots of the same field apart.
The key is built from kind + label, with the id appended only when it looks
hand-authored.
"""

import re
from typing import Iterable, Optional, Tuple

from .models import FieldDescriptor

# Substrings that mark an id as framework-generated
UNSTABLE_ID_MARKERS: Tuple[str, ...] = ("input", "tel-input")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize(text: Optional[str]) -> str:
    """Trim, lowercase and collapse non-alphanumeric runs to ``_``."""
    if not text:
        return ""
    return _NON_ALNUM.sub("_", text.strip().lower())


def is_unstable_id(dom_id: Optional[str], markers: Iterable[str] = UNSTABLE_ID_MARKERS) -> bool:
    if not dom_id:
        return True
    lowered = dom_id.lower()
    return any(marker in lowered for marker in markers)


def identity_key(field: FieldDescriptor, markers: Iterable[str] = UNSTABLE_ID_MARKERS) -> str:
    """
    Deterministic identity key for a field.

    ``{kind}_{label}`` or ``{kind}_{label}_{id}`` when the DOM id is present
    and does not contain any of the unstable markers.
    """
    kind = field.kind.value.lower()
    label = normalize(field.label)
    if field.dom_id and not is_unstable_id(field.dom_id, markers):
        return f"{kind}_{label}_{normalize(field.dom_id)}"
    return f"{kind}_{label}"


def label_kind_signature(field: FieldDescriptor) -> Tuple[str, str]:
    """Normalized (label, kind) pair used as the secondary duplicate check."""
    return normalize(field.label), field.kind.value.lower()
