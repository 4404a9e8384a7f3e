"""
Per-run accumulator for the discovery engine.
"""

import logging
from typing import Dict, Iterable, List, Set, Tuple

from .identity import UNSTABLE_ID_MARKERS, identity_key, label_kind_signature
from .models import DiscoveryResult, FieldDescriptor, FieldError

logger = logging.getLogger(__name__)


class DiscoverySession:
    """
    Growing field inventory for a single discovery run.

    Owned by one orchestrator run and never shared. Fields are kept in
    insertion order; uniqueness is decided by identity key and by the
    label/kind collision rule.
    """

    def __init__(self, unstable_id_markers: Iterable[str] = UNSTABLE_ID_MARKERS):
        self.unstable_id_markers = tuple(unstable_id_markers)
        self.fields: List[FieldDescriptor] = []
        self._by_key: Dict[str, FieldDescriptor] = {}
        self._signatures: Set[Tuple[str, str]] = set()
        self.iteration = 0
        self.rounds = 0
        self.bounded = False
        self.timed_out = False
        self.errors: List[FieldError] = []
        self.explored: List[str] = []

    def __len__(self) -> int:
        return len(self.fields)

    def key(self, field: FieldDescriptor) -> str:
        return identity_key(field, self.unstable_id_markers)

    def is_known(self, field: FieldDescriptor) -> bool:
        return self.key(field) in self._by_key or label_kind_signature(field) in self._signatures

    def add(self, field: FieldDescriptor) -> bool:
        """Append ``field`` unless an equivalent field is already known."""
        if self.is_known(field):
            return False
        self.fields.append(field)
        self._by_key[self.key(field)] = field
        self._signatures.add(label_kind_signature(field))
        return True

    def seed(self, snapshot: Iterable[FieldDescriptor]) -> int:
        """Record the initial snapshot as iteration 0 fields."""
        added = 0
        for field in snapshot:
            if field.visible and self.add(field):
                added += 1
        logger.info(f"Initial snapshot: {added} fields")
        return added

    def diff(self, snapshot: Iterable[FieldDescriptor]) -> List[FieldDescriptor]:
        """Fields in ``snapshot`` the inventory has not seen, deduplicated among themselves."""
        new_fields = []
        batch_keys: Set[str] = set()
        batch_signatures: Set[Tuple[str, str]] = set()
        checked = 0
        for field in snapshot:
            if not field.visible:
                continue
            checked += 1
            key = self.key(field)
            signature = label_kind_signature(field)
            if self.is_known(field) or key in batch_keys or signature in batch_signatures:
                continue
            logger.debug(f"Detected new field: {field.label} ({field.kind.value}) - Key: {key}")
            batch_keys.add(key)
            batch_signatures.add(signature)
            new_fields.append(field)
        logger.debug(f"Compared {len(self.fields)} known vs {checked} visible fields, {len(new_fields)} new")
        return new_fields

    def record_error(self, step: str, field: FieldDescriptor, exc: BaseException) -> FieldError:
        error = FieldError(
            step=step,
            field_label=field.label,
            field_key=self.key(field),
            iteration=self.iteration,
            message=str(exc),
        )
        self.errors.append(error)
        logger.warning(f"Skipping field '{field.label}' ({field.kind.value}) during {step}: {exc}")
        return error

    def to_result(self) -> DiscoveryResult:
        return DiscoveryResult(
            fields=list(self.fields),
            rounds=self.rounds,
            bounded=self.bounded,
            timed_out=self.timed_out,
            errors=list(self.errors),
            explored=list(self.explored),
        )
