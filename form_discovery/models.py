"""
Data model for discovered form fields and discovery runs.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class FieldKind(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    TEL = "tel"
    NUMBER = "number"
    DATE = "date"
    URL = "url"
    PASSWORD = "password"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    TEXTAREA = "textarea"
    SELECT = "select"
    OTHER = "other"

    @classmethod
    def from_raw(cls, value: Optional[str]) -> "FieldKind":
        """Map a raw DOM input type (or tag name) onto a FieldKind."""
        if not value:
            return cls.TEXT
        raw = str(value).strip().lower()
        if raw in ("select-one", "select-multiple"):
            return cls.SELECT
        try:
            return cls(raw)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class ChoiceOption:
    value: str
    text: str
    # locates this one option on the live page; not part of its identity
    selector: Optional[str] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, str]:
        return {"value": self.value, "text": self.text}


@dataclass(frozen=True)
class FieldDescriptor:
    """One visible input on the form, plus how it was discovered."""

    kind: FieldKind
    label: str = ""
    dom_id: Optional[str] = None
    name: Optional[str] = None
    selector: Optional[str] = None
    visible: bool = True
    choice_options: Tuple[ChoiceOption, ...] = ()
    conditional: bool = False
    discovered_at_iteration: int = 0
    triggered_by: Optional[str] = None
    input_type: Optional[str] = None  # raw DOM type, e.g. "time" for an OTHER field

    def __post_init__(self):
        if not isinstance(self.kind, FieldKind):
            object.__setattr__(self, "kind", FieldKind.from_raw(self.kind))
        if self.label is None:
            object.__setattr__(self, "label", "")
        options = tuple(
            opt if isinstance(opt, ChoiceOption) else ChoiceOption(str(opt.get("value", "")), str(opt.get("text", "")), opt.get("selector"))
            for opt in (self.choice_options or ())
        )
        object.__setattr__(self, "choice_options", options)
        if self.discovered_at_iteration < 0:
            raise ValueError(f"discovered_at_iteration must be >= 0, got {self.discovered_at_iteration}")

    @property
    def is_choice(self) -> bool:
        return self.kind in (FieldKind.RADIO, FieldKind.SELECT)

    def annotate(self, iteration: int, triggered_by: Optional[str] = None) -> "FieldDescriptor":
        """Return a copy marked as conditional, first seen at ``iteration``."""
        return replace(
            self,
            conditional=True,
            discovered_at_iteration=iteration,
            triggered_by=triggered_by,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.kind.value,
            "label": self.label,
            "id": self.dom_id,
            "name": self.name,
            "conditional": self.conditional,
            "iteration": self.discovered_at_iteration,
        }
        if self.triggered_by:
            data["triggered_by"] = self.triggered_by
        if self.input_type and self.input_type != self.kind.value:
            data["input_type"] = self.input_type
        if self.choice_options:
            data["options"] = [opt.to_dict() for opt in self.choice_options]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldDescriptor":
        return cls(
            kind=FieldKind.from_raw(data.get("type")),
            label=data.get("label") or "",
            dom_id=data.get("id") or None,
            name=data.get("name") or None,
            choice_options=tuple(
                ChoiceOption(str(opt.get("value", "")), str(opt.get("text", "")))
                for opt in data.get("options") or []
            ),
            conditional=bool(data.get("conditional", False)),
            discovered_at_iteration=int(data.get("iteration", 0)),
            triggered_by=data.get("triggered_by"),
            input_type=data.get("input_type"),
        )


@dataclass(frozen=True)
class FieldError:
    """A recovered per-field failure (fill or option selection)."""

    step: str
    field_label: str
    field_key: str
    iteration: int
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "field_label": self.field_label,
            "field_key": self.field_key,
            "iteration": self.iteration,
            "message": self.message,
        }


@dataclass
class DiscoveryResult(Sequence):
    """
    Ordered inventory of a discovery run.

    Behaves as a sequence of FieldDescriptor in discovery order and also
    carries the run summary: how many fill rounds ran, whether the iteration
    bound or the timeout cut the run short, and which fields failed.
    """

    fields: List[FieldDescriptor] = field(default_factory=list)
    rounds: int = 0
    bounded: bool = False
    timed_out: bool = False
    errors: List[FieldError] = field(default_factory=list)
    explored: List[str] = field(default_factory=list)

    def __getitem__(self, index):
        return self.fields[index]

    def __len__(self) -> int:
        return len(self.fields)

    @property
    def fixed_point(self) -> bool:
        return not self.bounded and not self.timed_out

    @property
    def conditional_fields(self) -> List[FieldDescriptor]:
        return [f for f in self.fields if f.conditional]

    def summary(self) -> Dict[str, Any]:
        by_iteration: Dict[int, int] = {}
        for f in self.fields:
            by_iteration[f.discovered_at_iteration] = by_iteration.get(f.discovered_at_iteration, 0) + 1
        return {
            "total_fields": len(self.fields),
            "conditional_fields": len(self.conditional_fields),
            "triggered_fields": len([f for f in self.fields if f.triggered_by]),
            "fields_by_iteration": {str(k): v for k, v in sorted(by_iteration.items())},
            "rounds": self.rounds,
            "fixed_point": self.fixed_point,
            "bounded": self.bounded,
            "timed_out": self.timed_out,
            "explored_fields": list(self.explored),
            "field_errors": len(self.errors),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary(),
            "fields": [f.to_dict() for f in self.fields],
            "errors": [e.to_dict() for e in self.errors],
        }
