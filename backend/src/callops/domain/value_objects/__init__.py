"""Domain value objects — immutable, self-validating types.

Value objects have *no identity*; two instances with equal fields are equal.
They enforce invariants at construction time so the rest of the domain can
trust their contents without re-checking.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from callops.domain.enums import FieldType

Number = Union[int, float]
DraftValue = Union[str, int, float]


# ═══════════════════════════════════════════════════════════════
#  FieldOption
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class FieldOption:
    """One value/label pair of a select field."""

    value: str
    label: str

    @classmethod
    def coerce(cls, raw: Any) -> FieldOption:
        """Accept ``FieldOption``, ``{"value", "label"}`` mappings or bare strings."""
        if isinstance(raw, FieldOption):
            return raw
        if isinstance(raw, Mapping):
            value = str(raw["value"])
            return cls(value=value, label=str(raw.get("label") or value))
        return cls(value=str(raw), label=str(raw))


# ═══════════════════════════════════════════════════════════════
#  FieldDescriptor
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """A single configurable attribute of a provider type.

    Attributes:
        key:          Unique key within the schema; also the draft key.
        label:        Human-readable label.
        type:         Input kind; unknown raw types resolve to ``TEXT``.
        required:     Whether an empty value fails validation.
        options:      Ordered choices (select fields only, never empty there).
        min/max/step: Numeric bounds (number fields only).
        help:         Hint text rendered under the input.
        placeholder:  Input placeholder.
        rows:         Visible rows for multi-line text.
    """

    key: str
    label: str
    type: FieldType = FieldType.TEXT
    required: bool = False
    options: tuple[FieldOption, ...] = ()
    min: Number | None = None
    max: Number | None = None
    step: Number | None = None
    help: str | None = None
    placeholder: str | None = None
    rows: int = 4

    def __post_init__(self) -> None:
        if not self.key or not self.key.strip():
            raise ValueError("Field key must be a non-empty string")
        if not isinstance(self.type, FieldType):
            object.__setattr__(self, "type", FieldType.parse(self.type))
        if not isinstance(self.options, tuple):
            object.__setattr__(
                self, "options", tuple(FieldOption.coerce(o) for o in self.options)
            )
        if self.type is FieldType.SELECT and not self.options:
            raise ValueError(f"Select field {self.key!r} must declare at least one option")
        if self.step is not None and self.step <= 0:
            raise ValueError(f"Field {self.key!r} step must be positive")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"Field {self.key!r} has min greater than max")

    @classmethod
    def from_mapping(cls, key: str, raw: Mapping[str, Any]) -> FieldDescriptor:
        """Build a descriptor from the JSON-ish shape used by schema documents."""
        return cls(
            key=key,
            label=str(raw.get("label") or key),
            type=FieldType.parse(raw.get("type")),
            required=bool(raw.get("required", False)),
            options=tuple(FieldOption.coerce(o) for o in raw.get("options") or ()),
            min=raw.get("min"),
            max=raw.get("max"),
            step=raw.get("step"),
            help=raw.get("help"),
            placeholder=raw.get("placeholder"),
            rows=int(raw.get("rows") or 4),
        )

    @property
    def option_values(self) -> tuple[str, ...]:
        return tuple(o.value for o in self.options)


# ═══════════════════════════════════════════════════════════════
#  ProviderSchema
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class ProviderSchema(Mapping[str, FieldDescriptor]):
    """Ordered, immutable mapping of field key → descriptor for one provider type."""

    provider: str
    fields: tuple[FieldDescriptor, ...] = ()
    _index: dict[str, FieldDescriptor] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        index: dict[str, FieldDescriptor] = {}
        for descriptor in self.fields:
            if descriptor.key in index:
                raise ValueError(
                    f"Duplicate field key {descriptor.key!r} in schema {self.provider!r}"
                )
            index[descriptor.key] = descriptor
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "_index", index)

    @classmethod
    def of(cls, provider: str, descriptors: Iterable[FieldDescriptor]) -> ProviderSchema:
        return cls(provider=provider, fields=tuple(descriptors))

    @classmethod
    def from_mapping(
        cls, provider: str, raw: Mapping[str, Mapping[str, Any]] | None
    ) -> ProviderSchema:
        """Build a schema from ``{key: {label, type, ...}}``; ``None`` gives an empty schema."""
        return cls.of(
            provider,
            (FieldDescriptor.from_mapping(key, spec) for key, spec in (raw or {}).items()),
        )

    @classmethod
    def empty(cls, provider: str = "") -> ProviderSchema:
        return cls(provider=provider)

    # ── Mapping protocol ─────────────────────────────────────
    def __getitem__(self, key: str) -> FieldDescriptor:
        return self._index[key]

    def __iter__(self) -> Iterator[str]:
        return (d.key for d in self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    @property
    def secret_keys(self) -> frozenset[str]:
        return frozenset(d.key for d in self.fields if d.type.is_secret)
