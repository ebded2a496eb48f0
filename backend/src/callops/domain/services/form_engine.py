"""Config form engine — schema-driven rendering and validation of drafts.

A provider schema fully describes which inputs a credential form shows and
which rules a submitted draft must satisfy.  The engine never persists
anything; callers hand the validated result to the activation workflow.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

import structlog

from callops.domain.enums import FieldType
from callops.domain.exceptions import FieldError, ValidationError
from callops.domain.value_objects import (
    DraftValue,
    FieldDescriptor,
    FieldOption,
    Number,
    ProviderSchema,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RenderedField:
    """One input element, in schema order, ready for display."""

    key: str
    label: str
    widget: FieldType
    value: str
    required: bool
    options: tuple[FieldOption, ...] = ()
    min: Number | None = None
    max: Number | None = None
    step: Number | None = None
    help: str | None = None
    placeholder: str | None = None
    rows: int = 4
    has_value: bool = False


@dataclass(frozen=True, slots=True)
class FormResult:
    passed: bool
    values: dict[str, DraftValue]
    errors: list[FieldError]

    @classmethod
    def ok(cls, values: dict[str, DraftValue]) -> FormResult:
        return cls(passed=True, values=values, errors=[])

    @classmethod
    def fail(cls, errors: list[FieldError]) -> FormResult:
        return cls(passed=False, values={}, errors=errors)


class ConfigFormEngine:
    """Renders and validates configuration drafts against a provider schema."""

    # ── Rendering ────────────────────────────────────────────
    def render(
        self,
        schema: ProviderSchema | None,
        draft: Mapping[str, DraftValue] | None = None,
        *,
        mask_secrets: bool = False,
    ) -> list[RenderedField]:
        """One rendered field per descriptor; no schema means no fields."""
        if not schema:
            return []
        draft = draft or {}
        rendered: list[RenderedField] = []
        for descriptor in schema.values():
            value = _as_text(draft.get(descriptor.key))
            has_value = value != ""
            if mask_secrets and descriptor.type.is_secret:
                value = ""
            rendered.append(
                RenderedField(
                    key=descriptor.key,
                    label=descriptor.label,
                    widget=descriptor.type,
                    value=value,
                    required=descriptor.required,
                    options=descriptor.options,
                    min=descriptor.min,
                    max=descriptor.max,
                    step=descriptor.step,
                    help=descriptor.help,
                    placeholder=descriptor.placeholder,
                    rows=descriptor.rows,
                    has_value=has_value,
                )
            )
        return rendered

    # ── Validation ───────────────────────────────────────────
    def check(
        self,
        schema: ProviderSchema | None,
        draft: Mapping[str, DraftValue] | None,
    ) -> FormResult:
        """Validate without raising; keys outside the schema are dropped."""
        if not schema:
            return FormResult.ok({})
        draft = draft or {}
        values: dict[str, DraftValue] = {}
        errors: list[FieldError] = []

        for descriptor in schema.values():
            raw = draft.get(descriptor.key)
            if _is_empty(raw):
                if descriptor.required:
                    errors.append(FieldError(descriptor.key, f"{descriptor.label} is required"))
                continue

            if descriptor.type is FieldType.NUMBER:
                number, reason = _check_number(descriptor, raw)
                if reason:
                    errors.append(FieldError(descriptor.key, reason))
                else:
                    values[descriptor.key] = number
                continue

            text = _as_text(raw)
            if descriptor.type is not FieldType.TEXTAREA:
                text = text.strip()
            if descriptor.type is FieldType.SELECT and text not in descriptor.option_values:
                errors.append(
                    FieldError(descriptor.key, f"{text!r} is not one of the allowed options")
                )
                continue
            values[descriptor.key] = text

        if errors:
            logger.debug(
                "form_validation_failed",
                provider=schema.provider,
                fields=[e.field for e in errors],
            )
            return FormResult.fail(errors)
        return FormResult.ok(values)

    def validate(
        self,
        schema: ProviderSchema | None,
        draft: Mapping[str, DraftValue] | None,
    ) -> dict[str, DraftValue]:
        """Return the normalized configuration or raise ``ValidationError``."""
        result = self.check(schema, draft)
        if not result.passed:
            raise ValidationError(result.errors)
        return result.values


# ── Helpers ──────────────────────────────────────────────────
def _is_empty(raw: object) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def _as_text(raw: object) -> str:
    if raw is None:
        return ""
    return str(raw)


def _check_number(descriptor: FieldDescriptor, raw: DraftValue) -> tuple[Number, str | None]:
    if isinstance(raw, bool):
        return 0, f"{descriptor.label} must be a number"
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        return 0, f"{descriptor.label} must be a number"
    if not value.is_finite():
        return 0, f"{descriptor.label} must be a number"

    if descriptor.min is not None and value < Decimal(str(descriptor.min)):
        return 0, f"{descriptor.label} must be at least {descriptor.min}"
    if descriptor.max is not None and value > Decimal(str(descriptor.max)):
        return 0, f"{descriptor.label} must be at most {descriptor.max}"
    if descriptor.step is not None:
        base = Decimal(str(descriptor.min)) if descriptor.min is not None else Decimal(0)
        try:
            remainder = (value - base) % Decimal(str(descriptor.step))
        except InvalidOperation:
            # quotient exceeds the decimal context precision
            return 0, f"{descriptor.label} is out of range"
        if remainder != 0:
            return 0, f"{descriptor.label} must be a multiple of {descriptor.step}"

    if value == value.to_integral_value() and "." not in str(raw):
        return int(value), None
    return float(value), None
