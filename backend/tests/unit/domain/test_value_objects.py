"""Unit tests for domain value objects."""

from __future__ import annotations

import pytest

from callops.domain.enums import FieldType
from callops.domain.value_objects import FieldDescriptor, FieldOption, ProviderSchema


# ── FieldOption ──────────────────────────────────────────────
class TestFieldOption:
    def test_coerce_bare_string(self):
        opt = FieldOption.coerce("us1")
        assert opt.value == "us1"
        assert opt.label == "us1"

    def test_coerce_mapping(self):
        opt = FieldOption.coerce({"value": "ie1", "label": "Ireland"})
        assert opt == FieldOption("ie1", "Ireland")

    def test_coerce_mapping_without_label(self):
        assert FieldOption.coerce({"value": 3}).label == "3"

    def test_coerce_passthrough(self):
        opt = FieldOption("a", "A")
        assert FieldOption.coerce(opt) is opt


# ── FieldDescriptor ──────────────────────────────────────────
class TestFieldDescriptor:
    def test_defaults(self):
        d = FieldDescriptor(key="sid", label="SID")
        assert d.type is FieldType.TEXT
        assert not d.required
        assert d.options == ()
        assert d.rows == 4

    def test_blank_key_rejected(self):
        with pytest.raises(ValueError, match="non-empty"):
            FieldDescriptor(key="  ", label="Blank")

    def test_select_without_options_rejected(self):
        with pytest.raises(ValueError, match="at least one option"):
            FieldDescriptor(key="region", label="Region", type=FieldType.SELECT)

    def test_non_positive_step_rejected(self):
        with pytest.raises(ValueError, match="step must be positive"):
            FieldDescriptor(key="n", label="N", type=FieldType.NUMBER, step=0)

    def test_min_above_max_rejected(self):
        with pytest.raises(ValueError, match="min greater than max"):
            FieldDescriptor(key="n", label="N", type=FieldType.NUMBER, min=10, max=1)

    def test_unknown_raw_type_falls_back_to_text(self):
        d = FieldDescriptor(key="x", label="X", type="colour-picker")  # type: ignore[arg-type]
        assert d.type is FieldType.TEXT

    def test_options_list_coerced_to_tuple(self):
        d = FieldDescriptor(
            key="lang",
            label="Language",
            type=FieldType.SELECT,
            options=["en-US", {"value": "hi-IN", "label": "Hindi"}],  # type: ignore[arg-type]
        )
        assert d.option_values == ("en-US", "hi-IN")
        assert d.options[1].label == "Hindi"

    def test_from_mapping(self):
        d = FieldDescriptor.from_mapping(
            "timeout",
            {"label": "Timeout", "type": "number", "min": 1, "max": 60, "step": 1, "required": True},
        )
        assert d.key == "timeout"
        assert d.type is FieldType.NUMBER
        assert (d.min, d.max, d.step) == (1, 60, 1)
        assert d.required

    def test_from_mapping_label_defaults_to_key(self):
        d = FieldDescriptor.from_mapping("token", {"type": "password"})
        assert d.label == "token"
        assert d.type.is_secret

    def test_is_immutable(self):
        d = FieldDescriptor(key="sid", label="SID")
        with pytest.raises(AttributeError):
            d.label = "changed"  # type: ignore[misc]


# ── ProviderSchema ───────────────────────────────────────────
class TestProviderSchema:
    def test_preserves_declaration_order(self):
        schema = ProviderSchema.of(
            "acme",
            [
                FieldDescriptor(key="z", label="Z"),
                FieldDescriptor(key="a", label="A"),
                FieldDescriptor(key="m", label="M"),
            ],
        )
        assert list(schema) == ["z", "a", "m"]
        assert len(schema) == 3
        assert schema["a"].label == "A"

    def test_duplicate_keys_rejected(self):
        with pytest.raises(ValueError, match="Duplicate field key"):
            ProviderSchema.of(
                "acme",
                [FieldDescriptor(key="sid", label="SID"), FieldDescriptor(key="sid", label="Again")],
            )

    def test_missing_key_raises_key_error(self):
        with pytest.raises(KeyError):
            ProviderSchema.empty("acme")["nope"]

    def test_from_mapping_none_is_empty(self):
        schema = ProviderSchema.from_mapping("acme", None)
        assert len(schema) == 0
        assert not schema

    def test_from_mapping(self):
        schema = ProviderSchema.from_mapping(
            "acme",
            {
                "token": {"label": "Token", "type": "password", "required": True},
                "region": {"label": "Region", "type": "select", "options": ["eu", "us"]},
            },
        )
        assert list(schema) == ["token", "region"]
        assert schema.secret_keys == frozenset({"token"})
        assert schema["region"].option_values == ("eu", "us")

    def test_equality_by_value(self):
        fields = [FieldDescriptor(key="sid", label="SID")]
        assert ProviderSchema.of("acme", fields) == ProviderSchema.of("acme", fields)
