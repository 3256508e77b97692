from __future__ import annotations

from unittest import TestCase

from vitalstore.core.errors import ValidationError
from vitalstore.domain.catalog import (
    CatalogStatus,
    DataSourceKind,
    ObservationValue,
    SubjectKind,
    ValueType,
    Visualization,
    normalize_kind,
)


class ObservationValueTests(TestCase):
    def test_numeric_types_parse_well_formed_strings(self) -> None:
        self.assertEqual(ObservationValue("42").try_parse_numeric(ValueType.INTEGER), 42.0)
        self.assertEqual(ObservationValue(" 1.7 ").try_parse_numeric(ValueType.FLOAT), 1.7)
        self.assertEqual(ObservationValue("5.40").try_parse_numeric(ValueType.DECIMAL), 5.4)

    def test_text_and_boolean_never_parse(self) -> None:
        for raw in ("1.7", "42", "true", "abc"):
            self.assertIsNone(ObservationValue(raw).try_parse_numeric(ValueType.TEXT))
            self.assertIsNone(ObservationValue(raw).try_parse_numeric(ValueType.BOOLEAN))

    def test_malformed_numeric_returns_none(self) -> None:
        for raw in ("", "  ", "1.7 mmol", "abc", "1,7"):
            self.assertIsNone(ObservationValue(raw).try_parse_numeric(ValueType.FLOAT))

    def test_only_plain_ascii_numbers_parse(self) -> None:
        for raw in ("1_000", "1__0", "\u0661\u0662", "\uff11\uff12", "0x1A", "1e", "."):
            self.assertIsNone(ObservationValue(raw).try_parse_numeric(ValueType.DECIMAL), raw)
        self.assertEqual(ObservationValue("1e3").try_parse_numeric(ValueType.FLOAT), 1000.0)
        self.assertEqual(ObservationValue(".5").try_parse_numeric(ValueType.FLOAT), 0.5)
        self.assertEqual(ObservationValue("+2.").try_parse_numeric(ValueType.FLOAT), 2.0)
        self.assertEqual(ObservationValue("-3E-1").try_parse_numeric(ValueType.FLOAT), -0.3)

    def test_non_finite_numbers_are_rejected(self) -> None:
        for raw in ("nan", "inf", "-Infinity"):
            self.assertIsNone(ObservationValue(raw).try_parse_numeric(ValueType.DECIMAL))

    def test_of_renders_booleans_and_numbers(self) -> None:
        self.assertEqual(ObservationValue.of(True).raw, "true")
        self.assertEqual(ObservationValue.of(False).raw, "false")
        self.assertEqual(ObservationValue.of(2.5).raw, "2.5")
        self.assertEqual(ObservationValue.of(7).raw, "7")


class CatalogVocabularyTests(TestCase):
    def test_value_type_aliases_and_fallback(self) -> None:
        self.assertIs(ValueType.parse("int"), ValueType.INTEGER)
        self.assertIs(ValueType.parse("Bool"), ValueType.BOOLEAN)
        self.assertIs(ValueType.parse("string"), ValueType.TEXT)
        self.assertIs(ValueType.parse("decimal"), ValueType.DECIMAL)
        self.assertIs(ValueType.parse("complex"), ValueType.TEXT)
        self.assertIs(ValueType.parse(None), ValueType.TEXT)

    def test_value_type_alias_lookup_is_strict(self) -> None:
        self.assertIs(ValueType.from_alias(" INT "), ValueType.INTEGER)
        self.assertIsNone(ValueType.from_alias("complex"))
        self.assertIsNone(ValueType.from_alias(None))

    def test_visualization_and_status_fallbacks(self) -> None:
        self.assertIs(Visualization.parse("bar_chart"), Visualization.BAR_CHART)
        self.assertIs(Visualization.parse("pie"), Visualization.SINGLE_VALUE)
        self.assertIs(CatalogStatus.parse("DEPRECATED"), CatalogStatus.DEPRECATED)
        self.assertIs(CatalogStatus.parse("archived"), CatalogStatus.ACTIVE)

    def test_numeric_value_types(self) -> None:
        numeric = {value_type for value_type in ValueType if value_type.is_numeric}
        self.assertEqual(numeric, {ValueType.INTEGER, ValueType.FLOAT, ValueType.DECIMAL})

    def test_normalize_kind_keeps_custom_kinds(self) -> None:
        self.assertEqual(normalize_kind(" User ", SubjectKind), "user")
        self.assertEqual(normalize_kind("Manual", DataSourceKind), "manual")
        self.assertEqual(normalize_kind(" clinic-lab ", DataSourceKind), "clinic-lab")
        with self.assertRaises(ValidationError):
            normalize_kind("   ", SubjectKind)
