"""Tests for field type detection and the promotion lattice."""

from datetime import date, datetime

import pytest

from jimjam.storage import FieldType, can_promote, detect_type


class TestDetectType:
    """Tests for detect_type."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (True, FieldType.BOOLEAN),
            (False, FieldType.BOOLEAN),
            (0, FieldType.INTEGER),
            (-42, FieldType.INTEGER),
            (1.5, FieldType.FLOAT),
            ("", FieldType.TEXT),
            ("hello", FieldType.TEXT),
            ({"a": 1}, FieldType.JSON),
            ([1, 2], FieldType.JSON),
            ((1, 2), FieldType.JSON),
            (datetime(2024, 1, 1, 12, 0), FieldType.DATE),
            (date(2024, 1, 1), FieldType.DATE),
        ],
    )
    def test_detects_runtime_type(self, value, expected):
        assert detect_type(value) == expected

    def test_none_makes_no_decision(self):
        assert detect_type(None) is None

    def test_unsupported_value_raises(self):
        with pytest.raises(TypeError, match="bytes"):
            detect_type(b"raw")


class TestPromotion:
    """Tests for can_promote."""

    @pytest.mark.parametrize(
        "target",
        [
            FieldType.INTEGER,
            FieldType.FLOAT,
            FieldType.BOOLEAN,
            FieldType.JSON,
            FieldType.DATE,
        ],
    )
    def test_text_gives_way_to_concrete_types(self, target):
        assert can_promote(FieldType.TEXT, target)

    def test_integer_widens_to_float(self):
        assert can_promote(FieldType.INTEGER, FieldType.FLOAT)

    @pytest.mark.parametrize(
        "current, detected",
        [
            (FieldType.FLOAT, FieldType.INTEGER),
            (FieldType.INTEGER, FieldType.TEXT),
            (FieldType.INTEGER, FieldType.BOOLEAN),
            (FieldType.BOOLEAN, FieldType.INTEGER),
            (FieldType.BOOLEAN, FieldType.TEXT),
            (FieldType.JSON, FieldType.TEXT),
            (FieldType.DATE, FieldType.INTEGER),
            (FieldType.FLOAT, FieldType.JSON),
        ],
    )
    def test_other_transitions_are_refused(self, current, detected):
        assert not can_promote(current, detected)

    @pytest.mark.parametrize("field_type", list(FieldType))
    def test_same_type_is_not_a_promotion(self, field_type):
        assert not can_promote(field_type, field_type)


def test_column_types():
    assert FieldType.INTEGER.column_type == "INTEGER"
    assert FieldType.FLOAT.column_type == "REAL"
    assert FieldType.BOOLEAN.column_type == "INTEGER"
    assert FieldType.JSON.column_type == "TEXT"
    assert FieldType.DATE.column_type == "TEXT"
    # Provisional text columns carry no affinity so promotion stays numeric
    assert FieldType.TEXT.column_type == ""
