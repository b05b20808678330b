"""Tests for value serialization."""

from datetime import date, datetime, timedelta, timezone

import pytest

from jimjam.storage import (
    FieldType,
    ValueCodec,
    decode_value,
    encode_value,
    format_timestamp,
    parse_timestamp,
)


class TestTimestamps:
    """Tests for UTC timestamp formatting."""

    def test_naive_datetime_is_taken_as_utc(self):
        assert format_timestamp(datetime(2024, 2, 29, 12, 30, 45)) == "2024-02-29 12:30:45"

    def test_aware_datetime_is_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        moment = datetime(2024, 1, 1, 1, 0, 0, tzinfo=plus_two)
        assert format_timestamp(moment) == "2023-12-31 23:00:00"

    def test_date_is_midnight(self):
        assert format_timestamp(date(2000, 2, 29)) == "2000-02-29 00:00:00"

    def test_epoch_seconds(self):
        assert format_timestamp(0) == "1970-01-01 00:00:00"
        assert format_timestamp(951782400) == "2000-02-29 00:00:00"

    def test_small_years_are_zero_padded(self):
        assert format_timestamp(datetime(999, 1, 2, 3, 4, 5)) == "0999-01-02 03:04:05"

    def test_microseconds_are_dropped(self):
        assert format_timestamp(datetime(2024, 5, 6, 7, 8, 9, 999999)) == "2024-05-06 07:08:09"

    def test_parse(self):
        assert parse_timestamp("1900-03-01 00:00:00") == datetime(1900, 3, 1)


class TestEncode:
    """Tests for encode_value."""

    @pytest.mark.parametrize("field_type", list(FieldType) + [None])
    def test_none_is_never_coerced(self, field_type):
        assert encode_value(field_type, None) is None

    def test_boolean(self):
        assert encode_value(FieldType.BOOLEAN, True) == 1
        assert encode_value(FieldType.BOOLEAN, False) == 0

    def test_json_is_canonical(self):
        assert encode_value(FieldType.JSON, {"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_json_keeps_unicode(self):
        assert encode_value(FieldType.JSON, ["café"]) == '["café"]'

    def test_date(self):
        assert encode_value(FieldType.DATE, datetime(2021, 7, 4, 9, 0)) == "2021-07-04 09:00:00"

    def test_date_string_passes_through(self):
        assert encode_value(FieldType.DATE, "2021-07-04 09:00:00") == "2021-07-04 09:00:00"

    def test_numbers_pass_through(self):
        assert encode_value(FieldType.INTEGER, 7) == 7
        assert encode_value(FieldType.FLOAT, 7) == 7
        assert encode_value(FieldType.FLOAT, 2.5) == 2.5

    def test_text_passes_scalars_through(self):
        assert encode_value(FieldType.TEXT, "abc") == "abc"
        assert encode_value(FieldType.TEXT, 12) == 12

    def test_text_codes_containers_as_json(self):
        assert encode_value(FieldType.TEXT, {"k": "v"}) == '{"k":"v"}'

    def test_registered_type_wins_over_value(self):
        # A mistyped write is coded with the registered type, not rejected
        assert encode_value(FieldType.BOOLEAN, 5) == 1
        assert encode_value(FieldType.JSON, "plain") == '"plain"'


class TestDecode:
    """Tests for decode_value."""

    def test_boolean(self):
        assert decode_value(FieldType.BOOLEAN, 1) is True
        assert decode_value(FieldType.BOOLEAN, 0) is False

    def test_json(self):
        assert decode_value(FieldType.JSON, '{"a":[1,{"b":null}]}') == {"a": [1, {"b": None}]}

    def test_invalid_json_returns_raw_text(self):
        assert decode_value(FieldType.JSON, "{oops") == "{oops"

    def test_date(self):
        assert decode_value(FieldType.DATE, "2021-07-04 09:00:00") == datetime(2021, 7, 4, 9, 0)

    def test_invalid_date_returns_raw_text(self):
        assert decode_value(FieldType.DATE, "soon") == "soon"

    def test_float_widens_stored_integers(self):
        value = decode_value(FieldType.FLOAT, 10)
        assert value == 10.0
        assert isinstance(value, float)

    def test_unregistered_returns_stored_value(self):
        assert decode_value(None, "1") == "1"

    @pytest.mark.parametrize("field_type", list(FieldType))
    def test_none(self, field_type):
        assert decode_value(field_type, None) is None


class TestValueCodec:
    """Tests for the registry-bound codec."""

    def test_uses_registered_type(self):
        codec = ValueCodec({"flag": FieldType.BOOLEAN})
        assert codec.serialize("flag", True) == 1
        assert codec.deserialize("flag", 0) is False

    def test_serialize_detects_unregistered_type(self):
        codec = ValueCodec({})
        assert codec.serialize("meta", {"x": 1}) == '{"x":1}'
        assert codec.serialize("when", date(2020, 1, 1)) == "2020-01-01 00:00:00"

    def test_deserialize_unregistered_is_unchanged(self):
        codec = ValueCodec({})
        assert codec.deserialize("meta", '{"x":1}') == '{"x":1}'
