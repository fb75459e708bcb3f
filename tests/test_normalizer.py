"""Tests for local stock payload normalization."""

import pytest

from stock_sync.services.normalizer import (
    MultiplePayload,
    SinglePayload,
    decode_payload,
    extract_quantity,
    normalize,
    parse_quantity,
)


class TestParseQuantity:

    @pytest.mark.parametrize("raw, expected", [
        (7, 7),
        (0, 0),
        (5.7, 5),
        ("5.7", 5),
        ("0.000", 0),
        (" 12 ", 12),
        ("3", 3),
    ])
    def test_accepts_numbers_and_numeric_strings(self, raw, expected):
        assert parse_quantity(raw) == expected

    @pytest.mark.parametrize("raw", [
        None, True, False, -1, "-2", "abc", "", "nan", "inf", [], {},
    ])
    def test_rejects_unusable_values(self, raw):
        assert parse_quantity(raw) is None


class TestExtractQuantity:

    def test_first_field_in_priority_order_wins(self):
        record = {"quantity": 3, "stock_quantity": 9, "stock": 4}

        assert extract_quantity(record) == 9

    def test_unusable_field_falls_through_to_next(self):
        record = {"stock_quantity": "n/a", "stock": -1, "qty": "2.9"}

        assert extract_quantity(record) == 2

    def test_no_known_field(self):
        assert extract_quantity({"name": "Kopi", "price": 15000}) is None

    def test_custom_field_order(self):
        record = {"stock": 1, "jumlah": 8}

        assert extract_quantity(record, ("jumlah", "stock")) == 8


class TestDecodePayload:

    def test_object_is_single(self):
        assert decode_payload({"stock": 1}) == SinglePayload(record={"stock": 1})

    def test_list_is_multiple_of_dicts_only(self):
        payload = decode_payload([{"stock": 1}, "junk", {"stock": 2}])

        assert payload == MultiplePayload(records=[{"stock": 1}, {"stock": 2}])

    @pytest.mark.parametrize("raw", ["text", 5, None])
    def test_other_shapes_are_unusable(self, raw):
        assert decode_payload(raw) is None


class TestNormalize:

    def test_single_record(self):
        record = normalize("A1", {"stock": 7})

        assert record.found is True
        assert record.quantity == 7
        assert record.key == "A1"

    def test_numeric_string_is_floored(self):
        assert normalize("A1", {"qty": "5.7"}).quantity == 5

    def test_zero_is_a_real_quantity(self):
        record = normalize("B2", {"stok": "0.000"})

        assert record.found is True
        assert record.quantity == 0

    def test_array_sums_records_that_yield_a_quantity(self):
        data = [
            {"location": "toko", "stock": 3},
            {"location": "gudang", "stock": "4.5"},
            {"location": "rusak", "note": "no stock field"},
        ]

        record = normalize("A1", data)

        assert record.found is True
        assert record.quantity == 7
        assert record.matched_records == 2

    def test_array_without_quantities_is_not_found(self):
        record = normalize("A1", [{"name": "x"}, {"stock": "bad"}])

        assert record.found is False

    def test_empty_array_is_not_found(self):
        assert normalize("A1", []).found is False

    def test_object_without_quantity_is_not_found(self):
        record = normalize("A1", {"message": "barcode not registered"})

        assert record.found is False
        assert record.failed is False
