"""
tests/test_normalization.py

Pytest unit tests for raw value normalisation.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from app.domain.errors import ValidationError
from app.domain.registry import RawAmendment, RawRecord
from app.services.normalization import (
    DEFAULT_CATEGORY,
    DEFAULT_PROCUREMENT_TYPE,
    normalize_contract,
    parse_amount,
    parse_coordinate,
    parse_date,
)


class TestParseAmount:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("1234", Decimal("1234.00")),
            ("1 234,50", Decimal("1234.50")),
            ("1 234,5", Decimal("1234.50")),
            ("1.234.567,89 Kč", Decimal("1234567.89")),
            ("1,234.56", Decimal("1234.56")),
            ("1500,-", Decimal("1500.00")),
            ("2500 CZK", Decimal("2500.00")),
        ],
    )
    def test_accepts_registry_notations(self, raw: str, expected: Decimal) -> None:
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_missing_amount_is_zero(self, raw) -> None:
        assert parse_amount(raw) == Decimal("0.00")

    @pytest.mark.parametrize("raw", ["neznámo", "12a", "NaN", "1,2,3.4.5x", "1" + "0" * 30, "1E+40"])
    def test_garbage_is_invalid(self, raw: str) -> None:
        with pytest.raises(ValidationError):
            parse_amount(raw)

    @pytest.mark.parametrize("raw", ["99.999", "1 234,567", "0.125"])
    def test_more_than_two_decimals_is_rejected(self, raw: str) -> None:
        with pytest.raises(ValidationError, match="more than two decimals"):
            parse_amount(raw)


class TestParseDate:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("2024-03-05", date(2024, 3, 5)),
            ("2024-03-05T10:00:00", date(2024, 3, 5)),
            ("2024-03-05T23:30:00+01:00", date(2024, 3, 5)),
            ("2024-03-05T10:00:00Z", date(2024, 3, 5)),
            ("05.03.2024", date(2024, 3, 5)),
            ("5. 3. 2024", date(2024, 3, 5)),
        ],
    )
    def test_accepts_supported_formats(self, raw: str, expected: date) -> None:
        assert parse_date(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "31.02.2024", "yesterday"])
    def test_rejects_missing_or_invalid(self, raw) -> None:
        with pytest.raises(ValidationError):
            parse_date(raw)


class TestCoordinates:
    def test_out_of_range_is_dropped(self) -> None:
        assert parse_coordinate("95.0", limit=90.0) is None
        assert parse_coordinate("50,08", limit=90.0) == pytest.approx(50.08)
        assert parse_coordinate("north", limit=90.0) is None


class TestNormalizeContract:
    def test_collapses_whitespace_and_applies_defaults(self) -> None:
        contract = normalize_contract(
            RawRecord(
                index=1,
                external_id=" 42 ",
                title="  Oprava \n  mostu ",
                amount_raw="100",
                date_raw="2024-01-10",
                supplier_name="  Stavby   s.r.o. ",
                supplier_tax_id="123 456 78",
                authority_name="Obec  Lhota",
            )
        )
        assert contract.external_id == "42"
        assert contract.title == "Oprava mostu"
        assert contract.supplier_name == "Stavby s.r.o."
        assert contract.supplier_tax_id == "12345678"
        assert contract.authority_name == "Obec Lhota"
        assert contract.category == DEFAULT_CATEGORY
        assert contract.procurement_type == DEFAULT_PROCUREMENT_TYPE

    def test_missing_title_is_invalid(self) -> None:
        with pytest.raises(ValidationError):
            normalize_contract(RawRecord(index=1, date_raw="2024-01-10"))

    def test_bad_amendment_fails_whole_record(self) -> None:
        with pytest.raises(ValidationError) as excinfo:
            normalize_contract(
                RawRecord(
                    index=1,
                    external_id="9",
                    title="X",
                    date_raw="2024-01-10",
                    amendments=(RawAmendment(amount_raw="10", date_raw=None),),
                )
            )
        assert excinfo.value.external_id == "9"

    def test_duplicate_nested_amendments_collapse(self) -> None:
        contract = normalize_contract(
            RawRecord(
                index=1,
                title="X",
                date_raw="2024-01-10",
                amendments=(
                    RawAmendment(amount_raw="10", date_raw="2024-02-01"),
                    RawAmendment(amount_raw="10,00", date_raw="01.02.2024"),
                ),
            )
        )
        assert len(contract.amendments) == 1
