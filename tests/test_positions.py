"""
Tests for net position arithmetic, amount helpers and timestamps
"""

import pytest
from decimal import Decimal
from datetime import date, datetime, timedelta, timezone

from fx_ledger.currency import (
    decimal_from_string, format_amount, normalize_currency,
    parse_amount_or_zero, seed_rate, to_decimal
)
from fx_ledger.positions import NetPosition, PartnerSummary, calculate_net_position
from fx_ledger.timeutils import (
    end_of_day, from_epoch_millis, normalize_timestamp, start_of_day, to_epoch_millis
)


class TestCalculateNetPosition:
    """Sign conventions per currency"""

    def test_cny_scenario(self):
        """Giving 2,660 CNY at 376 for 1,000,000 TZS leaves us 160 TZS ahead"""
        position = calculate_net_position(
            Decimal("1000000"), Decimal("2660"), "CNY", Decimal("376")
        )
        assert position.net_tzs == Decimal("160")
        assert position.net_foreign.quantize(Decimal("0.0001")) == Decimal("0.4255")
        assert position.is_credit

    def test_usdt_scenario(self):
        """1,000,000 TZS against 420 USDT at 2,380 is a 400 TZS net"""
        position = calculate_net_position(
            Decimal("1000000"), Decimal("420"), "USDT", Decimal("2380")
        )
        assert position.net_tzs == Decimal("400")
        assert position.net_foreign.quantize(Decimal("0.001")) == Decimal("0.168")

    def test_cny_debit(self):
        position = calculate_net_position("1000000", "2000", "CNY", "376")
        assert position.net_tzs == Decimal("-248000")
        assert position.is_debit
        assert not position.is_credit

    def test_unknown_currency_uses_usdt_rule(self):
        position = calculate_net_position("500", "10", "EUR", "20")
        assert position.net_tzs == Decimal("300")

    def test_currency_match_is_exact(self):
        """Lower-case codes are not CNY for the arithmetic"""
        position = calculate_net_position("1000", "1", "cny", "376")
        assert position.net_tzs == Decimal("624")

    def test_zero_rate_gives_zero_foreign(self):
        position = calculate_net_position("1000", "5", "CNY", "0")
        assert position.net_tzs == Decimal("-1000")
        assert position.net_foreign == Decimal("0")

    def test_floats_go_through_str(self):
        position = calculate_net_position(100.1, 1, "USDT", 0.1)
        assert position.net_tzs == Decimal("100.0")

    def test_recomputation_is_idempotent(self):
        first = calculate_net_position("1000000", "2660", "CNY", "376")
        second = calculate_net_position("1000000", "2660", "CNY", "376")
        assert first == second
        assert isinstance(first, NetPosition)

    def test_zero_net_is_neither_credit_nor_debit(self):
        position = calculate_net_position("376", "1", "CNY", "376")
        assert position.net_tzs == Decimal("0")
        assert not position.is_credit
        assert not position.is_debit


class TestPartnerSummary:

    def test_add_transaction_splits_by_currency(self):
        summary = PartnerSummary()
        summary.add_transaction(Decimal("160"), Decimal("0.5"), "CNY")
        summary.add_transaction(Decimal("400"), Decimal("0.2"), "USDT")
        summary.add_transaction(Decimal("-10"), Decimal("-1"), "EUR")

        assert summary.total_net_tzs == Decimal("550")
        assert summary.total_net_cny == Decimal("0.5")
        assert summary.total_net_usdt == Decimal("0.2")
        assert summary.transaction_count == 3
        assert summary.net_foreign_by_currency["EUR"] == Decimal("-1")

    def test_merge(self):
        a = PartnerSummary()
        a.add_transaction(Decimal("100"), Decimal("1"), "CNY")
        b = PartnerSummary()
        b.add_transaction(Decimal("50"), Decimal("2"), "CNY")
        b.add_transaction(Decimal("25"), Decimal("3"), "USDT")

        a.merge(b)
        assert a.total_net_tzs == Decimal("175")
        assert a.total_net_cny == Decimal("3")
        assert a.transaction_count == 3
        assert a.net_foreign_by_currency == {"CNY": Decimal("3"), "USDT": Decimal("3")}

    def test_to_dict_uses_strings(self):
        summary = PartnerSummary()
        summary.add_transaction(Decimal("160"), Decimal("0.5"), "CNY")
        data = summary.to_dict()
        assert data["total_net_tzs"] == "160"
        assert data["transaction_count"] == 1
        assert data["net_foreign_by_currency"] == {"CNY": "0.5"}


class TestAmountHelpers:

    @pytest.mark.parametrize("raw, expected", [
        ("1,000,000.50", Decimal("1000000.50")),
        ("TZS 2,380", Decimal("2380")),
        (" -12.5 ", Decimal("-12.5")),
        ("2,380 USDT", Decimal("2380")),
        ("1e6", Decimal("1000000")),
        ("1.5e2", Decimal("150")),
        ("2.5e-1", Decimal("0.25")),
    ])
    def test_decimal_from_string(self, raw, expected):
        assert decimal_from_string(raw) == expected

    def test_exponent_expanded(self):
        assert str(decimal_from_string("1e6")) == "1000000"

    @pytest.mark.parametrize("raw", ["", "abc", "1.2.3", "12abc34", "1 2", "nan", "Infinity", "1e30"])
    def test_decimal_from_string_rejects_garbage(self, raw):
        with pytest.raises(ValueError):
            decimal_from_string(raw)

    def test_to_decimal(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(7) == Decimal("7")
        with pytest.raises(ValueError):
            to_decimal(True)
        with pytest.raises(ValueError):
            to_decimal(float("inf"))

    def test_parse_amount_or_zero(self):
        assert parse_amount_or_zero("1,500") == Decimal("1500")
        assert parse_amount_or_zero("nonsense") == Decimal("0")
        assert parse_amount_or_zero("") == Decimal("0")

    @pytest.mark.parametrize("value, expected", [
        (Decimal("1234567.891"), "1,234,567.89"),
        (Decimal("-1234.5"), "-1,234.50"),
        (Decimal("0"), "0.00"),
        (Decimal("0.005"), "0.01"),
        ("160", "160.00"),
    ])
    def test_format_amount(self, value, expected):
        assert format_amount(value) == expected

    def test_currency_codes(self):
        assert normalize_currency(" usdt ") == "USDT"
        with pytest.raises(ValueError):
            normalize_currency("  ")
        assert seed_rate("cny") == Decimal("376")
        assert seed_rate("USDT") == Decimal("2380")
        assert seed_rate("EUR") == Decimal("1")


class TestTimestamps:

    def test_normalize_timestamp(self):
        naive = datetime(2024, 3, 1, 10, 30, 15, 123456)
        normalized = normalize_timestamp(naive)
        assert normalized.tzinfo == timezone.utc
        assert normalized.microsecond == 123000

        from_date = normalize_timestamp(date(2024, 3, 1))
        assert from_date == datetime(2024, 3, 1, tzinfo=timezone.utc)

    def test_aware_timestamps_convert_to_utc(self):
        eat = timezone(timedelta(hours=3))
        value = normalize_timestamp(datetime(2024, 3, 1, 2, 0, tzinfo=eat))
        assert value == datetime(2024, 2, 29, 23, 0, tzinfo=timezone.utc)
        assert value.tzinfo == timezone.utc

    def test_epoch_millis(self):
        value = datetime(2024, 3, 1, 12, 0, 0, 250000, tzinfo=timezone.utc)
        millis = to_epoch_millis(value)
        assert millis == 1709294400250
        assert from_epoch_millis(millis) == value

    def test_day_bounds(self):
        value = datetime(2024, 3, 1, 15, 45, tzinfo=timezone.utc)
        assert start_of_day(value) == datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert end_of_day(value) == datetime(2024, 3, 1, 23, 59, 59, 999000, tzinfo=timezone.utc)
        assert start_of_day(date(2024, 3, 1)) == datetime(2024, 3, 1, tzinfo=timezone.utc)
