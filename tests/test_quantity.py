from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from nodeforge.quantity import (
    format_duration,
    parse_percentage,
    parse_quantity,
    to_gib,
    to_mib,
    to_millicores,
)

pytestmark = [pytest.mark.xdist_group("unit")]


class TestParseQuantity:
    @pytest.mark.parametrize(
        ("quantity", "expected"),
        [
            ("1Ki", Decimal(1024)),
            ("1Mi", Decimal(1024**2)),
            ("1k", Decimal(1000)),
            ("1G", Decimal(10**9)),
            ("500m", Decimal("0.5")),
            ("1.5Gi", Decimal("1.5") * 1024**3),
            ("42", Decimal(42)),
            (42, Decimal(42)),
        ],
    )
    def test_valid(self, quantity, expected):
        assert parse_quantity(quantity) == expected

    @pytest.mark.parametrize("quantity", ["", "Gi", "10GB", "ten", "1 2"])
    def test_invalid(self, quantity):
        with pytest.raises(ValueError, match="Invalid quantity"):
            parse_quantity(quantity)


class TestConversions:
    def test_to_gib(self):
        assert to_gib("4G") == 4
        assert to_gib("200G") == 187
        assert to_gib("200Gi") == 200

    def test_to_mib(self):
        assert to_mib("1Gi") == 1024
        assert to_mib("100Mi") == 100
        assert to_mib("1M") == 1

    def test_to_millicores(self):
        assert to_millicores("500m") == 500
        assert to_millicores("2") == 2000
        assert to_millicores(0) == 0


class TestPercentage:
    def test_percentage(self):
        assert parse_percentage("10%") == pytest.approx(0.1)

    def test_not_a_percentage(self):
        assert parse_percentage("100Mi") is None

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid percentage"):
            parse_percentage("abc%")


class TestFormatDuration:
    @pytest.mark.parametrize(
        ("duration", "expected"),
        [
            (timedelta(0), "0s"),
            (timedelta(seconds=30), "30s"),
            (timedelta(minutes=1), "1m0s"),
            (timedelta(minutes=1, seconds=30), "1m30s"),
            (timedelta(hours=1, seconds=5), "1h0m5s"),
            (timedelta(milliseconds=500), "500ms"),
            (timedelta(seconds=1, milliseconds=500), "1.5s"),
        ],
    )
    def test_go_format(self, duration, expected):
        assert format_duration(duration) == expected
