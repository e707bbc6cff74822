from __future__ import annotations

from decimal import Decimal

import pytest

from chainspread.units import from_base_units


def test_from_base_units_scales_by_decimals():
    assert from_base_units(1_500_000, 6) == Decimal("1.5")
    assert from_base_units(10**18, 18) == Decimal(1)
    assert from_base_units(123, 0) == Decimal(123)


def test_from_base_units_keeps_precision():
    assert from_base_units(200_012_345_678, 8) == Decimal("2000.12345678")


def test_from_base_units_rejects_negative_decimals():
    with pytest.raises(ValueError):
        from_base_units(1, -1)
