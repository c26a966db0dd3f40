"""
Unit tests for discount rules of the pricing resolver.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront.services.pricing_service import (
    Discount, is_discount_active, apply_discount, resolve_unit_price, resolve_price_detail,
)

NOW = datetime(2026, 6, 15, 10, 0, tzinfo=timezone.utc)


class TestDiscountWindow:
    """Activity rule: percentage > 0 and now inside [start, end]."""

    def test_active_inside_tight_window(self):
        discount = Discount(10, NOW - timedelta(seconds=1), NOW + timedelta(seconds=1))
        assert discount.is_active(NOW) is True

    def test_inactive_after_end(self):
        discount = Discount(10, NOW - timedelta(days=2), NOW - timedelta(seconds=1))
        assert discount.is_active(NOW) is False

    def test_inactive_before_start(self):
        discount = Discount(10, NOW + timedelta(seconds=1), None)
        assert discount.is_active(NOW) is False

    @pytest.mark.parametrize('start,end', [
        (None, None),
        (NOW - timedelta(days=1), NOW + timedelta(days=1)),
    ])
    def test_zero_percentage_never_active(self, start, end):
        assert is_discount_active(0, start, end, now=NOW) is False

    def test_negative_percentage_never_active(self):
        assert is_discount_active(-5, None, None, now=NOW) is False

    def test_open_bounds_are_unbounded(self):
        assert is_discount_active(15, None, None, now=NOW) is True
        assert is_discount_active(15, NOW - timedelta(days=30), None, now=NOW) is True
        assert is_discount_active(15, None, NOW + timedelta(days=30), now=NOW) is True

    def test_iso_string_bounds(self):
        assert is_discount_active('20', '2026-06-01T00:00:00Z', '2026-06-30T23:59:59Z', now=NOW) is True
        assert is_discount_active('20', '2026-07-01T00:00:00+00:00', None, now=NOW) is False

    def test_naive_bounds_are_utc(self):
        start = datetime(2026, 6, 15, 9, 59)
        end = datetime(2026, 6, 15, 10, 1)
        assert is_discount_active(10, start, end, now=NOW) is True


class TestApplyDiscount:

    def test_multiplicative(self):
        assert apply_discount(Decimal('200.00'), 15) == Decimal('170.00')

    def test_full_discount(self):
        assert apply_discount(Decimal('99.99'), 100) == Decimal('0')

    @pytest.mark.parametrize('pct', [0, -10, 101, 250, None, 'abc'])
    def test_out_of_range_leaves_price(self, pct):
        assert apply_discount(Decimal('80.00'), pct) == Decimal('80.00')


class TestResolveWithoutOverrides:
    """Retail callers never touch override rows, so no database is needed."""

    def test_base_price_for_retail(self):
        assert resolve_unit_price(None, 'v1', Decimal('120.00'), 'b2c', now=NOW) == Decimal('120.00')

    def test_active_discount_applied(self):
        discount = Discount(25, NOW - timedelta(hours=1), NOW + timedelta(hours=1))
        assert resolve_unit_price(None, 'v1', Decimal('120.00'), 'b2c', discount, now=NOW) == Decimal('90.00')

    def test_expired_discount_ignored(self):
        discount = Discount(25, None, NOW - timedelta(hours=1))
        assert resolve_unit_price(None, 'v1', Decimal('120.00'), 'b2c', discount, now=NOW) == Decimal('120.00')

    def test_detail_breakdown(self):
        discount = Discount(10, None, None)
        detail = resolve_price_detail(None, 'v1', Decimal('50.00'), 'b2c', discount, now=NOW)

        assert detail.final_price == Decimal('45.00')
        assert detail.original_price == Decimal('50.00')
        assert detail.has_discount is True
        assert detail.discount_percentage == Decimal('10')

    def test_detail_rejects_percentage_above_hundred(self):
        """The detail variant uses the same (0, 100] guard as apply_discount."""
        detail = resolve_price_detail(None, 'v1', Decimal('50.00'), 'b2c', Discount(150), now=NOW)

        assert detail.final_price == Decimal('50.00')
        assert detail.has_discount is False
        assert detail.discount_percentage == Decimal('0')
