"""
Tests — pure stock and expiry rules.

@file alerts/tests/test_rules.py
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from alerts import rules


TODAY = date(2026, 3, 10)


def _stock(balance, min_level=None, max_level=None):
    return rules.check_stock(
        Decimal(balance),
        Decimal(min_level) if min_level is not None else None,
        Decimal(max_level) if max_level is not None else None,
        item_name='Bolt M8',
        unit='pcs',
        location_name='Main store',
    )


def _expiry(days, total='5'):
    return rules.check_expiry(
        TODAY + timedelta(days=days),
        Decimal(total),
        TODAY,
        lookahead_days=7,
        critical_days=2,
        item_name='Milk',
    )


class TestCheckStock:

    @pytest.mark.parametrize('balance,kind,priority', [
        ('0', rules.OUT_OF_STOCK, 'critical'),
        ('-3', rules.OUT_OF_STOCK, 'critical'),
        ('4', rules.LOW_STOCK, 'high'),
        ('5', rules.LOW_STOCK, 'high'),
        ('7', rules.LOW_STOCK, 'medium'),
        ('10', rules.LOW_STOCK, 'medium'),
        ('101', rules.OVER_STOCK, 'low'),
    ])
    def test_classification(self, balance, kind, priority):
        violation = _stock(balance, '10', '100')
        assert violation.kind == kind
        assert violation.priority == priority

    @pytest.mark.parametrize('balance', ['11', '50', '100'])
    def test_within_levels(self, balance):
        assert _stock(balance, '10', '100') is None

    def test_no_threshold_only_flags_empty(self):
        assert _stock('3') is None
        assert _stock('0').kind == rules.OUT_OF_STOCK

    def test_zero_minimum_never_low(self):
        assert _stock('0.5', '0') is None

    def test_messages(self):
        assert _stock('0', '10').message == 'Bolt M8 is out of stock at Main store (0 pcs).'
        assert _stock('2.500', '10').message == (
            'Low stock: Bolt M8 has 2.5 pcs left at Main store (minimum 10).'
        )
        assert 'maximum 100' in _stock('120', '10', '100').message


class TestFormatQuantity:

    @pytest.mark.parametrize('value,expected', [
        ('12.000', '12'),
        ('2.500', '2.5'),
        ('0.000', '0'),
        ('100', '100'),
        ('-4.250', '-4.25'),
    ])
    def test_format(self, value, expected):
        assert rules.format_quantity(Decimal(value)) == expected


class TestExpiry:

    @pytest.mark.parametrize('days,status', [
        (-1, rules.EXPIRY_EXPIRED),
        (0, rules.EXPIRY_CRITICAL),
        (2, rules.EXPIRY_CRITICAL),
        (3, rules.EXPIRY_WARNING_WINDOW),
        (7, rules.EXPIRY_WARNING_WINDOW),
        (8, rules.EXPIRY_NORMAL),
    ])
    def test_classify(self, days, status):
        result = rules.classify_expiry(
            TODAY + timedelta(days=days), TODAY, lookahead_days=7, critical_days=2,
        )
        assert result == status

    def test_classify_without_date(self):
        assert rules.classify_expiry(None, TODAY, lookahead_days=7, critical_days=2) == rules.EXPIRY_NORMAL

    def test_warning_within_lookahead(self):
        violation = _expiry(5)
        assert violation.kind == rules.EXPIRY_WARNING
        assert violation.priority == 'high'
        assert violation.message == 'Milk expires in 5 days (2026-03-15); 5 in stock [warning].'

    def test_expired_goods_still_warn(self):
        violation = _expiry(-1)
        assert violation.message.startswith('Milk expired 1 day ago')
        assert violation.message.endswith('[expired].')

    def test_today(self):
        assert 'expires today' in _expiry(0).message

    def test_outside_lookahead(self):
        assert _expiry(30) is None

    def test_no_stock_no_warning(self):
        assert _expiry(1, total='0') is None
