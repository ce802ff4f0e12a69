"""
Alerts — Rules

Pure threshold and expiry rules. No database access: callers pass the
numbers in and get back the violation (if any) that should be open.

Stock rules are checked in a fixed order and are mutually exclusive for
one (item, location) pair:
  1. balance <= 0                      → out_of_stock, critical
  2. 0 < balance <= min_level          → low_stock, high at or below half
                                          the minimum, otherwise medium
  3. max_level set, balance > max_level → over_stock, low
The expiry rule is item-level and independent of the stock rules.

@file alerts/rules.py
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

LOW_STOCK = 'low_stock'
OUT_OF_STOCK = 'out_of_stock'
OVER_STOCK = 'over_stock'
EXPIRY_WARNING = 'expiry_warning'

STOCK_KINDS = (OUT_OF_STOCK, LOW_STOCK, OVER_STOCK)

EXPIRY_EXPIRED = 'expired'
EXPIRY_CRITICAL = 'critical'
EXPIRY_WARNING_WINDOW = 'warning'
EXPIRY_NORMAL = 'normal'

HALF = Decimal('0.5')


@dataclass(frozen=True)
class Violation:
    kind: str
    priority: str
    message: str


def format_quantity(value: Decimal) -> str:
    """Render 12.000 as 12 and 2.500 as 2.5."""
    text = format(Decimal(value).normalize(), 'f')
    return '0' if text in ('-0', '') else text


def check_stock(
    balance: Decimal,
    min_level: Decimal | None,
    max_level: Decimal | None,
    *,
    item_name: str,
    unit: str,
    location_name: str,
) -> Violation | None:
    """Return the stock violation for one pair, or None when within levels."""
    qty = format_quantity(balance)
    if balance <= 0:
        return Violation(
            kind=OUT_OF_STOCK,
            priority='critical',
            message=f'{item_name} is out of stock at {location_name} ({qty} {unit}).',
        )
    if min_level is not None and balance <= min_level:
        priority = 'high' if balance <= min_level * HALF else 'medium'
        return Violation(
            kind=LOW_STOCK,
            priority=priority,
            message=(
                f'Low stock: {item_name} has {qty} {unit} left at {location_name} '
                f'(minimum {format_quantity(min_level)}).'
            ),
        )
    if max_level is not None and balance > max_level:
        return Violation(
            kind=OVER_STOCK,
            priority='low',
            message=(
                f'Over stock: {item_name} holds {qty} {unit} at {location_name} '
                f'(maximum {format_quantity(max_level)}).'
            ),
        )
    return None


def classify_expiry(expiry_date: date | None, today: date, *, lookahead_days: int, critical_days: int) -> str:
    """expired / critical / warning / normal, by days remaining until expiry_date."""
    if expiry_date is None:
        return EXPIRY_NORMAL
    days = (expiry_date - today).days
    if days < 0:
        return EXPIRY_EXPIRED
    if days <= critical_days:
        return EXPIRY_CRITICAL
    if days <= lookahead_days:
        return EXPIRY_WARNING_WINDOW
    return EXPIRY_NORMAL


def check_expiry(
    expiry_date: date | None,
    total_balance: Decimal,
    today: date,
    *,
    lookahead_days: int,
    critical_days: int,
    item_name: str,
) -> Violation | None:
    """Item-level warning for goods in stock that expire within the lookahead (or already have)."""
    if expiry_date is None or total_balance <= 0:
        return None
    status = classify_expiry(
        expiry_date, today, lookahead_days=lookahead_days, critical_days=critical_days,
    )
    if status == EXPIRY_NORMAL:
        return None

    days = (expiry_date - today).days
    if days < 0:
        when = f'expired {-days} day{"s" if days != -1 else ""} ago'
    elif days == 0:
        when = 'expires today'
    else:
        when = f'expires in {days} day{"s" if days != 1 else ""}'
    return Violation(
        kind=EXPIRY_WARNING,
        priority='high',
        message=(
            f'{item_name} {when} ({expiry_date.isoformat()}); '
            f'{format_quantity(total_balance)} in stock [{status}].'
        ),
    )
