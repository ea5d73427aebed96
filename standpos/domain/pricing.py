# standpos/domain/pricing.py
from decimal import Decimal
from typing import Iterable

ZERO = Decimal("0.00")


def compute_subtotal(items: Iterable) -> Decimal:
    return sum((Decimal(str(i.unit_price)) * i.quantity for i in items), ZERO)


def compute_total(subtotal, discount=None, delivery_fee=None) -> Decimal:
    """total = max(0, subtotal - discount + fee), never negative"""
    total = Decimal(str(subtotal)) - Decimal(str(discount or 0)) + Decimal(str(delivery_fee or 0))
    return max(ZERO, total)


def margin(sale_price, cost_price) -> Decimal:
    sale = Decimal(str(sale_price))
    if sale == 0:
        return ZERO
    return (sale - Decimal(str(cost_price))) / sale
