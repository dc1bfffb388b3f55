"""Checkout entry point."""

from . import models
from .pricing import apply_tax, subtotal


def checkout(order: models.Order) -> float:
    total = apply_tax(subtotal(order))
    return total


def new_order(order_id: int) -> models.Order:
    return models.Order(order_id)
