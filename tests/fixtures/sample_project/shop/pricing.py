"""Price calculations for orders."""

from .models import Order

TAX_RATE = 0.2


def subtotal(order: Order) -> float:
    return sum(item.price * item.quantity for item in order.items)


def apply_tax(amount: float, rate: float = TAX_RATE) -> float:
    return round(amount * (1 + rate), 2)
