"""Tiny shop package used by the analysis tests."""

from .models import Order
