"""Inventory and sales analytics for pharmacy retail data."""

__version__ = "0.1.0"
