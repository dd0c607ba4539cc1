# orders/models/__init__.py

from .order import Order

__all__ = ["Order"]
