# discounts/models/__init__.py

from .discount_code import DiscountCode, normalize_code

__all__ = ["DiscountCode", "normalize_code"]
