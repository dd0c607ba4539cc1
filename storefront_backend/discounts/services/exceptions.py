# discounts/services/exceptions.py

"""
DISCOUNT SERVICE ERRORS
"""


class DiscountError(Exception):
    """Base exception for discount code failures."""


class DiscountNotFound(DiscountError):
    """Raised when a code does not resolve to an active discount."""


class DiscountNotApplicable(DiscountError):
    """Raised when a code's product scope does not match the cart."""
