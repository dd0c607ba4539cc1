# tokens/services/exceptions.py

"""
TOKEN LEDGER ERRORS
"""


class TokenLedgerError(Exception):
    """Base exception for token ledger failures."""


class InvalidTokenAmount(TokenLedgerError):
    """Raised when a credit/debit amount is not a positive integer."""


class InsufficientTokens(TokenLedgerError):
    """Raised when a debit would drive a balance negative."""
