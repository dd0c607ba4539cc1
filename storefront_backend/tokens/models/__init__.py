# tokens/models/__init__.py

from .token_account import TokenAccount
from .token_grant import TokenGrant

__all__ = ["TokenAccount", "TokenGrant"]
