from __future__ import annotations

"""Acting-user guard shared by import, export and matching."""

__all__ = [
    "AuthenticationError",
    "require_store_user",
    "require_user",
]


class AuthenticationError(Exception):
    """Raised when an operation is attempted without a resolved user."""


def require_user(user_id: str | None) -> str:
    if user_id is None or not str(user_id).strip():
        raise AuthenticationError("user not authenticated")
    return str(user_id).strip()


def require_store_user(store_user_id: str, user_id: str | None) -> str:
    """Resolve the acting user and check that the store is scoped to it."""
    user = require_user(user_id)
    if store_user_id != user:
        raise AuthenticationError(f"store is scoped to another user than {user}")
    return user

