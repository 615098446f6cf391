from __future__ import annotations

from typing import Optional


class StorefrontError(Exception):
    """Base error; ``message`` is safe to show to the user."""

    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class FetchError(StorefrontError):
    """Network or parse failure talking to a remote service. The user can retry."""

    retryable = True


class CheckoutError(FetchError):
    """Checkout backend failed, including a 2xx answer without a redirect url."""


class AuthError(StorefrontError):
    """Backend rejected the credentials or the stored token."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidInputError(StorefrontError, ValueError):
    """Rejected locally, before any network call."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field
