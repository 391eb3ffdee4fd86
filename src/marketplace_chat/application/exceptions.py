from __future__ import annotations


class AppError(Exception):
    """Base application error. ``detail`` is safe to show to the client."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class ValidationError(AppError):
    """Rejected input; nothing was stored or published."""


class AuthError(AppError):
    """Missing or invalid caller identity."""


class NotFoundError(AppError):
    pass


class TransportError(AppError):
    """Network or broker failure. Recoverable by re-reading the store."""
