"""Errors surfaced to callers of the user service client."""

from __future__ import annotations


class GatewayError(Exception):
    """Base error carrying an HTTP-style status code and a message."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UnauthenticatedError(GatewayError):
    """Raised when the inbound request carries no usable bearer token."""

    def __init__(self, message: str = "No authorization header was provided") -> None:
        super().__init__(message, 401)


class UpstreamError(GatewayError):
    """Raised when the user service answers with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message, status_code)

    def __repr__(self) -> str:
        return f"UpstreamError({self.status_code}, {self.message!r})"
