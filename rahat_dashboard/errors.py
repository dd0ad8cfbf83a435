"""
Error types shared by the client core and the dashboard gateway.

Backend failures arrive as `{code|title, message}` bodies and are kept
verbatim on ApiError so views can show exactly what the server said.
"""

from __future__ import annotations

import httpx

# Statuses a read must never retry.
NON_RETRYABLE_STATUSES = frozenset({401, 403, 404})


class RahatError(Exception):
    """Base class for every error raised by rahat_dashboard."""


class ApiError(RahatError):
    def __init__(
        self,
        status: int,
        *,
        code: str | None = None,
        title: str | None = None,
        message: str | None = None,
        errors: list[str] | None = None,
    ):
        self.status = status
        self.code = code
        self.title = title
        self.message = message
        self.errors = errors or []
        super().__init__(message or title or code or f"HTTP {status}")

    @property
    def retryable(self) -> bool:
        return self.status not in NON_RETRYABLE_STATUSES

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "code": self.code,
            "title": self.title,
            "message": self.message,
        }

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return cls(response.status_code, message=response.text or None)
        return cls(
            response.status_code,
            code=body.get("code"),
            title=body.get("title") or body.get("error"),
            message=body.get("message"),
            errors=body.get("errors"),
        )


class AuthenticationRequired(RahatError):
    """No valid session; the user has to sign in."""


class AccessDenied(RahatError):
    """Signed in, but the role may not open this page."""

    def __init__(self, path: str, role: str | None = None):
        self.path = path
        self.role = role
        super().__init__(f"Role {role!r} may not access {path}")


# ── Sign-in error messages ──

AUTH_ERROR_MESSAGES: dict[str, tuple[str, str]] = {
    "INVALID_EMAIL_OR_PASSWORD": (
        "Invalid email or password",
        "Please check your email and password and try again.",
    ),
    "INVALID_CREDENTIALS": (
        "Invalid credentials",
        "Please check your email and password and try again.",
    ),
    "INTERNAL_SERVER_ERROR": (
        "Internal server error",
        "Please try again later.",
    ),
}

_FALLBACK = AUTH_ERROR_MESSAGES["INTERNAL_SERVER_ERROR"]


def describe_auth_error(code: str | None) -> tuple[str, str]:
    """Map a backend error code to a (title, description) pair."""
    return AUTH_ERROR_MESSAGES.get(code or "", _FALLBACK)
