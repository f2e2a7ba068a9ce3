"""Errors raised by the core operations.

Every error carries a human-readable ``message`` that the HTTP layer hands
back to the caller as-is.
"""

from __future__ import annotations

from dataclasses import dataclass


class EatsError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


class ValidationError(EatsError):
    """One or more field or cross-field rules failed. Nothing was written."""

    def __init__(self, errors: list[FieldError]) -> None:
        self.errors = list(errors)
        super().__init__(" ".join(e.message for e in self.errors) or "Validation error")

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Flatten a ``pydantic.ValidationError`` into field errors."""
        collected: list[FieldError] = []
        for err in exc.errors():
            ctx = err.get("ctx") or {}
            # Cross-field rules report their own target fields.
            if "issues" in ctx:
                collected.extend(FieldError(**issue) for issue in ctx["issues"])
                continue
            if err["type"] == "value_error" and "error" in ctx:
                message = str(ctx["error"])
            else:
                message = err["msg"]
            loc_parts = list(err.get("loc", ()))
            if loc_parts and loc_parts[0] == "body":
                loc_parts = loc_parts[1:]
            loc = ".".join(str(part) for part in loc_parts)
            collected.append(FieldError(field=loc, message=message))
        return cls(_dedupe(collected))


def _dedupe(errors: list[FieldError]) -> list[FieldError]:
    seen: set[FieldError] = set()
    out = []
    for e in errors:
        if e not in seen:
            seen.add(e)
            out.append(e)
    return out


class NotFoundError(EatsError):
    pass


class ReferentialConflictError(EatsError):
    pass


class TransactionError(EatsError):
    pass


class AuthError(EatsError):
    pass


class MisconfiguredError(AuthError):
    pass


class RateLimitedError(AuthError):
    pass


class InvalidCredentialsError(AuthError):
    pass
