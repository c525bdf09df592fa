"""
auth/results.py -- Explicit success/failure values for the auth flow.

Every AuthFlow operation and TokenService.verify() returns Ok or Err instead
of raising for expected outcomes (bad input, duplicate email, wrong password).
The HTTP boundary is the only place that turns an ErrorKind into a status code.

Exceptions remain reserved for the unexpected: storage outages, hashing
failures. AuthFlow converts those into Err(ErrorKind.INTERNAL, ...) at its
own boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ErrorKind(str, Enum):
    VALIDATION = "ValidationError"
    CONFLICT = "Conflict"
    UNAUTHORIZED = "Unauthorized"
    TOKEN = "TokenError"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    INTERNAL = "InternalError"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.TOKEN: 410,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERNAL: 500,
}


class TokenErrorKind(str, Enum):
    """Why a bearer token was rejected. Each maps to a fixed client message."""

    EXPIRED = "Expired"
    MALFORMED = "Malformed"
    NOT_YET_VALID = "NotYetValid"

    @property
    def message(self) -> str:
        return _TOKEN_MESSAGES[self]


_TOKEN_MESSAGES: dict[TokenErrorKind, str] = {
    TokenErrorKind.EXPIRED: "Session expired. Please login again.",
    TokenErrorKind.MALFORMED: "Invalid token format.",
    TokenErrorKind.NOT_YET_VALID: "Token not yet valid.",
}


@dataclass(frozen=True)
class Ok:
    value: Any = None


@dataclass(frozen=True)
class Err:
    kind: Any  # ErrorKind for the auth flow, TokenErrorKind for TokenService
    message: str

    @property
    def status_code(self) -> int:
        if isinstance(self.kind, TokenErrorKind):
            return ErrorKind.TOKEN.status_code
        return self.kind.status_code


Result = Union[Ok, Err]
