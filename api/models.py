"""
API response models for the Assure Health REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Every body carries `success`. Errors add `status` and `error`; successes add
`message` plus operation-specific fields. Field names are camelCase on the
wire (alias_generator) and snake_case in Python.

No model here has a password or password_hash field, so a serialized Account
can never leak one.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from auth.models import Account

API_VERSION = "1.0.0"


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Account views
# ---------------------------------------------------------------------------


class SessionUser(_WireModel):
    """Profile returned alongside a freshly issued token."""

    id: str
    email: str
    first_name: str
    last_name: str
    verified: bool
    role: str

    @classmethod
    def from_account(cls, account: Account) -> "SessionUser":
        return cls(
            id=account.id,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            verified=account.verified,
            role=account.role,
        )


class AccountRow(_WireModel):
    """One row of the admin listing. Omits password hash, BVN and phone."""

    id: str
    email: str
    first_name: str
    last_name: str
    verified: bool
    role: str
    health_plan: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountRow":
        return cls(
            id=account.id,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            verified=account.verified,
            role=account.role,
            health_plan=account.health_plan,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ErrorResponse(_WireModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    success: bool = False
    status: int
    error: str


class MessageResponse(_WireModel):
    success: bool = True
    message: str


class SessionData(_WireModel):
    user: SessionUser


class SessionResponse(_WireModel):
    """Response for signup (201) and login (200)."""

    success: bool = True
    message: str
    token: str
    data: SessionData


class AccountListResponse(_WireModel):
    success: bool = True
    message: str
    count: int
    data: list[AccountRow]


class HealthResponse(_WireModel):
    """Response for GET /health."""

    success: bool = True
    message: str = "API is running successfully"
    timestamp: str
    version: str = API_VERSION
    components: dict[str, str]


class ApiIndexResponse(_WireModel):
    """Response for GET /api -- the route listing."""

    success: bool = True
    message: str = "Welcome to Assure Health API"
    version: str = API_VERSION
    documentation: str = "/docs"
    endpoints: dict[str, list[str]]
    authenticated_as: Optional[str] = None


class WelcomeResponse(_WireModel):
    """Response for GET / -- the service banner."""

    success: bool = True
    message: str = "Welcome to Assure Health API"
    environment: str
    version: str = API_VERSION
