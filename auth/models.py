"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the
orchestrator do the work; these only own the domain shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    USER = "User"
    ADMIN = "Admin"
    SUPER_ADMIN = "SuperAdmin"


# Roles allowed to list every account.
ADMIN_ROLES: frozenset[str] = frozenset({Role.ADMIN.value, Role.SUPER_ADMIN.value})


@dataclass
class Account:
    """A registered Assure Health user.

    email is stored lower-cased and trimmed; the unique index on it is the
    single source of truth for "one account per email".

    password_hash is the bcrypt output. It must never reach a response body
    or a log line -- api/models.py maps Account to response models that omit it.

    phone_number and bvn stay None until the profile-update operation runs.
    """

    id: str
    email: str
    first_name: str
    last_name: str
    password_hash: str
    role: str = Role.USER.value
    verified: bool = False
    phone_number: int | None = None
    bvn: int | None = None
    health_plan: str | None = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, refreshed by store on every update


@dataclass(frozen=True)
class TokenClaim:
    """Identity carried inside a signed session token.

    Built the same way at signup and at login so every protected route sees
    one claim shape. Serialized as the JWT registered claim `sub` plus custom
    `email` and `role` claims.
    """

    subject_id: str
    email: str
    role: str

    @classmethod
    def for_account(cls, account: Account) -> TokenClaim:
        return cls(subject_id=account.id, email=account.email, role=account.role)
