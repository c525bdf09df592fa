"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper.
AccountDirectory is the repository; _row_to_account is the mapper.
Route, orchestrator and CLI code never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced by the schema, not just by a lookup before the
  insert. Two concurrent signups with the same email can both pass the
  orchestrator's find_by_email() pre-check; the second INSERT still fails on
  the unique index and surfaces as DuplicateEmailError.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, Column, MetaData, String, Table, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Account, Role

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),  # UUID4, assigned in create()
    Column("email", String(255), nullable=False, unique=True),
    Column("first_name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("password_hash", String(255), nullable=False),
    Column("verified", Boolean, nullable=False, default=False),
    Column("phone_number", BigInteger),
    Column("bvn", BigInteger),
    Column("health_plan", String(100)),
    Column("role", String(20), nullable=False, default=Role.USER.value, index=True),
    Column("created_at", String(32), nullable=False, index=True),
    Column("updated_at", String(32), nullable=False),
)

# Columns update_fields() may touch. id, email, created_at are immutable and
# verified only changes through set_verified().
_UPDATABLE = frozenset({"first_name", "last_name", "password_hash", "phone_number", "bvn", "health_plan", "role"})


class DuplicateEmailError(Exception):
    """Raised by AccountDirectory.create() when the email is already registered."""

    def __init__(self, email: str) -> None:
        super().__init__(f"An account with email {email!r} already exists.")
        self.email = email


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountDirectory:
    """Repository for Account records.

    Usage:
        directory = AccountDirectory("sqlite:///./assure_health.db")
        account = directory.create(email="a@b.com", first_name="a", last_name="b", password_hash=h)
        directory.set_verified("a@b.com")
        directory.close()

    Write methods return the affected row count so callers can tell "nothing
    matched" (0) apart from success without a second query.
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and "mode=memory" not in db_url and ":memory:" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        role: str = Role.USER.value,
        verified: bool = False,
    ) -> Account:
        """Insert a new account and return it with its generated id and timestamps.

        Raises DuplicateEmailError when the unique index on email rejects the
        row, whether or not the caller checked find_by_email() first.
        """
        now = _now_iso()
        account_id = str(uuid.uuid4())
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        id=account_id,
                        email=email,
                        first_name=first_name,
                        last_name=last_name,
                        password_hash=password_hash,
                        verified=verified,
                        role=role,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateEmailError(email) from exc
        return Account(
            id=account_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=password_hash,
            role=role,
            verified=verified,
            created_at=now,
            updated_at=now,
        )

    def update_fields(self, account_id: str, **fields) -> int:
        """Update mutable columns on one account. Returns rows affected (0 or 1).

        Column names come from the _UPDATABLE whitelist, never from request
        input; unknown names raise ValueError before any SQL runs.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update account fields: {sorted(unknown)!r}")
        if not fields:
            return 0
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == account_id).values(updated_at=_now_iso(), **fields)
            )
            conn.commit()
        return result.rowcount

    def set_verified(self, email: str) -> int:
        """Mark the account with this email verified.

        Only unverified rows match, so a second verification of the same
        address affects 0 rows.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.email == email) & (_users.c.verified.is_(False)))
                .values(verified=True, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount

    def delete(self, account_id: str) -> int:
        """Permanently delete an account. Returns rows affected (0 or 1)."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == account_id))
            conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> Account | None:
        """Look up an account by its (already normalized) email."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_by_id(self, account_id: str) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def list_all(self) -> list[Account]:
        """Return every account, oldest first. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.created_at, _users.c.email)).fetchall()
        return [_row_to_account(r) for r in rows]

    def count(self) -> int:
        """Return the number of accounts. Used by the health probe."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        password_hash=row.password_hash,
        role=row.role,
        verified=bool(row.verified),
        phone_number=row.phone_number,
        bvn=row.bvn,
        health_plan=row.health_plan,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
