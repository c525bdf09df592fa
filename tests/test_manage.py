"""
tests/test_manage.py -- The account administration CLI.

Each test points DATABASE_URL at a throwaway SQLite file and clears the
get_settings() cache around the run.
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

import manage
from auth.store import AccountDirectory
from auth.tokens import verify_password
from core.config import get_settings


@pytest.fixture
def db_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[str, None, None]:
    url = f"sqlite:///{tmp_path / 'accounts.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    get_settings.cache_clear()
    yield url
    get_settings.cache_clear()


def _create_args(email: str = "root@example.com", role: str = "SuperAdmin") -> list[str]:
    return [
        "create-account",
        "--email",
        email,
        "--first-name",
        "Grace",
        "--last-name",
        "Hopper",
        "--password",
        "Str0ng!pass",
        "--role",
        role,
    ]


def test_create_account_is_verified_with_role(db_url: str) -> None:
    assert manage.main(_create_args()) == 0

    directory = AccountDirectory(db_url)
    try:
        account = directory.find_by_email("root@example.com")
    finally:
        directory.close()
    assert account is not None
    assert account.role == "SuperAdmin"
    assert account.verified is True
    assert account.first_name == "grace"
    assert verify_password("Str0ng!pass", account.password_hash)


def test_create_account_duplicate_fails(db_url: str, capsys: pytest.CaptureFixture) -> None:
    assert manage.main(_create_args()) == 0
    assert manage.main(_create_args()) == 1
    assert "already exists" in capsys.readouterr().out


def test_create_account_rejects_weak_password(db_url: str, capsys: pytest.CaptureFixture) -> None:
    args = _create_args()
    args[args.index("Str0ng!pass")] = "weak"
    assert manage.main(args) == 1
    assert "minimum length of 8" in capsys.readouterr().out


def test_list_accounts(db_url: str, capsys: pytest.CaptureFixture) -> None:
    manage.main(_create_args(email="one@example.com", role="Admin"))
    manage.main(_create_args(email="two@example.com", role="User"))
    capsys.readouterr()

    assert manage.main(["list-accounts"]) == 0
    out = capsys.readouterr().out
    assert "one@example.com" in out
    assert "two@example.com" in out
    assert "2 account(s)." in out


def test_no_command_prints_help(db_url: str) -> None:
    assert manage.main([]) == 2
