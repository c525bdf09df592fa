"""
tests/test_config.py -- Settings validation.

Settings are constructed directly (not through the cached get_settings())
so each case sees exactly the environment it sets up.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

GOOD_KEY = "a" * 32


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("JWT_KEY", GOOD_KEY)
    monkeypatch.setenv("SENDGRID_API_KEY", "SG.key")
    monkeypatch.setenv("SENDGRID_EMAIL", "no-reply@example.com")
    monkeypatch.delenv("BCRYPT_ROUNDS", raising=False)
    monkeypatch.delenv("PORT", raising=False)
    return monkeypatch


def _settings() -> Settings:
    return Settings(_env_file=None)


def test_defaults(env) -> None:
    s = _settings()
    assert s.environment == "development"
    assert s.port == 4000
    assert s.bcrypt_rounds == 12
    assert s.is_production is False


@pytest.mark.parametrize("missing", ["JWT_KEY", "SENDGRID_API_KEY", "SENDGRID_EMAIL"])
def test_required_variables(env, missing: str) -> None:
    env.delenv(missing)
    with pytest.raises(ValidationError, match=missing):
        _settings()


def test_short_jwt_key_rejected(env) -> None:
    env.setenv("JWT_KEY", "a" * 31)
    with pytest.raises(ValidationError, match="at least 32 characters"):
        _settings()


def test_bcrypt_rounds_floor(env) -> None:
    env.setenv("BCRYPT_ROUNDS", "9")
    with pytest.raises(ValidationError, match="BCRYPT_ROUNDS"):
        _settings()


def test_unknown_environment_rejected(env) -> None:
    env.setenv("ENVIRONMENT", "staging")
    with pytest.raises(ValidationError, match="ENVIRONMENT"):
        _settings()


def test_host_url_outside_production(env) -> None:
    env.setenv("PORT", "8080")
    assert _settings().host_url == "http://localhost:8080"


def test_host_url_in_production(env) -> None:
    env.setenv("ENVIRONMENT", "Production")
    env.setenv("PUBLIC_URL", "https://api.assure-health.com/")
    s = _settings()
    assert s.is_production
    assert s.host_url == "https://api.assure-health.com"
