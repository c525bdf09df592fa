"""
auth/schemas.py -- Input validation for the auth flow.

Pydantic v2 models describe the accepted request shapes. Validators raise
ValueError with the exact sentence a client should see; validate() collects
every failure (not just the first) and joins them into one 400 message.

Wire names are camelCase (firstName, confirmPassword, BVN); Python attributes
are snake_case via aliases.
"""

from __future__ import annotations

import re
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from auth.results import Err, ErrorKind, Ok, Result

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_EMAIL_RE = re.compile(r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@(?:[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?\.)+[A-Za-z]{2,}$")

# Signup accepts only these top-level domains.
SIGNUP_TLDS = frozenset({"com", "net", "org", "edu", "gov", "co", "uk", "ng", "io"})

_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$")
_BVN_RE = re.compile(r"^\d{11}$")
_PHONE_RE = re.compile(r"^\+?[1-9]\d{1,14}$")

# Messages for fields that are absent from the payload entirely.
_REQUIRED = {
    "firstName": "First name is required",
    "lastName": "Last name is required",
    "email": "Email address is required",
    "password": "Password is required",
    "confirmPassword": "Password confirmation is required",
    "healthPlan": "Health plan is required",
}

_LABELS = {
    "firstName": "First name",
    "lastName": "Last name",
    "email": "Email address",
    "password": "Password",
    "confirmPassword": "Password confirmation",
    "healthPlan": "Health plan",
    "BVN": "BVN",
    "phoneNumber": "Phone number",
}


def is_valid_email(value: str, tlds: frozenset[str] | None = None) -> bool:
    """Syntax check for an email address, optionally restricting the TLD."""
    if not _EMAIL_RE.match(value):
        return False
    if tlds is not None:
        return value.rsplit(".", 1)[-1].lower() in tlds
    return True


def _check_name(value: str, label: str) -> str:
    if not value:
        raise ValueError(f"Please enter a {label.lower()}")
    if len(value) > 50:
        raise ValueError(f"{label} should have a maximum length of 50 characters")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class _Request(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True, extra="ignore")


class SignupRequest(_Request):
    email: str
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    password: str
    confirm_password: str = Field(alias="confirmPassword")

    @field_validator("first_name")
    @classmethod
    def check_first_name(cls, v: str) -> str:
        return _check_name(v, "First name")

    @field_validator("last_name")
    @classmethod
    def check_last_name(cls, v: str) -> str:
        return _check_name(v, "Last name")

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not v:
            raise ValueError("Please enter your email address")
        if not is_valid_email(v, SIGNUP_TLDS):
            raise ValueError("Please enter a valid email address")
        return v.lower()

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        if len(v) < 8:
            raise ValueError("Password should have a minimum length of 8 characters")
        if len(v) > 128:
            raise ValueError("Password should have a maximum length of 128 characters")
        if not _PASSWORD_RE.match(v):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, "
                "one number, and one special character"
            )
        return v

    @field_validator("confirm_password")
    @classmethod
    def check_confirm_present(cls, v: str) -> str:
        if not v:
            raise ValueError("Please confirm your password")
        return v

    @model_validator(mode="after")
    def passwords_match(self) -> "SignupRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(_Request):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not v:
            raise ValueError("Please enter your email address")
        if not is_valid_email(v):
            raise ValueError("Please enter a valid email address")
        return v.lower()

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        return v


class ProfileUpdateRequest(_Request):
    """BVN and phone number. Accepts JSON strings or integers for both."""

    bvn: Optional[Union[str, int]] = Field(default=None, alias="BVN")
    phone_number: Optional[Union[str, int]] = Field(default=None, alias="phoneNumber")

    @field_validator("bvn")
    @classmethod
    def check_bvn(cls, v: Optional[Union[str, int]]) -> Optional[str]:
        if v is None:
            return None
        s = str(v).strip()
        if len(s) != 11:
            raise ValueError("BVN must be exactly 11 digits")
        if not _BVN_RE.match(s):
            raise ValueError("BVN must contain only numbers")
        return s

    @field_validator("phone_number")
    @classmethod
    def check_phone(cls, v: Optional[Union[str, int]]) -> Optional[str]:
        if v is None:
            return None
        s = str(v).strip()
        if len(s) < 10:
            raise ValueError("Phone number must be at least 10 digits")
        if len(s) > 15:
            raise ValueError("Phone number must be at most 15 digits")
        if not _PHONE_RE.match(s):
            raise ValueError("Please enter a valid phone number")
        return s

    @model_validator(mode="after")
    def both_required(self) -> "ProfileUpdateRequest":
        if not self.bvn or not self.phone_number:
            raise ValueError("Both BVN and phone number are required")
        return self

    @property
    def bvn_number(self) -> int:
        return int(self.bvn)

    @property
    def phone_number_value(self) -> int:
        # Stored as a big integer; a leading "+" carries no digits.
        return int(self.phone_number.lstrip("+"))


class HealthPlanRequest(_Request):
    health_plan: str = Field(alias="healthPlan")

    @field_validator("health_plan")
    @classmethod
    def check_plan(cls, v: str) -> str:
        if not v:
            raise ValueError("Please select a health plan")
        if len(v) < 2:
            raise ValueError("Health plan name must be at least 2 characters")
        if len(v) > 100:
            raise ValueError("Health plan name must be at most 100 characters")
        return v


# ---------------------------------------------------------------------------
# Error formatting
# ---------------------------------------------------------------------------


def _message_for(error: dict) -> str:
    loc = error.get("loc") or ()
    field = str(loc[0]) if loc else ""
    if error["type"] == "value_error":
        return str(error["ctx"]["error"])
    if error["type"] == "missing":
        return _REQUIRED.get(field, f"{_LABELS.get(field, field)} is required")
    if error["type"] == "model_type":
        return "Request body must be a JSON object"
    label = _LABELS.get(field, field)
    return f"{label} must be a string" if error["type"] == "string_type" else f"{label}: {error['msg']}"


def format_errors(exc: ValidationError) -> str:
    """Join every validation failure into a single client-facing sentence list."""
    messages: list[str] = []
    for error in exc.errors():
        msg = _message_for(error)
        if msg not in messages:
            messages.append(msg)
    return ", ".join(messages)


def validate(model: type[BaseModel], payload: Any) -> Result:
    """Validate payload against model. Ok(instance) or Err(VALIDATION, message)."""
    try:
        return Ok(model.model_validate(payload))
    except ValidationError as exc:
        return Err(ErrorKind.VALIDATION, format_errors(exc))
