"""
auth/service.py -- AuthFlow: signup, login, verification, profile changes.

AuthFlow composes the Account Directory, the password hasher, the Token
Service and the mailer. Every public method returns Ok(...) or Err(kind,
message) -- see auth/results.py. Routes map the result to an HTTP response;
nothing in here knows about status codes or FastAPI.

Unexpected exceptions (database down, bcrypt failure, signing failure) are
caught by @_boundary, logged with traceback, and returned as
Err(ErrorKind.INTERNAL, <operation-specific message>). No operation ever
returns a partial success.

Security:
  [C1] Login runs bcrypt even when the email is unknown (burn_password_check)
       and returns one generic message for unknown email and wrong password.
  Password hashes never leave this module inside an Ok value meant for a
  response: routes serialize Account through api/models.py, which drops them.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable

from auth.models import Account, TokenClaim
from auth.results import Err, ErrorKind, Ok, Result
from auth.schemas import (
    HealthPlanRequest,
    LoginRequest,
    ProfileUpdateRequest,
    SignupRequest,
    is_valid_email,
    validate,
)
from auth.store import AccountDirectory, DuplicateEmailError
from auth.tokens import (
    DEFAULT_BCRYPT_ROUNDS,
    TokenService,
    burn_password_check,
    dummy_hash,
    hash_password,
    verify_password,
)

logger = logging.getLogger("assurehealth.auth.flow")

DUPLICATE_EMAIL_MESSAGE = "An account with this email already exists. Please login or use a different email."
BAD_CREDENTIALS_MESSAGE = "Invalid email or password"
UNVERIFIED_MESSAGE = "Please verify your email address before logging in"
USER_NOT_FOUND_MESSAGE = "User not found"


@dataclass(frozen=True)
class Session:
    """Successful signup or login: the bearer token plus the account it names."""

    token: str
    account: Account


def _boundary(failure_message: str) -> Callable:
    """Convert any exception escaping an AuthFlow operation into Err(INTERNAL)."""

    def decorator(fn: Callable[..., Result]) -> Callable[..., Result]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Result:
            try:
                return fn(*args, **kwargs)
            except Exception:
                logger.exception("AuthFlow.%s failed", fn.__name__)
                return Err(ErrorKind.INTERNAL, failure_message)

        return wrapper

    return decorator


class AuthFlow:
    """Coordinates every account operation exposed over HTTP.

    Usage:
        flow = AuthFlow(directory, TokenService(settings.jwt_key), mailer)
        result = flow.signup({"email": ..., "firstName": ..., ...})
        if isinstance(result, Ok):
            session = result.value   # Session(token, account)
    """

    def __init__(
        self,
        directory: AccountDirectory,
        tokens: TokenService,
        mailer: Any,
        bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS,
    ) -> None:
        self.directory = directory
        self.tokens = tokens
        self.mailer = mailer
        self.bcrypt_rounds = bcrypt_rounds
        dummy_hash(bcrypt_rounds)  # warm the timing-equalization hash at this cost

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    @_boundary("An error occurred while creating your account. Please try again.")
    def signup(self, payload: Any) -> Result:
        """Register a new, unverified User account and open a session for it.

        The find_by_email() pre-check only gives the common case a friendly
        409 early. A concurrent signup that slips past it is still rejected by
        the unique index (DuplicateEmailError) with the same 409.

        A failed verification email is logged and does not undo the account.
        """
        checked = validate(SignupRequest, payload)
        if isinstance(checked, Err):
            return checked
        req: SignupRequest = checked.value

        email = req.email.strip().lower()
        if self.directory.find_by_email(email) is not None:
            logger.info("Signup rejected, email already registered: %s", email)
            return Err(ErrorKind.CONFLICT, DUPLICATE_EMAIL_MESSAGE)

        password_hash = hash_password(req.password, rounds=self.bcrypt_rounds)
        try:
            account = self.directory.create(
                email=email,
                first_name=req.first_name.strip().lower(),
                last_name=req.last_name.strip().lower(),
                password_hash=password_hash,
            )
        except DuplicateEmailError:
            logger.info("Signup lost uniqueness race for %s", email)
            return Err(ErrorKind.CONFLICT, DUPLICATE_EMAIL_MESSAGE)

        try:
            self.mailer.send_verification(email, req.first_name)
        except Exception:
            # Account row is already committed.
            logger.exception("Account %s created but verification email failed", account.id)

        token = self.tokens.issue(TokenClaim.for_account(account))
        logger.info("Account created: %s", account.id)
        return Ok(Session(token=token, account=account))

    @_boundary("An error occurred during email verification.")
    def verify_email(self, email: str) -> Result:
        """Mark the account verified. A second call for the same email is 404."""
        email = (email or "").strip().lower()
        if not email:
            return Err(ErrorKind.VALIDATION, "Email parameter is required")
        if not is_valid_email(email):
            return Err(ErrorKind.VALIDATION, "Invalid email format")

        if self.directory.set_verified(email) == 0:
            return Err(ErrorKind.NOT_FOUND, "User not found or already verified")
        logger.info("Email verified: %s", email)
        return Ok(email)

    @_boundary("An error occurred during login. Please try again.")
    def login(self, payload: Any) -> Result:
        """Check credentials and open a session.

        Unknown email and wrong password return the identical 404 message [C1].
        Only a correct password on an unverified account reveals more (401).
        """
        checked = validate(LoginRequest, payload)
        if isinstance(checked, Err):
            return checked
        req: LoginRequest = checked.value

        account = self.directory.find_by_email(req.email)
        if account is None:
            burn_password_check(req.password, self.bcrypt_rounds)
            logger.warning("Failed login attempt for unknown email")
            return Err(ErrorKind.NOT_FOUND, BAD_CREDENTIALS_MESSAGE)
        if not verify_password(req.password, account.password_hash):
            logger.warning("Failed login attempt for account %s", account.id)
            return Err(ErrorKind.NOT_FOUND, BAD_CREDENTIALS_MESSAGE)
        if not account.verified:
            return Err(ErrorKind.UNAUTHORIZED, UNVERIFIED_MESSAGE)

        token = self.tokens.issue(TokenClaim.for_account(account))
        logger.info("Successful login: %s", account.id)
        return Ok(Session(token=token, account=account))

    @_boundary("An error occurred while updating user details.")
    def update_profile(self, claim: TokenClaim, payload: Any) -> Result:
        """Set BVN and phone number on the caller's own account."""
        checked = validate(ProfileUpdateRequest, payload)
        if isinstance(checked, Err):
            return checked
        req: ProfileUpdateRequest = checked.value

        affected = self.directory.update_fields(
            claim.subject_id,
            bvn=req.bvn_number,
            phone_number=req.phone_number_value,
        )
        if affected == 0:
            return Err(ErrorKind.NOT_FOUND, USER_NOT_FOUND_MESSAGE)
        return Ok(claim.subject_id)

    @_boundary("An error occurred while adding the health plan.")
    def choose_health_plan(self, claim: TokenClaim, payload: Any) -> Result:
        checked = validate(HealthPlanRequest, payload)
        if isinstance(checked, Err):
            return checked
        req: HealthPlanRequest = checked.value

        if self.directory.update_fields(claim.subject_id, health_plan=req.health_plan) == 0:
            return Err(ErrorKind.NOT_FOUND, USER_NOT_FOUND_MESSAGE)
        return Ok(req.health_plan)

    @_boundary("An error occurred while deleting the account.")
    def delete_account(self, claim: TokenClaim) -> Result:
        """Permanently delete the caller's account. No confirmation step.

        The caller's token keeps verifying until it expires; every later
        operation that touches the account answers 404.
        """
        if self.directory.delete(claim.subject_id) == 0:
            return Err(ErrorKind.NOT_FOUND, USER_NOT_FOUND_MESSAGE)
        logger.info("Account deleted: %s", claim.subject_id)
        return Ok(claim.subject_id)

    @_boundary("An error occurred while retrieving users.")
    def list_accounts(self) -> Result:
        """Every account. Role gating happens in the guard before this runs."""
        return Ok(self.directory.list_all())

    @_boundary("An error occurred while requesting a password reset.")
    def request_password_reset(self, email: str) -> Result:
        """Email a one-hour reset token to a registered address.

        Returns Ok(None) for unknown addresses too, so the caller cannot probe
        which emails are registered.
        """
        email = (email or "").strip().lower()
        if not is_valid_email(email):
            return Err(ErrorKind.VALIDATION, "Invalid email format")
        account = self.directory.find_by_email(email)
        if account is None:
            return Ok(None)
        token = self.tokens.issue_password_reset(TokenClaim.for_account(account))
        self.mailer.send_password_reset(account.email, account.first_name, token)
        return Ok(None)
