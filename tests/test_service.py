"""
tests/test_service.py -- Unit tests for AuthFlow, below the HTTP layer.

The mailer is a MagicMock; directory and tokens are real.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from auth.models import TokenClaim
from auth.results import Err, ErrorKind, Ok
from auth.service import (
    BAD_CREDENTIALS_MESSAGE,
    DUPLICATE_EMAIL_MESSAGE,
    UNVERIFIED_MESSAGE,
    AuthFlow,
    Session,
)
from auth.store import AccountDirectory, DuplicateEmailError
from auth.tokens import TokenService
from core.mailer import MailDeliveryError

PASSWORD = "Str0ng!pass"


@pytest.fixture
def flow(directory: AccountDirectory, token_service: TokenService, mailer: MagicMock) -> AuthFlow:
    return AuthFlow(directory, token_service, mailer, bcrypt_rounds=10)


def _signup_body(email: str = "Ada@Example.com") -> dict:
    return {
        "email": email,
        "firstName": "Ada",
        "lastName": "Lovelace",
        "password": PASSWORD,
        "confirmPassword": PASSWORD,
    }


class TestSignup:
    def test_creates_unverified_user_and_returns_session(self, flow: AuthFlow, mailer: MagicMock) -> None:
        result = flow.signup(_signup_body())
        assert isinstance(result, Ok)
        session = result.value
        assert isinstance(session, Session)
        assert session.account.email == "ada@example.com"
        assert session.account.first_name == "ada"
        assert session.account.last_name == "lovelace"
        assert session.account.role == "User"
        assert session.account.verified is False
        assert session.account.password_hash != PASSWORD
        mailer.send_verification.assert_called_once_with("ada@example.com", "Ada")

    def test_token_names_the_new_account(self, flow: AuthFlow, token_service: TokenService) -> None:
        session = flow.signup(_signup_body()).value
        claim = token_service.verify(session.token).value
        assert claim == TokenClaim(subject_id=session.account.id, email="ada@example.com", role="User")

    def test_duplicate_email_is_conflict(self, flow: AuthFlow, directory: AccountDirectory) -> None:
        flow.signup(_signup_body())
        result = flow.signup(_signup_body(email="ADA@example.com"))
        assert isinstance(result, Err)
        assert result.kind is ErrorKind.CONFLICT
        assert result.status_code == 409
        assert result.message == DUPLICATE_EMAIL_MESSAGE
        assert directory.count() == 1

    def test_unique_index_race_is_conflict(self, flow: AuthFlow, directory: AccountDirectory) -> None:
        with patch.object(directory, "create", side_effect=DuplicateEmailError("ada@example.com")):
            result = flow.signup(_signup_body())
        assert isinstance(result, Err)
        assert result.kind is ErrorKind.CONFLICT

    def test_invalid_input_creates_nothing(self, flow: AuthFlow, directory: AccountDirectory, mailer: MagicMock) -> None:
        body = _signup_body()
        body["confirmPassword"] = "Different1!"
        result = flow.signup(body)
        assert isinstance(result, Err)
        assert result.kind is ErrorKind.VALIDATION
        assert directory.count() == 0
        mailer.send_verification.assert_not_called()

    def test_mail_failure_keeps_account(self, flow: AuthFlow, directory: AccountDirectory, mailer: MagicMock) -> None:
        mailer.send_verification.side_effect = MailDeliveryError("down")
        result = flow.signup(_signup_body())
        assert isinstance(result, Ok)
        assert directory.count() == 1

    def test_unexpected_mail_error_keeps_account(
        self, flow: AuthFlow, directory: AccountDirectory, mailer: MagicMock
    ) -> None:
        mailer.send_verification.side_effect = RuntimeError("template missing")
        result = flow.signup(_signup_body())
        assert isinstance(result, Ok)
        assert result.value.token
        assert directory.count() == 1

    def test_storage_failure_is_internal(self, flow: AuthFlow, directory: AccountDirectory) -> None:
        with patch.object(directory, "find_by_email", side_effect=RuntimeError("db down")):
            result = flow.signup(_signup_body())
        assert isinstance(result, Err)
        assert result.kind is ErrorKind.INTERNAL
        assert result.status_code == 500
        assert result.message == "An error occurred while creating your account. Please try again."


class TestVerifyEmail:
    def test_marks_verified(self, flow: AuthFlow, directory: AccountDirectory, account_factory) -> None:
        account_factory(verified=False)
        assert isinstance(flow.verify_email("ADA@example.com"), Ok)
        assert directory.find_by_email("ada@example.com").verified is True

    def test_second_call_is_not_found(self, flow: AuthFlow, account_factory) -> None:
        account_factory(verified=False)
        flow.verify_email("ada@example.com")
        result = flow.verify_email("ada@example.com")
        assert isinstance(result, Err)
        assert result.kind is ErrorKind.NOT_FOUND
        assert result.message == "User not found or already verified"

    def test_empty_email(self, flow: AuthFlow) -> None:
        result = flow.verify_email("  ")
        assert result.kind is ErrorKind.VALIDATION
        assert result.message == "Email parameter is required"

    def test_malformed_email(self, flow: AuthFlow) -> None:
        result = flow.verify_email("not-an-email")
        assert result.kind is ErrorKind.VALIDATION
        assert result.message == "Invalid email format"


class TestLogin:
    def test_success(self, flow: AuthFlow, account_factory, token_service: TokenService) -> None:
        account = account_factory(role="Admin")
        result = flow.login({"email": "Ada@Example.com", "password": PASSWORD})
        assert isinstance(result, Ok)
        assert result.value.account.id == account.id
        claim = token_service.verify(result.value.token).value
        assert claim.role == "Admin"
        assert claim.subject_id == account.id

    def test_unknown_email_and_wrong_password_look_identical(self, flow: AuthFlow, account_factory) -> None:
        account_factory()
        unknown = flow.login({"email": "nobody@example.com", "password": PASSWORD})
        wrong = flow.login({"email": "ada@example.com", "password": "Wr0ng!pass"})
        assert isinstance(unknown, Err) and isinstance(wrong, Err)
        assert unknown == wrong
        assert unknown.status_code == 404
        assert unknown.message == BAD_CREDENTIALS_MESSAGE

    def test_unknown_email_still_runs_bcrypt(self, flow: AuthFlow) -> None:
        with patch("auth.service.burn_password_check") as burn:
            flow.login({"email": "nobody@example.com", "password": PASSWORD})
        burn.assert_called_once_with(PASSWORD, 10)

    def test_unverified_account(self, flow: AuthFlow, account_factory) -> None:
        account_factory(verified=False)
        result = flow.login({"email": "ada@example.com", "password": PASSWORD})
        assert result.kind is ErrorKind.UNAUTHORIZED
        assert result.status_code == 401
        assert result.message == UNVERIFIED_MESSAGE

    def test_unverified_with_wrong_password_reveals_nothing(self, flow: AuthFlow, account_factory) -> None:
        account_factory(verified=False)
        result = flow.login({"email": "ada@example.com", "password": "Wr0ng!pass"})
        assert result.status_code == 404

    def test_invalid_input(self, flow: AuthFlow) -> None:
        result = flow.login({"email": "nope"})
        assert result.kind is ErrorKind.VALIDATION


class TestProfileOperations:
    def test_update_profile(self, flow: AuthFlow, directory: AccountDirectory, account_factory) -> None:
        account = account_factory()
        result = flow.update_profile(
            TokenClaim.for_account(account), {"BVN": "12345678901", "phoneNumber": "+2348012345678"}
        )
        assert isinstance(result, Ok)
        stored = directory.find_by_id(account.id)
        assert stored.bvn == 12345678901
        assert stored.phone_number == 2348012345678

    def test_update_profile_deleted_account(self, flow: AuthFlow, directory: AccountDirectory, account_factory) -> None:
        account = account_factory()
        directory.delete(account.id)
        result = flow.update_profile(
            TokenClaim.for_account(account), {"BVN": "12345678901", "phoneNumber": "8012345678"}
        )
        assert result.kind is ErrorKind.NOT_FOUND
        assert result.message == "User not found"

    def test_choose_health_plan(self, flow: AuthFlow, directory: AccountDirectory, account_factory) -> None:
        account = account_factory()
        result = flow.choose_health_plan(TokenClaim.for_account(account), {"healthPlan": "Gold Family"})
        assert isinstance(result, Ok)
        assert directory.find_by_id(account.id).health_plan == "Gold Family"

    def test_delete_account_twice(self, flow: AuthFlow, directory: AccountDirectory, account_factory) -> None:
        claim = TokenClaim.for_account(account_factory())
        assert isinstance(flow.delete_account(claim), Ok)
        assert directory.count() == 0
        assert flow.delete_account(claim).kind is ErrorKind.NOT_FOUND

    def test_list_accounts(self, flow: AuthFlow, account_factory) -> None:
        account_factory(email="one@example.com")
        account_factory(email="two@example.com")
        result = flow.list_accounts()
        assert isinstance(result, Ok)
        assert len(result.value) == 2


class TestPasswordReset:
    def test_registered_email_gets_reset_mail(self, flow: AuthFlow, mailer: MagicMock, account_factory) -> None:
        account_factory()
        assert isinstance(flow.request_password_reset("ada@example.com"), Ok)
        mailer.send_password_reset.assert_called_once()
        email, first_name, token = mailer.send_password_reset.call_args.args
        assert email == "ada@example.com"
        assert first_name == "ada"
        assert token

    def test_unknown_email_is_silent(self, flow: AuthFlow, mailer: MagicMock) -> None:
        assert flow.request_password_reset("nobody@example.com") == Ok(None)
        mailer.send_password_reset.assert_not_called()

    def test_mail_failure_is_internal(self, flow: AuthFlow, mailer: MagicMock, account_factory) -> None:
        account_factory()
        mailer.send_password_reset.side_effect = MailDeliveryError("down")
        result = flow.request_password_reset("ada@example.com")
        assert result.kind is ErrorKind.INTERNAL
