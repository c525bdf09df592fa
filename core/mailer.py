"""
mailer.py -- Outbound transactional email via the SendGrid v3 REST API.

The mailer is built from Settings at startup (API key, sender address, link
base URL, environment) and never reads configuration on its own. Outside
production every message is sent with SendGrid sandbox mode enabled, so the
request is validated by SendGrid but nothing is delivered.

Transport failures raise MailDeliveryError. Whether a failed send aborts the
surrounding operation is the caller's decision.
"""

import logging
from typing import Any
from urllib.parse import quote

import requests

from core.config import Settings

logger = logging.getLogger("assurehealth.mailer")

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
SENDER_NAME = "Assure Health"


class MailDeliveryError(Exception):
    """The email provider rejected the message or could not be reached."""


_VERIFY_HTML = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333;">Welcome to Assure Health, {name}!</h2>
  <p>Thank you for signing up. Please verify your email address by clicking the button below:</p>
  <a href="{link}" style="display: inline-block; padding: 12px 24px; background-color: #007bff; \
color: white; text-decoration: none; border-radius: 4px; margin: 20px 0;">Verify Email Address</a>
  <p>Or copy and paste this link in your browser:</p>
  <p><a href="{link}">{link}</a></p>
  <p>If you didn't create this account, please ignore this email.</p>
</div>
"""

_RESET_HTML = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333;">Password Reset Request</h2>
  <p>Hello {name},</p>
  <p>We received a request to reset your password. Click the button below to reset it:</p>
  <a href="{link}" style="display: inline-block; padding: 12px 24px; background-color: #dc3545; \
color: white; text-decoration: none; border-radius: 4px; margin: 20px 0;">Reset Password</a>
  <p>Or copy and paste this link in your browser:</p>
  <p><a href="{link}">{link}</a></p>
  <p><strong>This link will expire in 1 hour.</strong></p>
  <p>If you didn't request this password reset, please ignore this email.</p>
</div>
"""


class SendGridMailer:
    """Sends verification and password-reset emails.

    Usage:
        mailer = SendGridMailer(get_settings())
        mailer.send_verification("a@b.com", "Ada")
    """

    def __init__(self, settings: Settings, session: requests.Session | None = None) -> None:
        self._api_key = settings.sendgrid_api_key
        self._sender = settings.sendgrid_email
        self._host_url = settings.host_url
        self._sandbox = not settings.is_production
        self._session = session or requests.Session()
        self._session.max_redirects = 3

    def verification_link(self, email: str) -> str:
        return f"{self._host_url}/user/verify_mail/{quote(email, safe='@')}"

    def reset_link(self, token: str) -> str:
        return f"{self._host_url}/user/reset-password?token={quote(token)}"

    def send_verification(self, email: str, first_name: str) -> None:
        link = self.verification_link(email)
        self._send(
            to=email,
            subject="Verification Email",
            text=f"{first_name}, Please click the following link to confirm your email address:\n\n{link}",
            html=_VERIFY_HTML.format(name=first_name, link=link),
        )
        logger.info("Verification email sent to %s", email)

    def send_password_reset(self, email: str, first_name: str, token: str) -> None:
        link = self.reset_link(token)
        self._send(
            to=email,
            subject="Password Reset Request",
            text=(
                f"{first_name}, Please click the following link to reset your password:\n\n{link}\n\n"
                "This link will expire in 1 hour."
            ),
            html=_RESET_HTML.format(name=first_name, link=link),
        )
        logger.info("Password reset email sent to %s", email)

    def build_message(self, to: str, subject: str, text: str, html: str) -> dict[str, Any]:
        """Assemble the SendGrid v3 mail/send JSON body."""
        return {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self._sender, "name": SENDER_NAME},
            "subject": subject,
            "content": [
                {"type": "text/plain", "value": text},
                {"type": "text/html", "value": html},
            ],
            "mail_settings": {"sandbox_mode": {"enable": self._sandbox}},
        }

    def _send(self, to: str, subject: str, text: str, html: str) -> None:
        try:
            resp = self._session.post(
                SENDGRID_SEND_URL,
                json=self.build_message(to, subject, text, html),
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=10,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning("SendGrid send failed for %s: %s", to, e)
            raise MailDeliveryError(f"Failed to send email to {to}: {e}") from e

    def close(self) -> None:
        self._session.close()
