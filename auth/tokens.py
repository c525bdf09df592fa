"""
auth/tokens.py -- Password hashing and JWT session tokens.

Security design decisions:
  JWT: python-jose with HS256. TokenService is constructed with the signing
       secret from core.config.Settings -- it never reads configuration on its
       own. Tokens carry the account id (sub), email and role plus iat/exp.
       verify() returns Ok(TokenClaim) or Err(TokenErrorKind); the guard in
       auth/dependencies.py turns the error kind into a 410 response.

  Passwords: bcrypt directly (no passlib wrapper). Cost factor defaults to 12
       and is floored at 10 by Settings. dummy_hash(rounds) enables
       timing equalization in the login flow so response time does not reveal
       whether an email is registered [C1].

  Statelessness: there is no revocation store. A token stays valid until its
       exp even if the account behind it is deleted; routes that load the
       account answer 404 in that case.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from auth.models import TokenClaim
from auth.results import Err, Ok, Result, TokenErrorKind

logger = logging.getLogger("assurehealth.auth")

_ALGORITHM = "HS256"

SESSION_TTL = timedelta(days=1)
PASSWORD_RESET_TTL = timedelta(hours=1)

DEFAULT_BCRYPT_ROUNDS = 12

# bcrypt only reads the first 72 bytes of its input; bcrypt 4.1+ raises on
# anything longer instead of truncating silently.
_BCRYPT_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def _password_bytes(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Any exception here (e.g. an invalid cost) propagates: a signup that
    cannot hash must fail with a server error rather than store anything.
    """
    return bcrypt.hashpw(_password_bytes(plain), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A mismatch and an unparsable stored hash are both plain False.
    """
    try:
        return bcrypt.checkpw(_password_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash [C1].


@lru_cache(maxsize=None)
def dummy_hash(rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """bcrypt hash of a throwaway secret at the given cost, computed once per cost."""
    return hash_password("assurehealth_timing_dummy", rounds=rounds)


# Warm the default cost at import so the first login is not measurably slower.
dummy_hash()


def burn_password_check(plain: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
    """Run a full bcrypt comparison whose result is discarded [C1].

    Called when the email is unknown so the response takes as long as a
    wrong-password response. rounds must match the cost real hashes use.
    """
    verify_password(plain, dummy_hash(rounds))


# ---------------------------------------------------------------------------
# JWT issue / verify
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and verifies signed, time-limited bearer tokens.

    Usage:
        tokens = TokenService(settings.jwt_key)
        raw = tokens.issue(TokenClaim.for_account(account))
        result = tokens.verify(raw)   # Ok(TokenClaim) | Err(TokenErrorKind)

    clock is injectable so tests can mint tokens "in the past" to exercise
    expiry without sleeping. Verification always uses the real wall clock.
    """

    def __init__(self, secret: str, clock: Callable[[], datetime] = _utcnow) -> None:
        if not secret:
            raise ValueError("TokenService requires a non-empty signing secret.")
        self._secret = secret
        self._clock = clock

    def issue(
        self,
        claim: TokenClaim,
        ttl: timedelta = SESSION_TTL,
        not_before: datetime | None = None,
    ) -> str:
        """Encode claim into a signed JWT that expires ttl after issuance."""
        now = self._clock()
        payload: dict = {
            "sub": claim.subject_id,
            "email": claim.email,
            "role": claim.role,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        if not_before is not None:
            payload["nbf"] = int(not_before.timestamp())
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def issue_password_reset(self, claim: TokenClaim) -> str:
        """Short-lived token for password reset links (1 hour)."""
        return self.issue(claim, ttl=PASSWORD_RESET_TTL)

    def verify(self, token: str) -> Result:
        """Decode and verify a JWT.

        Returns Ok(TokenClaim) or Err(TokenErrorKind, message). A token signed
        with any other secret -- tampered or minted before a key rotation -- is
        MALFORMED; the two cases cannot be told apart.
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[_ALGORITHM])
        except ExpiredSignatureError:
            return _token_err(TokenErrorKind.EXPIRED)
        except JWTClaimsError as exc:
            if "nbf" in str(exc):
                return _token_err(TokenErrorKind.NOT_YET_VALID)
            logger.debug("Rejected token claims: %s", exc)
            return _token_err(TokenErrorKind.MALFORMED)
        except JWTError as exc:
            logger.debug("Rejected token: %s", exc)
            return _token_err(TokenErrorKind.MALFORMED)

        sub, email, role = payload.get("sub"), payload.get("email"), payload.get("role")
        if not (isinstance(sub, str) and isinstance(email, str) and isinstance(role, str)):
            return _token_err(TokenErrorKind.MALFORMED)
        return Ok(TokenClaim(subject_id=sub, email=email, role=role))


def _token_err(kind: TokenErrorKind) -> Err:
    return Err(kind=kind, message=kind.message)
