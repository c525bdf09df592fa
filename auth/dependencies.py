"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one credential is accepted: `Authorization: Bearer <token>`. The token
is verified by the TokenService stored on app.state.token_service.

authenticate() is the hard variant: it rejects with 401 for a missing or
malformed header and 410 for a token that fails verification.
optional_authenticate() is the soft variant: returns None on any failure.
authorize(roles) wraps authenticate() and rejects with 403 when the claim's
role is not in the allow-list.

The decoded claim is returned to the route and also stored on
request.state.claim.

Layer rule: auth/dependencies.py may import from fastapi because this module
is part of the FastAPI dependency injection system. It must not import api/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from fastapi import Depends, HTTPException, Request

from auth.models import TokenClaim
from auth.results import Err
from auth.tokens import TokenService

logger = logging.getLogger("assurehealth.auth.guard")

MISSING_HEADER = "Authorization header is missing. Please provide a valid token."
BAD_SCHEME = "Invalid authorization format. Use Bearer <token>"
MISSING_TOKEN = "Token is missing. Please provide a valid token."
FORBIDDEN = "Insufficient permissions to access this resource."


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def _token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def _bearer_token(authorization: str | None) -> str:
    """Pull the token out of an Authorization header value, or raise 401."""
    if authorization is None:
        raise _unauthorized(MISSING_HEADER)
    if not authorization.startswith("Bearer "):
        raise _unauthorized(BAD_SCHEME)
    token = authorization.split(" ")[1]
    if not token:
        raise _unauthorized(MISSING_TOKEN)
    return token


def authenticate(request: Request) -> TokenClaim:
    """Require a valid bearer token. Use as a FastAPI dependency:

        @router.patch("/user/update")
        def route(claim: TokenClaim = Depends(authenticate)): ...
    """
    token = _bearer_token(request.headers.get("Authorization"))
    result = _token_service(request).verify(token)
    if isinstance(result, Err):
        logger.info("Rejected bearer token on %s: %s", request.url.path, result.kind.value)
        raise HTTPException(status_code=result.status_code, detail=result.message)
    request.state.claim = result.value
    return result.value


def optional_authenticate(request: Request) -> TokenClaim | None:
    """Return the caller's claim when a valid bearer token is present, else None.

    Never raises -- routes that merely behave differently for signed-in
    callers use this instead of authenticate().
    """
    try:
        return authenticate(request)
    except HTTPException as exc:
        if request.headers.get("Authorization") is not None:
            logger.debug("Optional authentication ignored: %s", exc.detail)
        return None


def authorize(allowed_roles: Iterable[str]) -> Callable[..., TokenClaim]:
    """Build a dependency that authenticates, then checks the role allow-list.

        @router.get("/users")
        def route(claim: TokenClaim = Depends(authorize(ADMIN_ROLES))): ...
    """
    allowed = frozenset(allowed_roles)

    def require_role(claim: TokenClaim = Depends(authenticate)) -> TokenClaim:
        if claim.role not in allowed:
            logger.warning("Role %s denied (allowed: %s)", claim.role, sorted(allowed))
            raise HTTPException(status_code=403, detail=FORBIDDEN)
        return claim

    return require_role
