"""
api/routes/users.py -- Account REST endpoints.

Routes:
  POST   /user/signup               -- create account, email verification link; 201 + token
  GET    /user/verify_mail/{email}  -- mark email verified
  POST   /user/login                -- password login; 200 + token
  PATCH  /user/update               -- set BVN + phone number (requires auth)
  PATCH  /user/update/health_plan   -- choose a health plan (requires auth)
  DELETE /user/delete               -- permanently delete own account (requires auth)
  GET    /users                     -- list all accounts (Admin / SuperAdmin)

Handlers are thin: pull the JSON body, call one AuthFlow method, and map the
Ok/Err result to a response. Sync `def` handlers so FastAPI runs the blocking
SQLAlchemy and bcrypt calls in its threadpool.

Security:
  [C1] Login failures share one 404 message -- AuthFlow guarantees it.
  [M5] Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    AccountListResponse,
    AccountRow,
    ErrorResponse,
    MessageResponse,
    SessionData,
    SessionResponse,
    SessionUser,
)
from auth.dependencies import authenticate, authorize
from auth.models import ADMIN_ROLES, TokenClaim
from auth.results import Err, Result
from auth.service import AuthFlow

# Auth policy:
# - POST   /user/signup:              public
# - GET    /user/verify_mail/{email}: public -- the link arrives by email
# - POST   /user/login:               public
# - PATCH  /user/update:              requires auth (authenticate)
# - PATCH  /user/update/health_plan:  requires auth (authenticate)
# - DELETE /user/delete:              requires auth (authenticate)
# - GET    /users:                    requires Admin or SuperAdmin (authorize)
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _flow(request: Request) -> AuthFlow:
    return request.app.state.auth_flow


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(status=status_code, error=message).to_wire(),
    )


def _from_err(result: Err) -> JSONResponse:
    return error_response(result.status_code, result.message)


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=MessageResponse(message=message).to_wire())


def _session(result: Result, status_code: int, message: str) -> JSONResponse:
    if isinstance(result, Err):
        return _from_err(result)
    session = result.value
    resp = JSONResponse(
        status_code=status_code,
        content=SessionResponse(
            message=message,
            token=session.token,
            data=SessionData(user=SessionUser.from_account(session.account)),
        ).to_wire(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _body(payload: Any) -> Any:
    return payload if payload is not None else {}


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/user/signup", status_code=201)
def signup(request: Request, payload: Any = Body(default=None)) -> JSONResponse:
    """Create an unverified User account and return a session token."""
    result = _flow(request).signup(_body(payload))
    return _session(
        result,
        201,
        "Account created successfully! Please check your email to verify your account.",
    )


@router.get("/user/verify_mail/{email}")
def verify_mail(request: Request, email: str) -> JSONResponse:
    """Confirm email ownership. Repeating it for a verified account is 404."""
    result = _flow(request).verify_email(email)
    if isinstance(result, Err):
        return _from_err(result)
    return _message(200, "Email verification successful! You can now login to your account.")


@router.post("/user/login")
def login(request: Request, payload: Any = Body(default=None)) -> JSONResponse:
    """Authenticate with email and password; return a session token."""
    return _session(_flow(request).login(_body(payload)), 200, "Login successful")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.patch("/user/update")
def update_details(
    request: Request,
    payload: Any = Body(default=None),
    claim: TokenClaim = Depends(authenticate),
) -> JSONResponse:
    """Set BVN and phone number on the caller's account."""
    result = _flow(request).update_profile(claim, _body(payload))
    if isinstance(result, Err):
        return _from_err(result)
    return _message(200, "User details updated successfully")


@router.patch("/user/update/health_plan")
def add_health_plan(
    request: Request,
    payload: Any = Body(default=None),
    claim: TokenClaim = Depends(authenticate),
) -> JSONResponse:
    result = _flow(request).choose_health_plan(claim, _body(payload))
    if isinstance(result, Err):
        return _from_err(result)
    return _message(200, "Health plan added successfully")


@router.delete("/user/delete")
def remove_account(request: Request, claim: TokenClaim = Depends(authenticate)) -> JSONResponse:
    """Permanently delete the caller's account."""
    result = _flow(request).delete_account(claim)
    if isinstance(result, Err):
        return _from_err(result)
    return _message(200, "Account deleted successfully")


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.get("/users")
def list_users(request: Request, claim: TokenClaim = Depends(authorize(ADMIN_ROLES))) -> JSONResponse:
    """List every account without credentials or identity numbers. Admin only."""
    result = _flow(request).list_accounts()
    if isinstance(result, Err):
        return _from_err(result)
    rows = [AccountRow.from_account(a) for a in result.value]
    return JSONResponse(
        status_code=200,
        content=AccountListResponse(
            message="All users retrieved successfully",
            count=len(rows),
            data=rows,
        ).to_wire(),
    )
