from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordRequestForm

from vehiscan.context import AppContext
from vehiscan.core.bruteforce import normalize_identity
from vehiscan.core.deps import get_context, get_current_user
from vehiscan.core.exceptions import AccountLocked, AuthenticationFailed, EmailAlreadyRegistered
from vehiscan.core.logging import get_security_logger
from vehiscan.core.notices import format_countdown
from vehiscan.core.security import create_access_token
from vehiscan.core.validation import validate_field
from vehiscan.db.models import User
from vehiscan.services.audit import log_access

sec_logger = get_security_logger()

router = APIRouter(prefix="/auth", tags=["Auth"])


def user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "is_admin": user.is_admin,
    }


@router.post("/register")
def register(
    email: str,
    password: str,
    first_name: str = "",
    last_name: str = "",
    code: str = "",
    ctx: AppContext = Depends(get_context),
):
    email = normalize_identity(email)

    if not validate_field("email", email):
        raise HTTPException(status_code=400, detail="Please enter a valid email address.")
    if len(password) < 6:
        raise HTTPException(status_code=400, detail="Password too short")
    if len(password.encode("utf-8")) > 72:
        raise HTTPException(status_code=400, detail="Password too long")

    try:
        user = ctx.auth.sign_up(email, password, first_name, last_name, code)
    except EmailAlreadyRegistered:
        raise HTTPException(status_code=409, detail="Email already in use.")

    sec_logger.info(f"User registered id={user.id[:8]}...")
    return user_payload(user)


@router.post("/login")
def login(
    request: Request,
    form: OAuth2PasswordRequestForm = Depends(),
    ctx: AppContext = Depends(get_context),
):
    email = normalize_identity(form.username)
    if not email or not form.password:
        raise HTTPException(status_code=400, detail="Please fill in all fields")

    status = ctx.lockout.is_locked(email)
    if status.locked:
        sec_logger.warning(f"Login blocked for locked account user={email}")
        raise AccountLocked(status.notice, status.remaining_ms)

    try:
        user = ctx.auth.sign_in(email, form.password)
    except AuthenticationFailed:
        failure = ctx.lockout.record_failure(email)
        log_access("login", False, reason="invalid_credentials", request=request)
        if failure.locked:
            raise AccountLocked(failure.notice, failure.remaining_ms)
        raise AuthenticationFailed(notice=failure.notice)

    ctx.lockout.record_success(email)
    token = create_access_token(
        user.id, ctx.settings.SECRET_KEY, ctx.settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    log_access("login", True, user_id=user.id, request=request)
    return {"access_token": token, "token_type": "bearer"}


@router.get("/lockout")
def lockout_status(email: str, ctx: AppContext = Depends(get_context)):
    status = ctx.lockout.is_locked(email)
    return {
        "locked": status.locked,
        "remaining_ms": status.remaining_ms,
        "countdown": format_countdown(status.remaining_ms) if status.locked else None,
    }


@router.post("/logout")
def logout(request: Request, current_user: User = Depends(get_current_user)):
    log_access("user_logout", True, user_id=current_user.id, request=request)
    return {"status": "logged out"}


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return user_payload(current_user)
