from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from Security.account_lockout import AccountLockoutPolicy
from Security.authentication import find_user_by_email, hash_password, mask_email, normalize_email, verify_password
from Security.brute_force import BruteForceDetector
from Security.password_reset import PasswordResetCodes, ResetCodeError
from Security.password_strength import ensure_valid_password, validate_password
from Security.security_config import SECURITY_SETTINGS
from Security.security_logger import (
    SecurityEventRecorder,
    SecurityEventType,
    entry_from_request,
    get_client_ip,
    utcnow,
)
from Security.session_timeout import build_session_policy
from .app_context import (
    enforce_api_rate_limit,
    enforce_auth_rate_limit,
    get_current_user,
    get_detector,
    get_lockout_policy,
    get_recorder,
    get_reset_code_sender,
    get_reset_codes,
    start_session,
)
from .database import get_db
from .models import User

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
    dependencies=[Depends(enforce_api_rate_limit)],
)

auth_limited = [Depends(enforce_auth_rate_limit)]


class RegisterIn(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


class LoginIn(BaseModel):
    email: str
    password: str


class PasswordCheckIn(BaseModel):
    password: Optional[str] = None


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str


class ForgotPasswordIn(BaseModel):
    email: Optional[str] = None


class VerifyResetCodeIn(BaseModel):
    email: Optional[str] = None
    code: Optional[str] = None


class ResetPasswordIn(BaseModel):
    email: Optional[str] = None
    code: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "currency": user.currency,
        "lastLoginAt": user.last_login_at.isoformat() if user.last_login_at else None,
    }


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=auth_limited)
async def register_user(payload: RegisterIn, request: Request, db: Session = Depends(get_db)):
    ensure_valid_password(payload.password)

    email = normalize_email(payload.email)
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")
    if find_user_by_email(db, email):
        raise HTTPException(status_code=400, detail="User already exists")

    user = User(email=email, name=payload.name, password_hash=hash_password(payload.password))
    db.add(user)
    db.commit()
    db.refresh(user)
    start_session(request, user)
    return _user_payload(user)


@router.post("/login", dependencies=auth_limited)
async def login(
    payload: LoginIn,
    request: Request,
    db: Session = Depends(get_db),
    recorder: SecurityEventRecorder = Depends(get_recorder),
    detector: BruteForceDetector = Depends(get_detector),
    lockout: AccountLockoutPolicy = Depends(get_lockout_policy),
):
    ip = get_client_ip(request)
    if await detector.should_block(ip):
        await recorder.record_from_request(
            request,
            SecurityEventType.SUSPICIOUS_ACTIVITY,
            details="Login blocked: too many failed attempts from this IP",
            success=False,
        )
        raise HTTPException(
            status_code=429,
            detail="Too many failed login attempts from this IP, please try again later",
        )

    user = find_user_by_email(db, payload.email)

    if user and lockout.is_locked(user):
        minutes_left = lockout.minutes_remaining(user)
        await recorder.record_from_request(
            request,
            SecurityEventType.LOGIN_FAILED,
            user.id,
            f"Account locked. {minutes_left} minutes remaining.",
            success=False,
        )
        raise HTTPException(
            status_code=423,
            detail=f"Account is temporarily locked. Please try again in {minutes_left} minutes.",
        )

    if user and verify_password(payload.password, user.password_hash):
        if user.is_deleted:
            raise HTTPException(status_code=403, detail="Account deleted. Please reactivate your account.")

        lockout.reset(user)
        user.last_login_at = utcnow()
        user.last_login_ip = ip
        db.commit()

        await recorder.record_from_request(request, SecurityEventType.LOGIN_SUCCESS, user.id)
        start_session(request, user)
        return _user_payload(user)

    if user:
        locked = lockout.register_failure(user)
        attempts = user.failed_login_attempts
        db.commit()
        if locked:
            await recorder.record_from_request(
                request,
                SecurityEventType.ACCOUNT_LOCKED,
                user.id,
                f"Account locked after {lockout.max_attempts} failed attempts",
            )
        await recorder.record_from_request(
            request,
            SecurityEventType.LOGIN_FAILED,
            user.id,
            f"Failed attempt {attempts}/{lockout.max_attempts}",
            success=False,
        )
    else:
        # Same response as a wrong password; the attempt is still counted for the IP.
        await recorder.record_from_request(
            request,
            SecurityEventType.LOGIN_FAILED,
            None,
            f"Login attempt for non-existent email: {mask_email(payload.email)}",
            success=False,
        )

    raise HTTPException(status_code=401, detail="Invalid email or password")


@router.post("/logout")
async def logout(request: Request, recorder: SecurityEventRecorder = Depends(get_recorder)):
    user_id = request.session.get("user_id")
    if user_id:
        recorder.record_in_background(entry_from_request(request, SecurityEventType.LOGOUT, user_id))
    request.session.clear()
    return {"message": "Logged out successfully"}


@router.post("/validate-password")
async def check_password_strength(payload: PasswordCheckIn):
    if not payload.password:
        raise HTTPException(status_code=400, detail="Password is required")
    return validate_password(payload.password).to_dict()


@router.put("/password")
async def change_password(
    payload: ChangePasswordIn,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    recorder: SecurityEventRecorder = Depends(get_recorder),
    lockout: AccountLockoutPolicy = Depends(get_lockout_policy),
):
    if not verify_password(payload.current_password, user.password_hash):
        await recorder.record_from_request(
            request,
            SecurityEventType.PASSWORD_CHANGE,
            user.id,
            "Current password did not match",
            success=False,
        )
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    ensure_valid_password(payload.new_password)

    user.password_hash = hash_password(payload.new_password)
    lockout.reset(user)
    db.commit()

    recorder.record_in_background(entry_from_request(request, SecurityEventType.PASSWORD_CHANGE, user.id))
    start_session(request, user)
    return {"message": "Password updated successfully"}


@router.delete("/me")
async def delete_account(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    recorder: SecurityEventRecorder = Depends(get_recorder),
):
    user.is_deleted = True
    user.deleted_at = utcnow()
    db.commit()

    recorder.record_in_background(entry_from_request(request, SecurityEventType.ACCOUNT_DELETED, user.id))
    request.session.clear()
    return {"message": "Account deleted successfully"}


@router.post("/reactivate", dependencies=auth_limited)
async def reactivate_account(
    payload: LoginIn,
    request: Request,
    db: Session = Depends(get_db),
    recorder: SecurityEventRecorder = Depends(get_recorder),
):
    user = find_user_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_deleted:
        raise HTTPException(status_code=400, detail="Account is already active")

    user.is_deleted = False
    user.deleted_at = None
    user.last_login_at = utcnow()
    user.last_login_ip = get_client_ip(request)
    db.commit()

    await recorder.record_from_request(request, SecurityEventType.ACCOUNT_REACTIVATED, user.id)
    start_session(request, user)
    return _user_payload(user)


@router.post("/forgot-password", dependencies=auth_limited)
async def request_password_reset(
    payload: ForgotPasswordIn,
    request: Request,
    db: Session = Depends(get_db),
    recorder: SecurityEventRecorder = Depends(get_recorder),
    reset_codes: PasswordResetCodes = Depends(get_reset_codes),
    send_reset_code=Depends(get_reset_code_sender),
):
    if not normalize_email(payload.email):
        raise HTTPException(status_code=400, detail="Email is required")

    # Same answer whether or not the account exists.
    user = find_user_by_email(db, payload.email)
    if user:
        code = reset_codes.issue(user)
        db.commit()
        await recorder.record_from_request(request, SecurityEventType.PASSWORD_RESET_REQUEST, user.id)
        if not send_reset_code(user.email, user.name, code, reset_codes.ttl_minutes):
            raise HTTPException(status_code=500, detail="Failed to send reset code email")

    return {"message": "If the email exists, a reset code has been sent to your email address"}


@router.post("/verify-reset-code", dependencies=auth_limited)
async def verify_reset_code(
    payload: VerifyResetCodeIn,
    db: Session = Depends(get_db),
    reset_codes: PasswordResetCodes = Depends(get_reset_codes),
):
    if not normalize_email(payload.email) or not payload.code:
        raise HTTPException(status_code=400, detail="Email and reset code are required")

    try:
        reset_codes.verify(find_user_by_email(db, payload.email), payload.code)
    except ResetCodeError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"message": "Reset code verified successfully"}


@router.post("/reset-password", dependencies=auth_limited)
async def reset_password(
    payload: ResetPasswordIn,
    request: Request,
    db: Session = Depends(get_db),
    recorder: SecurityEventRecorder = Depends(get_recorder),
    lockout: AccountLockoutPolicy = Depends(get_lockout_policy),
    reset_codes: PasswordResetCodes = Depends(get_reset_codes),
):
    if not all((normalize_email(payload.email), payload.code, payload.new_password, payload.confirm_password)):
        raise HTTPException(status_code=400, detail="All fields are required")
    if payload.new_password != payload.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")

    ensure_valid_password(payload.new_password)

    user = find_user_by_email(db, payload.email)
    try:
        reset_codes.verify(user, payload.code)
    except ResetCodeError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    user.password_hash = hash_password(payload.new_password)
    reset_codes.clear(user)
    lockout.reset(user)
    user.session_version = (user.session_version or 0) + 1
    db.commit()

    await recorder.record_from_request(request, SecurityEventType.PASSWORD_RESET_SUCCESS, user.id)
    return {"message": "Password reset successfully"}


@router.get("/security-logs")
async def get_security_logs(
    limit: int = 0,
    user: User = Depends(get_current_user),
    recorder: SecurityEventRecorder = Depends(get_recorder),
):
    # 0 or a missing value means the default page size.
    limit = limit or SECURITY_SETTINGS["SECURITY_LOGS_DEFAULT_LIMIT"]
    limit = max(1, min(limit, SECURITY_SETTINGS["SECURITY_LOGS_MAX_LIMIT"]))
    entries = await recorder.recent_for_user(user.id, limit=limit)
    return [entry.to_dict() for entry in entries]


@router.get("/session-policy")
async def get_session_policy(request: Request):
    policy = build_session_policy()
    policy["authenticated"] = bool(request.session.get("user_id"))
    return policy
