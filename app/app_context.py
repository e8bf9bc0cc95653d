from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from Security.account_lockout import AccountLockoutPolicy
from Security.brute_force import BruteForceDetector
from Security.password_reset import PasswordResetCodes
from Security.security_logger import SecurityEventRecorder, get_client_ip
from .database import get_db
from .models import User


def get_recorder(request: Request) -> SecurityEventRecorder:
    return request.app.state.security_recorder


def get_detector(request: Request) -> BruteForceDetector:
    return request.app.state.brute_force_detector


def get_lockout_policy(request: Request) -> AccountLockoutPolicy:
    return request.app.state.lockout_policy


def get_reset_codes(request: Request) -> PasswordResetCodes:
    return request.app.state.reset_codes


def get_reset_code_sender(request: Request):
    return request.app.state.reset_code_sender


def _enforce_rate_limit(request: Request, limiter, message: str) -> None:
    if limiter is None:
        return
    ip = get_client_ip(request)
    if not limiter.allow(ip):
        raise HTTPException(
            status_code=429,
            detail=message,
            headers={"Retry-After": str(limiter.retry_after(ip))},
        )


def enforce_api_rate_limit(request: Request) -> None:
    _enforce_rate_limit(
        request,
        request.app.state.api_limiter,
        "Too many requests from this IP, please try again later",
    )


def enforce_auth_rate_limit(request: Request) -> None:
    _enforce_rate_limit(
        request,
        request.app.state.auth_limiter,
        "Too many login attempts from this IP, please try again later",
    )


def start_session(request: Request, user: User) -> None:
    """Fresh session per login so an old session id is never reused."""
    request.session.clear()
    request.session["user_id"] = user.id
    request.session["session_version"] = user.session_version or 0


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.is_deleted:
        request.session.clear()
        raise HTTPException(status_code=401, detail="User not found")
    if request.session.get("session_version", 0) != (user.session_version or 0):
        request.session.clear()
        raise HTTPException(status_code=401, detail="Session revoked, please sign in again")
    return user
