from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.middleware.sessions import SessionMiddleware
import logging

from Security.account_lockout import AccountLockoutPolicy
from Security.activity_logging import ActivityLoggingMiddleware
from Security.brute_force import BruteForceDetector
from Security.password_reset import PasswordResetCodes
from Security.request_limiting import create_api_limiter, create_auth_limiter
from Security.security_config import SECURITY_SETTINGS, ensure_session_secret
from Security.security_logger import SecurityEventRecorder, SqlAlchemySecurityLogStore

from .auth_routes import router as auth_router
from .database import Base, SessionLocal, engine
from .email_service import send_password_reset_code
from .error_handlers import register_error_handlers

logger = logging.getLogger("app")


def create_app(session_factory=None, settings=SECURITY_SETTINGS) -> FastAPI:
    session_factory = session_factory or SessionLocal

    app = FastAPI(title="Finance Tracker API")
    app.state.session_factory = session_factory

    recorder = SecurityEventRecorder(SqlAlchemySecurityLogStore(session_factory))
    app.state.security_recorder = recorder
    app.state.brute_force_detector = BruteForceDetector(
        recorder,
        threshold=settings["BRUTE_FORCE_THRESHOLD"],
        window_minutes=settings["BRUTE_FORCE_WINDOW_MINUTES"],
        fail_closed=settings["BRUTE_FORCE_FAIL_CLOSED"],
    )
    app.state.lockout_policy = AccountLockoutPolicy(
        max_attempts=settings["LOGIN_MAX_ATTEMPTS"],
        lock_minutes=settings["LOGIN_LOCK_MINUTES"],
    )
    app.state.reset_codes = PasswordResetCodes(ttl_minutes=settings["RESET_CODE_MINUTES"])
    app.state.reset_code_sender = send_password_reset_code
    app.state.api_limiter = create_api_limiter(settings)
    app.state.auth_limiter = create_auth_limiter(settings)

    # Last added runs first: the session must be loaded before activity logging reads it.
    app.add_middleware(ActivityLoggingMiddleware)
    app.add_middleware(
        SessionMiddleware,
        secret_key=ensure_session_secret(),
        max_age=settings["SESSION_IDLE_TIMEOUT"],
        https_only=settings["HTTPS_ONLY_COOKIES"],
        same_site="lax",
    )

    app.include_router(auth_router)
    register_error_handlers(app)

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.on_event("startup")
    def startup_event():
        if session_factory is SessionLocal:
            Base.metadata.create_all(bind=engine)
            logger.info("Database schema ready")

    @app.on_event("shutdown")
    async def shutdown_event():
        await recorder.drain()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=SECURITY_SETTINGS["PORT"])
