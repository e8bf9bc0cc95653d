from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from Security.security_config import SECURITY_SETTINGS

DATABASE_URL = SECURITY_SETTINGS["DATABASE_URL"]


def is_sqlite_database(url):
    return url is not None and url.startswith("sqlite")


# Request handlers and the audit store use sessions from worker threads.
_connect_args = {"check_same_thread": False} if is_sqlite_database(DATABASE_URL) else {}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db(request: Request):
    # Each app carries the session factory it was built with (see create_app).
    session_factory = getattr(request.app.state, "session_factory", SessionLocal)
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
