from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from .database import Base
import datetime

# --- CORE USER & AUTH ---


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=True)
    password_hash = Column(String(200), nullable=False)
    currency = Column(String(10), default="USD")

    # Soft delete; reactivated through /api/users/reactivate
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    # Lockout bookkeeping
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    last_login_ip = Column(String(64), nullable=True)

    # Forgot-password flow: hashed one-time code, cleared on use
    reset_code_hash = Column(String(200), nullable=True)
    reset_code_expires_at = Column(DateTime, nullable=True)
    # Bumped on password reset; sessions carrying an older value are rejected
    session_version = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    security_logs = relationship("SecurityLog", back_populates="user")


# --- SECURITY AUDIT ---

class SecurityLog(Base):
    # Append-only: rows are inserted by the security logger and never updated or deleted.
    __tablename__ = "security_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    event_type = Column(String(40), nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    details = Column(Text, nullable=True)
    success = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="security_logs")

    __table_args__ = (
        Index("ix_security_logs_ip_event_created", "ip_address", "event_type", "created_at"),
        Index("ix_security_logs_user_created", "user_id", "created_at"),
    )
