"""SQLAlchemy models for users, the three profile storage generations and sessions."""
from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    JSON,
    func,
)
from sqlalchemy.orm import relationship

from .session import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(128), primary_key=True)
    username = Column(String(64), unique=True, nullable=True)
    email = Column(String(255), nullable=True)
    # generation (a): profile embedded in the user record
    embedded_profile = Column(JSON, nullable=True)
    # migration marker
    profile_migrated = Column(Boolean, default=False, nullable=False)
    migration_date = Column(DateTime(timezone=True), nullable=True)
    default_profile_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    legacy_profile = relationship("LegacyProfile", uselist=False, back_populates="user", cascade="all,delete-orphan")
    profiles = relationship("ProfileRecord", back_populates="user", cascade="all,delete-orphan")


class LegacyProfile(Base):
    """Generation (b): one separate sub-document per user."""

    __tablename__ = "legacy_profiles"

    user_id = Column(String(128), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="legacy_profile")


class ProfileRecord(Base):
    """Generation (c): named, independently addressable profile documents."""

    __tablename__ = "profile_documents"

    user_id = Column(String(128), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    profile_id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False, default="")
    description = Column(Text, nullable=True)
    context = Column(String(32), nullable=True)
    is_active = Column(Boolean, default=False, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    components = Column(JSON, nullable=False, default=list)
    background = Column(JSON, nullable=True)
    aux = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="profiles")


class UserSession(Base):
    __tablename__ = "sessions"

    token = Column(String(128), primary_key=True)
    user_id = Column(String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
