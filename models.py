from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey
from sqlalchemy.sql import func
from database import Base
from datetime import datetime, timezone


def _utcnow():
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────────────────────
# User Model (document owners / editors)
# ─────────────────────────────────────────────────────────────
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True)
    password_hash = Column(String)
    email = Column(String, unique=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


# ─────────────────────────────────────────────────────────────
# Document Model
# ─────────────────────────────────────────────────────────────
class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"))
    title = Column(String, default="")
    content = Column(Text, default="")
    post_type = Column(String, default="post")   # post | page | attachment | revision
    status = Column(String, default="draft")     # draft | pending | future | private | publish
    parent_id = Column(Integer, ForeignKey("documents.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    modified_at = Column(DateTime(timezone=True), default=_utcnow)


# ─────────────────────────────────────────────────────────────
# Share Link: at most one per document, keyed by document id
# ─────────────────────────────────────────────────────────────
class ShareLink(Base):
    __tablename__ = "share_links"

    document_id = Column(Integer, ForeignKey("documents.id"), primary_key=True)
    token = Column(String, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)  # NULL = never expires
    created_at = Column(DateTime(timezone=True), default=_utcnow)


# ─────────────────────────────────────────────────────────────
# Audit Log
# ─────────────────────────────────────────────────────────────
class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    entry_id = Column(String, unique=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now())
    user = Column(String)
    action = Column(String)
    document_id = Column(Integer, nullable=True)
    meta_data = Column(Text, nullable=True)
    ip_address = Column(String, nullable=True)
    previous_hash = Column(String)
    current_hash = Column(String, unique=True)
