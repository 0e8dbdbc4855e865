"""
audit.py — Hash-chained trail of owner actions on documents and share links.

Each entry's hash covers its own stored fields plus the previous entry's
hash, so verification can recompute every link in the chain. Share tokens
are never written here; link entries carry a short token hint instead.
"""

import hashlib
import uuid
from typing import Optional
from urllib.parse import urlsplit

from sqlalchemy.orm import Session

import models
from tokens import token_hint

GENESIS_HASH = "0" * 64


def _entry_hash(entry_id, user, action, document_id, meta_data, ip_address, previous_hash) -> str:
    record = "|".join([
        entry_id, user or "", action or "", str(document_id or ""),
        meta_data or "", ip_address or "", previous_hash,
    ])
    return hashlib.sha256(record.encode()).hexdigest()


def link_meta(expiry_days: int, url: Optional[str]) -> str:
    """Describe an issued link for the trail without storing its token."""
    ttl = "never" if expiry_days == 0 else f"{expiry_days}d"
    if not url:
        return f"ttl={ttl}"
    token = urlsplit(url).path.rsplit("/", 1)[-1]
    return f"ttl={ttl} token={token_hint(token)}"


def create_audit_entry(
    db: Session,
    action: str,
    user: str = "system",
    document_id: Optional[int] = None,
    meta_data: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> str:
    last_log = db.query(models.AuditLog).order_by(models.AuditLog.id.desc()).first()
    previous_hash = last_log.current_hash if last_log else GENESIS_HASH

    entry_id = uuid.uuid4().hex[:12]
    current_hash = _entry_hash(entry_id, user, action, document_id, meta_data, ip_address, previous_hash)

    db.add(models.AuditLog(
        entry_id=entry_id,
        user=user,
        action=action,
        document_id=document_id,
        meta_data=meta_data,
        ip_address=ip_address,
        previous_hash=previous_hash,
        current_hash=current_hash,
    ))
    db.commit()
    return current_hash


def verify_audit_chain(db: Session) -> dict:
    logs = db.query(models.AuditLog).order_by(models.AuditLog.id.asc()).all()
    if not logs:
        return {"valid": True, "entries_checked": 0, "message": "No logs to verify"}

    prev = GENESIS_HASH
    for log in logs:
        expected = _entry_hash(log.entry_id, log.user, log.action, log.document_id,
                               log.meta_data, log.ip_address, log.previous_hash)
        if log.previous_hash != prev or log.current_hash != expected:
            return {
                "valid": False,
                "entries_checked": len(logs),
                "broken_at_entry_id": log.id,
                "message": "Audit chain broken",
            }
        prev = log.current_hash

    return {"valid": True, "entries_checked": len(logs), "message": "Audit chain intact"}
