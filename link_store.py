"""
link_store.py — Persistence for share links, one record per document.

Pure keyed record store: no validation or expiry logic lives here. Every
call goes to the database so an issue/revoke is visible to the next request.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

import models


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class LinkRecord:
    document_id: int
    token: str
    expires_at: Optional[datetime] = None   # None = never expires

    def is_live(self, now: datetime) -> bool:
        if not self.token:
            return False
        return self.expires_at is None or now <= self.expires_at


class ShareLinkStore:

    def __init__(self, db: Session):
        self._db = db

    def get(self, document_id: int) -> Optional[LinkRecord]:
        row = (
            self._db.query(models.ShareLink)
            .filter(models.ShareLink.document_id == document_id)
            .populate_existing()
            .first()
        )
        if row is None or not row.token:
            return None
        return LinkRecord(row.document_id, row.token, as_utc(row.expires_at))

    def put(self, document_id: int, token: str, expires_at: Optional[datetime]) -> LinkRecord:
        row = self._db.get(models.ShareLink, document_id)
        if row is None:
            row = models.ShareLink(document_id=document_id)
            self._db.add(row)
        row.token = token
        row.expires_at = expires_at
        row.created_at = datetime.now(timezone.utc)
        self._db.commit()
        return LinkRecord(document_id, token, expires_at)

    def delete(self, document_id: int) -> None:
        self._db.query(models.ShareLink).filter(
            models.ShareLink.document_id == document_id
        ).delete()
        self._db.commit()

    def delete_all(self) -> int:
        count = self._db.query(models.ShareLink).delete()
        self._db.commit()
        return count
