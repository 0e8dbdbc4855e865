"""
link_service.py — Issue, rotate and revoke share links for unpublished documents.

A document has at most one link. Issuing replaces the stored token, so the
previous URL stops working on the very next request. Any change that
invalidates a URL purges it from caches afterwards, best effort.
"""

import os
import re
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union
from urllib.parse import quote

from dotenv import load_dotenv

from documents import DocumentRepository, is_published, is_shareable, modified_epoch
from errors import DocumentNotFound, PublishedDocumentError, UnshareableDocument
from link_store import ShareLinkStore
from purge import CachePurger
from tokens import generate_token, token_hint

load_dotenv()

logger = logging.getLogger(__name__)

SITE_URL = os.getenv("PDS_SITE_URL", "http://localhost:8000").rstrip("/")
SHARE_PATH_PREFIX = "/pds"

# Days the owner may pick from; 0 means the link never expires
TTL_CHOICES_DAYS = (1, 3, 7, 14, 30, 0)
DEFAULT_TTL_DAYS = 7

_TTL_TEXT = re.compile(r"^\s*(\d+)\s*(?:days?|d)?\s*$", re.IGNORECASE)

TTLChoice = Union[int, float, str, None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def coerce_ttl_days(choice: TTLChoice) -> int:
    """Map owner input onto TTL_CHOICES_DAYS; anything unexpected becomes the default."""
    if isinstance(choice, bool):
        return DEFAULT_TTL_DAYS
    if isinstance(choice, int):
        days = choice
    elif isinstance(choice, float):
        if not choice.is_integer():
            return DEFAULT_TTL_DAYS
        days = int(choice)
    elif isinstance(choice, str):
        if choice.strip().lower() == "never":
            return 0
        match = _TTL_TEXT.match(choice)
        if not match:
            return DEFAULT_TTL_DAYS
        days = int(match.group(1))
    else:
        return DEFAULT_TTL_DAYS
    return days if days in TTL_CHOICES_DAYS else DEFAULT_TTL_DAYS


def build_share_path(document_id: int, token: str) -> str:
    return f"{SHARE_PATH_PREFIX}/{document_id}/{quote(token, safe='')}"


@dataclass(frozen=True)
class IssuedLink:
    document_id: int
    token: str
    url: str
    expires_at: Optional[datetime]


@dataclass(frozen=True)
class LinkStatus:
    enabled: bool
    url: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def expires_label(self) -> Optional[str]:
        if not self.enabled:
            return None
        if self.expires_at is None:
            return "Never"
        return self.expires_at.strftime("%Y-%m-%d %H:%M UTC")


class LinkService:

    def __init__(
        self,
        store: ShareLinkStore,
        documents: DocumentRepository,
        purger: Optional[CachePurger] = None,
        clock: Callable[[], datetime] = utcnow,
        token_factory: Callable[[], str] = generate_token,
        site_url: str = SITE_URL,
    ):
        self.store = store
        self.documents = documents
        self.purger = purger or CachePurger()
        self.clock = clock
        self.token_factory = token_factory
        self.site_url = site_url.rstrip("/")

    def _require_document(self, document_id: int):
        document = self.documents.get(document_id)
        if document is None:
            raise DocumentNotFound(document_id)
        return document

    def expires_at_for(self, ttl: TTLChoice) -> Optional[datetime]:
        days = coerce_ttl_days(ttl)
        if days == 0:
            return None
        return self.clock() + timedelta(days=days)

    def current_url(self, document_id: int) -> Optional[str]:
        """Public URL of the live link, or None when disabled or expired."""
        link = self.store.get(document_id)
        if link is None or not link.is_live(self.clock()):
            return None
        url = self.site_url + build_share_path(document_id, link.token)
        document = self.documents.get(document_id)
        version = modified_epoch(document) if document is not None else None
        if version:
            url += f"?v={version}"
        return url

    def issue(self, document_id: int, ttl: TTLChoice = DEFAULT_TTL_DAYS) -> IssuedLink:
        document = self._require_document(document_id)
        if is_published(document):
            logger.warning(f"Refused share link for published document {document_id}")
            raise PublishedDocumentError(document_id)
        if not is_shareable(document):
            raise UnshareableDocument(document_id, document.post_type)

        expires_at = self.expires_at_for(ttl)
        old_url = self.current_url(document_id)
        token = self.token_factory()
        self.store.put(document_id, token, expires_at)
        logger.info(
            f"Share link issued: document={document_id} token={token_hint(token)} "
            f"expires={expires_at.isoformat() if expires_at else 'never'}"
        )

        if old_url:
            self.purger.purge(old_url)
        return IssuedLink(document_id, token, self.current_url(document_id), expires_at)

    def revoke(self, document_id: int) -> None:
        old_url = self.current_url(document_id)
        self.store.delete(document_id)
        logger.info(f"Share link revoked: document={document_id}")
        if old_url:
            self.purger.purge(old_url)

    def link_status(self, document_id: int) -> LinkStatus:
        url = self.current_url(document_id)
        if url is None:
            return LinkStatus(enabled=False)
        link = self.store.get(document_id)
        return LinkStatus(enabled=True, url=url, expires_at=link.expires_at if link else None)

    # ─── Owner-facing operations ─────────────────────────────

    def issue_link(self, document_id: int, ttl_choice: TTLChoice = DEFAULT_TTL_DAYS) -> dict:
        issued = self.issue(document_id, ttl_choice)
        status = LinkStatus(enabled=True, url=issued.url, expires_at=issued.expires_at)
        return {
            "url": issued.url,
            "expires_at": issued.expires_at.isoformat() if issued.expires_at else None,
            "expires_label": status.expires_label,
        }

    def disable_link(self, document_id: int) -> dict:
        self.revoke(document_id)
        return {"ok": True}
