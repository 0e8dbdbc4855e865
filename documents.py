"""
documents.py — Document lookup and the minimal content renderer.

The renderer is a collaborator of the share-link core: it never consults
share links itself. A caller that has already validated a share token
passes the matched id as ``preauthorized_document_id`` and that single
document becomes readable for the one call.
"""

import html
from typing import Optional

from sqlalchemy.orm import Session

import models
from link_store import as_utc

STATUSES = ("draft", "pending", "future", "private", "publish")
PUBLISHED = "publish"

# Post types that have a public permalink; attachments and revisions do not
PUBLIC_POST_TYPES = frozenset({"post", "page"})

# Largest id a signed 64-bit INTEGER column can hold
MAX_DOCUMENT_ID = 2**63 - 1


def is_publicly_routable(document: models.Document) -> bool:
    return document.post_type in PUBLIC_POST_TYPES


def is_published(document: models.Document) -> bool:
    return document.status == PUBLISHED


def is_revision(document: models.Document) -> bool:
    return document.post_type == "revision" or document.parent_id is not None


def is_shareable(document: models.Document) -> bool:
    return is_publicly_routable(document) and not is_revision(document)


def modified_epoch(document: models.Document) -> Optional[int]:
    modified = as_utc(document.modified_at)
    return int(modified.timestamp()) if modified else None


class DocumentRepository:

    def __init__(self, db: Session):
        self._db = db

    def get(self, document_id: int) -> Optional[models.Document]:
        if not document_id or document_id <= 0 or document_id > MAX_DOCUMENT_ID:
            return None
        return self._db.get(models.Document, document_id)


def fetch_document(
    db: Session,
    document_id: int,
    viewer: Optional[models.User] = None,
    preauthorized_document_id: Optional[int] = None,
) -> Optional[models.Document]:
    """Return the document if this viewer may read it, else None."""
    document = DocumentRepository(db).get(document_id)
    if document is None:
        return None
    if is_published(document):
        return document
    if viewer is not None and document.owner_id == viewer.id:
        return document
    if preauthorized_document_id is not None and preauthorized_document_id == document.id:
        return document
    return None


# ─── RENDERING ─────────────────────────────────────────────

_PREVIEW_STYLE = (
    ".pds-banner{position:sticky;top:0;background:#111827;color:#f9fafb;padding:.5rem 1rem;"
    "font:14px/1.4 -apple-system,BlinkMacSystemFont,Segoe UI,Roboto,Helvetica,Arial,sans-serif}"
    ".pds-container{max-width:800px;margin:2rem auto;padding:0 1rem}"
    ".pds-title{font-size:2rem;margin:.5rem 0}"
    ".pds-meta{color:#6b7280;font-size:.9rem;margin-bottom:1rem}"
    ".pds-content{font-size:1.05rem;line-height:1.7;white-space:pre-wrap}"
)


def render_document_html(document: models.Document, preview: bool = False) -> str:
    title = html.escape(document.title or "")
    body = html.escape(document.content or "")
    head_title = f"Preview: {title}" if preview else title
    robots = '<meta name="robots" content="noindex,nofollow,noarchive">' if preview else ""
    banner = (
        '<div class="pds-banner">Public draft: not published. Do not share widely.</div>'
        if preview else ""
    )
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        "<meta name=\"viewport\" content=\"width=device-width, initial-scale=1\">"
        f"{robots}<title>{head_title}</title><style>{_PREVIEW_STYLE}</style></head>"
        f"<body>{banner}<div class=\"pds-container\"><article id=\"post-{document.id}\">"
        f"<h1 class=\"pds-title\">{title}</h1>"
        f"<div class=\"pds-meta\">Status: {html.escape(document.status or '')}</div>"
        f"<div class=\"pds-content\">{body}</div>"
        "</article></div></body></html>"
    )
