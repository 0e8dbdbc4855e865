"""
errors.py — Error kinds raised by the share-link core.

InvalidToken and LinkExpired never leave the public read path: the request
gate folds them into a decision. The rest surface to the owner-facing API.
"""

from datetime import datetime
from typing import Optional


class ShareLinkError(Exception):
    """Base class for share-link failures."""


class InvalidToken(ShareLinkError):
    """Malformed or mismatched token, missing link, or missing document."""


class LinkExpired(ShareLinkError):
    def __init__(self, document_id: int, expires_at: Optional[datetime] = None):
        super().__init__(f"share link for document {document_id} expired")
        self.document_id = document_id
        self.expires_at = expires_at


class PublishedDocumentError(ShareLinkError):
    """Share links are only issued for unpublished content."""

    def __init__(self, document_id: int):
        super().__init__("This content is already published.")
        self.document_id = document_id


class DocumentNotFound(ShareLinkError):
    def __init__(self, document_id: int):
        super().__init__(f"document {document_id} not found")
        self.document_id = document_id


class RandomnessFailure(ShareLinkError):
    """The OS entropy source failed; no token can be issued."""


class UnshareableDocument(ShareLinkError):
    """Attachments and revisions have no public view to share."""

    def __init__(self, document_id: int, post_type: str):
        super().__init__(f"Share links are not available for {post_type} content.")
        self.document_id = document_id
        self.post_type = post_type
