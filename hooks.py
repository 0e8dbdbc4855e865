"""
hooks.py — React to document saves and status transitions.

  on save     purge the current share URL so cached copies never outlive an edit
  on publish  revoke the link on the first transition into "publish"

Auto-revoke is a policy the embedding system controls through
PDS_AUTO_EXPIRE_ON_PUBLISH or by passing a bool / callable.
"""

import os
import logging
from typing import Callable, Optional, Union

from dotenv import load_dotenv

import models
from documents import PUBLISHED, is_publicly_routable, is_revision
from link_service import LinkService

load_dotenv()

logger = logging.getLogger(__name__)

AUTO_EXPIRE_ON_PUBLISH = os.getenv("PDS_AUTO_EXPIRE_ON_PUBLISH", "true").lower() != "false"

RevokePolicy = Union[bool, Callable[[models.Document], bool]]


class LifecycleHooks:

    def __init__(self, service: LinkService, auto_revoke_on_publish: RevokePolicy = AUTO_EXPIRE_ON_PUBLISH):
        self.service = service
        self.auto_revoke_on_publish = auto_revoke_on_publish

    def _should_auto_revoke(self, document: models.Document) -> bool:
        policy = self.auto_revoke_on_publish
        if callable(policy):
            return bool(policy(document))
        return bool(policy)

    def on_document_saved(
        self,
        document: models.Document,
        autosave: bool = False,
        previous_url: Optional[str] = None,
    ) -> Optional[str]:
        """Purge the shared URL after an edit. Returns the current URL, if any.

        ``previous_url`` is the share URL as it stood before the save. Its
        version marker is the one recipients hold, so it is purged too.
        """
        if autosave or is_revision(document):
            return None
        if not is_publicly_routable(document):
            return None
        url = self.service.current_url(document.id)
        for stale in dict.fromkeys(u for u in (previous_url, url) if u):
            self.service.purger.purge(stale)
        return url

    def on_document_published(self, document: models.Document, previous_status: str) -> bool:
        """Revoke the link on first publish. Returns True if a link was revoked."""
        if document.status != PUBLISHED or previous_status == PUBLISHED:
            return False
        if not self._should_auto_revoke(document):
            return False
        if self.service.store.get(document.id) is None:
            return False
        self.service.revoke(document.id)
        logger.info(f"Share link auto-revoked on publish: document={document.id}")
        return True

    def on_status_transition(self, document: models.Document, new_status: str, old_status: str) -> bool:
        if new_status == PUBLISHED and old_status != PUBLISHED:
            return self.on_document_published(document, old_status)
        return False
