"""
gate.py — Per-request classification of share-link URLs.

Runs before routing. Every request ends in exactly one outcome:

  NOT_APPLICABLE  no share token in the request; normal routing continues
  GRANTED         token matches a live link; carries a ReadGrant for that document
  INVALID         bad id, unknown or unshareable document, no link, token mismatch
  EXPIRED         token matched but the link is past its expiry

Once a request clearly carries a token it is never NOT_APPLICABLE, even if
the rest of it is malformed, so that share URLs never fall through to the
ordinary 404 handling.
"""

import enum
import hmac
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Mapping, Optional, Tuple

from documents import MAX_DOCUMENT_ID, DocumentRepository, is_shareable
from errors import InvalidToken, LinkExpired
from link_service import SHARE_PATH_PREFIX, utcnow
from link_store import ShareLinkStore

TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9\-_]+$")
DOCUMENT_ID_PATTERN = re.compile(r"^[1-9][0-9]*$")

# Legacy query-string form: ?pds_post=<id>&pds_token=<token>
QUERY_TOKEN = "pds_token"
QUERY_DOCUMENT = "pds_post"


class GateOutcome(enum.Enum):
    NOT_APPLICABLE = "not_applicable"
    GRANTED = "granted"
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class ReadGrant:
    """Request-scoped permission to read one document regardless of its status."""
    document_id: int


@dataclass(frozen=True)
class GateDecision:
    outcome: GateOutcome
    document_id: Optional[int] = None
    grant: Optional[ReadGrant] = None

    @property
    def applies(self) -> bool:
        return self.outcome is not GateOutcome.NOT_APPLICABLE


NOT_APPLICABLE = GateDecision(GateOutcome.NOT_APPLICABLE)


def extract_candidate(path: str, query: Mapping[str, str]) -> Optional[Tuple[str, str]]:
    """Return the raw (document_id, token) pair a request carries, if any."""
    prefix = SHARE_PATH_PREFIX + "/"
    if path.startswith(prefix):
        segments = path[len(prefix):].split("/")
        if segments and segments[-1] == "":
            segments = segments[:-1]
        if len(segments) >= 2:
            if len(segments) > 2:
                # More segments than /pds/{id}/{token}: a token was meant but the shape is wrong
                return segments[0], ""
            return segments[0], segments[1]
    token = query.get(QUERY_TOKEN) if query else None
    if token:
        return query.get(QUERY_DOCUMENT, "") or "", token
    return None


class RequestGate:

    def __init__(
        self,
        store: ShareLinkStore,
        documents: DocumentRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.documents = documents
        self.clock = clock

    def validate(self, raw_document_id: str, token: str) -> int:
        """Return the document id the token unlocks, or raise InvalidToken / LinkExpired."""
        if not DOCUMENT_ID_PATTERN.match(raw_document_id or ""):
            raise InvalidToken("malformed document id")
        if not TOKEN_PATTERN.match(token or ""):
            raise InvalidToken("malformed token")
        document_id = int(raw_document_id)
        if document_id > MAX_DOCUMENT_ID:
            raise InvalidToken("document id out of range")
        document = self.documents.get(document_id)
        if document is None or not is_shareable(document):
            raise InvalidToken("unknown document")

        link = self.store.get(document_id)
        if link is None or not hmac.compare_digest(link.token.encode(), token.encode()):
            raise InvalidToken("token mismatch")
        if link.expires_at is not None and self.clock() > link.expires_at:
            raise LinkExpired(document_id, link.expires_at)
        return document_id

    def classify(self, path: str, query: Optional[Mapping[str, str]] = None) -> GateDecision:
        candidate = extract_candidate(path, query or {})
        if candidate is None:
            return NOT_APPLICABLE
        raw_document_id, token = candidate
        try:
            document_id = self.validate(raw_document_id, token)
        except LinkExpired as e:
            return GateDecision(GateOutcome.EXPIRED, document_id=e.document_id)
        except InvalidToken:
            return GateDecision(GateOutcome.INVALID)
        return GateDecision(GateOutcome.GRANTED, document_id=document_id, grant=ReadGrant(document_id))
