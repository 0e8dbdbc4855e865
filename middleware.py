"""
middleware.py — Front-of-chain interception of share URLs.

Collaborators are read from ``app.state`` on every request:
  session_factory  SQLAlchemy sessionmaker
  clock            callable returning an aware UTC datetime
  shaper           responses.ResponseShaper

Granted requests are answered here and never reach the router, so no
redirect can rewrite the tokenised URL.
"""

import logging

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from documents import DocumentRepository, fetch_document, render_document_html
from gate import GateOutcome, ReadGrant, RequestGate, extract_candidate
from link_service import utcnow
from link_store import ShareLinkStore
from responses import ResponseShaper

logger = logging.getLogger(__name__)


def handle_share_request(session_factory, clock, shaper: ResponseShaper, path: str, query: dict):
    """Classify and answer one request. Returns None for ordinary requests."""
    db = session_factory()
    try:
        gate = RequestGate(ShareLinkStore(db), DocumentRepository(db), clock=clock)
        decision = gate.classify(path, query)
        if decision.outcome is GateOutcome.NOT_APPLICABLE:
            return None
        if decision.outcome is not GateOutcome.GRANTED:
            logger.info(f"Share request rejected: outcome={decision.outcome.value}")

        def render(grant: ReadGrant):
            document = fetch_document(db, grant.document_id, preauthorized_document_id=grant.document_id)
            return render_document_html(document, preview=True) if document is not None else None

        return shaper.shape(decision, render)
    finally:
        db.close()


class PublicDraftMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        query = dict(request.query_params)
        # Ordinary requests skip the database entirely
        if extract_candidate(path, query) is None:
            return await call_next(request)

        state = request.app.state
        response = await run_in_threadpool(
            handle_share_request,
            state.session_factory,
            getattr(state, "clock", utcnow),
            getattr(state, "shaper", None) or ResponseShaper(),
            path,
            query,
        )
        if response is None:
            return await call_next(request)
        return response
