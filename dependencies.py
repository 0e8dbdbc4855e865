"""
dependencies.py — FastAPI dependencies shared by the routers.

Link services are built per request from the request's DB session plus the
long-lived collaborators stored on ``app.state`` (purger, clock, policy).
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

import models
from auth import decode_token
from database import get_db
from documents import DocumentRepository
from hooks import AUTO_EXPIRE_ON_PUBLISH, LifecycleHooks
from link_service import SITE_URL, LinkService, utcnow
from link_store import ShareLinkStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login", auto_error=False)


def _user_from_token(token: str, db: Session) -> Optional[models.User]:
    try:
        payload = decode_token(token)
    except JWTError:
        return None
    username = payload.get("sub")
    if not username:
        return None
    user = db.query(models.User).filter(models.User.username == username).first()
    if not user or not user.is_active:
        return None
    return user


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> models.User:
    user = _user_from_token(token, db)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


def get_optional_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[models.User]:
    return _user_from_token(token, db) if token else None


def get_link_service(request: Request, db: Session = Depends(get_db)) -> LinkService:
    state = request.app.state
    return LinkService(
        ShareLinkStore(db),
        DocumentRepository(db),
        purger=getattr(state, "purger", None),
        clock=getattr(state, "clock", utcnow),
        site_url=getattr(state, "site_url", SITE_URL),
    )


def get_lifecycle_hooks(request: Request, service: LinkService = Depends(get_link_service)) -> LifecycleHooks:
    policy = getattr(request.app.state, "auto_revoke_on_publish", AUTO_EXPIRE_ON_PUBLISH)
    return LifecycleHooks(service, auto_revoke_on_publish=policy)


def get_client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_owned_document(document_id: int, user: models.User, db: Session) -> models.Document:
    document = DocumentRepository(db).get(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    if document.owner_id != user.id:
        raise HTTPException(status_code=403, detail="Permission denied.")
    return document
