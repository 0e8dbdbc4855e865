# share_routes.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

import models
from audit import create_audit_entry, link_meta
from database import get_db
from dependencies import get_client_ip, get_current_user, get_link_service, get_owned_document
from errors import DocumentNotFound, PublishedDocumentError, RandomnessFailure, UnshareableDocument
from link_service import LinkService, coerce_ttl_days
from schemas import CreateShareLinkRequest, ShareLinkOut, ShareLinkStatusOut

router = APIRouter(prefix="/documents", tags=["Share Links"])
logger = logging.getLogger(__name__)


# ─── STATUS ─────────────────────────────────────────────

@router.get("/{document_id}/share-link", response_model=ShareLinkStatusOut)
def get_share_link(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    service: LinkService = Depends(get_link_service),
):
    get_owned_document(document_id, current_user, db)
    status = service.link_status(document_id)
    return ShareLinkStatusOut(
        enabled=status.enabled,
        url=status.url,
        expires_at=status.expires_at.isoformat() if status.expires_at else None,
        expires_label=status.expires_label,
    )


# ─── CREATE / REGENERATE ─────────────────────────────────

@router.post("/{document_id}/share-link", response_model=ShareLinkOut)
def create_share_link(
    document_id: int,
    req: CreateShareLinkRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    service: LinkService = Depends(get_link_service),
):
    get_owned_document(document_id, current_user, db)
    days = coerce_ttl_days(req.expiry_days)

    try:
        payload = service.issue_link(document_id, days)
    except PublishedDocumentError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except UnshareableDocument as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DocumentNotFound:
        raise HTTPException(status_code=404, detail="Document not found")
    except RandomnessFailure:
        raise HTTPException(status_code=500, detail="Could not generate a secure link. Please try again.")

    create_audit_entry(db, "LINK_ISSUED", user=current_user.username, document_id=document_id,
                       ip_address=get_client_ip(request), meta_data=link_meta(days, payload["url"]))
    logger.info(f"Share link issued for document {document_id} by {current_user.username} ({days}d)")
    return ShareLinkOut(**payload)


# ─── DISABLE ─────────────────────────────────────────────

@router.delete("/{document_id}/share-link")
def disable_share_link(
    document_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    service: LinkService = Depends(get_link_service),
):
    get_owned_document(document_id, current_user, db)
    result = service.disable_link(document_id)
    create_audit_entry(db, "LINK_DISABLED", user=current_user.username, document_id=document_id,
                       ip_address=get_client_ip(request))
    return result
