from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from typing import Optional
import logging

# ─── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("public_draft_share")

from database import Base, SessionLocal, engine, get_db
import models, schemas
from audit import create_audit_entry, verify_audit_chain
from auth import create_access_token
from dependencies import (
    get_client_ip,
    get_current_user,
    get_lifecycle_hooks,
    get_optional_user,
    get_owned_document,
)
from documents import PUBLIC_POST_TYPES, STATUSES, fetch_document, render_document_html
from hooks import AUTO_EXPIRE_ON_PUBLISH, LifecycleHooks
from link_service import SITE_URL, utcnow
from middleware import PublicDraftMiddleware
from purge import build_purger_from_env
from responses import ResponseShaper
from security import hash_password, validate_password_strength, verify_password

# ─── App created FIRST before any include_router ─────────────────────────────
app = FastAPI(
    title="Public Draft Share",
    description="Secret, time-limited links to unpublished documents",
    version="1.0.0",
)

# Collaborators read by the share-link middleware and dependencies
app.state.session_factory = SessionLocal
app.state.clock = utcnow
app.state.purger = build_purger_from_env()
app.state.shaper = ResponseShaper()
app.state.site_url = SITE_URL
app.state.auto_revoke_on_publish = AUTO_EXPIRE_ON_PUBLISH

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# Added last so it runs first, ahead of CORS and routing
app.add_middleware(PublicDraftMiddleware)

# ─── Register share-link router ───────────────────────────────────────────────
from share_routes import router as share_router
app.include_router(share_router)

Base.metadata.create_all(bind=engine)


# ─── Global exception handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def _document_out(document: models.Document) -> dict:
    return {
        "id": document.id,
        "title": document.title or "",
        "content": document.content or "",
        "post_type": document.post_type,
        "status": document.status,
        "modified_at": document.modified_at.isoformat() if document.modified_at else None,
    }


# ─── Health ───────────────────────────────────────────────────────────────────

@app.get("/health", tags=["System"])
def health():
    purger = app.state.purger
    return {
        "status": "ok",
        "service": "Public Draft Share",
        "version": "1.0.0",
        "purge_backends": [b.name for b in purger.backends] if purger else [],
    }


# ─── Auth ─────────────────────────────────────────────────────────────────────

@app.post("/register", tags=["Auth"])
def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    ok, reason = validate_password_strength(user.password)
    if not ok:
        raise HTTPException(status_code=400, detail=reason)
    if db.query(models.User).filter(models.User.username == user.username).first():
        raise HTTPException(status_code=400, detail="Username already taken")
    if db.query(models.User).filter(models.User.email == user.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    db_user = models.User(
        username=user.username,
        password_hash=hash_password(user.password),
        email=user.email,
    )
    db.add(db_user)
    db.commit()
    return {"message": "User registered successfully"}


@app.post("/login", response_model=schemas.Token, tags=["Auth"])
def login(user: schemas.UserLogin, db: Session = Depends(get_db)):
    db_user = db.query(models.User).filter(models.User.username == user.username).first()
    if not db_user or not verify_password(user.password, db_user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_access_token({"sub": db_user.username})
    return {"access_token": token, "token_type": "bearer"}


# ─── Documents ────────────────────────────────────────────────────────────────

@app.post("/documents", tags=["Documents"])
def create_document(
    doc: schemas.DocumentCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if doc.post_type not in PUBLIC_POST_TYPES | {"attachment"}:
        raise HTTPException(status_code=400, detail="Unsupported post type")
    document = models.Document(
        owner_id=current_user.id,
        title=doc.title,
        content=doc.content,
        post_type=doc.post_type,
        status="draft",
    )
    db.add(document)
    db.commit()
    create_audit_entry(db, "DOCUMENT_CREATED", user=current_user.username,
                       document_id=document.id, ip_address=get_client_ip(request))
    return _document_out(document)


@app.put("/documents/{document_id}", tags=["Documents"])
def update_document(
    document_id: int,
    update: schemas.DocumentUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    hooks: LifecycleHooks = Depends(get_lifecycle_hooks),
):
    document = get_owned_document(document_id, current_user, db)
    previous_url = hooks.service.current_url(document_id)
    if update.title is not None:
        document.title = update.title
    if update.content is not None:
        document.content = update.content
    document.modified_at = datetime.now(timezone.utc)
    db.commit()

    hooks.on_document_saved(document, autosave=update.autosave, previous_url=previous_url)
    if not update.autosave:
        create_audit_entry(db, "DOCUMENT_UPDATED", user=current_user.username,
                           document_id=document_id, ip_address=get_client_ip(request))
    return _document_out(document)


@app.post("/documents/{document_id}/status", tags=["Documents"])
def change_status(
    document_id: int,
    change: schemas.StatusChange,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    hooks: LifecycleHooks = Depends(get_lifecycle_hooks),
):
    if change.status not in STATUSES:
        raise HTTPException(status_code=400, detail=f"Status must be one of {', '.join(STATUSES)}")
    document = get_owned_document(document_id, current_user, db)
    old_status = document.status
    previous_url = hooks.service.current_url(document_id)
    document.status = change.status
    document.modified_at = datetime.now(timezone.utc)
    db.commit()

    create_audit_entry(db, "DOCUMENT_STATUS_CHANGED", user=current_user.username,
                       document_id=document_id, ip_address=get_client_ip(request),
                       meta_data=f"{old_status}->{change.status}")
    revoked = hooks.on_status_transition(document, change.status, old_status)
    if revoked:
        create_audit_entry(db, "LINK_AUTO_REVOKED", user="system", document_id=document_id)
    hooks.on_document_saved(document, previous_url=previous_url)
    return {**_document_out(document), "share_link_revoked": revoked}


@app.get("/documents/{document_id}", response_class=HTMLResponse, tags=["Documents"])
def view_document(
    document_id: int,
    db: Session = Depends(get_db),
    viewer: Optional[models.User] = Depends(get_optional_user),
):
    document = fetch_document(db, document_id, viewer=viewer)
    if document is None:
        raise HTTPException(status_code=404, detail="Not found")
    return HTMLResponse(render_document_html(document, preview=document.status != "publish"))


# ─── Audit ────────────────────────────────────────────────────────────────────

@app.get("/audit-logs/verify", tags=["Audit"])
def verify_audit_integrity(db: Session = Depends(get_db),
                           current_user: models.User = Depends(get_current_user)):
    return verify_audit_chain(db)
