from pydantic import BaseModel
from typing import Any, Optional


class UserCreate(BaseModel):
    username: str
    password: str
    email: str


class UserLogin(BaseModel):
    username: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str


class DocumentCreate(BaseModel):
    title: str = ""
    content: str = ""
    post_type: str = "post"


class DocumentUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    autosave: bool = False


class StatusChange(BaseModel):
    status: str  # draft | pending | future | private | publish


class CreateShareLinkRequest(BaseModel):
    # Anything outside 1/3/7/14/30/0 (0 = never) is coerced to 7 days
    expiry_days: Any = 7


class ShareLinkOut(BaseModel):
    url: Optional[str]
    expires_at: Optional[str]
    expires_label: Optional[str]


class ShareLinkStatusOut(BaseModel):
    enabled: bool
    url: Optional[str] = None
    expires_at: Optional[str] = None
    expires_label: Optional[str] = None
