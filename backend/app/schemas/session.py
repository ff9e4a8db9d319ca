"""Login session schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class SessionCreate(BaseModel):
    """Fields persisted when a login succeeds"""
    user_id: int
    access_token_hash: str
    access_token_expires_at: datetime
    refresh_token_hash: str
    refresh_token_expires_at: datetime
    created_at: datetime


class SessionRecord(SessionCreate):
    """Stored session row"""
    id: int
    last_refreshed_at: Optional[datetime] = None
    is_revoked: bool = False

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    """Session as exposed to administrators (no token hashes)"""
    id: int
    user_id: int
    access_token_expires_at: datetime
    refresh_token_expires_at: datetime
    created_at: datetime
    last_refreshed_at: Optional[datetime] = None
    is_revoked: bool

    class Config:
        from_attributes = True
