from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class TokenErrorCode(str, Enum):
    INVALID_FORMAT = "INVALID_FORMAT"
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    ALREADY_USED = "ALREADY_USED"
    STORAGE_ERROR = "STORAGE_ERROR"


class IssuedToken(BaseModel):
    """
    Output of TokenService.issue.

    ``token`` goes to the user out of band; ``token_hash`` and
    ``expires_at`` go to the store. The raw token is kept out of repr so it
    cannot end up in a log line by accident.
    """
    token: str = Field(repr=False)
    token_hash: str
    user_id: int
    expires_at: datetime


class TokenVerificationResult(BaseModel):
    success: bool
    user_id: Optional[int] = None
    error: Optional[TokenErrorCode] = None
    message: Optional[str] = None


class TokenStats(BaseModel):
    total: int = 0
    active: int = 0
    used: int = 0
    expired: int = 0


class LoginLinkRequest(BaseModel):
    email: EmailStr


class RedeemTokenRequest(BaseModel):
    # Format is checked by the token service so every malformed value gets INVALID_FORMAT
    token: str


class SessionResponse(BaseModel):
    session_id: str
    user_id: int
    expires_at: datetime
