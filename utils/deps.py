from core.database import SessionLocal
from core.config import settings
from typing import Annotated, Optional
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from starlette import status
from models.sessions import UserSession
from services.session_service import SessionService
from services.token_service import TokenService
from utils.token_codec import TokenConfig

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]

_token_service = TokenService(TokenConfig.from_settings(settings))

def get_token_service() -> TokenService:
    return _token_service

token_service_dependency = Annotated[TokenService, Depends(get_token_service)]


def get_current_user(db: db_dependency,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(HTTPBearer(auto_error=False))]):
    """Resolves `Authorization: Bearer <session_id>` to a live session."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Not authenticated.",
                            headers={"WWW-Authenticate": "Bearer"})

    session_id = credentials.credentials
    user_session = None
    if SessionService.touch(db, session_id):
        user_session = db.get(UserSession, session_id)
    if user_session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Session is invalid or has expired.",
                            headers={"WWW-Authenticate": "Bearer"})

    return {"user_id": user_session.user_id, "session_id": session_id}


user_dependency = Annotated[dict, Depends(get_current_user)]
