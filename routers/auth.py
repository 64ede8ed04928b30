from fastapi import APIRouter, HTTPException, BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from starlette import status
from utils.deps import db_dependency, token_service_dependency, user_dependency
from schemas.token_schemas import (LoginLinkRequest, RedeemTokenRequest, SessionResponse,
    TokenErrorCode, TokenStats, TokenVerificationResult)
from services.token_service import TokenStorageError
from services.session_service import SessionService
from services.email_service import send_email, build_login_link, login_link_email_body
from models.users import User
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)

GENERIC_LOGIN_LINK_MESSAGE = "If that email exists, a sign-in link has been sent."

ERROR_STATUS = {
    TokenErrorCode.INVALID_FORMAT: status.HTTP_400_BAD_REQUEST,
    TokenErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    TokenErrorCode.EXPIRED: status.HTTP_410_GONE,
    TokenErrorCode.ALREADY_USED: status.HTTP_409_CONFLICT,
    TokenErrorCode.STORAGE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def raise_for_result(result: TokenVerificationResult) -> None:
    if result.success:
        return
    raise HTTPException(status_code=ERROR_STATUS[result.error], detail=result.message)


@router.post("/login-link", status_code=status.HTTP_200_OK)
async def request_login_link(body: LoginLinkRequest, db: db_dependency,
    tokens: token_service_dependency, bg: BackgroundTasks):
    """
    Emails a one-time sign-in link.

    Answers the same message whether or not the account exists.
    """
    email = body.email.lower().strip()
    user = db.query(User).filter(User.email == email, User.is_active == True).first()

    if not user:
        logger.info("Login link requested for unknown or inactive email")
        return {"message": GENERIC_LOGIN_LINK_MESSAGE}

    issued = tokens.issue_and_store(db, user.id)
    if issued is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Could not create sign-in link")

    ttl_minutes = int(tokens.config.default_ttl.total_seconds() // 60)
    bg.add_task(
        send_email,
        to_email=user.email,
        subject="Your sign-in link",
        body=login_link_email_body(build_login_link(issued.token), ttl_minutes)
    )

    logger.info("Login link issued", extra={"user_id": user.id})

    return {"message": GENERIC_LOGIN_LINK_MESSAGE}


@router.get("/login-link/verify", response_model=TokenVerificationResult)
async def verify_login_link(token: str, db: db_dependency, tokens: token_service_dependency):
    """
    Checks a sign-in link without consuming it (e.g. to render the
    confirmation page).
    """
    result = tokens.check_validity(db, token)
    raise_for_result(result)
    return result


@router.post("/login-link/redeem", response_model=SessionResponse)
async def redeem_login_link(body: RedeemTokenRequest, db: db_dependency, tokens: token_service_dependency):
    """
    Consumes a sign-in link and opens a session for its owner.
    """
    result = tokens.redeem(db, body.token)

    if not result.success:
        logger.warning(
            "Login link redemption rejected",
            extra={"error_code": result.error.value}
        )
    raise_for_result(result)

    try:
        session = SessionService.create_session(db, result.user_id)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Session creation failed after redemption",
            extra={"user_id": result.user_id}, exc_info=True)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Could not create session")

    return SessionResponse(
        session_id=session.session_id,
        user_id=session.user_id,
        expires_at=session.expires_at
    )


@router.get("/token-stats", response_model=TokenStats)
async def token_stats(user: user_dependency, db: db_dependency, tokens: token_service_dependency):
    """Token counts for the signed-in user."""
    try:
        return tokens.stats(db, user["user_id"])
    except TokenStorageError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
