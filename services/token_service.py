from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models.one_time_tokens import OneTimeToken
from schemas.token_schemas import IssuedToken, TokenErrorCode, TokenStats, TokenVerificationResult
from utils.logger import get_logger
from utils.timeutils import as_utc, get_expiry_time, utc_now
from utils.token_codec import DEFAULT_TOKEN_CONFIG, TokenCodec, TokenConfig

logger = get_logger(__name__)

NOT_FOUND_MESSAGE = "Token not found or invalid"
ALREADY_USED_MESSAGE = "Token has already been used"
EXPIRED_MESSAGE = "Token has expired"


class TokenStorageError(Exception):
    """Raised where an operation has no result value to carry STORAGE_ERROR."""
    code = TokenErrorCode.STORAGE_ERROR


def _failure(error: TokenErrorCode, message: str) -> TokenVerificationResult:
    return TokenVerificationResult(success=False, error=error, message=message)


class TokenService:
    """
    Issues, checks and redeems one-time login tokens.

    Domain outcomes (malformed, unknown, expired, used) come back as
    TokenVerificationResult values. Database failures are rolled back,
    logged and reported as STORAGE_ERROR; they never propagate to callers.

    Redemption is a single conditional UPDATE. Any number of processes may
    redeem the same token concurrently and exactly one of them gets the row.
    """

    def __init__(
        self,
        config: TokenConfig = DEFAULT_TOKEN_CONFIG,
        codec: Optional[TokenCodec] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config
        self.codec = codec or TokenCodec(config)
        self.clock = clock or utc_now

    def _now(self) -> datetime:
        return as_utc(self.clock())

    def _invalid_format(self) -> TokenVerificationResult:
        return _failure(
            TokenErrorCode.INVALID_FORMAT,
            f"Token must be {self.config.token_length} characters of base64url format"
        )

    def issue(self, user_id: int, ttl: Optional[timedelta] = None) -> IssuedToken:
        """
        Generates a raw token and its digest. Nothing is persisted here;
        call store() with the digest, and only deliver the raw token once
        that succeeded.

        Args:
            user_id: Owner of the token
            ttl: Lifetime (default: config.default_ttl, one hour)
        """
        if ttl is None:
            ttl = self.config.default_ttl
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")

        token = self.codec.generate()
        return IssuedToken(
            token=token,
            token_hash=self.codec.hash(token),
            user_id=user_id,
            expires_at=get_expiry_time(ttl, self._now()),
        )

    def store(self, db: Session, token_hash: str, user_id: int, expires_at: datetime) -> bool:
        """
        Inserts an unused token record.

        Returns:
            True when stored; False on a constraint violation (unknown user,
            duplicate digest) or any other database failure.
        """
        try:
            db.add(OneTimeToken(
                token_hash=token_hash,
                user_id=user_id,
                expires_at=expires_at,
                used=False,
                used_at=None,
            ))
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(
                "Token storage rejected by constraint",
                extra={"user_id": user_id}
            )
            return False
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                f"Token storage error: {type(e).__name__}",
                extra={"user_id": user_id, "error_code": TokenErrorCode.STORAGE_ERROR.value},
                exc_info=True
            )
            return False

        logger.debug("One-time token stored", extra={"user_id": user_id})
        return True

    def issue_and_store(self, db: Session, user_id: int, ttl: Optional[timedelta] = None) -> Optional[IssuedToken]:
        """Issue + store; None means the raw token was discarded."""
        issued = self.issue(user_id, ttl)
        if not self.store(db, issued.token_hash, user_id, issued.expires_at):
            return None
        return issued

    def check_validity(self, db: Session, raw_token: str) -> TokenVerificationResult:
        """
        Reports whether a token could be redeemed right now, without
        consuming it. Repeated calls give the same answer until the token
        expires or is redeemed.
        """
        if not self.codec.validate_format(raw_token):
            return self._invalid_format()

        token_hash = self.codec.hash(raw_token)
        now = self._now()

        try:
            # populate_existing: another process may have redeemed the row since this session loaded it
            record = (
                db.query(OneTimeToken)
                .populate_existing()
                .filter(OneTimeToken.token_hash == token_hash)
                .first()
            )
        except SQLAlchemyError:
            db.rollback()
            logger.error("Token validity check database error", exc_info=True)
            return _failure(TokenErrorCode.STORAGE_ERROR, "Database error during token validity check")

        if not record or not self.codec.compare(raw_token, record.token_hash):
            return _failure(TokenErrorCode.NOT_FOUND, NOT_FOUND_MESSAGE)

        if record.used:
            return _failure(TokenErrorCode.ALREADY_USED, ALREADY_USED_MESSAGE)

        if as_utc(record.expires_at) <= now:
            return _failure(TokenErrorCode.EXPIRED, EXPIRED_MESSAGE)

        return TokenVerificationResult(success=True, user_id=record.user_id)

    def redeem(self, db: Session, raw_token: str) -> TokenVerificationResult:
        """
        Atomically consumes a token.

        Flow:
        1. Reject malformed input without touching the database
        2. Conditional UPDATE on the digest: only an unused, unexpired row
           is flipped to used, and its user_id comes back
        3. No row touched: a follow-up read explains why (best effort, a
           concurrent redeemer may have changed the row in between)
        """
        if not self.codec.validate_format(raw_token):
            return self._invalid_format()

        token_hash = self.codec.hash(raw_token)
        now = self._now()

        try:
            user_id = self._consume(db, token_hash, now)
            if user_id is None:
                return self._explain_rejection(db, token_hash, now)
        except SQLAlchemyError:
            db.rollback()
            logger.error("Token verification database error", exc_info=True)
            return _failure(TokenErrorCode.STORAGE_ERROR, "Database error during token verification")

        logger.info("One-time token redeemed", extra={"user_id": user_id})
        return TokenVerificationResult(success=True, user_id=user_id)

    def _consume(self, db: Session, token_hash: str, now: datetime) -> Optional[int]:
        stmt = (
            update(OneTimeToken)
            .where(
                OneTimeToken.token_hash == token_hash,
                OneTimeToken.used == False,
                OneTimeToken.expires_at > now,
            )
            .values(used=True, used_at=now)
            .execution_options(synchronize_session=False)
        )

        if db.get_bind().dialect.update_returning:
            user_id = db.execute(stmt.returning(OneTimeToken.user_id)).scalar_one_or_none()
            db.commit()
            return user_id

        # No RETURNING: the rowcount of the same conditional update decides,
        # user_id is read inside the transaction that flipped the row
        result = db.execute(stmt)
        user_id = None
        if result.rowcount == 1:
            user_id = db.execute(
                select(OneTimeToken.user_id).where(OneTimeToken.token_hash == token_hash)
            ).scalar_one()
        db.commit()
        return user_id

    def _explain_rejection(self, db: Session, token_hash: str, now: datetime) -> TokenVerificationResult:
        record = db.execute(
            select(OneTimeToken.used, OneTimeToken.expires_at)
            .where(OneTimeToken.token_hash == token_hash)
        ).first()

        if record is None:
            return _failure(TokenErrorCode.NOT_FOUND, NOT_FOUND_MESSAGE)
        if record.used:
            return _failure(TokenErrorCode.ALREADY_USED, ALREADY_USED_MESSAGE)
        if as_utc(record.expires_at) <= now:
            return _failure(TokenErrorCode.EXPIRED, EXPIRED_MESSAGE)

        logger.warning("Token redemption failed for unknown reason")
        return _failure(TokenErrorCode.STORAGE_ERROR, "Token verification failed for unknown reason")

    def stats(self, db: Session, user_id: int) -> TokenStats:
        """
        Counts a user's tokens: active = unused and unexpired,
        expired = unused and past expiry, used = used regardless of expiry.

        Raises:
            TokenStorageError: If the database query fails
        """
        now = self._now()
        unused = OneTimeToken.used == False

        try:
            row = db.query(
                func.count(OneTimeToken.token_hash).label("total"),
                func.count(case((OneTimeToken.used == True, 1))).label("used"),
                func.count(case((and_(unused, OneTimeToken.expires_at <= now), 1))).label("expired"),
                func.count(case((and_(unused, OneTimeToken.expires_at > now), 1))).label("active"),
            ).filter(OneTimeToken.user_id == user_id).one()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Token stats error", extra={"user_id": user_id}, exc_info=True)
            raise TokenStorageError("Database error while counting tokens") from e

        return TokenStats(
            total=row.total or 0,
            active=row.active or 0,
            used=row.used or 0,
            expired=row.expired or 0,
        )
