"""
Generation and hashing of one-time login tokens.

Raw tokens go to the user (login link) and are never stored; the database
only ever sees ``TokenCodec.hash(raw_token)``.
"""

import base64
import hashlib
import hmac
import math
import re
import secrets
from datetime import timedelta

from pydantic import BaseModel, ConfigDict, field_validator

TOKEN_ALPHABET_PATTERN = "[A-Za-z0-9_-]"


class TokenConfig(BaseModel):
    """
    Immutable token parameters, passed to the codec and the token service
    at construction.

    The defaults give 96 bits of entropy, 16-character base64url tokens,
    SHA-256 digests (64 hex chars) and a one hour lifetime.
    """
    model_config = ConfigDict(frozen=True)

    entropy_bytes: int = 12
    hash_algorithm: str = "sha256"
    default_ttl: timedelta = timedelta(hours=1)

    @field_validator('entropy_bytes')
    @classmethod
    def validate_entropy(cls, value):
        # 96 bits is the floor for a link that can be guessed online
        if value < 12:
            raise ValueError('entropy_bytes must be at least 12 (96 bits)')
        return value

    @field_validator('hash_algorithm')
    @classmethod
    def validate_algorithm(cls, value):
        if value not in hashlib.algorithms_guaranteed or value.startswith("shake_"):
            raise ValueError(f'Unsupported hash algorithm: {value}')
        return value

    @field_validator('default_ttl')
    @classmethod
    def validate_ttl(cls, value):
        if value <= timedelta(0):
            raise ValueError('default_ttl must be positive')
        return value

    @property
    def token_length(self) -> int:
        """Length of an unpadded base64url encoding of ``entropy_bytes``."""
        return math.ceil(self.entropy_bytes * 8 / 6)

    @property
    def digest_length(self) -> int:
        return hashlib.new(self.hash_algorithm).digest_size * 2

    @classmethod
    def from_settings(cls, settings) -> "TokenConfig":
        return cls(
            entropy_bytes=settings.ONE_TIME_TOKEN_ENTROPY_BYTES,
            default_ttl=timedelta(minutes=settings.ONE_TIME_TOKEN_TTL_MINUTES),
        )


DEFAULT_TOKEN_CONFIG = TokenConfig()


class TokenCodec:
    """Pure functions over raw tokens and digests; no I/O."""

    def __init__(self, config: TokenConfig = DEFAULT_TOKEN_CONFIG):
        self.config = config
        self._format = re.compile(f"{TOKEN_ALPHABET_PATTERN}{{{config.token_length}}}")

    def generate(self) -> str:
        """
        Returns a new raw token from the OS CSPRNG, base64url encoded
        without padding.
        """
        raw = secrets.token_bytes(self.config.entropy_bytes)
        token = base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

        if len(token) != self.config.token_length:
            raise RuntimeError(
                f"Generated token length {len(token)} does not match expected {self.config.token_length}"
            )
        return token

    def hash(self, raw_token: str) -> str:
        """Lowercase hex digest used as the storage key."""
        return hashlib.new(self.config.hash_algorithm, raw_token.encode("utf-8")).hexdigest()

    def validate_format(self, candidate) -> bool:
        """
        Cheap syntactic check run before any database lookup.
        """
        if not isinstance(candidate, str):
            return False
        return self._format.fullmatch(candidate) is not None

    def compare(self, raw_token: str, stored_digest: str) -> bool:
        """
        Checks a raw token against a stored digest in constant time.
        """
        if not isinstance(stored_digest, str) or not stored_digest.isascii():
            return False
        return hmac.compare_digest(
            self.hash(raw_token).encode("ascii"),
            stored_digest.encode("ascii")
        )
