import base64
import binascii
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable

import jwt

from crm.config import Settings, settings
from crm.exceptions import ConfigError, InvalidTokenError, TokenExpiredError

LOGGER = logging.getLogger(__name__)

MIN_KEY_BYTES = 32


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def decode_signing_key(secret: str) -> bytes:
    if not secret or not secret.strip():
        raise ConfigError("JWT secret is not configured")
    try:
        key = base64.b64decode(secret.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ConfigError("JWT secret is not valid base64") from exc
    if len(key) < MIN_KEY_BYTES:
        raise ConfigError(
            f"JWT secret must decode to at least {MIN_KEY_BYTES * 8} bits"
        )
    return key


class TokenCodec:
    """Issues and validates signed, stateless authentication tokens.

    The signing key is decoded once when the codec is built and is never
    mutated afterwards, so one instance can be shared across requests.
    """

    def __init__(
        self,
        key: bytes,
        algorithm: str = "HS256",
        ttl: timedelta = timedelta(hours=48),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._key = key
        self._algorithm = algorithm
        self._ttl = ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, config: Settings, **kwargs) -> "TokenCodec":
        key = decode_signing_key(config.jwt_secret)
        return cls(
            key,
            algorithm=config.jwt_algorithm,
            ttl=timedelta(hours=config.token_ttl_hours),
            **kwargs,
        )

    def issue(self, subject: str, role: str) -> str:
        now = self._clock()
        payload = {
            "sub": subject,
            "role": role,
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl).timestamp()),
        }
        return jwt.encode(payload, self._key, algorithm=self._algorithm)

    def extract_subject(self, token: str) -> str:
        return self._decode(token)["sub"]

    def extract_role(self, token: str) -> str | None:
        return self._decode(token).get("role")

    def extract_expiry(self, token: str) -> datetime:
        return datetime.fromtimestamp(self._decode(token)["exp"], tz=timezone.utc)

    def is_valid(self, token: str) -> bool:
        try:
            self._decode(token)
        except InvalidTokenError:
            return False
        return True

    def _decode(self, token: str) -> dict:
        if not token or not isinstance(token, str):
            raise InvalidTokenError("Token is missing")
        # Expiry is checked against the codec clock, not the wall clock.
        try:
            claims = jwt.decode(
                token,
                self._key,
                algorithms=[self._algorithm],
                options={
                    "require": ["sub", "exp", "iat"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError("Invalid token") from exc
        try:
            expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError) as exc:
            raise InvalidTokenError("Invalid token expiry") from exc
        if expires_at <= self._clock():
            raise TokenExpiredError("Token has expired")
        return claims


@lru_cache(maxsize=1)
def get_token_codec() -> TokenCodec:
    codec = TokenCodec.from_settings(settings)
    LOGGER.info("Token codec ready algorithm=%s", settings.jwt_algorithm)
    return codec
