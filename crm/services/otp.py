import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from crm.config import settings
from crm.database import SessionLocal, session_scope
from crm.exceptions import DeliveryError, StorageError
from crm.models.otp import OtpEntry
from crm.services.email import (
    GmailNotifier,
    Notifier,
    OutgoingMessage,
    build_password_reset_message,
)
from crm.services.otp_store import OtpStore, normalize_recipient

LOGGER = logging.getLogger(__name__)


class RandomSource(Protocol):
    def randbelow(self, exclusive_upper_bound: int) -> int:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OtpService:
    """Generate, deliver, verify and expire password-reset codes.

    The default random source is the ``secrets`` module, whose ``randbelow``
    reads the OS CSPRNG and is safe to share between threads.
    """

    def __init__(
        self,
        notifier: Notifier,
        session_factory: sessionmaker = SessionLocal,
        ttl_seconds: int = 600,
        code_length: int = 6,
        clock: Callable[[], datetime] = _utcnow,
        rng: Optional[RandomSource] = None,
        message_builder: Callable[[str, int], OutgoingMessage] = build_password_reset_message,
    ) -> None:
        self._notifier = notifier
        self._session_factory = session_factory
        self._ttl = timedelta(seconds=ttl_seconds)
        self._ttl_seconds = ttl_seconds
        self._code_length = code_length
        self._clock = clock
        self._rng = rng or secrets
        self._message_builder = message_builder

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def generate(self, recipient: str) -> str:
        email = normalize_recipient(recipient)
        now = self._clock()
        code = self._generate_code()

        try:
            with session_scope(self._session_factory) as session:
                store = OtpStore(session)
                superseded = store.delete_all_for(email)
                store.insert(
                    OtpEntry(
                        email=email,
                        code=code,
                        expires_at=now + self._ttl,
                        verified=False,
                        created_at=now,
                    )
                )
        except StorageError:
            LOGGER.exception("OTP insert conflict email=%s", email)
            raise
        except SQLAlchemyError as exc:
            LOGGER.exception("OTP generation failed email=%s", email)
            raise StorageError("Failed to store OTP") from exc

        LOGGER.info("OTP issued email=%s superseded=%s", email, superseded)
        if settings.otp_debug:
            LOGGER.debug("OTP code email=%s code=%s", email, code)

        # Delivery happens after commit; a failure here leaves the code valid.
        message = self._message_builder(code, self._ttl_seconds)
        try:
            self._notifier.send(email, message)
        except DeliveryError:
            LOGGER.error("OTP delivery failed email=%s", email)
            raise
        except Exception as exc:
            LOGGER.exception("OTP delivery failed email=%s", email)
            raise DeliveryError("Failed to deliver OTP") from exc
        return code

    def verify(self, recipient: str, code: str) -> bool:
        email = normalize_recipient(recipient)
        clean_code = code.strip()
        now = self._clock()
        try:
            with session_scope(self._session_factory) as session:
                store = OtpStore(session)
                record = store.find_active(email, clean_code, now)
                if record is None:
                    verified = False
                else:
                    verified = store.mark_verified(record, now)
        except SQLAlchemyError as exc:
            LOGGER.exception("OTP verification failed email=%s", email)
            raise StorageError("Failed to verify OTP") from exc

        LOGGER.info("OTP verification email=%s verified=%s", email, verified)
        return verified

    def sweep_expired(self, now: Optional[datetime] = None) -> None:
        cutoff = now or self._clock()
        try:
            with session_scope(self._session_factory) as session:
                removed = OtpStore(session).delete_expired(cutoff)
        except Exception:
            LOGGER.exception("Expired OTP sweep failed")
            return
        LOGGER.info("Expired OTP sweep removed=%s cutoff=%s", removed, cutoff.isoformat())

    def _generate_code(self) -> str:
        value = self._rng.randbelow(10**self._code_length)
        return str(value).zfill(self._code_length)


otp_service = OtpService(
    GmailNotifier(),
    ttl_seconds=settings.otp_ttl_seconds,
    code_length=settings.otp_length,
)
