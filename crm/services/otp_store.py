from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from crm.exceptions import ConflictError
from crm.models.otp import OtpEntry


def normalize_recipient(recipient: str) -> str:
    return recipient.strip().lower()


class OtpStore:
    """Storage operations for one-time codes inside a caller-owned transaction.

    Every method works on the session passed at construction, so a sequence of
    calls commits or rolls back as one unit with that session.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def delete_all_for(self, recipient: str) -> int:
        result = self._session.execute(
            delete(OtpEntry).where(OtpEntry.email == normalize_recipient(recipient))
        )
        return result.rowcount

    def insert(self, record: OtpEntry) -> OtpEntry:
        self._session.add(record)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                f"An active code already exists for {record.email}"
            ) from exc
        return record

    def find_active(self, recipient: str, code: str, now: datetime) -> OtpEntry | None:
        """Return the matching unverified, unexpired record, or ``None``.

        ``None`` covers a wrong code, an expired code, a used code and no code
        at all alike.
        """
        result = self._session.execute(
            select(OtpEntry).where(
                OtpEntry.email == normalize_recipient(recipient),
                OtpEntry.code == code,
                OtpEntry.verified.is_(False),
                OtpEntry.expires_at > now,
            )
        )
        return result.scalars().first()

    def mark_verified(self, record: OtpEntry, now: datetime) -> bool:
        result = self._session.execute(
            update(OtpEntry)
            .where(
                OtpEntry.id == record.id,
                OtpEntry.verified.is_(False),
                OtpEntry.expires_at > now,
            )
            .values(verified=True, verified_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        set_committed_value(record, "verified", True)
        set_committed_value(record, "verified_at", now)
        return True

    def delete_expired(self, before: datetime) -> int:
        result = self._session.execute(
            delete(OtpEntry).where(OtpEntry.expires_at < before)
        )
        return result.rowcount

    def count_active(self, recipient: str, now: datetime) -> int:
        result = self._session.execute(
            select(func.count(OtpEntry.id)).where(
                OtpEntry.email == normalize_recipient(recipient),
                OtpEntry.verified.is_(False),
                OtpEntry.expires_at > now,
            )
        )
        return result.scalar_one()
