import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from crm.database import SessionLocal, session_scope
from crm.exceptions import MeetingNotFoundError
from crm.models.meeting import MeetingEntry
from crm.schemas.meetings import (
    DEFAULT_MEETING_STATUS,
    MeetingCreate,
    MeetingResponse,
    MeetingUpdate,
)

LOGGER = logging.getLogger(__name__)

PATCHABLE_FIELDS = (
    "title",
    "date_time",
    "status",
    "meeting_link",
    "notes",
    "company_id",
    "assigned_to",
)


class MeetingStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def list_meetings(self) -> list[MeetingResponse]:
        with session_scope(self._session_factory) as session:
            entries = session.execute(
                select(MeetingEntry).order_by(MeetingEntry.id)
            ).scalars().all()
            return [self._to_response(entry) for entry in entries]

    def create_meeting(self, payload: MeetingCreate) -> MeetingResponse:
        with session_scope(self._session_factory) as session:
            entry = MeetingEntry(
                title=payload.title,
                date_time=payload.date_time,
                status=payload.status or DEFAULT_MEETING_STATUS,
                meeting_link=payload.meeting_link,
                notes=payload.notes,
                company_id=payload.company_id,
                assigned_to=payload.assigned_to,
                created_at=datetime.now(timezone.utc),
            )
            session.add(entry)
            session.flush()
            LOGGER.info("Meeting created id=%s", entry.id)
            return self._to_response(entry)

    def update_meeting(self, meeting_id: int, payload: MeetingUpdate) -> MeetingResponse:
        with session_scope(self._session_factory) as session:
            entry = session.get(MeetingEntry, meeting_id)
            if entry is None:
                raise MeetingNotFoundError(meeting_id)
            for field in PATCHABLE_FIELDS:
                value = getattr(payload, field)
                if value is not None:
                    setattr(entry, field, value)
            session.flush()
            return self._to_response(entry)

    def delete_meeting(self, meeting_id: int) -> None:
        with session_scope(self._session_factory) as session:
            entry = session.get(MeetingEntry, meeting_id)
            if entry is None:
                raise MeetingNotFoundError(meeting_id)
            session.delete(entry)
        LOGGER.info("Meeting deleted id=%s", meeting_id)

    def _to_response(self, entry: MeetingEntry) -> MeetingResponse:
        return MeetingResponse.model_validate(entry)


meeting_store = MeetingStore()
