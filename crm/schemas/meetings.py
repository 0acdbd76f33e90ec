from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_MEETING_STATUS = "Scheduled"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class MeetingCreate(_CamelModel):
    title: str = Field(min_length=1, max_length=255)
    date_time: datetime
    status: Optional[str] = Field(default=None, max_length=50)
    meeting_link: Optional[str] = None
    notes: Optional[str] = None
    company_id: Optional[int] = None
    assigned_to: Optional[str] = Field(default=None, max_length=255)

    @field_validator("title")
    @classmethod
    def normalize_title(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Title is required")
        return cleaned


class MeetingUpdate(_CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    date_time: Optional[datetime] = None
    status: Optional[str] = Field(default=None, max_length=50)
    meeting_link: Optional[str] = None
    notes: Optional[str] = None
    company_id: Optional[int] = None
    assigned_to: Optional[str] = Field(default=None, max_length=255)


class MeetingResponse(_CamelModel):
    id: int
    title: str
    date_time: datetime
    status: Optional[str] = None
    meeting_link: Optional[str] = None
    notes: Optional[str] = None
    company_id: Optional[int] = None
    assigned_to: Optional[str] = None
    created_at: datetime
