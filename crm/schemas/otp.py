from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from crm.config import settings

OTP_LENGTH = settings.otp_length


def _normalize_email(value: str) -> str:
    cleaned = value.strip().lower()
    local, _, domain = cleaned.partition("@")
    if not local or not domain or "@" in domain:
        raise ValueError("A valid email address is required")
    return cleaned


class ForgotPasswordRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return _normalize_email(value)


class ForgotPasswordResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    expires_in_seconds: int
    otp: Optional[str] = None


class OtpVerifyRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    otp: str = Field(min_length=OTP_LENGTH, max_length=OTP_LENGTH, pattern=r"^\d+$")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return _normalize_email(value)


class OtpVerifyResponse(BaseModel):
    verified: bool
