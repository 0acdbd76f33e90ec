from fastapi import APIRouter, HTTPException, status

from crm.config import settings
from crm.exceptions import DeliveryError, StorageError
from crm.schemas.otp import (
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    OtpVerifyRequest,
    OtpVerifyResponse,
)
from crm.services.otp import otp_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/forgot-password",
    response_model=ForgotPasswordResponse,
    response_model_exclude_none=True,
)
def forgot_password(payload: ForgotPasswordRequest) -> ForgotPasswordResponse:
    try:
        code = otp_service.generate(payload.email)
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not issue a code, try again",
        ) from exc
    except DeliveryError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc
    return ForgotPasswordResponse(
        message="OTP sent",
        expires_in_seconds=otp_service.ttl_seconds,
        otp=code if settings.otp_debug else None,
    )


@router.post("/verify-otp", response_model=OtpVerifyResponse)
def verify_otp(payload: OtpVerifyRequest) -> OtpVerifyResponse:
    try:
        verified = otp_service.verify(payload.email, payload.otp)
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not verify the code, try again",
        ) from exc
    return OtpVerifyResponse(verified=verified)
