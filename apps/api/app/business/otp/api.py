from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import failure_response
from app.business.otp.schemas import (
    ForgotPasswordRequest,
    OtpMessage,
    OtpVerificationResult,
    ResetPasswordRequest,
    VerifyOtpRequest,
)
from app.business.otp.service import otp_service
from app.core.database import get_db
from app.core.errors import WorkflowError


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/forgot-password", response_model=OtpMessage)
def forgot_password(
    request: Request,
    dto: ForgotPasswordRequest,
    db: Session = Depends(get_db),
) -> OtpMessage | JSONResponse:
    try:
        return OtpMessage(message=otp_service.issue(db, dto.email))
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "otp_issue", exc)


@router.post("/verify-otp", response_model=OtpVerificationResult)
def verify_otp(
    request: Request,
    dto: VerifyOtpRequest,
    db: Session = Depends(get_db),
) -> OtpVerificationResult | JSONResponse:
    try:
        return OtpVerificationResult(valid=otp_service.verify(db, dto.email, dto.otp))
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "otp_verify", exc)


@router.post("/reset-password", response_model=OtpMessage)
def reset_password(
    request: Request,
    dto: ResetPasswordRequest,
    db: Session = Depends(get_db),
) -> OtpMessage | JSONResponse:
    try:
        otp_service.reset_password(db, dto.email, dto.otp, dto.new_password)
        return OtpMessage(message="Password reset successfully")
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "otp_reset_password", exc)
