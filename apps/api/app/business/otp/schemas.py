from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field


OTP_PATTERN = r"^\d{6}$"


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(pattern=OTP_PATTERN)


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str = Field(pattern=OTP_PATTERN)
    new_password: str = Field(min_length=8)


class OtpMessage(BaseModel):
    message: str


class OtpVerificationResult(BaseModel):
    valid: bool
