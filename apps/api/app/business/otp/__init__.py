from app.business.otp.models import OtpChallenge

__all__ = ["OtpChallenge"]
