class ClinicError(Exception):
    """Base error carrying the HTTP status and a message safe to show to the caller."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str = None, details: dict = None):
        self.message = message or self.message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ClinicError):
    status_code = 400
    message = "Invalid request"


class NotFoundError(ClinicError):
    status_code = 404
    message = "Not found"


class UnauthorizedError(ClinicError):
    status_code = 401
    message = "Authentication required"


class ForbiddenError(ClinicError):
    status_code = 403
    message = "Invalid or expired token"


class RateLimitedError(ClinicError):
    status_code = 429
    message = "Too many OTP requests, please try again later."


class OtpNotFoundError(ClinicError):
    status_code = 400
    message = "No OTP found for this email"


class OtpExpiredError(ClinicError):
    status_code = 400
    message = "OTP has expired. Please request a new one."


class OtpLockedError(ClinicError):
    status_code = 400
    message = "Too many failed attempts. Please request a new OTP."


class InvalidCodeError(ClinicError):
    status_code = 400
    message = "Invalid verification code"


class DependencyFailure(ClinicError):
    status_code = 500
    message = "Service temporarily unavailable. Please try again."


class EmailDeliveryError(Exception):
    def __init__(self, reason: str, details: dict = None):
        self.reason = reason
        self.details = details or {}
        super().__init__(f"Email delivery failed: {reason}")
