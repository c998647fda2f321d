from fastapi import HTTPException, status


class BrightMindsException(Exception):
    """Base exception for BrightMinds application"""
    pass


class ProfileError(BrightMindsException):
    """Exception raised for profile-related errors"""
    pass


class AvailabilityError(BrightMindsException):
    """Exception raised for availability-related errors"""
    pass


class SessionStateError(BrightMindsException):
    """Exception raised when a session status change is not allowed"""

    def __init__(self, current_status, target_status):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Cannot change session status from {getattr(current_status, 'value', current_status)} "
            f"to {getattr(target_status, 'value', target_status)}"
        )


class PaymentError(BrightMindsException):
    """Exception raised for payment-related errors"""
    pass


class MatchingError(BrightMindsException):
    """Exception raised for AI matching errors"""
    pass


class MatchingRateLimitError(MatchingError):
    """The AI gateway rejected the request with a rate limit"""
    pass


class MatchingCreditsExhaustedError(MatchingError):
    """The AI gateway account has no credits left"""
    pass


class NotificationError(BrightMindsException):
    """Exception raised for notification errors"""
    pass


class AuthenticationError(BrightMindsException):
    """Exception raised for authentication errors"""
    pass


class AuthorizationError(BrightMindsException):
    """Exception raised for authorization errors"""
    pass


class ValidationError(BrightMindsException):
    """Exception raised for validation errors"""
    pass


class NotFoundError(BrightMindsException):
    """Exception raised when a requested record does not exist"""
    pass


class ConflictError(BrightMindsException):
    """Exception raised when a write conflicts with existing data"""
    pass


class ExternalServiceError(BrightMindsException):
    """Exception raised for external service errors"""
    pass


STATUS_CODES = (
    (MatchingRateLimitError, status.HTTP_429_TOO_MANY_REQUESTS),
    (MatchingCreditsExhaustedError, status.HTTP_402_PAYMENT_REQUIRED),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (ConflictError, status.HTTP_409_CONFLICT),
    (SessionStateError, status.HTTP_409_CONFLICT),
    (AvailabilityError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ProfileError, status.HTTP_400_BAD_REQUEST),
    (NotificationError, status.HTTP_400_BAD_REQUEST),
    (PaymentError, status.HTTP_400_BAD_REQUEST),
)


def to_http_exception(exc: BrightMindsException) -> HTTPException:
    """Map a service exception onto the HTTP status the API reports for it"""
    for exc_type, status_code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
