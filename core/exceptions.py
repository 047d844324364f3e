"""Custom exception classes for the application.

Every failure the generation pipeline can surface is an `AppException`
subclass carrying a stable error `code`, an HTTP status and a retryable flag.
Exception handlers turn these into the localized failure payload; the
`message` attribute is for logs and audit entries only and is never shown to
end users.
"""

from typing import Optional, Any, Dict


class AppException(Exception):
    """Base exception class for all application exceptions.

    Attributes:
        message: Internal error message (logged, written to audit entries).
        status_code: HTTP status code to return.
        details: Optional additional error details.
        code: Stable error code used to pick the user-facing message.
        is_retryable: Whether repeating the same request may succeed.
        language: Language of the user-facing message ('en' or 'ar').
    """

    code = "UNKNOWN_ERROR"
    default_status_code = 500
    is_retryable = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize application exception.

        Args:
            message: Error message.
            status_code: HTTP status code (defaults to the class status).
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.status_code = status_code or self.default_status_code
        self.details = details or {}
        self.language = "en"
        super().__init__(self.message)


class NotFoundError(AppException):
    """Exception raised when a requested resource is not found."""

    code = "NOT_FOUND"
    default_status_code = 404
    is_retryable = False

    def __init__(self, resource: str, identifier: Any):
        """Initialize not found error.

        Args:
            resource: Type of resource (e.g., 'WeeklyMealPlan').
            identifier: ID or identifier that was not found.
        """
        message = f"{resource} with id '{identifier}' not found"
        super().__init__(message, details={"resource": resource, "id": identifier})


class ValidationError(AppException):
    """Exception raised when the preferences payload is missing or malformed."""

    code = "VALIDATION_ERROR"
    default_status_code = 400
    is_retryable = False

    def __init__(self, message: str, field: Optional[str] = None):
        """Initialize validation error.

        Args:
            message: Validation error message.
            field: Optional field name that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, details=details)


class InvalidProfileError(AppException):
    """Exception raised when no usable user profile can be located or used."""

    code = "INVALID_USER_PROFILE"
    default_status_code = 400
    is_retryable = False

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, details=details)


class AuthError(AppException):
    """Exception raised when the caller identity does not match the request."""

    code = "AUTH_ERROR"
    default_status_code = 401
    is_retryable = False


class RateLimitExceededError(AppException):
    """Exception raised when a metered user is out of credits or over the daily cap."""

    code = "RATE_LIMIT_EXCEEDED"
    default_status_code = 429
    is_retryable = False

    def __init__(self, message: str, reason: str, remaining: int = 0, reset_at: Optional[str] = None):
        """Initialize quota error.

        Args:
            message: Error message.
            reason: 'no_credits' or 'daily_cap'.
            remaining: Credits left at the time of the check.
            reset_at: ISO timestamp when the daily window resets, if relevant.
        """
        details = {"reason": reason, "remaining": remaining}
        if reset_at:
            details["reset_at"] = reset_at
        super().__init__(message, details=details)
        self.reason = reason


class AIInvocationError(AppException):
    """Base class for classified failures of a single model invocation."""

    code = "AI_SERVICE_ERROR"
    default_status_code = 502
    is_retryable = True

    def __init__(self, message: str, model_id: Optional[str] = None, status: Optional[int] = None):
        details = {}
        if model_id:
            details["model_id"] = model_id
        if status is not None:
            details["upstream_status"] = status
        super().__init__(message, details=details)
        self.model_id = model_id


class AIRateLimitedError(AIInvocationError):
    """Provider-side throttling (HTTP 429)."""

    code = "AI_RATE_LIMITED"
    default_status_code = 429


class AITimeoutError(AIInvocationError):
    """The client-side deadline expired before the model answered."""

    code = "AI_TIMEOUT"
    default_status_code = 504


class AIServiceError(AIInvocationError):
    """Non-success status or transport failure from the provider."""


class AIEmptyResponseError(AIServiceError):
    """The provider answered without any text."""


class AIGenerationFailedError(AppException):
    """Both the primary and the fallback model failed."""

    code = "AI_GENERATION_FAILED"
    default_status_code = 502
    is_retryable = True

    def __init__(self, message: str, attempts: Optional[list] = None):
        super().__init__(message, details={"attempts": attempts or []})


class ResponseInvalidError(AppException):
    """The model output could not be parsed or has no meals."""

    code = "AI_RESPONSE_INVALID"
    default_status_code = 502
    is_retryable = True


class DatabaseError(AppException):
    """Exception raised when database operations fail."""

    code = "DATABASE_ERROR"
    default_status_code = 500
    is_retryable = True

    def __init__(self, message: str, operation: Optional[str] = None):
        """Initialize database error.

        Args:
            message: Database error message.
            operation: Optional operation that failed (e.g., 'replace_week').
        """
        details = {"operation": operation} if operation else {}
        super().__init__(message, details=details)


class MealPlanEmptyError(DatabaseError):
    """Old meals were deleted but the new set could not be inserted.

    The weekly plan row now has no meals; the caller must regenerate.
    """

    code = "MEAL_PLAN_EMPTY"

    def __init__(self, message: str, weekly_plan_id: str):
        super().__init__(message, operation="insert_meals")
        self.details["weekly_plan_id"] = weekly_plan_id


class ConfigurationError(AppException):
    """Exception raised when application configuration is invalid."""

    code = "CONFIGURATION_ERROR"
    default_status_code = 500
    is_retryable = False

    def __init__(self, message: str, config_key: Optional[str] = None):
        """Initialize configuration error.

        Args:
            message: Configuration error message.
            config_key: Optional configuration key that is invalid.
        """
        details = {"config_key": config_key} if config_key else {}
        super().__init__(message, details=details)


class UnknownError(AppException):
    """Catch-all for failures nothing else classified."""

    code = "UNKNOWN_ERROR"
    default_status_code = 500
    is_retryable = True
