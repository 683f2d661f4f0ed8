"""
Service-layer exceptions

Services raise these instead of HTTPException so they stay usable from the
cron sweep and tests. main.py maps each class to an HTTP status code.
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base class for application errors"""

    status_code = 500
    error_code = "service_error"

    def __init__(self, message: str = "An unexpected error occurred", details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Client sent data that breaks a business rule"""

    status_code = 400
    error_code = "validation_error"


class NotFoundError(ServiceError):
    """Requested record does not exist or is not visible to the caller"""

    status_code = 404
    error_code = "not_found"

    def __init__(self, resource: str = "Resource", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=f"{resource} not found", details=details)
        self.resource = resource


class PermissionDeniedError(ServiceError):
    status_code = 403
    error_code = "permission_denied"


class PlanLimitError(ServiceError):
    """The user's subscription plan does not allow the operation"""

    status_code = 402
    error_code = "plan_limit"


class RateLimitExceededError(ServiceError):
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(self, message: str = "Rate limit exceeded. Please try again later.", retry_after: int = 60):
        super().__init__(message=message, details={"retry_after": retry_after})
        self.retry_after = retry_after


class InvitationGenerationError(ServiceError):
    """Gemini failed to produce an invitation image"""

    status_code = 502
    error_code = "invitation_generation_failed"
