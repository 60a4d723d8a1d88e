"""Service error hierarchy for generation, billing and storage operations.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors (carries an HTTP status for the API layer)
- Request errors: Unauthenticated, NotFound, Validation, InsufficientCredits, InvalidState
- Upstream errors: generation provider, payment processor (transient vs permanent)
- Webhook and storage errors
"""

from typing import Any


class ServiceError(Exception):
    """Base exception for all service errors."""

    status_code: int = 500

    def __init__(self, message: str = "", **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra


class UnauthenticatedError(ServiceError):
    """Request carries no valid session."""

    status_code = 401


class NotFoundError(ServiceError):
    """Resource is absent or not owned by the requesting user."""

    status_code = 404


class TaskNotFoundError(NotFoundError):
    """No generation task matches a provider task id."""

    pass


class ValidationError(ServiceError):
    """Missing or malformed required fields."""

    status_code = 400


class MissingMetadataError(ValidationError):
    """Payment event lacks the user id or credit amount metadata."""

    pass


class InsufficientCreditsError(ServiceError):
    """Balance does not cover the cost of the operation."""

    status_code = 400

    def __init__(self, required: int, current: int):
        super().__init__("Insufficient credits", required=required, current=current)
        self.required = required
        self.current = current


class InvalidStateError(ServiceError):
    """Operation is not legal for the task's current status."""

    status_code = 400


class RetryLimitExceededError(ServiceError):
    """Task has used all of its retry attempts."""

    status_code = 400


class InvalidSignatureError(ServiceError):
    """Webhook authenticity check failed."""

    status_code = 400


class StorageError(ServiceError):
    """Artifact download or persist failed."""

    status_code = 502


class UpstreamProviderError(ServiceError):
    """Generation provider or payment processor failed or was unreachable."""

    status_code = 502


class TransientError(UpstreamProviderError):
    """Transient upstream error that may succeed on retry.

    Examples:
    - Network timeouts
    - Rate limit exceeded (429)
    - Service unavailable (5xx)
    """

    pass


class PermanentError(UpstreamProviderError):
    """Permanent upstream error that will not succeed on retry.

    Examples:
    - Authentication failures (401, 403)
    - Invalid request parameters (400)
    - Error envelope returned by the provider API
    """

    pass


class ProviderSubmitFailedError(UpstreamProviderError):
    """Task was created and charged but the provider rejected the submission.

    The task is left in failed state (recoverable via retry); credits are not refunded.
    """

    def __init__(self, task_id: str, credits_remaining: int):
        super().__init__(
            "Failed to create generation task",
            task_id=task_id,
            status="failed",
            credits_remaining=credits_remaining,
        )
        self.task_id = task_id
        self.credits_remaining = credits_remaining


class PaymentProcessorError(UpstreamProviderError):
    """Stripe API call failed."""

    pass
