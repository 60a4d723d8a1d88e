"""GenerationTask entity - one record per image generation attempt."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from petsanta.core.config import (
    DEFAULT_ASPECT_RATIO,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_RESOLUTION,
    GENERATION_COST_CREDITS,
    MAX_RETRY_COUNT,
)
from petsanta.core.timezone import utcnow


class TaskStatus(str, Enum):
    """Generation task lifecycle status."""

    WAITING = "waiting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_STATUSES = (TaskStatus.WAITING, TaskStatus.PROCESSING)
TERMINAL_STATUSES = (TaskStatus.COMPLETED, TaskStatus.FAILED)


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid generation task state transition."""

    pass


class GenerationTask(SQLModel, table=True):
    """GenerationTask tracks a stylized image request through the provider lifecycle.

    Inputs (image, prompt, style, aspect ratio, resolution, format) are fixed at
    creation. The provider task id is assigned once submission succeeds and is
    replaced on every successful retry.
    """

    __tablename__ = "image_generation_tasks"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    provider_task_id: Optional[str] = Field(default=None, max_length=255, unique=True, index=True)

    original_image_url: str
    generated_image_url: Optional[str] = Field(default=None)

    prompt: str
    style: str = Field(max_length=100)
    aspect_ratio: str = Field(default=DEFAULT_ASPECT_RATIO, max_length=20)
    resolution: str = Field(default=DEFAULT_RESOLUTION, max_length=20)
    output_format: str = Field(default=DEFAULT_OUTPUT_FORMAT, max_length=20)

    status: TaskStatus = Field(default=TaskStatus.WAITING, index=True)
    credits_used: int = Field(default=GENERATION_COST_CREDITS, ge=0)
    error_message: Optional[str] = Field(default=None)
    provider_response: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    retry_count: int = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = Field(default=None)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def can_retry(self) -> bool:
        """True if the task is failed and still has retry attempts left."""
        return self.status == TaskStatus.FAILED and self.retry_count < MAX_RETRY_COUNT

    def mark_processing(self) -> None:
        """Transition from waiting to processing (no-op if already processing).

        Raises:
            InvalidStateTransition: If the task is already terminal
        """
        if self.is_terminal:
            raise InvalidStateTransition(
                f"Cannot mark processing from terminal state {self.status.value}."
            )
        self.status = TaskStatus.PROCESSING
        self.updated_at = utcnow()

    def mark_completed(self, generated_image_url: str) -> None:
        """Transition from waiting/processing to completed.

        Args:
            generated_image_url: Public URL of the stored artifact

        Raises:
            InvalidStateTransition: If the task is already terminal
            ValueError: If generated_image_url is empty
        """
        if self.is_terminal:
            raise InvalidStateTransition(
                f"Cannot mark completed from terminal state {self.status.value}."
            )
        if not generated_image_url:
            raise ValueError("generated_image_url is required")
        now = utcnow()
        self.generated_image_url = generated_image_url
        self.error_message = None
        self.status = TaskStatus.COMPLETED
        self.completed_at = now
        self.updated_at = now

    def mark_failed(self, error_message: str) -> None:
        """Transition from any non-terminal state to failed.

        Raises:
            InvalidStateTransition: If the task is already terminal
            ValueError: If error_message is empty
        """
        if self.is_terminal:
            raise InvalidStateTransition(
                f"Cannot mark failed from terminal state {self.status.value}."
            )
        if not error_message:
            raise ValueError("error_message is required")
        self.generated_image_url = None
        self.error_message = error_message
        self.status = TaskStatus.FAILED
        self.updated_at = utcnow()

    def mark_resubmitted(self, provider_task_id: str) -> None:
        """Transition from failed back to waiting after a successful resubmission.

        Raises:
            InvalidStateTransition: If the task is not failed or has no retries left
        """
        if self.status != TaskStatus.FAILED:
            raise InvalidStateTransition(
                f"Cannot resubmit from {self.status.value}. Task must be in failed state."
            )
        if self.retry_count >= MAX_RETRY_COUNT:
            raise InvalidStateTransition(
                f"Cannot resubmit: retry limit ({MAX_RETRY_COUNT}) reached."
            )
        self.provider_task_id = provider_task_id
        self.status = TaskStatus.WAITING
        self.error_message = None
        self.provider_response = None
        self.retry_count += 1
        self.updated_at = utcnow()
