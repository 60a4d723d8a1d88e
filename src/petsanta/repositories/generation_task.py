"""GenerationTask repository for Pets Santa backend.

Provides data access methods for GenerationTask entities, including the
compare-and-set updates that make callback/poll reconciliation idempotent.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from petsanta.core.timezone import utcnow
from petsanta.models.generation_task import ACTIVE_STATUSES, GenerationTask, TaskStatus


class GenerationTaskRepository:
    """Repository for GenerationTask entities.

    Status-advancing writes go through conditional UPDATEs: a task that has
    already reached a terminal state is never rewritten by a late callback or
    a racing poll.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, task: GenerationTask) -> GenerationTask:
        """Persist new generation task to database.

        Args:
            task: GenerationTask entity to persist

        Returns:
            Persisted task with generated ID
        """
        self.session.add(task)
        await self.session.flush()
        return task

    async def get_by_id(self, task_id: UUID) -> GenerationTask | None:
        """Retrieve generation task by UUID (always re-reads the row)."""
        result = await self.session.execute(
            select(GenerationTask)
            .where(GenerationTask.id == task_id)  # type: ignore[arg-type]
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_user(self, task_id: UUID, user_id: str) -> GenerationTask | None:
        """Retrieve a task only if it belongs to the given user.

        Args:
            task_id: Task's unique identifier
            user_id: Requesting user's identifier

        Returns:
            GenerationTask if found and owned by user_id, None otherwise
        """
        result = await self.session.execute(
            select(GenerationTask)
            .where(
                GenerationTask.id == task_id,  # type: ignore[arg-type]
                GenerationTask.user_id == user_id,  # type: ignore[arg-type]
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_provider_task_id(self, provider_task_id: str) -> GenerationTask | None:
        """Retrieve task by the provider's correlation id."""
        result = await self.session.execute(
            select(GenerationTask)
            .where(GenerationTask.provider_task_id == provider_task_id)  # type: ignore[arg-type]
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> list[GenerationTask]:
        """Retrieve all tasks of a user ordered by creation time (newest first)."""
        result = await self.session.execute(
            select(GenerationTask)
            .where(GenerationTask.user_id == user_id)  # type: ignore[arg-type]
            .order_by(GenerationTask.created_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def list_active_submitted(self, limit: int | None = None) -> list[GenerationTask]:
        """Retrieve non-terminal tasks that already have a provider task id.

        Ordered oldest first. Used by the manual reconciliation command.
        """
        stmt = (
            select(GenerationTask)
            .where(
                GenerationTask.status.in_(ACTIVE_STATUSES),  # type: ignore[attr-defined]
                GenerationTask.provider_task_id.is_not(None),  # type: ignore[union-attr]
            )
            .order_by(GenerationTask.created_at.asc())  # type: ignore[attr-defined]
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update_if_active(self, task_id: UUID, **values: Any) -> bool:
        """Update a task only while it is still waiting or processing.

        Query explanation:
        - UPDATE image_generation_tasks SET ...
        - WHERE id = :task_id AND status IN ('waiting', 'processing')

        Args:
            task_id: Task to update
            **values: Column values to set (updated_at is always refreshed)

        Returns:
            True if the row was updated, False if the task was already terminal
        """
        result = await self.session.execute(
            update(GenerationTask)
            .where(
                GenerationTask.id == task_id,  # type: ignore[arg-type]
                GenerationTask.status.in_(ACTIVE_STATUSES),  # type: ignore[attr-defined]
            )
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def update_if_retryable(
        self, task_id: UUID, expected_retry_count: int, **values: Any
    ) -> bool:
        """Update a failed task only if nobody retried it concurrently.

        Query explanation:
        - WHERE id = :task_id AND status = 'failed' AND retry_count = :expected

        Returns:
            True if the row was updated, False otherwise
        """
        result = await self.session.execute(
            update(GenerationTask)
            .where(
                GenerationTask.id == task_id,  # type: ignore[arg-type]
                GenerationTask.status == TaskStatus.FAILED,  # type: ignore[arg-type]
                GenerationTask.retry_count == expected_retry_count,  # type: ignore[arg-type]
            )
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0
