"""Generation task lifecycle: create, reconcile (callback/poll), retry.

State machine:
    waiting -> processing -> completed | failed
    failed -> waiting (retry only, at most MAX_RETRY_COUNT times)

## Transactions

Network calls (provider submit/poll, image download, blob upload) never run
inside a database transaction. Each step opens its own short UnitOfWork:

1. create: debit + ledger entry + task insert commit together, then the
   provider is called, then a second transaction records the provider task id
   (or marks the task failed).
2. reconcile: the artifact is downloaded and stored first, then the status is
   written with a compare-and-set that only matches non-terminal tasks, so a
   callback racing a poll can finalize a task at most once.
3. retry: the provider is called first, then the task is reset with a
   compare-and-set on (status = failed, retry_count = expected).

## Charged-but-failed tasks

If the provider rejects the initial submission the task is marked failed and
the credits stay debited. The caller receives ProviderSubmitFailedError with the
task id; the task can be recovered with retry, which charges nothing.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol
from uuid import UUID

import structlog

from petsanta.core.config import (
    ALLOWED_UPLOAD_CONTENT_TYPES,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_RESOLUTION,
    GENERATION_COST_CREDITS,
    MAX_RETRY_COUNT,
    MAX_UPLOAD_BYTES,
    Settings,
)
from petsanta.models.generation_task import GenerationTask, TaskStatus
from petsanta.services.billing import ledger
from petsanta.services.exceptions import (
    InvalidStateError,
    NotFoundError,
    ProviderSubmitFailedError,
    RetryLimitExceededError,
    StorageError,
    TaskNotFoundError,
    UpstreamProviderError,
    ValidationError,
)
from petsanta.services.image_generation.kie_client import (
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
    ProviderUpdate,
    parse_task_payload,
)
from petsanta.services.storage.blob_client import generated_image_path, original_image_path

logger = structlog.get_logger()

MAX_PROMPT_LENGTH = 2000

SUBMIT_FAILED_MESSAGE = "Failed to create task with provider"
DOWNLOAD_FAILED_MESSAGE = "Failed to download generated image"
NO_IMAGES_MESSAGE = "No generated images returned"
DEFAULT_FAILURE_MESSAGE = "Task failed"

CONTENT_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}


class GenerationProvider(Protocol):
    async def submit(
        self,
        prompt: str,
        image_urls: list[str],
        aspect_ratio: str,
        resolution: str,
        output_format: str,
        callback_url: str | None = None,
    ) -> str: ...

    async def poll(self, provider_task_id: str) -> ProviderUpdate: ...


class ArtifactStore(Protocol):
    async def download(self, url: str) -> bytes: ...

    async def put(self, pathname: str, data: bytes, content_type: str = "image/png") -> str: ...


@dataclass(frozen=True)
class TaskHandle:
    """Result of create/retry operations."""

    task_id: UUID
    status: TaskStatus
    credits_remaining: Optional[int] = None
    retry_count: int = 0


def parse_task_id(task_id: str | UUID) -> UUID:
    """Parse a client-supplied task id; malformed ids are reported as not found."""
    if isinstance(task_id, UUID):
        return task_id
    try:
        return UUID(task_id)
    except (TypeError, ValueError):
        raise NotFoundError("Task not found")


def _status_values(task: GenerationTask) -> dict[str, Any]:
    """Columns written when a task's status advances."""
    return {
        "status": task.status,
        "generated_image_url": task.generated_image_url,
        "error_message": task.error_message,
        "completed_at": task.completed_at,
        "provider_response": task.provider_response,
    }


class GenerationService:
    """Generation orchestrator and retry controller."""

    def __init__(
        self,
        uow_factory,
        provider: GenerationProvider,
        storage: ArtifactStore,
        settings: Settings,
        consume_retry_on_failure: bool | None = None,
    ):
        """Initialize service.

        Args:
            uow_factory: UnitOfWork factory
            provider: Generation provider gateway (KieClient)
            storage: Artifact store (BlobStorageClient)
            settings: Application settings
            consume_retry_on_failure: Whether a failed resubmission counts against the
                retry limit (defaults to settings.retry_consume_on_failure)
        """
        self.uow_factory = uow_factory
        self.provider = provider
        self.storage = storage
        self.settings = settings
        if consume_retry_on_failure is None:
            consume_retry_on_failure = settings.retry_consume_on_failure
        self.consume_retry_on_failure = consume_retry_on_failure

    async def create_task(
        self,
        user_id: str,
        image_url: str,
        style: str,
        prompt: str,
        aspect_ratio: str | None = None,
        resolution: str | None = None,
    ) -> TaskHandle:
        """Charge credits, record the task and submit it to the provider.

        Raises:
            ValidationError: Missing image_url, style or prompt
            InsufficientCreditsError: Balance below generation cost (nothing written)
            ProviderSubmitFailedError: Provider rejected the job (task failed, credits kept)
        """
        missing = [
            name
            for name, value in (("image_url", image_url), ("style", style), ("prompt", prompt))
            if not value or not value.strip()
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if len(prompt) > MAX_PROMPT_LENGTH:
            raise ValidationError(
                f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters "
                f"(got {len(prompt)})"
            )

        async with await self.uow_factory() as uow:
            credits_remaining = await ledger.debit_for_generation(
                uow, user_id, GENERATION_COST_CREDITS, f"Image generation: {style}"
            )
            task = GenerationTask(
                user_id=user_id,
                original_image_url=image_url,
                prompt=prompt,
                style=style,
                aspect_ratio=aspect_ratio or DEFAULT_ASPECT_RATIO,
                resolution=resolution or DEFAULT_RESOLUTION,
                output_format=DEFAULT_OUTPUT_FORMAT,
                status=TaskStatus.WAITING,
                credits_used=GENERATION_COST_CREDITS,
            )
            await uow.tasks.add(task)

        logger.info(
            "generation.created",
            task_id=str(task.id),
            user_id=user_id,
            style=style,
            credits_remaining=credits_remaining,
        )

        try:
            provider_task_id = await self._submit(task)
        except Exception as e:
            task.mark_failed(SUBMIT_FAILED_MESSAGE)
            task.provider_response = {"error": str(e)}
            async with await self.uow_factory() as uow:
                await uow.tasks.update_if_active(task.id, **_status_values(task))

            logger.error(
                "generation.submit_failed",
                task_id=str(task.id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ProviderSubmitFailedError(str(task.id), credits_remaining) from e

        async with await self.uow_factory() as uow:
            await uow.tasks.update_if_active(task.id, provider_task_id=provider_task_id)

        logger.info(
            "generation.submitted", task_id=str(task.id), provider_task_id=provider_task_id
        )
        return TaskHandle(
            task_id=task.id, status=TaskStatus.WAITING, credits_remaining=credits_remaining
        )

    async def handle_callback(self, payload: dict) -> GenerationTask:
        """Apply an asynchronous provider delivery.

        Re-delivery for a task that is already terminal is a no-op.

        Raises:
            ValidationError: Payload carries no task id
            TaskNotFoundError: No task matches the provider task id
        """
        update = parse_task_payload(payload)
        if not update.provider_task_id:
            raise ValidationError("Missing taskId")

        async with await self.uow_factory() as uow:
            task = await uow.tasks.get_by_provider_task_id(update.provider_task_id)

        if task is None:
            logger.error("callback.task_not_found", provider_task_id=update.provider_task_id)
            raise TaskNotFoundError("Task not found")

        if task.is_terminal:
            logger.info(
                "callback.already_terminal",
                task_id=str(task.id),
                provider_task_id=update.provider_task_id,
                status=task.status.value,
            )
            return task

        return await self._reconcile(task, update.result, raw=payload)

    async def get_task_status(self, user_id: str, task_id: str | UUID) -> GenerationTask:
        """Return the task, reconciling with the provider while it is still running.

        Provider errors are treated as transient: the stored snapshot is returned
        with status coerced to processing and nothing is written.

        Raises:
            NotFoundError: Task absent or owned by another user
        """
        task = await self._get_owned_task(user_id, task_id)

        if task.is_terminal:
            return task

        if not task.provider_task_id:
            task.status = TaskStatus.WAITING
            return task

        try:
            update = await self.provider.poll(task.provider_task_id)
        except UpstreamProviderError as e:
            logger.warning(
                "generation.poll_failed",
                task_id=str(task.id),
                provider_task_id=task.provider_task_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            task.status = TaskStatus.PROCESSING
            return task

        return await self._reconcile(task, update.result, raw=update.raw)

    async def list_tasks(self, user_id: str) -> list[GenerationTask]:
        """All tasks of a user, newest first."""
        async with await self.uow_factory() as uow:
            return await uow.tasks.list_for_user(user_id)

    async def upload_original(
        self, user_id: str, filename: str, content_type: str | None, data: bytes
    ) -> str:
        """Store a user's source photo and return its public URL.

        Raises:
            ValidationError: Empty file, file over MAX_UPLOAD_BYTES, or content type
                outside ALLOWED_UPLOAD_CONTENT_TYPES
            StorageError: Blob store rejected the upload
        """
        if content_type not in ALLOWED_UPLOAD_CONTENT_TYPES:
            raise ValidationError(
                f"Unsupported content type: {content_type}",
                allowed=list(ALLOWED_UPLOAD_CONTENT_TYPES),
            )
        if not data:
            raise ValidationError("Empty file")
        if len(data) > MAX_UPLOAD_BYTES:
            raise ValidationError("File too large", max_bytes=MAX_UPLOAD_BYTES)

        pathname = original_image_path(user_id, filename)
        url = await self.storage.put(pathname, data, content_type=content_type)
        logger.info("generation.original_uploaded", user_id=user_id, size=len(data), url=url)
        return url

    async def retry_task(self, user_id: str, task_id: str | UUID) -> TaskHandle:
        """Resubmit a failed task under a new provider task id without charging credits.

        Raises:
            NotFoundError: Task absent or owned by another user
            InvalidStateError: Task is not failed (or was retried concurrently)
            RetryLimitExceededError: Task already used MAX_RETRY_COUNT retries
            UpstreamProviderError: Resubmission failed (task stays failed)
        """
        task = await self._get_owned_task(user_id, task_id)

        if task.status != TaskStatus.FAILED:
            raise InvalidStateError("Only failed tasks can be retried")
        if task.retry_count >= MAX_RETRY_COUNT:
            raise RetryLimitExceededError(f"Maximum retry count ({MAX_RETRY_COUNT}) exceeded")

        expected_retry_count = task.retry_count

        try:
            provider_task_id = await self._submit(task)
        except UpstreamProviderError as e:
            logger.error(
                "generation.retry_submit_failed",
                task_id=str(task.id),
                retry_count=expected_retry_count,
                consumed=self.consume_retry_on_failure,
                error=str(e),
            )
            if self.consume_retry_on_failure:
                async with await self.uow_factory() as uow:
                    await uow.tasks.update_if_retryable(
                        task.id,
                        expected_retry_count,
                        retry_count=expected_retry_count + 1,
                        provider_response={"error": str(e)},
                    )
            raise UpstreamProviderError("Failed to retry task") from e

        task.mark_resubmitted(provider_task_id)
        async with await self.uow_factory() as uow:
            applied = await uow.tasks.update_if_retryable(
                task.id,
                expected_retry_count,
                provider_task_id=task.provider_task_id,
                status=task.status,
                error_message=None,
                provider_response=None,
                retry_count=task.retry_count,
            )

        if not applied:
            logger.warning("generation.retry_conflict", task_id=str(task.id))
            raise InvalidStateError("Task was modified concurrently, reload and try again")

        logger.info(
            "generation.retried",
            task_id=str(task.id),
            provider_task_id=provider_task_id,
            retry_count=task.retry_count,
        )
        return TaskHandle(task_id=task.id, status=task.status, retry_count=task.retry_count)

    async def reconcile_active(self, limit: int | None = None) -> dict[str, int]:
        """Poll every submitted non-terminal task once (manual fallback for lost callbacks).

        Returns:
            Counts of tasks per resulting status plus provider errors
        """
        async with await self.uow_factory() as uow:
            tasks = await uow.tasks.list_active_submitted(limit=limit)

        counts = {status.value: 0 for status in TaskStatus}
        counts["errors"] = 0
        for task in tasks:
            try:
                update = await self.provider.poll(task.provider_task_id)
            except UpstreamProviderError as e:
                logger.warning("reconcile.poll_failed", task_id=str(task.id), error=str(e))
                counts["errors"] += 1
                continue
            refreshed = await self._reconcile(task, update.result, raw=update.raw)
            counts[refreshed.status.value] += 1

        return counts

    async def _get_owned_task(self, user_id: str, task_id: str | UUID) -> GenerationTask:
        task_uuid = parse_task_id(task_id)
        async with await self.uow_factory() as uow:
            task = await uow.tasks.get_for_user(task_uuid, user_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def _submit(self, task: GenerationTask) -> str:
        return await self.provider.submit(
            prompt=task.prompt,
            image_urls=[task.original_image_url],
            aspect_ratio=task.aspect_ratio,
            resolution=task.resolution,
            output_format=task.output_format,
            callback_url=self.settings.provider_callback_url,
        )

    async def _reconcile(
        self, task: GenerationTask, result: ProviderResult, raw: dict
    ) -> GenerationTask:
        """Advance a non-terminal task from a provider result.

        The write only applies while the task is still waiting/processing.
        """
        if isinstance(result, ProviderSuccess):
            if result.result_urls:
                try:
                    artifact_url = await self._store_artifact(task, result.result_urls[0])
                    task.mark_completed(artifact_url)
                except StorageError as e:
                    logger.error(
                        "generation.artifact_store_failed", task_id=str(task.id), error=str(e)
                    )
                    task.mark_failed(DOWNLOAD_FAILED_MESSAGE)
            else:
                task.mark_failed(NO_IMAGES_MESSAGE)
        elif isinstance(result, ProviderFailure):
            task.mark_failed(result.reason or DEFAULT_FAILURE_MESSAGE)
        else:
            task.mark_processing()

        task.provider_response = raw

        async with await self.uow_factory() as uow:
            applied = await uow.tasks.update_if_active(task.id, **_status_values(task))
            if not applied:
                # Someone else finalized the task first; report what is stored
                logger.info("generation.reconcile_skipped", task_id=str(task.id))
                stored = await uow.tasks.get_by_id(task.id)

        if not applied:
            return stored or task

        logger.info(
            "generation.reconciled",
            task_id=str(task.id),
            provider_task_id=task.provider_task_id,
            status=task.status.value,
        )
        return task

    async def _store_artifact(self, task: GenerationTask, source_url: str) -> str:
        """Copy a provider result into durable storage; returns the public URL."""
        data = await self.storage.download(source_url)
        pathname = generated_image_path(
            task.user_id, task.provider_task_id or str(task.id), task.output_format
        )
        content_type = CONTENT_TYPES.get(task.output_format, "application/octet-stream")
        return await self.storage.put(pathname, data, content_type=content_type)
