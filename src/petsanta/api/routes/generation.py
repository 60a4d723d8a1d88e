"""Image generation API endpoints.

This module implements REST endpoints for the generation task lifecycle:
- POST /api/generation/create - Charge credits and submit a new generation task
- GET /api/generation/status?taskId= - Poll a task (reconciles with the provider)
- GET /api/generation/my-tasks - List the caller's tasks, newest first
- POST /api/generation/retry/{task_id} - Resubmit a failed task without charging
- POST /api/upload - Store a pet photo and return its public URL
- GET /api/styles - Available style templates

All endpoints except /api/styles require an authenticated session.
"""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, File, Query, UploadFile
from pydantic import BaseModel, Field

from petsanta.api.dependencies import get_current_user_id, get_generation_service
from petsanta.core.config import MAX_UPLOAD_BYTES
from petsanta.models.generation_task import GenerationTask
from petsanta.services.image_generation.service import GenerationService
from petsanta.services.image_generation.styles import STYLE_TEMPLATES

logger = structlog.get_logger()
router = APIRouter(prefix="/api", tags=["generation"])


# Request/Response Models


class CreateTaskRequest(BaseModel):
    """Request model for creating a generation task."""

    image_url: str = Field(default="", description="URL of the uploaded pet photo")
    style: str = Field(default="", description="Style label (e.g. santa-suit)", max_length=100)
    prompt: str = Field(default="", description="Generation prompt")
    aspect_ratio: str | None = Field(default=None, description="Aspect ratio (default 1:1)")
    resolution: str | None = Field(default=None, description="Resolution (default 1K)")


class CreateTaskResponse(BaseModel):
    id: UUID
    status: str
    credits_remaining: int


class RetryTaskResponse(BaseModel):
    success: bool = True
    task_id: UUID
    retry_count: int
    status: str


class TaskDTO(BaseModel):
    """Data Transfer Object for generation task snapshots in API responses."""

    id: UUID
    provider_task_id: str | None = Field(
        default=None, description="Provider correlation id (null until submitted)"
    )
    original_image_url: str
    generated_image_url: str | None = Field(
        default=None, description="Stored artifact URL (set only when completed)"
    )
    prompt: str
    style: str
    aspect_ratio: str
    resolution: str
    output_format: str
    status: str = Field(..., description="waiting, processing, completed or failed")
    credits_used: int
    error_message: str | None = Field(default=None, description="Set only when failed")
    retry_count: int
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_task(cls, task: GenerationTask) -> "TaskDTO":
        return cls(
            id=task.id,
            provider_task_id=task.provider_task_id,
            original_image_url=task.original_image_url,
            generated_image_url=task.generated_image_url,
            prompt=task.prompt,
            style=task.style,
            aspect_ratio=task.aspect_ratio,
            resolution=task.resolution,
            output_format=task.output_format,
            status=task.status.value,
            credits_used=task.credits_used,
            error_message=task.error_message,
            retry_count=task.retry_count,
            created_at=task.created_at,
            updated_at=task.updated_at,
            completed_at=task.completed_at,
        )


class TasksResponse(BaseModel):
    tasks: list[TaskDTO]


class UploadResponse(BaseModel):
    url: str


class StyleDTO(BaseModel):
    id: str
    label: str
    prompt: str


# Endpoints


@router.post("/generation/create", response_model=CreateTaskResponse)
async def create_generation_task(
    body: CreateTaskRequest,
    user_id: str = Depends(get_current_user_id),
    service: GenerationService = Depends(get_generation_service),
) -> CreateTaskResponse:
    """Charge GENERATION_COST_CREDITS and submit a new generation task.

    HTTP Status Codes:
        200: Task created and submitted (status waiting)
        400: Missing fields or insufficient credits (nothing charged)
        401: No session
        502: Provider rejected the submission (task failed, credits charged, retry allowed)
    """
    handle = await service.create_task(
        user_id=user_id,
        image_url=body.image_url,
        style=body.style,
        prompt=body.prompt,
        aspect_ratio=body.aspect_ratio,
        resolution=body.resolution,
    )
    return CreateTaskResponse(
        id=handle.task_id,
        status=handle.status.value,
        credits_remaining=handle.credits_remaining or 0,
    )


@router.get("/generation/status", response_model=TaskDTO)
async def get_generation_status(
    task_id: str = Query(..., alias="taskId"),
    user_id: str = Depends(get_current_user_id),
    service: GenerationService = Depends(get_generation_service),
) -> TaskDTO:
    """Return the task snapshot, polling the provider while it is still running."""
    task = await service.get_task_status(user_id, task_id)
    return TaskDTO.from_task(task)


@router.get("/generation/my-tasks", response_model=TasksResponse)
async def list_my_tasks(
    user_id: str = Depends(get_current_user_id),
    service: GenerationService = Depends(get_generation_service),
) -> TasksResponse:
    tasks = await service.list_tasks(user_id)
    return TasksResponse(tasks=[TaskDTO.from_task(task) for task in tasks])


@router.post("/generation/retry/{task_id}", response_model=RetryTaskResponse)
async def retry_generation_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    service: GenerationService = Depends(get_generation_service),
) -> RetryTaskResponse:
    """Resubmit a failed task.

    HTTP Status Codes:
        200: Resubmitted (status waiting, retry_count incremented)
        400: Task not failed, or retry limit reached
        404: Task not found
        502: Provider rejected the resubmission
    """
    handle = await service.retry_task(user_id, task_id)
    return RetryTaskResponse(
        task_id=handle.task_id, retry_count=handle.retry_count, status=handle.status.value
    )


@router.get("/styles", response_model=list[StyleDTO])
async def list_styles() -> list[StyleDTO]:
    return [StyleDTO(id=s.id, label=s.label, prompt=s.prompt) for s in STYLE_TEMPLATES]


@router.post("/upload", response_model=UploadResponse)
async def upload_photo(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    service: GenerationService = Depends(get_generation_service),
) -> UploadResponse:
    """Store a pet photo under the caller's originals folder.

    HTTP Status Codes:
        200: Stored; url is usable as image_url for /api/generation/create
        400: Empty file, larger than 10 MB, or not jpeg/png/webp/gif
        401: No session
        502: Blob store rejected the upload
    """
    # Read at most one byte past the cap
    data = await file.read(MAX_UPLOAD_BYTES + 1)
    url = await service.upload_original(
        user_id=user_id,
        filename=file.filename or "",
        content_type=file.content_type,
        data=data,
    )
    return UploadResponse(url=url)
