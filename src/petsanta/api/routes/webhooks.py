"""Inbound webhook endpoints.

- POST /api/callback - Kie.ai task status delivery (generation finished or failed)
- POST /api/webhook - Stripe events (credits granted on checkout.session.completed)

The Stripe endpoint verifies the Stripe-Signature header against the raw body
before anything in the body is parsed.
"""

import json
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from petsanta.api.dependencies import get_generation_service, get_payment_service
from petsanta.services.billing.service import PaymentService
from petsanta.services.image_generation.service import GenerationService

logger = structlog.get_logger()
router = APIRouter(prefix="/api", tags=["webhooks"])


@router.post("/callback")
async def receive_generation_callback(
    request: Request,
    service: GenerationService = Depends(get_generation_service),
):
    """Receive a generation provider callback.

    HTTP Status Codes:
        200: Delivery applied (or ignored because the task is already terminal)
        400: Malformed payload or missing taskId
        404: No task matches the provider task id
    """
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body)
    except json.JSONDecodeError as e:
        logger.error("callback.invalid_json", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid JSON payload: {str(e)}",
        )
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Payload must be a JSON object"
        )

    task = await service.handle_callback(payload)
    logger.info("callback.processed", task_id=str(task.id), status=task.status.value)
    return {"success": True}


@router.post("/webhook")
async def receive_stripe_webhook(
    request: Request,
    stripe_signature: Annotated[str | None, Header(alias="Stripe-Signature")] = None,
    service: PaymentService = Depends(get_payment_service),
):
    """Receive a Stripe webhook event.

    HTTP Status Codes:
        200: Event processed, duplicate, or ignored type
        400: Invalid signature or missing metadata
    """
    raw_body = await request.body()
    return await service.handle_confirmation(raw_body, stripe_signature)
