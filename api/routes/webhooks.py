"""
Webhook endpoints.

Register endpoints that receive matching events.
"""
from fastapi import APIRouter, Depends, status

from api.dependencies import get_engine
from api.responses import success
from core.application.dtos import RegisterWebhookRequest, UpdateWebhookRequest
from core.domain.enums import WebhookStatus
from orchestration import Engine


router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("", status_code=status.HTTP_201_CREATED, summary="Register webhook")
@router.post("/register", status_code=status.HTTP_201_CREATED, include_in_schema=False)
async def register_webhook(request: RegisterWebhookRequest, engine: Engine = Depends(get_engine)):
    """
    Register a webhook for event type patterns (exact, prefix.* or *).

    The secret is never returned; responses carry hasSecret.
    """
    webhook = await engine.webhooks.register(request.url, request.events, request.secret)
    return success(webhook=webhook.to_dict())


@router.get("", summary="List webhooks")
async def list_webhooks(engine: Engine = Depends(get_engine)):
    webhooks = await engine.webhooks.list()
    return success(webhooks=[webhook.to_dict() for webhook in webhooks])


@router.patch("/{webhook_id}", summary="Activate or deactivate webhook")
async def update_webhook(
    webhook_id: str,
    request: UpdateWebhookRequest,
    engine: Engine = Depends(get_engine),
):
    webhook = await engine.webhooks.set_status(webhook_id, WebhookStatus(request.status))
    return success(webhook=webhook.to_dict())


@router.get("/{webhook_id}/deliveries", summary="List deliveries")
async def list_deliveries(webhook_id: str, engine: Engine = Depends(get_engine)):
    deliveries = await engine.webhooks.deliveries(webhook_id)
    return success(deliveries=[record.to_dict() for record in deliveries])


@router.delete("/{webhook_id}", summary="Remove webhook")
async def unregister_webhook(webhook_id: str, engine: Engine = Depends(get_engine)):
    await engine.webhooks.unregister(webhook_id)
    return success(message=f"Webhook {webhook_id} removed", webhookId=webhook_id)
