"""Telegram webhook endpoints: inbound updates and webhook registration."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from signalbot.api.schemas import APIResponse, TelegramUpdate, WebhookSetupRequest
from signalbot.exceptions import DeliveryError

log = structlog.get_logger(__name__)

# Inbound updates are mounted at the root, management routes under /api/v1.
router = APIRouter()
management_router = APIRouter()


def _respond(status_code: int, **fields) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=APIResponse(**fields).model_dump())


@router.post("/webhook/telegram")
async def telegram_webhook(request: Request) -> JSONResponse:
    """Hand one Telegram update to the command dispatcher."""
    try:
        update = TelegramUpdate.model_validate(json.loads(await request.body()))
    except (ValueError, ValidationError) as e:
        log.warning("webhook_payload_invalid", error=str(e))
        return _respond(400, success=False, message="Invalid webhook payload", error=str(e))

    if update.message is None:
        return _respond(200, success=True, message="No message in webhook")

    dispatcher = request.app.state.dispatcher
    command = await dispatcher.dispatch(str(update.message.chat.id), update.message.text)
    return _respond(
        200,
        success=True,
        message="Webhook processed successfully",
        data={"command": command.value},
    )


@management_router.post("/webhook/setup")
async def setup_webhook(request: Request) -> JSONResponse:
    """Register the webhook URL from the body, or the configured one."""
    body = await request.body()
    try:
        payload = (
            WebhookSetupRequest.model_validate(json.loads(body))
            if body
            else WebhookSetupRequest()
        )
    except (ValueError, ValidationError) as e:
        return _respond(400, success=False, message="Invalid request body", error=str(e))

    webhook_url = payload.webhook_url or request.app.state.settings.telegram.webhook_url
    if not webhook_url:
        return _respond(
            400,
            success=False,
            message="Webhook URL is required",
            error="webhook_url not provided and TELEGRAM_WEBHOOK_URL not set",
        )

    try:
        await request.app.state.telegram.setup_webhook(webhook_url)
    except DeliveryError as e:
        log.error("webhook_setup_failed", error=str(e))
        return _respond(500, success=False, message="Failed to set up webhook", error=str(e))

    return _respond(
        200,
        success=True,
        message="Webhook set up successfully",
        data={"webhook_url": webhook_url},
    )


@management_router.delete("/webhook")
async def delete_webhook(request: Request) -> JSONResponse:
    try:
        await request.app.state.telegram.delete_webhook()
    except DeliveryError as e:
        log.error("webhook_delete_failed", error=str(e))
        return _respond(500, success=False, message="Failed to delete webhook", error=str(e))
    return _respond(200, success=True, message="Webhook deleted successfully")
