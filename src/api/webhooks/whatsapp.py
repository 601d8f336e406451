"""WhatsApp webhook endpoints — Cloud API (Meta) and Twilio deliveries."""

from __future__ import annotations

import traceback
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response
from fastapi.responses import PlainTextResponse

from src.api.deps import get_coordinator
from src.config import settings
from src.conversation.engine import ConversationCoordinator
from src.schemas.conversation import InboundEvent

logger = structlog.get_logger()

router = APIRouter()

FALLBACK_REPLY = "Sorry, something went wrong. Please try again."


def parse_cloud_api_payload(body: dict[str, Any]) -> list[InboundEvent]:
    """Extract inbound messages from a Cloud API webhook body.

    Meta sends:
      {"object": "whatsapp_business_account",
       "entry": [{"changes": [{"value": {"messages": [
           {"from": "15551234567", "timestamp": "1700000000",
            "type": "text", "text": {"body": "Hi"}}]}}]}]}

    Status callbacks (delivered/read) carry no "messages" and yield nothing.
    Non-text messages yield events without text, dropped later.
    """
    if body.get("object") != "whatsapp_business_account":
        return []

    events: list[InboundEvent] = []
    for entry in body.get("entry") or []:
        for change in entry.get("changes") or []:
            value = change.get("value") or {}
            for message in value.get("messages") or []:
                text = (message.get("text") or {}).get("body")
                events.append(
                    InboundEvent(
                        sender_id=str(message.get("from") or ""),
                        text=text,
                        received_at=_parse_timestamp(message.get("timestamp")),
                    )
                )
    return events


def _parse_timestamp(raw: Any) -> datetime:
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (TypeError, ValueError):
        return datetime.now(timezone.utc)


async def process_events(
    coordinator: ConversationCoordinator, events: list[InboundEvent]
) -> None:
    """Run events through the coordinator. Never raises."""
    for event in events:
        try:
            await coordinator.handle_inbound(
                event.sender_id, event.text, received_at=event.received_at
            )
        except Exception as e:
            logger.error(
                "handle_message_error",
                error=str(e),
                error_type=type(e).__name__,
                traceback=traceback.format_exc(),
                sender_id=event.sender_id,
            )
            await _send_fallback(coordinator, event.sender_id)


async def _send_fallback(coordinator: ConversationCoordinator, sender_id: str) -> None:
    error = await coordinator.send_text(sender_id, FALLBACK_REPLY)
    if error is not None:
        logger.error("fallback_send_error", error=error, sender_id=sender_id)


@router.get("/webhook")
async def verify_webhook(
    mode: str = Query("", alias="hub.mode"),
    token: str = Query("", alias="hub.verify_token"),
    challenge: str = Query("", alias="hub.challenge"),
) -> Response:
    """Cloud API subscription handshake."""
    if (
        mode == "subscribe"
        and settings.whatsapp_verify_token
        and token == settings.whatsapp_verify_token
    ):
        logger.info("webhook_verified")
        return PlainTextResponse(challenge)

    logger.warning("webhook_verification_failed", mode=mode)
    return Response(status_code=403)


@router.post("/webhook")
async def cloud_api_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    coordinator: ConversationCoordinator = Depends(get_coordinator),
) -> Response:
    """Receive Cloud API deliveries. Always 200 so Meta doesn't retry."""
    try:
        body = await request.json()
    except ValueError:
        logger.warning("webhook_invalid_json")
        return Response(status_code=200)

    events = parse_cloud_api_payload(body) if isinstance(body, dict) else []
    for event in events:
        logger.info(
            "whatsapp_message_received",
            provider="cloud_api",
            sender_id=event.sender_id,
            text_preview=(event.text or "")[:50],
        )

    if events:
        background_tasks.add_task(process_events, coordinator, events)
    return Response(status_code=200)


@router.post("/webhook/whatsapp")
async def twilio_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    coordinator: ConversationCoordinator = Depends(get_coordinator),
) -> Response:
    """Receive incoming WhatsApp message from Twilio.

    Twilio sends application/x-www-form-urlencoded with fields:
      - From: "whatsapp:+79123456789"
      - Body: message text
      - MessageSid, NumMedia, etc.

    Returns empty 200 OK (Twilio doesn't use the response body).
    """
    form = await request.form()

    from_raw = str(form.get("From", ""))
    body = str(form.get("Body", ""))

    logger.info(
        "whatsapp_message_received",
        provider="twilio",
        from_raw=from_raw,
        text_preview=body[:50],
        message_sid=form.get("MessageSid", ""),
    )

    event = InboundEvent(sender_id=from_raw.replace("whatsapp:", "").strip(), text=body)
    background_tasks.add_task(process_events, coordinator, [event])
    return Response(status_code=200)
