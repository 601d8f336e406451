"""Sales agent API — take over a chat, resume the bot, read history."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.api.deps import get_coordinator
from src.conversation.engine import ConversationCoordinator

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["agent"])


class SendMessageRequest(BaseModel):
    phoneNumber: Optional[str] = None
    message: Optional[str] = None


class ResumeBotRequest(BaseModel):
    phoneNumber: Optional[str] = None


@router.post("/send-message")
async def send_message(
    data: SendMessageRequest,
    coordinator: ConversationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """Send a message from the sales team; the bot goes silent for this sender."""
    if not data.phoneNumber or not data.message:
        return JSONResponse(
            {"success": False, "error": "Phone number and message are required"},
            status_code=400,
        )

    logger.info("agent_send_requested", phone_number=data.phoneNumber)
    result = await coordinator.handle_agent_override(data.phoneNumber, data.message)
    if not result.success:
        return JSONResponse(
            {"success": False, "error": result.error or "Failed to send message"},
            status_code=500,
        )
    return JSONResponse({"success": True, "message": result.message})


@router.post("/resume-bot")
async def resume_bot(
    data: ResumeBotRequest,
    coordinator: ConversationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """Hand the conversation back to the bot."""
    if not data.phoneNumber:
        return JSONResponse(
            {"success": False, "error": "Phone number is required"},
            status_code=400,
        )

    result = await coordinator.resume_bot(data.phoneNumber)
    if not result.success:
        return JSONResponse({"success": False, "error": result.error}, status_code=500)
    return JSONResponse({"success": True, "message": result.message})


@router.get("/conversation-history/{phone_number}")
async def conversation_history(
    phone_number: str,
    coordinator: ConversationCoordinator = Depends(get_coordinator),
) -> dict:
    """Full ordered message history for a sender (empty for unknown senders).

    Returns:
        {"success": true, "phoneNumber": str, "messageCount": int, "messages": [...]}
    """
    history = await coordinator.get_history(phone_number)
    logger.info(
        "history_fetched",
        sender_id=history.sender_id,
        message_count=history.message_count,
    )
    return {
        "success": True,
        "phoneNumber": history.sender_id,
        "messageCount": history.message_count,
        "messages": [
            {
                "sender": message.sender.value,
                "text": message.text,
                "timestamp": message.timestamp.isoformat(),
            }
            for message in history.messages
        ],
    }
