"""Health and status endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from src.api.deps import get_coordinator
from src.conversation.engine import ConversationCoordinator

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    coordinator: ConversationCoordinator = Depends(get_coordinator),
) -> dict:
    """Health check with store counts."""
    status = await coordinator.status()
    crm = coordinator.crm
    return {
        "status": "running",
        "salesforce": "connected" if crm is not None and crm.connected else "disconnected",
        "activeConversations": status.active_conversations,
        "storedHistories": status.stored_histories,
        "handoffSessions": status.active_handoffs,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
