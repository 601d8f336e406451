"""FastAPI dependencies shared by the routers."""

from fastapi import Request

from src.conversation.engine import ConversationCoordinator


async def get_coordinator(request: Request) -> ConversationCoordinator:
    """The coordinator built in the app lifespan."""
    return request.app.state.coordinator
