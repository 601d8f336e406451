"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from src.api.v1.agent import router as agent_router
from src.api.v1.health import router as health_router
from src.api.webhooks.whatsapp import router as whatsapp_router
from src.config import settings
from src.conversation.engine import ConversationCoordinator
from src.conversation.handoff import InMemoryHandoffRegistry, RedisHandoffRegistry
from src.conversation.history import InMemoryHistoryLedger, RedisHistoryLedger
from src.conversation.session import InMemoryConversationStore, RedisConversationStore
from src.crm.salesforce import LeadCreationError, get_salesforce_client
from src.redis_client import close_redis, get_redis_client
from src.whatsapp.client import get_whatsapp_client

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.dev.ConsoleRenderer() if settings.environment == "development"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.log_level.upper(), logging.INFO)
    ),
)

logger = structlog.get_logger()


def build_coordinator() -> ConversationCoordinator:
    """Wire stores and collaborators from settings."""
    if settings.store_backend == "redis":
        redis = get_redis_client()
        conversations = RedisConversationStore(redis)
        history = RedisHistoryLedger(redis)
        handoff = RedisHandoffRegistry(redis)
    else:
        conversations = InMemoryConversationStore()
        history = InMemoryHistoryLedger()
        handoff = InMemoryHandoffRegistry()

    return ConversationCoordinator(
        conversations=conversations,
        history=history,
        handoff=handoff,
        sender=get_whatsapp_client(),
        crm=get_salesforce_client(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info(
        "app_starting",
        environment=settings.environment,
        store_backend=settings.store_backend,
        whatsapp_provider=settings.whatsapp_provider,
    )
    if getattr(app.state, "coordinator", None) is None:
        app.state.coordinator = build_coordinator()
    coordinator: ConversationCoordinator = app.state.coordinator

    if coordinator.crm is not None:
        try:
            await coordinator.crm.connect()
        except LeadCreationError as e:
            # Lead creation logs in again on first use
            logger.warning("salesforce_startup_connect_failed", error=str(e))

    yield

    logger.info("app_shutting_down")
    await coordinator.shutdown()
    if coordinator.sender is not None:
        await coordinator.sender.aclose()
    if coordinator.crm is not None:
        await coordinator.crm.aclose()
    if settings.store_backend == "redis":
        await close_redis()


app = FastAPI(
    title="WhatsApp Lead Bot API",
    description="WhatsApp intake bot that turns chats into Salesforce leads",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(whatsapp_router)
app.include_router(agent_router)
app.include_router(health_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "WhatsApp Lead Bot API",
        "version": "0.1.0",
        "status": "running",
    }
