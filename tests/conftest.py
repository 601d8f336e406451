"""Test fixtures and configuration."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from src.conversation.engine import ConversationCoordinator
from src.conversation.handoff import InMemoryHandoffRegistry
from src.conversation.history import InMemoryHistoryLedger
from src.conversation.session import InMemoryConversationStore
from src.schemas.conversation import Conversation, LeadData, Stage

SENDER = "15551234567"


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.delete = AsyncMock()
    redis.sadd = AsyncMock(return_value=1)
    redis.srem = AsyncMock(return_value=1)
    redis.scard = AsyncMock(return_value=0)
    redis.sismember = AsyncMock(return_value=False)
    redis.rpush = AsyncMock(return_value=1)
    redis.lrange = AsyncMock(return_value=[])
    return redis


@pytest.fixture
def whatsapp():
    """Mock outbound WhatsApp sender."""
    client = MagicMock()
    client.send_message = AsyncMock(return_value="wamid.1")
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def crm():
    """Mock Salesforce client that always creates lead 00Q000000000001."""
    client = MagicMock()
    client.create_lead = AsyncMock(return_value="00Q000000000001")
    client.connected = True
    client.connect = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def coordinator(whatsapp, crm):
    """Coordinator over in-memory stores with mocked collaborators."""
    return ConversationCoordinator(
        conversations=InMemoryConversationStore(),
        history=InMemoryHistoryLedger(),
        handoff=InMemoryHandoffRegistry(),
        sender=whatsapp,
        crm=crm,
        collaborator_timeout=1.0,
        reset_after_seconds=0,
    )


@pytest.fixture
def at_requirement():
    """A conversation that only needs the requirement."""
    return Conversation(
        stage=Stage.ASKED_REQUIREMENT,
        data=LeadData(
            first_name="John",
            last_name="Doe",
            email="john@x.com",
            phone="555123",
        ),
    )
