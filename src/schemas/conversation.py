"""Conversation state schemas shared by the stores and the coordinator."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Stage(str, Enum):
    """FSM stages for the lead intake dialog.

    Order: initial → first name → last name → email → phone → requirement → completed.
    HANDOFF sits outside the order: a human agent owns the conversation.
    """

    INITIAL = "INITIAL"
    ASKED_FIRST_NAME = "ASKED_FIRST_NAME"
    ASKED_LAST_NAME = "ASKED_LAST_NAME"
    ASKED_EMAIL = "ASKED_EMAIL"
    ASKED_PHONE = "ASKED_PHONE"
    ASKED_REQUIREMENT = "ASKED_REQUIREMENT"
    COMPLETED = "COMPLETED"
    HANDOFF = "HANDOFF"


class LeadData(BaseModel):
    """Data collected during conversation, filled in stage order."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    requirement: Optional[str] = None
    whatsapp_number: Optional[str] = None


class Conversation(BaseModel):
    """Per-sender dialog state."""

    stage: Stage = Stage.INITIAL
    data: LeadData = Field(default_factory=LeadData)


class MessageSender(str, Enum):
    CUSTOMER = "customer"
    BOT = "bot"
    SALES = "sales"


class MessageRecord(BaseModel):
    """One history entry. Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    sender: MessageSender
    text: str
    timestamp: datetime = Field(default_factory=utcnow)


class InboundEvent(BaseModel):
    """Already-parsed webhook delivery."""

    sender_id: str
    text: Optional[str] = None
    received_at: datetime = Field(default_factory=utcnow)


class HistoryResponse(BaseModel):
    sender_id: str
    message_count: int
    messages: list[MessageRecord] = []


class StatusSnapshot(BaseModel):
    active_conversations: int = 0
    stored_histories: int = 0
    active_handoffs: int = 0


class OperationResult(BaseModel):
    """Structured result for operational (agent-facing) calls."""

    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


class InboundOutcome(BaseModel):
    """What the coordinator did with one inbound event."""

    sender_id: str
    dropped: bool = False
    silenced: bool = False  # recorded but not answered (handoff)
    reply: Optional[str] = None
    stage: Optional[Stage] = None
    lead_id: Optional[str] = None
    delivered: Optional[bool] = None  # None = nothing to send
    error: Optional[str] = None
