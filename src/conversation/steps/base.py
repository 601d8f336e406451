"""Base class for conversation steps."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from src.schemas.conversation import Conversation, Stage
from src.schemas.lead import LeadFields


@dataclass(frozen=True)
class CreateLead:
    """Effect: ask the coordinator to create a CRM lead."""

    fields: LeadFields


@dataclass(frozen=True)
class StepResult:
    """Result of processing a conversation step."""

    response_text: Optional[str] = None  # None = no reply
    next_stage: Optional[Stage] = None  # None = stay on current stage
    update_data: Optional[dict] = None  # fields to update in LeadData
    effect: Optional[CreateLead] = None
    restart: bool = False  # re-enter the dialog from INITIAL


class BaseStep(ABC):
    """Abstract base class for all conversation steps.

    Steps are pure: they read the conversation and return a StepResult,
    the dialogue module applies it.
    """

    @abstractmethod
    def process(
        self, user_message: str, conversation: Conversation, sender_id: str
    ) -> StepResult:
        """Process user input and return response with next stage.

        Args:
            user_message: The message text from the user
            conversation: Current conversation state (read-only)
            sender_id: Canonical sender identity

        Returns:
            StepResult with response and optional state changes
        """
        ...
