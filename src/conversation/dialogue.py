"""Dialogue engine — pure stage transitions for the lead intake dialog.

No I/O and no hidden state: the same conversation and text always give
the same Transition. Side effects (lead creation) are returned as
effects for the coordinator to execute.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from src.conversation.steps.base import BaseStep, CreateLead, StepResult
from src.conversation.steps.completed import CompletedStep, HandoffStep
from src.conversation.steps.contact_info import (
    EmailStep,
    FirstNameStep,
    LastNameStep,
    PhoneStep,
)
from src.conversation.steps.greeting import GreetingStep
from src.conversation.steps.requirement import (
    LEAD_FAILED_TEXT,
    RequirementStep,
    lead_created_text,
)
from src.schemas.conversation import Conversation, Stage

# Step registry
STEP_HANDLERS: dict[Stage, BaseStep] = {
    Stage.INITIAL: GreetingStep(),
    Stage.ASKED_FIRST_NAME: FirstNameStep(),
    Stage.ASKED_LAST_NAME: LastNameStep(),
    Stage.ASKED_EMAIL: EmailStep(),
    Stage.ASKED_PHONE: PhoneStep(),
    Stage.ASKED_REQUIREMENT: RequirementStep(),
    Stage.COMPLETED: CompletedStep(),
    Stage.HANDOFF: HandoffStep(),
}

# Forward order of the scripted dialog; HANDOFF is outside it
STAGE_ORDER: tuple[Stage, ...] = (
    Stage.INITIAL,
    Stage.ASKED_FIRST_NAME,
    Stage.ASKED_LAST_NAME,
    Stage.ASKED_EMAIL,
    Stage.ASKED_PHONE,
    Stage.ASKED_REQUIREMENT,
    Stage.COMPLETED,
)


@dataclass(frozen=True)
class Transition:
    conversation: Conversation
    reply: Optional[str] = None
    effect: Optional[CreateLead] = None


def transition(conversation: Conversation, text: str, sender_id: str) -> Transition:
    """Run one inbound text through the step for the current stage."""
    handler = STEP_HANDLERS[conversation.stage]
    result = handler.process(text, conversation, sender_id)

    if result.restart:
        # Single re-entry point: a restarted dialog is a fresh INITIAL one
        return transition(Conversation(), text, sender_id)

    return Transition(
        conversation=_apply(conversation, result),
        reply=result.response_text,
        effect=result.effect,
    )


def apply_lead_outcome(conversation: Conversation, lead_id: Optional[str]) -> Transition:
    """Finish the requirement step once the CRM answered.

    A lead id completes the dialog; None keeps the sender on
    ASKED_REQUIREMENT so the next message retries.
    """
    if lead_id:
        completed = conversation.model_copy(update={"stage": Stage.COMPLETED}, deep=True)
        return Transition(
            conversation=completed,
            reply=lead_created_text(conversation.data.first_name, lead_id),
        )
    return Transition(
        conversation=conversation.model_copy(deep=True),
        reply=LEAD_FAILED_TEXT,
    )


def _apply(conversation: Conversation, result: StepResult) -> Conversation:
    """Build the next conversation without touching the input."""
    data = conversation.data
    if result.update_data:
        data = data.model_copy(update=result.update_data)
    return Conversation(
        stage=result.next_stage or conversation.stage,
        data=data.model_copy(),
    )
