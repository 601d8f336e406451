"""Terminal steps — completed lead and human handoff."""

from src.conversation.steps.base import BaseStep, StepResult
from src.schemas.conversation import Conversation

RESTART_COMMANDS = ("restart", "start")

ALREADY_SUBMITTED_TEXT = (
    "Your inquiry has already been submitted. Our team will reach out soon!\n\n"
    "If you have a new inquiry, type 'restart'."
)


class CompletedStep(BaseStep):
    """Lead already submitted; only a restart command reopens the dialog."""

    def process(
        self, user_message: str, conversation: Conversation, sender_id: str
    ) -> StepResult:
        if user_message.strip().lower() in RESTART_COMMANDS:
            return StepResult(restart=True)
        return StepResult(response_text=ALREADY_SUBMITTED_TEXT)


class HandoffStep(BaseStep):
    """A human owns this conversation — never reply."""

    def process(
        self, user_message: str, conversation: Conversation, sender_id: str
    ) -> StepResult:
        return StepResult()
