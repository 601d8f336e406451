"""Greeting step — first bot response, asks for the first name."""

from src.conversation.steps.base import BaseStep, StepResult
from src.schemas.conversation import Conversation, Stage

GREETING_TEXT = (
    "👋 Hello! Welcome to our business!\n\n"
    "I'd be happy to help you. Let me collect some information.\n\n"
    "What is your *first name*?"
)


class GreetingStep(BaseStep):
    """Handles the first message of a conversation (its text is ignored)."""

    def process(
        self, user_message: str, conversation: Conversation, sender_id: str
    ) -> StepResult:
        return StepResult(
            response_text=GREETING_TEXT,
            next_stage=Stage.ASKED_FIRST_NAME,
        )
