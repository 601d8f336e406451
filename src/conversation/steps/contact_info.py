"""Contact info steps — first name, last name, email and phone."""

from src.conversation.steps.base import BaseStep, StepResult
from src.schemas.conversation import Conversation, Stage

INVALID_EMAIL_TEXT = (
    "⚠️ That doesn't look like a valid email address. "
    "Please provide a valid email (e.g., name@example.com)"
)


def looks_like_email(text: str) -> bool:
    """Cheap shape check, not RFC validation: needs both '@' and '.'."""
    return "@" in text and "." in text


class FirstNameStep(BaseStep):
    def process(
        self, user_message: str, conversation: Conversation, sender_id: str
    ) -> StepResult:
        return StepResult(
            response_text=f"Nice to meet you, {user_message}! 😊\n\nWhat is your *last name*?",
            next_stage=Stage.ASKED_LAST_NAME,
            update_data={"first_name": user_message},
        )


class LastNameStep(BaseStep):
    def process(
        self, user_message: str, conversation: Conversation, sender_id: str
    ) -> StepResult:
        return StepResult(
            response_text="Great! What is your *email address*?",
            next_stage=Stage.ASKED_EMAIL,
            update_data={"last_name": user_message},
        )


class EmailStep(BaseStep):
    """Collect email; stays on this step until the text looks like one."""

    def process(
        self, user_message: str, conversation: Conversation, sender_id: str
    ) -> StepResult:
        if not looks_like_email(user_message):
            return StepResult(response_text=INVALID_EMAIL_TEXT)

        return StepResult(
            response_text=(
                "Perfect! What is your *phone number*?\n\n"
                "(You can share the same number you're messaging from)"
            ),
            next_stage=Stage.ASKED_PHONE,
            update_data={"email": user_message},
        )


class PhoneStep(BaseStep):
    """Phone is stored as typed; the WhatsApp number is attached separately."""

    def process(
        self, user_message: str, conversation: Conversation, sender_id: str
    ) -> StepResult:
        return StepResult(
            response_text=(
                "Almost done! 📝\n\n"
                "Please describe your *requirement* or tell us what you're looking for."
            ),
            next_stage=Stage.ASKED_REQUIREMENT,
            update_data={"phone": user_message},
        )
