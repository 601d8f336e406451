"""Requirement step — last question, hands the lead to the CRM."""

from typing import Optional

from src.conversation.steps.base import BaseStep, CreateLead, StepResult
from src.schemas.conversation import Conversation, LeadData
from src.schemas.lead import LeadFields

LEAD_FAILED_TEXT = (
    "❌ Sorry, there was an error saving your information. "
    "Please try again or contact us directly."
)


def lead_created_text(first_name: Optional[str], lead_id: str) -> str:
    return (
        f"✅ Thank you, {first_name}!\n\n"
        "We've received your inquiry. Our sales team will contact you shortly on WhatsApp.\n\n"
        f"📋 Your reference number: {lead_id}"
    )


class RequirementStep(BaseStep):
    """Store the requirement and request lead creation.

    The stage does not change here: the coordinator applies the CRM
    outcome afterwards (COMPLETED on success, same stage on failure).
    """

    def process(
        self, user_message: str, conversation: Conversation, sender_id: str
    ) -> StepResult:
        update = {"requirement": user_message, "whatsapp_number": sender_id}
        data = LeadData(**{**conversation.data.model_dump(), **update})
        return StepResult(
            update_data=update,
            effect=CreateLead(fields=LeadFields.from_data(data)),
        )
