"""Lead schemas for the CRM collaborator."""

from typing import Optional

from pydantic import BaseModel, computed_field

from src.schemas.conversation import LeadData


class LeadFields(BaseModel):
    """Payload handed to the CRM when the dialog completes."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    requirement: Optional[str] = None
    whatsapp_number: Optional[str] = None

    @computed_field  # type: ignore[misc]
    @property
    def company(self) -> str:
        """Leads are individuals, so the company is the full name."""
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def from_data(cls, data: LeadData) -> "LeadFields":
        return cls(**data.model_dump())
