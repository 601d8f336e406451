"""Salesforce client — creates Lead records through the REST API."""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

from src.config import settings
from src.schemas.lead import LeadFields

logger = structlog.get_logger()

# Lazy singleton
_client: Optional["SalesforceClient"] = None

LEAD_SOURCE = "WhatsApp"
LEAD_STATUS = "Open - Not Contacted"


class LeadCreationError(Exception):
    """Raised when Salesforce did not create the lead."""


def lead_record(fields: LeadFields) -> dict:
    """Map collected fields onto the Salesforce Lead sObject."""
    return {
        "FirstName": fields.first_name,
        "LastName": fields.last_name,
        "Company": fields.company,
        "Email": fields.email,
        "Phone": fields.phone,
        "Description": fields.requirement,
        "LeadSource": LEAD_SOURCE,
        "Status": LEAD_STATUS,
        "WhatsApp_Number__c": fields.whatsapp_number,
        "WhatsApp_Message__c": fields.requirement,
        "WhatsApp_Conversation_ID__c": fields.whatsapp_number,
    }


class SalesforceClient:
    """OAuth2 username-password flow + sObject create."""

    def __init__(
        self,
        login_url: str,
        client_id: str,
        client_secret: str,
        username: str,
        password: str,
        security_token: str = "",
        api_version: str = "v59.0",
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.login_url = login_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.username = username
        self.password = password
        self.security_token = security_token
        self.api_version = api_version
        self.http = http or httpx.AsyncClient(timeout=15)

        self._access_token: Optional[str] = None
        self._instance_url: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self._access_token is not None

    async def connect(self) -> None:
        """Fetch an access token. Raises LeadCreationError on failure."""
        logger.info("salesforce_connecting", login_url=self.login_url)
        try:
            response = await self.http.post(
                f"{self.login_url}/services/oauth2/token",
                data={
                    "grant_type": "password",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "username": self.username,
                    "password": self.password + self.security_token,
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            self._access_token = None
            logger.error("salesforce_connect_failed", error=str(e))
            raise LeadCreationError(f"Salesforce login failed: {e}") from e

        body = response.json()
        self._access_token = body["access_token"]
        self._instance_url = body["instance_url"].rstrip("/")
        logger.info("salesforce_connected", instance_url=self._instance_url)

    async def create_lead(self, fields: LeadFields) -> str:
        """Create a Lead and return its Salesforce id."""
        if not self.connected:
            await self.connect()

        response = await self._post_lead(fields)
        if response.status_code == 401:
            # Session expired, log in again once
            logger.info("salesforce_session_expired")
            await self.connect()
            response = await self._post_lead(fields)

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise LeadCreationError(
                f"{e.response.status_code}: {e.response.text[:200]}"
            ) from e

        result = response.json()
        if not result.get("success") or not result.get("id"):
            raise LeadCreationError(f"Lead not created: {result.get('errors')}")

        logger.info("salesforce_lead_created", lead_id=result["id"])
        return result["id"]

    async def _post_lead(self, fields: LeadFields) -> httpx.Response:
        url = f"{self._instance_url}/services/data/{self.api_version}/sobjects/Lead/"
        try:
            return await self.http.post(
                url,
                json=lead_record(fields),
                headers={"Authorization": f"Bearer {self._access_token}"},
            )
        except httpx.HTTPError as e:
            raise LeadCreationError(str(e) or type(e).__name__) from e

    async def aclose(self) -> None:
        await self.http.aclose()


def get_salesforce_client() -> Optional[SalesforceClient]:
    """Get or create the singleton Salesforce client.

    Returns None if Salesforce credentials are not configured.
    """
    global _client

    if _client is not None:
        return _client

    if not settings.salesforce_username or not settings.salesforce_client_id:
        logger.debug("salesforce_client_not_configured")
        return None

    _client = SalesforceClient(
        login_url=settings.salesforce_login_url,
        client_id=settings.salesforce_client_id,
        client_secret=settings.salesforce_client_secret,
        username=settings.salesforce_username,
        password=settings.salesforce_password,
        security_token=settings.salesforce_security_token,
        api_version=settings.salesforce_api_version,
    )
    return _client
