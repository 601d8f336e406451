"""Tests for the Salesforce and WhatsApp clients (httpx mock transport, patched Twilio SDK)."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
from twilio.base.exceptions import TwilioException

from src.crm.salesforce import LeadCreationError, SalesforceClient, lead_record
from src.schemas.lead import LeadFields
from src.whatsapp.client import CloudApiWhatsAppClient, DeliveryError, TwilioWhatsAppClient

FIELDS = LeadFields(
    first_name="John",
    last_name="Doe",
    email="john@x.com",
    phone="555123",
    requirement="need a website",
    whatsapp_number="15551234567",
)


def make_salesforce(handler) -> SalesforceClient:
    return SalesforceClient(
        login_url="https://login.example.com/",
        client_id="cid",
        client_secret="secret",
        username="bot@example.com",
        password="pw",
        security_token="tok",
        http=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def token_response() -> httpx.Response:
    return httpx.Response(
        200,
        json={"access_token": "AT", "instance_url": "https://acme.my.salesforce.com"},
    )


class TestLeadRecord:
    def test_mapping(self):
        record = lead_record(FIELDS)
        assert record["FirstName"] == "John"
        assert record["LastName"] == "Doe"
        assert record["Company"] == "John Doe"
        assert record["Description"] == "need a website"
        assert record["LeadSource"] == "WhatsApp"
        assert record["Status"] == "Open - Not Contacted"
        assert record["WhatsApp_Number__c"] == "15551234567"
        assert record["WhatsApp_Conversation_ID__c"] == "15551234567"


class TestSalesforceClient:
    @pytest.mark.asyncio
    async def test_login_then_create(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path == "/services/oauth2/token":
                return token_response()
            return httpx.Response(201, json={"id": "00Q5g000001", "success": True, "errors": []})

        client = make_salesforce(handler)
        lead_id = await client.create_lead(FIELDS)

        assert lead_id == "00Q5g000001"
        assert client.connected
        login, create = requests
        assert b"password=pwtok" in login.content
        assert b"grant_type=password" in login.content
        assert str(create.url) == "https://acme.my.salesforce.com/services/data/v59.0/sobjects/Lead/"
        assert create.headers["Authorization"] == "Bearer AT"
        assert json.loads(create.content)["Company"] == "John Doe"

    @pytest.mark.asyncio
    async def test_reauthenticates_on_401(self):
        calls = {"login": 0, "create": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/services/oauth2/token":
                calls["login"] += 1
                return token_response()
            calls["create"] += 1
            if calls["create"] == 1:
                return httpx.Response(401, json=[{"errorCode": "INVALID_SESSION_ID"}])
            return httpx.Response(201, json={"id": "00Q2", "success": True})

        client = make_salesforce(handler)
        assert await client.create_lead(FIELDS) == "00Q2"
        assert calls == {"login": 2, "create": 2}

    @pytest.mark.asyncio
    async def test_login_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant"})

        client = make_salesforce(handler)
        with pytest.raises(LeadCreationError):
            await client.create_lead(FIELDS)
        assert not client.connected

    @pytest.mark.asyncio
    async def test_validation_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/services/oauth2/token":
                return token_response()
            return httpx.Response(400, json=[{"errorCode": "INVALID_EMAIL_ADDRESS"}])

        with pytest.raises(LeadCreationError, match="400"):
            await make_salesforce(handler).create_lead(FIELDS)

    @pytest.mark.asyncio
    async def test_unsuccessful_result(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/services/oauth2/token":
                return token_response()
            return httpx.Response(201, json={"id": None, "success": False, "errors": ["dup"]})

        with pytest.raises(LeadCreationError):
            await make_salesforce(handler).create_lead(FIELDS)

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/services/oauth2/token":
                return token_response()
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(LeadCreationError):
            await make_salesforce(handler).create_lead(FIELDS)


class TestCloudApiWhatsAppClient:
    @pytest.mark.asyncio
    async def test_send(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"messages": [{"id": "wamid.ABC"}]})

        client = CloudApiWhatsAppClient(
            token="T",
            phone_number_id="123",
            http=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        message_id = await client.send_message("15551234567", "Hello")

        assert message_id == "wamid.ABC"
        request = seen[0]
        assert str(request.url) == "https://graph.facebook.com/v21.0/123/messages"
        assert request.headers["Authorization"] == "Bearer T"
        assert json.loads(request.content) == {
            "messaging_product": "whatsapp",
            "to": "15551234567",
            "type": "text",
            "text": {"body": "Hello"},
        }

    @pytest.mark.asyncio
    async def test_send_rejected(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "Invalid OAuth access token"}})

        client = CloudApiWhatsAppClient(
            token="bad",
            phone_number_id="123",
            http=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        with pytest.raises(DeliveryError, match="401"):
            await client.send_message("15551234567", "Hello")

    @pytest.mark.asyncio
    async def test_send_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = CloudApiWhatsAppClient(
            token="T",
            phone_number_id="123",
            http=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        with pytest.raises(DeliveryError):
            await client.send_message("15551234567", "Hello")


class TestTwilioWhatsAppClient:
    @pytest.mark.asyncio
    async def test_send(self):
        with patch("twilio.rest.Client") as twilio_cls:
            twilio_cls.return_value.messages.create.return_value = MagicMock(sid="SM123")
            client = TwilioWhatsAppClient("AC1", "token", "+14155238886")

            sid = await client.send_message("15551234567", "Hello")

        assert sid == "SM123"
        twilio_cls.assert_called_once_with("AC1", "token")
        twilio_cls.return_value.messages.create.assert_called_once_with(
            body="Hello",
            from_="whatsapp:+14155238886",
            to="whatsapp:+15551234567",
        )

    @pytest.mark.asyncio
    async def test_send_rejected(self):
        with patch("twilio.rest.Client") as twilio_cls:
            twilio_cls.return_value.messages.create.side_effect = TwilioException(
                "Unable to create record"
            )
            client = TwilioWhatsAppClient("AC1", "token", "+14155238886")

            with pytest.raises(DeliveryError, match="Unable to create record"):
                await client.send_message("15551234567", "Hello")


class TestClientFactories:
    def test_salesforce_not_configured(self, monkeypatch):
        from src.crm import salesforce

        monkeypatch.setattr(salesforce, "_client", None)
        monkeypatch.setattr(salesforce.settings, "salesforce_username", "")
        assert salesforce.get_salesforce_client() is None

    def test_salesforce_singleton(self, monkeypatch):
        from src.crm import salesforce

        monkeypatch.setattr(salesforce, "_client", None)
        monkeypatch.setattr(salesforce.settings, "salesforce_username", "bot@example.com")
        monkeypatch.setattr(salesforce.settings, "salesforce_client_id", "cid")

        first = salesforce.get_salesforce_client()
        assert isinstance(first, SalesforceClient)
        assert salesforce.get_salesforce_client() is first

    def test_cloud_api_not_configured(self, monkeypatch):
        from src.whatsapp import client

        monkeypatch.setattr(client, "_client", None)
        monkeypatch.setattr(client.settings, "whatsapp_provider", "cloud_api")
        monkeypatch.setattr(client.settings, "whatsapp_token", "")
        assert client.get_whatsapp_client() is None

    def test_cloud_api_selected(self, monkeypatch):
        from src.whatsapp import client

        monkeypatch.setattr(client, "_client", None)
        monkeypatch.setattr(client.settings, "whatsapp_provider", "cloud_api")
        monkeypatch.setattr(client.settings, "whatsapp_token", "T")
        monkeypatch.setattr(client.settings, "whatsapp_phone_number_id", "123")

        sender = client.get_whatsapp_client()
        assert isinstance(sender, CloudApiWhatsAppClient)
        assert sender.url.endswith("/123/messages")

    def test_twilio_not_configured(self, monkeypatch):
        from src.whatsapp import client

        monkeypatch.setattr(client, "_client", None)
        monkeypatch.setattr(client.settings, "whatsapp_provider", "twilio")
        monkeypatch.setattr(client.settings, "twilio_account_sid", "")
        assert client.get_whatsapp_client() is None
