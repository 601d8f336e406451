"""Conversation Coordinator — the only mutator of per-sender state.

Wraps every operation for a sender in that sender's lock, runs the pure
dialogue engine, executes its effects against the CRM, records every
message in the history ledger, and sends replies through WhatsApp.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

import structlog

from src.config import settings
from src.conversation.dialogue import apply_lead_outcome, transition
from src.conversation.handoff import HandoffRegistry, InMemoryHandoffRegistry
from src.conversation.history import HistoryLedger, InMemoryHistoryLedger
from src.conversation.identity import normalize_sender_id
from src.conversation.locks import SenderLocks
from src.conversation.session import ConversationStore, InMemoryConversationStore
from src.crm.salesforce import LeadCreationError, SalesforceClient
from src.schemas.conversation import (
    Conversation,
    HistoryResponse,
    InboundOutcome,
    MessageRecord,
    MessageSender,
    OperationResult,
    Stage,
    StatusSnapshot,
)
from src.schemas.lead import LeadFields
from src.whatsapp.client import DeliveryError, MessageSender as WhatsAppSender

logger = structlog.get_logger()


class ConversationCoordinator:
    """Main orchestrator for the lead intake dialog."""

    def __init__(
        self,
        conversations: Optional[ConversationStore] = None,
        history: Optional[HistoryLedger] = None,
        handoff: Optional[HandoffRegistry] = None,
        sender: Optional[WhatsAppSender] = None,
        crm: Optional[SalesforceClient] = None,
        collaborator_timeout: Optional[float] = None,
        reset_after_seconds: Optional[float] = None,
    ):
        self.conversations = conversations or InMemoryConversationStore()
        self.history = history or InMemoryHistoryLedger()
        self.handoff = handoff or InMemoryHandoffRegistry()
        self.sender = sender
        self.crm = crm
        self.collaborator_timeout = (
            collaborator_timeout
            if collaborator_timeout is not None
            else settings.collaborator_timeout_seconds
        )
        self.reset_after_seconds = (
            reset_after_seconds
            if reset_after_seconds is not None
            else settings.completed_reset_seconds
        )
        self.locks = SenderLocks()
        self._reset_tasks: dict[str, asyncio.Task] = {}

    # ─── Inbound customer message ────────────────────────────────────

    async def handle_inbound(
        self,
        sender_id: str,
        text: Optional[str],
        received_at: Optional[datetime] = None,
    ) -> InboundOutcome:
        """Process one inbound customer message."""
        key = normalize_sender_id(sender_id)
        message_text = (text or "").strip()
        if not key or not message_text:
            logger.warning(
                "inbound_event_dropped",
                sender_id=sender_id,
                has_text=bool(message_text),
            )
            return InboundOutcome(sender_id=key, dropped=True)

        async with self.locks.lock(key):
            self._cancel_reset(key)
            return await self._handle_inbound_locked(key, message_text, received_at)

    async def _handle_inbound_locked(
        self, key: str, text: str, received_at: Optional[datetime]
    ) -> InboundOutcome:
        record = MessageRecord(sender=MessageSender.CUSTOMER, text=text)
        if received_at is not None:
            record = MessageRecord(
                sender=MessageSender.CUSTOMER, text=text, timestamp=received_at
            )
        await self.history.append(key, record)

        # ── Human mode: message recorded, no reply ──
        if await self.handoff.is_active(key):
            logger.info("message_silenced_handoff", sender_id=key)
            conversation = await self.conversations.get(key)
            return InboundOutcome(
                sender_id=key,
                silenced=True,
                stage=conversation.stage if conversation else None,
            )

        conversation = await self.conversations.get(key) or Conversation()
        stage_before = conversation.stage

        result = transition(conversation, text, key)
        lead_id: Optional[str] = None
        if result.effect is not None:
            lead_id = await self._create_lead(key, result.effect.fields)
            result = apply_lead_outcome(result.conversation, lead_id)

        # Commit order: state → history → send
        await self.conversations.save(key, result.conversation)
        outcome = InboundOutcome(
            sender_id=key,
            reply=result.reply,
            stage=result.conversation.stage,
            lead_id=lead_id,
        )

        if result.reply is not None:
            await self.history.append(
                key, MessageRecord(sender=MessageSender.BOT, text=result.reply)
            )
            error = await self._send(key, result.reply)
            outcome.delivered = error is None
            outcome.error = error

        if result.conversation.stage == Stage.COMPLETED:
            self._schedule_reset(key)

        logger.info(
            "message_processed",
            sender_id=key,
            stage_before=stage_before.value,
            stage=result.conversation.stage.value,
            replied=result.reply is not None,
            lead_id=lead_id,
        )
        return outcome

    # ─── Sales-side takeover ─────────────────────────────────────────

    async def handle_agent_override(self, sender_id: str, text: Optional[str]) -> OperationResult:
        """Send a human agent's message and switch the sender to handoff."""
        key = normalize_sender_id(sender_id)
        if not key or not (text or "").strip():
            return OperationResult(
                success=False, error="Phone number and message are required"
            )

        async with self.locks.lock(key):
            self._cancel_reset(key)

            error = await self._send(key, text)
            if error is not None:
                return OperationResult(success=False, error=error)

            await self.history.append(
                key, MessageRecord(sender=MessageSender.SALES, text=text)
            )
            await self.handoff.set(key, True)

            conversation = await self.conversations.get(key) or Conversation()
            await self.conversations.save(
                key, conversation.model_copy(update={"stage": Stage.HANDOFF})
            )

        logger.info("agent_override", sender_id=key)
        return OperationResult(success=True, message="Message sent successfully")

    async def resume_bot(self, sender_id: str) -> OperationResult:
        """Return the sender to the bot; the dialog counts as finished."""
        key = normalize_sender_id(sender_id)
        if not key:
            return OperationResult(success=False, error="Phone number is required")

        async with self.locks.lock(key):
            await self.handoff.set(key, False)
            conversation = await self.conversations.get(key) or Conversation()
            await self.conversations.save(
                key, conversation.model_copy(update={"stage": Stage.COMPLETED})
            )
            self._schedule_reset(key)

        logger.info("bot_resumed", sender_id=key)
        return OperationResult(success=True, message="Bot resumed")

    async def send_text(self, sender_id: str, text: str) -> Optional[str]:
        """Best-effort send outside the dialog; no state or history change.

        Returns an error string on failure, None on success.
        """
        key = normalize_sender_id(sender_id)
        if not key:
            return "Invalid sender id"
        return await self._send(key, text)

    # ─── Queries ─────────────────────────────────────────────────────

    async def get_history(self, sender_id: str) -> HistoryResponse:
        key = normalize_sender_id(sender_id)
        messages = await self.history.get(key) if key else []
        return HistoryResponse(
            sender_id=key,
            message_count=len(messages),
            messages=messages,
        )

    async def get_conversation(self, sender_id: str) -> Optional[Conversation]:
        key = normalize_sender_id(sender_id)
        return await self.conversations.get(key) if key else None

    async def status(self) -> StatusSnapshot:
        return StatusSnapshot(
            active_conversations=await self.conversations.count(),
            stored_histories=await self.history.count(),
            active_handoffs=await self.handoff.count_active(),
        )

    # ─── Collaborators ───────────────────────────────────────────────

    async def _create_lead(self, key: str, fields: LeadFields) -> Optional[str]:
        """Run the CRM call. Any failure returns None (stage stays retryable)."""
        if self.crm is None:
            logger.warning("crm_not_configured", sender_id=key)
            return None
        logger.info("save_lead_start", sender_id=key)
        try:
            lead_id = await asyncio.wait_for(
                self.crm.create_lead(fields), timeout=self.collaborator_timeout
            )
        except asyncio.TimeoutError:
            logger.error("save_lead_timeout", sender_id=key)
            return None
        except LeadCreationError as e:
            logger.error("save_lead_error", error=str(e), sender_id=key)
            return None
        except Exception as e:
            logger.error(
                "save_lead_unexpected_error",
                error=str(e),
                error_type=type(e).__name__,
                sender_id=key,
            )
            return None
        logger.info("lead_created", lead_id=lead_id, sender_id=key)
        return lead_id or None

    async def _send(self, key: str, text: str) -> Optional[str]:
        """Send one message. Returns an error string on failure, None on success."""
        if self.sender is None:
            logger.warning("whatsapp_client_not_configured", sender_id=key)
            return "WhatsApp client is not configured"
        try:
            await asyncio.wait_for(
                self.sender.send_message(key, text), timeout=self.collaborator_timeout
            )
        except asyncio.TimeoutError:
            logger.error("whatsapp_send_timeout", sender_id=key)
            return "Timed out sending message"
        except DeliveryError as e:
            logger.error("whatsapp_send_error", error=str(e), sender_id=key)
            return str(e) or "Failed to send message"
        except Exception as e:
            logger.error(
                "whatsapp_send_unexpected_error",
                error=str(e),
                error_type=type(e).__name__,
                sender_id=key,
            )
            return "Failed to send message"
        return None

    # ─── Post-completion reset ───────────────────────────────────────

    def _schedule_reset(self, key: str) -> None:
        if self.reset_after_seconds <= 0:
            return
        self._cancel_reset(key)
        self._reset_tasks[key] = asyncio.create_task(
            self._reset_later(key), name=f"conversation-reset:{key}"
        )

    def _cancel_reset(self, key: str) -> None:
        task = self._reset_tasks.pop(key, None)
        if task is not None and not task.done():
            task.cancel()
            logger.debug("conversation_reset_cancelled", sender_id=key)

    def has_pending_reset(self, sender_id: str) -> bool:
        task = self._reset_tasks.get(normalize_sender_id(sender_id))
        return task is not None and not task.done()

    async def _reset_later(self, key: str) -> None:
        await asyncio.sleep(self.reset_after_seconds)
        async with self.locks.lock(key):
            # A newer task may have replaced this one while we waited for the lock
            if self._reset_tasks.get(key) is not asyncio.current_task():
                return
            self._reset_tasks.pop(key, None)
            conversation = await self.conversations.get(key)
            if conversation is None or conversation.stage != Stage.COMPLETED:
                return
            if await self.handoff.is_active(key):
                return
            await self.conversations.delete(key)
        logger.info("conversation_reset", sender_id=key)

    async def shutdown(self) -> None:
        """Cancel pending resets (called on app shutdown)."""
        tasks = list(self._reset_tasks.values())
        self._reset_tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
