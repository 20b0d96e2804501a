"""Database-backed conversation store."""

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.database import (
    Conversation,
    Lead,
    LeadStatus,
    Message,
    MessageSender,
    Practice,
)
from .models import StatePayload
from .state import ConversationStatus, can_transition, is_terminal_state

logger = logging.getLogger(__name__)


class ConversationStore:
    """
    Reads and writes conversations, their leads and transcripts.

    Lookup order for an inbound text:
        1. the caller's open conversation
        2. a booked/callback conversation that ended inside the sticky window
        3. the caller's latest opted-out conversation
        4. otherwise a new conversation (with its lead) is created

    All methods work inside the caller's session; committing is up to the
    caller.
    """

    def __init__(self, sticky_window_hours: Optional[int] = None):
        """Initialize store.

        Args:
            sticky_window_hours: How long ended booked/callback conversations
                keep answering (defaults to settings)
        """
        hours = (
            sticky_window_hours
            if sticky_window_hours is not None
            else settings.sticky_window_hours
        )
        self._sticky_window = timedelta(hours=hours)

    async def get_practice(self, db: AsyncSession, tenant_id: UUID) -> Optional[Practice]:
        """Load a practice by id."""
        return await db.get(Practice, tenant_id)

    async def find_open(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        caller_phone: str,
    ) -> Optional[Conversation]:
        """Get the caller's open conversation, if any."""
        result = await db.execute(
            select(Conversation).where(
                Conversation.tenant_id == tenant_id,
                Conversation.caller_phone == caller_phone,
                Conversation.ended_at.is_(None),
            )
        )
        return result.scalars().first()

    async def find_sticky(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        caller_phone: str,
        now: datetime,
    ) -> Optional[Conversation]:
        """Get a booked/callback conversation that ended recently."""
        result = await db.execute(
            select(Conversation)
            .where(
                Conversation.tenant_id == tenant_id,
                Conversation.caller_phone == caller_phone,
                Conversation.status.in_([
                    ConversationStatus.APPOINTMENT_BOOKED,
                    ConversationStatus.CALLBACK_REQUESTED,
                ]),
                Conversation.ended_at >= now - self._sticky_window,
            )
            .order_by(Conversation.ended_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def find_opted_out(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        caller_phone: str,
    ) -> Optional[Conversation]:
        """Get the caller's most recent opted-out conversation."""
        result = await db.execute(
            select(Conversation)
            .where(
                Conversation.tenant_id == tenant_id,
                Conversation.caller_phone == caller_phone,
                Conversation.status == ConversationStatus.COMPLETED,
            )
            .order_by(Conversation.ended_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def find_latest(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        caller_phone: str,
    ) -> Optional[Conversation]:
        """Get the caller's most recently active conversation in any status."""
        result = await db.execute(
            select(Conversation)
            .where(
                Conversation.tenant_id == tenant_id,
                Conversation.caller_phone == caller_phone,
            )
            .order_by(Conversation.last_activity_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def find_current(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        caller_phone: str,
        now: datetime,
    ) -> Optional[Conversation]:
        """Find the conversation an inbound text belongs to (None means start one)."""
        conversation = await self.find_open(db, tenant_id, caller_phone)
        if conversation is None:
            conversation = await self.find_sticky(db, tenant_id, caller_phone, now)
        if conversation is None:
            conversation = await self.find_opted_out(db, tenant_id, caller_phone)
        return conversation

    async def create(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        caller_phone: str,
        now: datetime,
        source: str = "sms",
        direction: str = "inbound",
    ) -> Conversation:
        """
        Start a conversation and its lead.

        Args:
            db: Database session
            tenant_id: Practice id
            caller_phone: Normalized caller number
            now: Creation time (UTC)
            source: Lead source ("sms" or "missed_call")
            direction: "inbound" for caller-started, "outbound" for follow-ups

        Returns:
            The new conversation at AWAITING_INITIAL_CHOICE
        """
        conversation = Conversation(
            tenant_id=tenant_id,
            caller_phone=caller_phone,
            channel="sms",
            direction=direction,
            status=ConversationStatus.AWAITING_INITIAL_CHOICE,
            state_payload=StatePayload().to_dict(),
            created_at=now,
            last_activity_at=now,
        )
        db.add(conversation)
        await db.flush()

        lead = Lead(
            tenant_id=tenant_id,
            conversation_id=conversation.id,
            phone=caller_phone,
            source=source,
            status=LeadStatus.CONTACTED if direction == "outbound" else LeadStatus.NEW,
        )
        db.add(lead)
        await db.flush()

        logger.info(f"Conversation created: {conversation.id} (source={source})")
        return conversation

    async def lead_for(self, db: AsyncSession, conversation: Conversation) -> Optional[Lead]:
        """Get the lead linked to a conversation."""
        result = await db.execute(
            select(Lead).where(Lead.conversation_id == conversation.id)
        )
        return result.scalars().first()

    def payload_of(self, conversation: Conversation) -> StatePayload:
        """Decode the stored state payload."""
        return StatePayload.from_dict(conversation.state_payload)

    def apply(
        self,
        conversation: Conversation,
        status: ConversationStatus,
        payload: StatePayload,
        now: datetime,
        max_page_size: Optional[int] = None,
    ) -> None:
        """
        Write a new status and payload onto a conversation.

        Terminal statuses set ended_at; any other status reopens the
        conversation.

        Raises:
            ValueError: If the transition or payload shape is invalid
        """
        if not can_transition(conversation.status, status):
            raise ValueError(
                f"Invalid transition {conversation.status.value} -> {status.value}"
            )
        payload.validate_for(status, max_page_size or settings.slot_page_size)

        if status != conversation.status:
            logger.info(
                f"Conversation {conversation.id}: "
                f"{conversation.status.value} -> {status.value}"
            )

        conversation.status = status
        conversation.state_payload = payload.to_dict()
        conversation.last_activity_at = now
        if is_terminal_state(status):
            conversation.ended_at = conversation.ended_at or now
        else:
            conversation.ended_at = None

    async def record_message(
        self,
        db: AsyncSession,
        conversation_id: UUID,
        sender: MessageSender,
        content: str,
        now: datetime,
        provider_message_id: Optional[str] = None,
    ) -> Message:
        """Append a text to the transcript."""
        message = Message(
            conversation_id=conversation_id,
            sender=sender,
            content=content,
            provider_message_id=provider_message_id,
            created_at=now,
        )
        db.add(message)
        await db.flush()
        return message


# Singleton
_store: Optional[ConversationStore] = None


def get_conversation_store() -> ConversationStore:
    """Get singleton ConversationStore."""
    global _store
    if _store is None:
        _store = ConversationStore()
    return _store
