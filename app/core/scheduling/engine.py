"""
Scheduling Engine - Main Orchestrator.

Runs one conversation turn per inbound text:

    load/create conversation -> record inbound -> classify -> flow
    -> execute action (calendar / booking / lead updates)
    -> persist state -> record outbound -> reply

Delivery of the reply is a separate step (`deliver`) so the webhook can
answer before the SMS provider does, and a failed send never unwinds the
committed turn.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.intelligence.intent.classifier import IntentClassifier, get_intent_classifier
from app.core.intelligence.intent.types import Intent, IntentResult
from app.core.intelligence.session.manager import ConversationStore, get_conversation_store
from app.core.intelligence.session.models import StatePayload
from app.core.intelligence.session.state import ConversationStatus
from app.core.scheduling.booking import (
    BookingOutcome,
    BookingTransaction,
    get_booking_transaction,
)
from app.core.scheduling.calendar import SlotCalendar
from app.core.scheduling.flow import (
    ActionType,
    ConversationFlow,
    FlowAction,
    expected_kind_for,
    get_conversation_flow,
)
from app.core.scheduling.response import ResponseGenerator, get_response_generator
from app.infra.notifications import (
    OutboundMessage,
    SendResult,
    SmsSender,
    get_sms_sender,
    normalize_phone_number,
)
from app.models.database import (
    Conversation,
    LeadPriority,
    LeadStatus,
    MessageSender,
    Practice,
)

logger = logging.getLogger(__name__)


class UnknownTenantError(LookupError):
    """Raised when an inbound text names a practice that does not exist."""


def practice_now(timezone_name: str) -> datetime:
    """Current wall-clock time in a practice's zone, as a naive datetime."""
    try:
        zone = ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {timezone_name!r}, using UTC")
        zone = ZoneInfo("UTC")
    return datetime.now(zone).replace(tzinfo=None)


@dataclass
class InboundMessage:
    """Normalized inbound text from a provider adapter."""

    from_phone: str
    tenant_id: UUID
    body: str
    provider_message_id: Optional[str] = None
    received_at: Optional[datetime] = None


@dataclass
class EngineResponse:
    """Response from scheduling engine."""

    message: str
    to_phone: str
    conversation_id: Optional[UUID] = None
    status: Optional[ConversationStatus] = None
    intent: Optional[Intent] = None
    action: Optional[ActionType] = None
    booking_outcome: Optional[BookingOutcome] = None
    from_number: Optional[str] = None

    def outbound(self) -> OutboundMessage:
        return OutboundMessage(
            to_phone=self.to_phone,
            body=self.message,
            from_number=self.from_number,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        result = {
            "message": self.message,
            "toPhone": self.to_phone,
        }

        if self.conversation_id:
            result["conversationId"] = str(self.conversation_id)
        if self.status:
            result["status"] = self.status.value
        if self.intent:
            result["intent"] = self.intent.value
        if self.action:
            result["action"] = self.action.value
        if self.booking_outcome:
            result["bookingOutcome"] = self.booking_outcome.value
        if self.from_number:
            result["fromNumber"] = self.from_number

        return result

    @classmethod
    def from_dict(cls, data: dict) -> "EngineResponse":
        """Rebuild from `to_dict` output (used for replayed webhooks)."""
        return cls(
            message=data["message"],
            to_phone=data["toPhone"],
            conversation_id=UUID(data["conversationId"]) if data.get("conversationId") else None,
            status=ConversationStatus(data["status"]) if data.get("status") else None,
            intent=Intent(data["intent"]) if data.get("intent") else None,
            action=ActionType(data["action"]) if data.get("action") else None,
            booking_outcome=(
                BookingOutcome(data["bookingOutcome"]) if data.get("bookingOutcome") else None
            ),
            from_number=data.get("fromNumber"),
        )


@dataclass
class _Turn:
    """Outcome of executing a flow action."""

    message: str
    next_state: ConversationStatus
    payload: StatePayload
    persist: bool = True  # False when the booking transaction already wrote state
    booking_outcome: Optional[BookingOutcome] = None


class SchedulingEngine:
    """
    Main orchestrator for missed-call conversations.

    Coordinates:
    - Conversation lookup and transcript
    - Intent classification
    - Conversation flow
    - Slot calendar and booking transaction
    - Lead updates and response text
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        store: Optional[ConversationStore] = None,
        classifier: Optional[IntentClassifier] = None,
        flow: Optional[ConversationFlow] = None,
        calendar: Optional[SlotCalendar] = None,
        booking: Optional[BookingTransaction] = None,
        responses: Optional[ResponseGenerator] = None,
        sender: Optional[SmsSender] = None,
        clock: Callable[[str], datetime] = practice_now,
        utcnow: Callable[[], datetime] = datetime.utcnow,
    ):
        """Initialize engine with optional dependencies.

        Args:
            session_factory: Callable returning a new AsyncSession
            store: Conversation store
            classifier: Intent classifier
            flow: Conversation flow manager
            calendar: Slot calendar
            booking: Booking transaction
            responses: Response generator
            sender: SMS sender used by `deliver`
            clock: Practice-local "now" for a timezone name
            utcnow: UTC "now" for audit timestamps
        """
        self._session_factory = session_factory
        self._store = store
        self._classifier = classifier
        self._flow = flow
        self._calendar = calendar
        self._booking = booking
        self._responses = responses
        self._sender = sender
        self._clock = clock
        self._utcnow = utcnow
        self._default_practice_name = get_settings().default_practice_name

    def _get_session_factory(self) -> Callable[[], AsyncSession]:
        """Get session factory."""
        if self._session_factory is None:
            from app.infra.database import async_session_factory

            self._session_factory = async_session_factory
        return self._session_factory

    def _get_store(self) -> ConversationStore:
        if self._store is None:
            self._store = get_conversation_store()
        return self._store

    def _get_classifier(self) -> IntentClassifier:
        if self._classifier is None:
            self._classifier = get_intent_classifier()
        return self._classifier

    def _get_flow(self) -> ConversationFlow:
        if self._flow is None:
            self._flow = get_conversation_flow()
        return self._flow

    def _get_calendar(self) -> SlotCalendar:
        if self._calendar is None:
            self._calendar = SlotCalendar()
        return self._calendar

    def _get_booking(self) -> BookingTransaction:
        if self._booking is None:
            self._booking = get_booking_transaction()
        return self._booking

    def _get_responses(self) -> ResponseGenerator:
        if self._responses is None:
            self._responses = get_response_generator()
        return self._responses

    def _get_sender(self) -> SmsSender:
        if self._sender is None:
            self._sender = get_sms_sender()
        return self._sender

    def _practice_name(self, practice: Practice) -> str:
        return practice.name or self._default_practice_name

    async def _load_practice(self, db: AsyncSession, tenant_id: UUID) -> Practice:
        practice = await self._get_store().get_practice(db, tenant_id)
        if practice is None:
            raise UnknownTenantError(f"Practice {tenant_id} not found")
        return practice

    async def process(self, inbound: InboundMessage) -> EngineResponse:
        """Process one inbound text.

        Args:
            inbound: Normalized inbound message

        Returns:
            EngineResponse with the reply text and resulting state

        Raises:
            UnknownTenantError: If the practice does not exist
        """
        store = self._get_store()
        caller_phone = normalize_phone_number(inbound.from_phone) or inbound.from_phone

        async with self._get_session_factory()() as db:
            try:
                practice = await self._load_practice(db, inbound.tenant_id)
                now = self._utcnow()

                conversation = await store.find_current(
                    db, practice.id, caller_phone, now
                )
                if conversation is None:
                    conversation = await store.create(db, practice.id, caller_phone, now)

                await store.record_message(
                    db,
                    conversation.id,
                    MessageSender.CALLER,
                    inbound.body,
                    now,
                    provider_message_id=inbound.provider_message_id,
                )
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Failed to load conversation for {caller_phone}: {e}", exc_info=True)
                return EngineResponse(
                    message=self._get_responses().system_error(),
                    to_phone=caller_phone,
                )

            # Captured up front: a rollback expires the loaded rows
            conversation_id = conversation.id
            previous_status = conversation.status
            reply_number = practice.sms_reply_number
            name = self._practice_name(practice)
            turn: Optional[_Turn] = None

            try:
                payload = store.payload_of(conversation)
                intent = self._get_classifier().classify(
                    inbound.body,
                    expected_kind_for(conversation.status),
                    payload.offered_slots,
                )
                action = self._get_flow().process(conversation.status, payload, intent)

                turn = await self._execute_action(db, practice, conversation, action, intent)

                if turn.persist:
                    store.apply(
                        conversation,
                        turn.next_state,
                        turn.payload,
                        self._utcnow(),
                        max_page_size=self._get_flow().page_size,
                    )
                await store.record_message(
                    db, conversation.id, MessageSender.AI, turn.message, self._utcnow()
                )
                await db.commit()

            except (SQLAlchemyError, ValueError) as e:
                await db.rollback()

                # The booking committed in its own transaction; only the transcript was lost
                if turn is not None and turn.booking_outcome == BookingOutcome.BOOKED:
                    logger.error(
                        f"Booked conversation {conversation_id} but failed to record the "
                        f"reply: {e}",
                        exc_info=True,
                    )
                    return EngineResponse(
                        message=turn.message,
                        to_phone=caller_phone,
                        conversation_id=conversation_id,
                        status=turn.next_state,
                        intent=intent.intent,
                        action=action.action_type,
                        booking_outcome=turn.booking_outcome,
                        from_number=reply_number,
                    )

                logger.error(
                    f"Turn failed for conversation {conversation_id}: {e}", exc_info=True
                )
                return EngineResponse(
                    message=self._get_responses().system_error(name),
                    to_phone=caller_phone,
                    conversation_id=conversation_id,
                    status=previous_status,
                    from_number=reply_number,
                )

            return EngineResponse(
                message=turn.message,
                to_phone=caller_phone,
                conversation_id=conversation_id,
                status=turn.next_state,
                intent=intent.intent,
                action=action.action_type,
                booking_outcome=turn.booking_outcome,
                from_number=reply_number,
            )

    async def _execute_action(
        self,
        db: AsyncSession,
        practice: Practice,
        conversation: Conversation,
        action: FlowAction,
        intent: IntentResult,
    ) -> _Turn:
        """Execute the determined action.

        Args:
            db: Request session
            practice: Conversation's practice
            conversation: Current conversation
            action: Action from the flow manager
            intent: Classified intent

        Returns:
            _Turn with reply text and the state to persist
        """
        responses = self._get_responses()
        name = self._practice_name(practice)
        status = conversation.status

        if action.action_type == ActionType.BOOK:
            return await self._book(db, practice, conversation, action)

        if action.needs_calendar:
            slots = await self._get_calendar().fetch(
                db,
                practice,
                action.fetch_count,
                action.fetch_offset,
                self._clock(practice.timezone),
            )
            if not slots:
                return await self._fully_booked(db, conversation, action, name)

            payload = action.payload.with_offer(slots, action.fetch_offset)
            if action.action_type == ActionType.OFFER_SLOT:
                message = responses.slot_offer(slots[0])
            else:
                message = responses.slot_page(slots)
            return _Turn(message=message, next_state=action.next_state, payload=payload)

        if action.action_type == ActionType.LOG_CALLBACK:
            await self._update_lead(
                db,
                conversation,
                status=LeadStatus.QUALIFIED,
                reason=action.reason,
                preferred_time="Callback requested",
            )
            message = responses.callback_logged(name)

        elif action.action_type == ActionType.FREE_TEXT_CALLBACK:
            await self._update_lead(
                db,
                conversation,
                status=LeadStatus.QUALIFIED,
                reason=action.reason,
                priority=LeadPriority.HIGH,
            )
            message = responses.free_text_callback(name)

        elif action.action_type == ActionType.OPT_OUT:
            await self._update_lead(
                db,
                conversation,
                status=LeadStatus.NOT_INTERESTED,
                notes="Opted out via SMS",
            )
            message = responses.opted_out(name)

        elif action.action_type == ActionType.OPT_IN:
            await self._update_lead(db, conversation, status=LeadStatus.CONTACTED)
            message = responses.opted_in(name)

        elif action.action_type == ActionType.HELP:
            message = responses.help(name, status, action.payload.offered_slots)

        elif action.action_type == ActionType.ACKNOWLEDGE:
            message = responses.acknowledge(status, intent.text, name)

        else:
            message = responses.reprompt(status, action.payload.offered_slots, name)

        return _Turn(message=message, next_state=action.next_state, payload=action.payload)

    async def _book(
        self,
        db: AsyncSession,
        practice: Practice,
        conversation: Conversation,
        action: FlowAction,
    ) -> _Turn:
        """Run the booking transaction and handle its three outcomes."""
        responses = self._get_responses()
        name = self._practice_name(practice)
        current = self._get_store().payload_of(conversation)

        result = await self._get_booking().attempt_book(
            practice.id,
            action.slot,
            conversation.id,
            now=self._utcnow(),
        )

        if result.outcome == BookingOutcome.BOOKED:
            return _Turn(
                message=responses.booking_confirmed(action.slot, name, practice.booking_mode),
                next_state=ConversationStatus.APPOINTMENT_BOOKED,
                payload=current.cleared(),
                persist=False,
                booking_outcome=result.outcome,
            )

        if result.outcome == BookingOutcome.CONFLICT:
            slots = await self._get_calendar().fetch(
                db,
                practice,
                action.fetch_count,
                action.fetch_offset,
                self._clock(practice.timezone),
            )
            if not slots:
                turn = await self._fully_booked(db, conversation, action, name)
                turn.booking_outcome = result.outcome
                return turn

            payload = current.with_offer(slots, action.fetch_offset)
            if action.retry_state == ConversationStatus.AWAITING_SLOT_CONFIRMATION:
                message = responses.slot_taken(slots[0])
            else:
                message = responses.page_taken(slots)
            return _Turn(
                message=message,
                next_state=action.retry_state,
                payload=payload,
                booking_outcome=result.outcome,
            )

        logger.error(f"Booking system error for conversation {conversation.id}: {result.error}")
        return _Turn(
            message=responses.system_error(name),
            next_state=conversation.status,
            payload=current,
            booking_outcome=result.outcome,
        )

    async def _fully_booked(
        self,
        db: AsyncSession,
        conversation: Conversation,
        action: FlowAction,
        practice_name: str,
    ) -> _Turn:
        """Calendar exhausted: hand over to a human callback."""
        logger.info(f"No slots available, conversation {conversation.id} escalated to callback")
        await self._update_lead(
            db,
            conversation,
            status=LeadStatus.QUALIFIED,
            preferred_time="Callback requested",
            reason="Fully booked via SMS",
        )
        return _Turn(
            message=self._get_responses().fully_booked(practice_name),
            next_state=action.fallback_state or ConversationStatus.CALLBACK_REQUESTED,
            payload=action.payload.cleared(),
        )

    async def _update_lead(self, db: AsyncSession, conversation: Conversation, **fields) -> None:
        """Apply field updates to the conversation's lead, if it has one."""
        lead = await self._get_store().lead_for(db, conversation)
        if lead is None:
            logger.warning(f"Conversation {conversation.id} has no lead")
            return
        for key, value in fields.items():
            setattr(lead, key, value)

    async def start_followup(
        self,
        tenant_id: UUID,
        caller_phone: str,
    ) -> Optional[EngineResponse]:
        """
        Open a conversation after a missed call and build the opening text.

        Args:
            tenant_id: Practice id
            caller_phone: Number that called

        Returns:
            EngineResponse with the opening text, or None when the caller
            already has an open conversation or has opted out

        Raises:
            UnknownTenantError: If the practice does not exist
        """
        store = self._get_store()
        caller_phone = normalize_phone_number(caller_phone) or caller_phone

        async with self._get_session_factory()() as db:
            practice = await self._load_practice(db, tenant_id)

            if await store.find_open(db, tenant_id, caller_phone) is not None:
                logger.info(f"Follow-up skipped, {caller_phone} already has an open conversation")
                return None

            # Opted out until the caller texts START
            latest = await store.find_latest(db, tenant_id, caller_phone)
            if latest is not None and latest.status == ConversationStatus.COMPLETED:
                logger.info(f"Follow-up skipped, {caller_phone} has opted out")
                return None

            now = self._utcnow()
            message = self._get_responses().initial_prompt(self._practice_name(practice))
            conversation = await store.create(
                db,
                tenant_id,
                caller_phone,
                now,
                source="missed_call",
                direction="outbound",
            )
            await store.record_message(db, conversation.id, MessageSender.AI, message, now)
            await db.commit()

            return EngineResponse(
                message=message,
                to_phone=caller_phone,
                conversation_id=conversation.id,
                status=conversation.status,
                from_number=practice.sms_reply_number,
            )

    async def deliver(self, response: EngineResponse) -> Optional[SendResult]:
        """Send a reply; failures are logged and never raised."""
        if not response.message:
            return None

        try:
            result = await self._get_sender().send(response.outbound())
        except Exception as e:
            logger.error(f"SMS delivery to {response.to_phone} failed: {e}", exc_info=True)
            return SendResult(success=False, error=str(e))

        if not result.success:
            logger.warning(f"SMS delivery to {response.to_phone} failed: {result.error}")
        return result


# Singleton
_engine: Optional[SchedulingEngine] = None


def get_scheduling_engine() -> SchedulingEngine:
    """Get singleton SchedulingEngine."""
    global _engine
    if _engine is None:
        _engine = SchedulingEngine()
    return _engine
