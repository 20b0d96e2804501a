"""
Atomic booking transaction.

Reserves one calendar slot for one conversation. Inside a single
SERIALIZABLE transaction it checks for a live appointment on the same
(practice, date, time) under a row lock, inserts the appointment, converts
the lead and closes the conversation as booked. Either all of that commits
or none of it does.

Two callers racing for the same slot resolve to exactly one BOOKED and one
CONFLICT: the loser either sees the winner's row, trips the partial unique
index, or gets a serialization failure (SQLSTATE 40001) from the database.
All three map to CONFLICT.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.intelligence.session.manager import ConversationStore
from app.core.intelligence.session.state import ConversationStatus
from app.models.database import (
    Appointment,
    AppointmentStatus,
    Conversation,
    Lead,
    LeadStatus,
)
from .calendar import format_slot

logger = logging.getLogger(__name__)


SERIALIZATION_FAILURE = "40001"


class BookingOutcome(str, Enum):
    """Result of a booking attempt."""

    BOOKED = "booked"
    CONFLICT = "conflict"  # Slot already taken (or lost a race for it)
    SYSTEM_ERROR = "system_error"  # Persistence failure, nothing written


@dataclass
class BookingResult:
    """Result of a booking attempt."""

    outcome: BookingOutcome
    slot: Optional[datetime] = None
    appointment_id: Optional[UUID] = None
    error: Optional[str] = None  # Internal detail, never sent to the caller

    @property
    def success(self) -> bool:
        return self.outcome == BookingOutcome.BOOKED

    @classmethod
    def booked(cls, slot: datetime, appointment_id: UUID) -> "BookingResult":
        return cls(outcome=BookingOutcome.BOOKED, slot=slot, appointment_id=appointment_id)

    @classmethod
    def conflict(cls, slot: datetime) -> "BookingResult":
        return cls(outcome=BookingOutcome.CONFLICT, slot=slot)

    @classmethod
    def system_error(cls, error: str) -> "BookingResult":
        return cls(outcome=BookingOutcome.SYSTEM_ERROR, error=error)


def is_serialization_failure(error: DBAPIError) -> bool:
    """Check a driver error for SQLSTATE 40001."""
    orig = getattr(error, "orig", None)
    for attribute in ("sqlstate", "pgcode"):
        if getattr(orig, attribute, None) == SERIALIZATION_FAILURE:
            return True
    # asyncpg wraps the original exception one level deeper
    cause = getattr(orig, "__cause__", None)
    return getattr(cause, "sqlstate", None) == SERIALIZATION_FAILURE


class BookingTransaction:
    """
    Books slots in their own database session.

    The session is separate from the engine's request session so the
    booking commit is independent of anything else done in the turn.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        store: Optional[ConversationStore] = None,
        isolation_level: Optional[str] = "SERIALIZABLE",
    ):
        """Initialize booking transaction.

        Args:
            session_factory: Callable returning a new AsyncSession
                (defaults to the application session factory)
            store: Conversation store used to close the conversation
            isolation_level: Transaction isolation, None to keep the
                engine default (SQLite serializes writers on its own)
        """
        self._session_factory = session_factory
        self._isolation_level = isolation_level
        self._store = store or ConversationStore()
        self._duration_minutes = get_settings().slot_granularity_minutes

    def _get_session_factory(self) -> Callable[[], AsyncSession]:
        """Get or create the session factory."""
        if self._session_factory is None:
            from app.infra.database import async_session_factory

            self._session_factory = async_session_factory
        return self._session_factory

    async def attempt_book(
        self,
        tenant_id: UUID,
        slot: datetime,
        conversation_id: UUID,
        now: Optional[datetime] = None,
    ) -> BookingResult:
        """
        Try to reserve a slot for a conversation.

        Args:
            tenant_id: Practice id
            slot: Candidate start time (practice local)
            conversation_id: Conversation asking for the slot
            now: Timestamp for ended_at / last activity (UTC)

        Returns:
            BookingResult: BOOKED, CONFLICT or SYSTEM_ERROR
        """
        now = now or datetime.utcnow()
        session_factory = self._get_session_factory()

        async with session_factory() as db:
            try:
                if self._isolation_level:
                    await db.connection(
                        execution_options={"isolation_level": self._isolation_level}
                    )

                existing = await db.execute(
                    select(Appointment.id)
                    .where(
                        Appointment.tenant_id == tenant_id,
                        Appointment.appointment_date == slot.date(),
                        Appointment.appointment_time == slot.time(),
                        Appointment.status != AppointmentStatus.CANCELLED,
                    )
                    .with_for_update()
                )
                if existing.first() is not None:
                    await db.rollback()
                    logger.info(f"Slot {slot.isoformat()} already booked for {tenant_id}")
                    return BookingResult.conflict(slot)

                conversation = await db.get(Conversation, conversation_id, with_for_update=True)
                if conversation is None or conversation.tenant_id != tenant_id:
                    await db.rollback()
                    return BookingResult.system_error(
                        f"Conversation {conversation_id} not found for tenant {tenant_id}"
                    )

                lead = (
                    await db.execute(select(Lead).where(Lead.conversation_id == conversation_id))
                ).scalars().first()

                appointment = Appointment(
                    tenant_id=tenant_id,
                    lead_id=lead.id if lead else None,
                    conversation_id=conversation_id,
                    patient_name=lead.name if lead else "SMS Inquiry",
                    patient_phone=conversation.caller_phone,
                    appointment_date=slot.date(),
                    appointment_time=slot.time(),
                    duration_minutes=self._duration_minutes,
                    reason=lead.reason if lead else None,
                    status=AppointmentStatus.SCHEDULED,
                    booked_via="sms",
                )
                db.add(appointment)

                if lead is not None:
                    lead.status = LeadStatus.CONVERTED
                    lead.appointment_booked = True
                    lead.appointment_time = slot
                    lead.preferred_time = format_slot(slot)

                payload = self._store.payload_of(conversation)
                self._store.apply(
                    conversation,
                    ConversationStatus.APPOINTMENT_BOOKED,
                    payload.cleared(),
                    now,
                )

                await db.flush()
                appointment_id = appointment.id
                await db.commit()

            except IntegrityError as e:
                await db.rollback()
                logger.info(f"Slot {slot.isoformat()} taken concurrently: {e.orig}")
                return BookingResult.conflict(slot)
            except DBAPIError as e:
                await db.rollback()
                if is_serialization_failure(e):
                    logger.info(f"Serialization failure booking {slot.isoformat()}, treating as conflict")
                    return BookingResult.conflict(slot)
                logger.error(f"Booking failed for {slot.isoformat()}: {e}")
                return BookingResult.system_error(str(e))
            except (SQLAlchemyError, ValueError) as e:
                await db.rollback()
                logger.error(f"Booking failed for {slot.isoformat()}: {e}")
                return BookingResult.system_error(str(e))

        logger.info(f"Booked {slot.isoformat()} for conversation {conversation_id}")
        return BookingResult.booked(slot, appointment_id)


# Singleton
_booking: Optional[BookingTransaction] = None


def get_booking_transaction() -> BookingTransaction:
    """Get singleton BookingTransaction."""
    global _booking
    if _booking is None:
        _booking = BookingTransaction()
    return _booking
