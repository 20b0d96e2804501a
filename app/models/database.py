"""
Database Models

SQLAlchemy ORM models for the multi-tenant missed-call booking system.
"""

import uuid
from datetime import date, datetime, time
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text,
    Time, Uuid, Enum as SQLEnum, text
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from app.core.intelligence.session.state import ConversationStatus


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def _enum_column(enum_cls: type[Enum]) -> SQLEnum:
    """Store enum values (not names) in a VARCHAR column."""
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=30,
        values_callable=lambda members: [member.value for member in members],
    )


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=datetime.utcnow,
        nullable=False
    )


class BookingMode(str, Enum):
    """How a practice treats SMS bookings."""
    AUTO = "auto"  # Booked immediately
    MANUAL = "manual"  # Staff confirm afterwards


class LeadStatus(str, Enum):
    """Lead funnel stage."""
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    NOT_INTERESTED = "not_interested"
    LOST = "lost"


class LeadPriority(str, Enum):
    """Lead priority enumeration."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class MessageSender(str, Enum):
    """Who wrote a transcript message."""
    CALLER = "caller"
    AI = "ai"
    SYSTEM = "system"


class Practice(Base, TimestampMixin):
    """
    Practice model (Tenant).

    Each practice owns its business hours, conversations, leads and
    appointment calendar.
    """

    __tablename__ = "practices"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    sms_reply_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    timezone: Mapped[str] = mapped_column(String(50), default="Australia/Sydney")
    business_hours: Mapped[dict] = mapped_column(JSON, default=dict)
    booking_mode: Mapped[BookingMode] = mapped_column(
        _enum_column(BookingMode),
        default=BookingMode.MANUAL
    )

    # Relationships
    conversations: Mapped[List["Conversation"]] = relationship(
        "Conversation",
        back_populates="practice"
    )
    appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        back_populates="practice"
    )

    def __repr__(self) -> str:
        return f"<Practice(id={self.id}, name='{self.name}')>"


class Conversation(Base):
    """
    Conversation model.

    One text dialogue with one caller for one practice. At most one
    conversation per (practice, caller) may be open (ended_at IS NULL).
    """

    __tablename__ = "conversations"
    __table_args__ = (
        Index("idx_conversation_caller", "tenant_id", "caller_phone"),
        Index("idx_conversation_status", "tenant_id", "status"),
        Index(
            "uq_conversation_open_caller",
            "tenant_id",
            "caller_phone",
            unique=True,
            postgresql_where=text("ended_at IS NULL"),
            sqlite_where=text("ended_at IS NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("practices.id", ondelete="CASCADE"),
        nullable=False
    )
    caller_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    channel: Mapped[str] = mapped_column(String(20), default="sms")
    direction: Mapped[str] = mapped_column(String(20), default="inbound")
    status: Mapped[ConversationStatus] = mapped_column(
        _enum_column(ConversationStatus),
        default=ConversationStatus.AWAITING_INITIAL_CHOICE,
        nullable=False
    )
    state_payload: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )
    last_activity_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    practice: Mapped["Practice"] = relationship("Practice", back_populates="conversations")
    lead: Mapped[Optional["Lead"]] = relationship(
        "Lead",
        back_populates="conversation",
        uselist=False
    )
    messages: Mapped[List["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.created_at"
    )

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def __repr__(self) -> str:
        return (
            f"<Conversation(id={self.id}, caller='{self.caller_phone}', "
            f"status={self.status.value})>"
        )


class Lead(Base, TimestampMixin):
    """
    Lead model.

    The human-facing "someone needs attention" record, one per conversation.
    """

    __tablename__ = "leads"
    __table_args__ = (
        Index("idx_lead_tenant_status", "tenant_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("practices.id", ondelete="CASCADE"),
        nullable=False
    )
    conversation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("conversations.id", ondelete="SET NULL"),
        unique=True,
        nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), default="SMS Inquiry")
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    source: Mapped[str] = mapped_column(String(50), default="sms")
    status: Mapped[LeadStatus] = mapped_column(
        _enum_column(LeadStatus),
        default=LeadStatus.NEW
    )
    priority: Mapped[LeadPriority] = mapped_column(
        _enum_column(LeadPriority),
        default=LeadPriority.NORMAL
    )
    appointment_booked: Mapped[bool] = mapped_column(Boolean, default=False)
    appointment_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    preferred_time: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    conversation: Mapped[Optional["Conversation"]] = relationship(
        "Conversation",
        back_populates="lead"
    )

    def __repr__(self) -> str:
        return f"<Lead(id={self.id}, phone='{self.phone}', status={self.status.value})>"


class Appointment(Base, TimestampMixin):
    """
    Appointment model.

    A reserved calendar slot. No two non-cancelled appointments of a
    practice may share (appointment_date, appointment_time).
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointment_tenant_date", "tenant_id", "appointment_date"),
        Index(
            "uq_appointment_live_slot",
            "tenant_id",
            "appointment_date",
            "appointment_time",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("practices.id", ondelete="CASCADE"),
        nullable=False
    )
    lead_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("leads.id", ondelete="SET NULL"),
        nullable=True
    )
    conversation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("conversations.id", ondelete="SET NULL"),
        nullable=True
    )
    patient_name: Mapped[str] = mapped_column(String(255), nullable=False)
    patient_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    appointment_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[AppointmentStatus] = mapped_column(
        _enum_column(AppointmentStatus),
        default=AppointmentStatus.SCHEDULED
    )
    booked_via: Mapped[str] = mapped_column(String(50), default="sms")

    # Relationships
    practice: Mapped["Practice"] = relationship("Practice", back_populates="appointments")

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.appointment_date, self.appointment_time)

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, tenant_id={self.tenant_id}, "
            f"start={self.starts_at}, status={self.status.value})>"
        )


class Message(Base):
    """
    Message model.

    Transcript of every text exchanged in a conversation.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_message_conversation", "conversation_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False
    )
    sender: Mapped[MessageSender] = mapped_column(_enum_column(MessageSender), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    provider_message_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )

    # Relationships
    conversation: Mapped["Conversation"] = relationship("Conversation", back_populates="messages")

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, sender={self.sender.value})>"
