"""
Scheduling Module

Provides the slot calendar, booking transaction, conversation flow,
response templates and the scheduling engine that runs one SMS turn.

Usage:
    from app.core.scheduling import (
        InboundMessage,
        get_scheduling_engine,
    )

    engine = get_scheduling_engine()
    response = await engine.process(
        InboundMessage(from_phone="+61412345678", tenant_id=practice_id, body="2")
    )
    print(response.message)  # "Our next available time is ..."
    await engine.deliver(response)
"""

# Slot Calendar
from app.core.scheduling.calendar import (
    BusinessHours,
    DayHours,
    SlotCalendar,
    available_slots,
    format_slot,
    load_booked_slots,
)

# Booking Transaction
from app.core.scheduling.booking import (
    BookingOutcome,
    BookingResult,
    BookingTransaction,
    get_booking_transaction,
)

# Response Generator
from app.core.scheduling.response import (
    ResponseGenerator,
    get_response_generator,
)

# Conversation Flow
from app.core.scheduling.flow import (
    ActionType,
    ConversationFlow,
    FlowAction,
    expected_kind_for,
    get_conversation_flow,
)

# Scheduling Engine (main orchestrator)
from app.core.scheduling.engine import (
    EngineResponse,
    InboundMessage,
    SchedulingEngine,
    UnknownTenantError,
    get_scheduling_engine,
)

__all__ = [
    # Slot Calendar
    "BusinessHours",
    "DayHours",
    "SlotCalendar",
    "available_slots",
    "format_slot",
    "load_booked_slots",
    # Booking Transaction
    "BookingOutcome",
    "BookingResult",
    "BookingTransaction",
    "get_booking_transaction",
    # Response Generator
    "ResponseGenerator",
    "get_response_generator",
    # Conversation Flow
    "ActionType",
    "ConversationFlow",
    "FlowAction",
    "expected_kind_for",
    "get_conversation_flow",
    # Scheduling Engine
    "EngineResponse",
    "InboundMessage",
    "SchedulingEngine",
    "UnknownTenantError",
    "get_scheduling_engine",
]
