"""
SMS Webhook Endpoints.

Receives normalized inbound texts and missed-call notifications from the
provider adapter, runs the scheduling engine and sends the reply in the
background so the webhook answers quickly.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from app.core.scheduling.engine import (
    InboundMessage,
    SchedulingEngine,
    UnknownTenantError,
    get_scheduling_engine,
)
from app.infra.redis import IdempotencyStore, get_idempotency_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sms", tags=["SMS"])


class InboundMessageRequest(BaseModel):
    """Inbound text, already normalized by the provider adapter."""

    model_config = ConfigDict(populate_by_name=True)

    from_phone: str = Field(
        ...,
        alias="fromPhone",
        min_length=3,
        max_length=50,
        description="Caller number (E.164)",
        examples=["+61412345678"],
    )
    tenant_id: UUID = Field(
        ...,
        alias="tenantId",
        description="Practice identifier",
    )
    body: str = Field(
        ...,
        max_length=1600,
        description="Message text",
        examples=["2"],
    )
    provider_message_id: Optional[str] = Field(
        default=None,
        alias="providerMessageId",
        max_length=255,
        description="Provider message id, used to drop duplicate deliveries",
    )
    received_at: Optional[datetime] = Field(
        default=None,
        alias="receivedAt",
    )


class MissedCallRequest(BaseModel):
    """Missed call notification."""

    model_config = ConfigDict(populate_by_name=True)

    caller_phone: str = Field(..., alias="callerPhone", min_length=3, max_length=50)
    tenant_id: UUID = Field(..., alias="tenantId")


class SmsReplyResponse(BaseModel):
    """Reply produced for an inbound text."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., description="Reply text sent to the caller")
    to_phone: str = Field(..., alias="toPhone")
    from_number: Optional[str] = Field(default=None, alias="fromNumber")
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    status: Optional[str] = Field(default=None, description="Conversation status after the turn")
    intent: Optional[str] = None
    action: Optional[str] = None
    booking_outcome: Optional[str] = Field(default=None, alias="bookingOutcome")
    duplicate: bool = Field(default=False, description="True when this delivery was a replay")


class MissedCallResponse(BaseModel):
    """Result of a missed-call follow-up."""

    model_config = ConfigDict(populate_by_name=True)

    started: bool
    message: Optional[str] = None
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: Optional[str] = None


@router.post(
    "/incoming",
    response_model=SmsReplyResponse,
    status_code=status.HTTP_200_OK,
    summary="Handle an inbound text",
    description="Run one conversation turn and queue the reply.",
    responses={
        200: {"description": "Reply produced (or replayed)"},
        404: {"model": ErrorResponse, "description": "Unknown practice"},
        422: {"model": ErrorResponse, "description": "Invalid request"},
    },
)
async def incoming(
    request: InboundMessageRequest,
    background_tasks: BackgroundTasks,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
    idempotency: IdempotencyStore = Depends(get_idempotency_store),
) -> SmsReplyResponse:
    """
    Process an inbound text.

    A provider message id seen before returns the stored reply and sends
    nothing. A duplicate that arrives while the first delivery is still
    being processed gets an empty reply.
    """
    message_id = request.provider_message_id

    if message_id:
        stored = await idempotency.lookup(message_id)
        if stored is not None:
            logger.info(f"Duplicate delivery {message_id}, replaying stored reply")
            return SmsReplyResponse(**stored, duplicate=True)

        if not await idempotency.claim(message_id):
            logger.info(f"Duplicate delivery {message_id} while first is in progress")
            return SmsReplyResponse(message="", to_phone=request.from_phone, duplicate=True)

    inbound = InboundMessage(
        from_phone=request.from_phone,
        tenant_id=request.tenant_id,
        body=request.body,
        provider_message_id=message_id,
        received_at=request.received_at,
    )

    try:
        response = await engine.process(inbound)
    except UnknownTenantError as e:
        if message_id:
            await idempotency.release(message_id)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception:
        if message_id:
            await idempotency.release(message_id)
        raise

    reply = response.to_dict()
    if message_id:
        await idempotency.remember(message_id, reply)

    background_tasks.add_task(engine.deliver, response)
    return SmsReplyResponse(**reply)


@router.post(
    "/missed-call",
    response_model=MissedCallResponse,
    status_code=status.HTTP_200_OK,
    summary="Start a missed-call follow-up",
    description="Open a conversation with the caller and text them the opening options.",
    responses={
        404: {"model": ErrorResponse, "description": "Unknown practice"},
    },
)
async def missed_call(
    request: MissedCallRequest,
    background_tasks: BackgroundTasks,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> MissedCallResponse:
    """Send the opening text unless the caller is already mid-conversation."""
    try:
        response = await engine.start_followup(request.tenant_id, request.caller_phone)
    except UnknownTenantError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    if response is None:
        return MissedCallResponse(started=False)

    background_tasks.add_task(engine.deliver, response)
    return MissedCallResponse(
        started=True,
        message=response.message,
        conversation_id=str(response.conversation_id),
    )
