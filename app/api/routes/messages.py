"""
Inbound Message Endpoint.

Channel webhooks (SMS, call transcription) post customer messages here
and deliver the returned reply back to the customer.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from app.core.scheduling.handler import SchedulingHandler, get_scheduling_handler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["Messages"])


class InboundMessageRequest(BaseModel):
    """Inbound customer message."""

    message: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Customer's message",
        examples=["Can I come in Tuesday at 3pm?"],
    )
    conversation_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Conversation identifier",
    )
    client_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Business identifier",
    )
    customer_phone: Optional[str] = Field(
        default=None,
        max_length=32,
        description="Customer phone number (E.164)",
    )
    customer_name: Optional[str] = Field(
        default=None,
        max_length=255,
    )
    default_duration_minutes: Optional[int] = Field(
        default=None,
        gt=0,
        le=24 * 60,
        description="Booking length in minutes",
    )


class InboundMessageResponse(BaseModel):
    """Reply to deliver back to the customer."""

    reply: str = Field(..., description="Reply text")
    proposed_slot: Optional[datetime] = Field(
        default=None,
        description="Slot currently offered or confirmed",
    )
    should_book: bool = Field(
        default=False,
        description="True when the customer confirmed the proposed slot",
    )
    booking_id: Optional[str] = Field(
        default=None,
        description="Booking ID if a booking was created",
    )


@router.post(
    "/inbound",
    response_model=InboundMessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Process an inbound customer message",
)
async def inbound(
    request: InboundMessageRequest,
    handler: SchedulingHandler = Depends(get_scheduling_handler),
) -> InboundMessageResponse:
    """
    Run a customer message through the scheduling engine.

    Always answers with a reply; internal failures produce the
    fallback prompt rather than an error status.
    """
    result = await handler.handle_inbound(
        message=request.message,
        conversation_id=request.conversation_id,
        client_id=request.client_id,
        customer_phone=request.customer_phone,
        customer_name=request.customer_name,
        default_duration_minutes=request.default_duration_minutes,
    )

    logger.debug(
        f"Inbound processed for {request.conversation_id}: "
        f"should_book={result.should_book} booking_id={result.booking_id}"
    )

    return InboundMessageResponse(
        reply=result.reply,
        proposed_slot=result.proposed_slot,
        should_book=result.should_book,
        booking_id=result.booking_id,
    )
