"""
Handover Endpoints.

Lets the business owner list conversations waiting on a human and hand
a conversation back to the scheduling engine.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from app.core.scheduling.handler import SchedulingHandler, get_scheduling_handler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/handovers", tags=["Handovers"])


class HandoverCloseResponse(BaseModel):
    """Reply sent to the customer when automation resumes."""
    reply: str


class HandoverItem(BaseModel):
    """Active handover summary."""
    conversation_id: str
    client_id: str
    reason: Optional[str] = None
    urgency_score: int
    triggers: list[str]
    customer_phone: Optional[str] = None
    customer_name: Optional[str] = None
    started_at: Optional[datetime] = None
    last_notified_at: Optional[datetime] = None


class HandoverListResponse(BaseModel):
    """Active handovers for a client, most urgent first."""
    count: int
    handovers: list[HandoverItem]


@router.post(
    "/{conversation_id}/close",
    response_model=HandoverCloseResponse,
    status_code=status.HTTP_200_OK,
    summary="Return a conversation to automated scheduling",
)
async def close_handover(
    conversation_id: str,
    handler: SchedulingHandler = Depends(get_scheduling_handler),
) -> HandoverCloseResponse:
    reply = await handler.close_handover(conversation_id)
    return HandoverCloseResponse(reply=reply)


@router.get(
    "",
    response_model=HandoverListResponse,
    summary="List active handovers",
)
async def list_handovers(
    client_id: str = Query(..., min_length=1, max_length=64),
    handler: SchedulingHandler = Depends(get_scheduling_handler),
) -> HandoverListResponse:
    records = await handler.list_active_handovers(client_id)
    items = [
        HandoverItem(
            conversation_id=r.conversation_id,
            client_id=r.client_id,
            reason=r.reason,
            urgency_score=r.urgency_score,
            triggers=r.triggers,
            customer_phone=r.customer_phone,
            customer_name=r.customer_name,
            started_at=r.started_at,
            last_notified_at=r.last_notified_at,
        )
        for r in records
    ]
    return HandoverListResponse(count=len(items), handovers=items)
