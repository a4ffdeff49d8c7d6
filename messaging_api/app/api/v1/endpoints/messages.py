"""
Message endpoints for API v1.

Send a message to one or more users, view a message with all of its
recipients and mark a received message as read.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, status
from pydantic import BaseModel

from messaging_api.app.schemas.message import DeliveryRecordRead, MessageView, SentMessage
from messaging_api.app.services.message_service import MessageService


router = APIRouter()


class MessageSent(BaseModel):
    message: str
    sent_message: SentMessage


class MessageEnvelope(BaseModel):
    message: MessageView


class MarkReadResponse(BaseModel):
    message: str
    already_read: bool
    message_recipient: DeliveryRecordRead


@router.post("/", response_model=MessageSent, status_code=status.HTTP_201_CREATED)
async def send_message(body: Dict[str, Any] = Body(...)) -> MessageSent:
    """Send a message.

    The body must contain ``sender_id``, a non-empty ``recipient_ids``
    list and ``content``; ``subject`` is optional.  The raw object is
    handed to the service so that it reports missing or malformed
    fields itself.  Duplicate recipients and the sender are dropped;
    the response lists the recipients the message was delivered to.
    """
    sent = await MessageService.send_message(
        sender_id=body.get("sender_id"),
        recipient_ids=body.get("recipient_ids"),
        subject=body.get("subject"),
        content=body.get("content"),
    )
    return MessageSent(message="Message sent successfully", sent_message=sent)


@router.get("/{message_id}", response_model=MessageEnvelope)
async def get_message(message_id: str) -> MessageEnvelope:
    """Retrieve a message with its sender and per-recipient read status."""
    return MessageEnvelope(message=await MessageService.get_message_with_recipients(message_id))


@router.patch("/message-recipients/{delivery_record_id}/mark-read", response_model=MarkReadResponse)
async def mark_as_read(delivery_record_id: str) -> MarkReadResponse:
    """Mark a delivery record as read.

    Calling this again for the same record succeeds with
    ``already_read`` set and leaves ``read_at`` unchanged.
    """
    result = await MessageService.mark_as_read(delivery_record_id)
    if result.already_read:
        text = "Message already marked as read."
    else:
        text = "Message marked as read successfully."
    return MarkReadResponse(
        message=text,
        already_read=result.already_read,
        message_recipient=result.record,
    )
