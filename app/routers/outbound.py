"""
Outbound API: queue an outgoing message for delivery to its platform.

The message must already be stored; sending happens in ``send_reply_task``.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from app.infra.celery_app import QUEUE_HIGH
from app.models.message import Message
from app.routers.utils.dependencies import get_message_by_id
from app.tasks.send_reply_task import send_reply_task

router = APIRouter(prefix="/outbound", tags=["outbound"])


@router.post("/messages/{message_id}/send", status_code=202)
def send_message(message: Message = Depends(get_message_by_id)) -> dict[str, Any]:
    """
    Queue the message for sending. Return {"data": {"message_id", "queued"}}.
    400 if the message is not an outgoing one; already-sent messages are not queued.
    """
    if not message.is_outgoing:
        raise HTTPException(status_code=400, detail="Message is not outgoing")
    if message.source_id:
        return {"data": {"message_id": str(message.id), "queued": False}}
    send_reply_task.apply_async(
        kwargs={"message_id": str(message.id)}, queue=QUEUE_HIGH
    )
    return {"data": {"message_id": str(message.id), "queued": True}}
