from uuid import UUID

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.dead_letter_job import DeadLetterJob
from app.models.message import Message
from app.services.dead_letter_service import DeadLetterService


def get_message_by_id(
    message_id: UUID,
    db: Session = Depends(get_db),
) -> Message:
    """FastAPI dependency to get a message by ID."""
    message = db.query(Message).filter(Message.id == message_id).first()
    if message is None:
        raise HTTPException(status_code=404, detail="Message not found")
    return message


def get_dead_letter_by_id(
    dead_letter_id: UUID,
    db: Session = Depends(get_db),
) -> DeadLetterJob:
    """FastAPI dependency to get a dead-lettered job by ID."""
    job = DeadLetterService(db).get(dead_letter_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Dead letter not found")
    return job
