"""
Webhook routes for inbound platform deliveries.

GET answers the subscription handshake; POST validates the body, queues the
events and returns 200 before any processing happens.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from app.commands.webhooks import (
    FacebookWebhookCommand,
    InstagramWebhookCommand,
    WhatsAppWebhookCommand,
)
from app.db import get_db

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.get("/instagram", response_class=PlainTextResponse)
def verify_instagram_webhook(request: Request, db: Session = Depends(get_db)) -> str:
    """Echo ``hub.challenge`` when ``hub.verify_token`` matches INSTAGRAM_VERIFY_TOKEN."""
    return InstagramWebhookCommand(db).verify_subscription(request.query_params)


@router.post("/instagram")
async def instagram_webhook(
    request: Request, db: Session = Depends(get_db)
) -> dict[str, str]:
    raw_body = await request.body()
    return InstagramWebhookCommand(db).execute(raw_body, request.headers)


@router.get("/facebook", response_class=PlainTextResponse)
def verify_facebook_webhook(request: Request, db: Session = Depends(get_db)) -> str:
    """Echo ``hub.challenge`` when ``hub.verify_token`` matches FACEBOOK_VERIFY_TOKEN."""
    return FacebookWebhookCommand(db).verify_subscription(request.query_params)


@router.post("/facebook")
async def facebook_webhook(
    request: Request, db: Session = Depends(get_db)
) -> dict[str, str]:
    raw_body = await request.body()
    return FacebookWebhookCommand(db).execute(raw_body, request.headers)


@router.get("/whatsapp/{phone_number}", response_class=PlainTextResponse)
def verify_whatsapp_webhook(
    phone_number: str, request: Request, db: Session = Depends(get_db)
) -> str:
    """Handshake against the channel's own ``webhook_verify_token``; 404 if unknown."""
    return WhatsAppWebhookCommand(db).verify(phone_number, request.query_params)


@router.post("/whatsapp/{phone_number}")
async def whatsapp_webhook(
    phone_number: str, request: Request, db: Session = Depends(get_db)
) -> dict[str, str]:
    raw_body = await request.body()
    return WhatsAppWebhookCommand(db).execute(phone_number, raw_body, request.headers)
