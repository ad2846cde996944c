"""Tests for WhatsAppIncomingService."""

import pytest

from app.channels.normalizer import normalize_whatsapp_value
from app.constants.inbox import MessageStatus
from app.core.registry import ChannelAdapterRegistry
from app.models.contact import Contact
from app.models.contact_inbox import ContactInbox
from app.models.message import Message
from app.services.incoming import WhatsAppIncomingService

WA_ID = "15551234567"
METADATA = {"display_phone_number": "15550001111", "phone_number_id": "pnid_1"}


def _message_value(wamid="wamid.1", text="hola"):
    return {
        "messaging_product": "whatsapp",
        "metadata": METADATA,
        "contacts": [{"wa_id": WA_ID, "profile": {"name": "Ana"}}],
        "messages": [
            {
                "from": WA_ID,
                "id": wamid,
                "timestamp": "1700000000",
                "type": "text",
                "text": {"body": text},
            }
        ],
    }


def _status_value(status, wamid="wamid.out", errors=None):
    item = {"id": wamid, "recipient_id": WA_ID, "status": status, "timestamp": "1700000100"}
    if errors:
        item["errors"] = errors
    return {"metadata": METADATA, "statuses": [item]}


@pytest.fixture
def service(db, redis_client):
    return WhatsAppIncomingService(db, redis_client, registry=ChannelAdapterRegistry())


@pytest.fixture
def outgoing(setup_whatsapp_channel, make_contact_inbox, make_conversation, make_message):
    contact_inbox = make_contact_inbox(setup_whatsapp_channel, WA_ID)
    conversation = make_conversation(contact_inbox)
    return make_message(conversation, status=MessageStatus.SENT, source_id="wamid.out")


def test_inbound_message(db, service, setup_whatsapp_channel):
    results = service.perform(_message_value(), phone_number="15550001111")

    assert len(results) == 1
    assert results[0].content == "hola"
    contact = db.query(Contact).one()
    assert contact.name == "Ana"
    assert contact.phone_number == f"+{WA_ID}"
    assert db.query(ContactInbox).one().source_id == WA_ID


def test_channel_found_by_phone_number_id(db, service, setup_whatsapp_channel):
    results = service.perform(_message_value(), phone_number="19999999999")
    assert len(results) == 1


def test_retried_value_is_not_duplicated(db, service, setup_whatsapp_channel):
    service.perform(_message_value())
    assert service.perform(_message_value()) == []
    assert db.query(Message).count() == 1


def test_unknown_channel_is_skipped(db, service):
    assert service.perform(_message_value(), phone_number="15550001111") == []


def test_status_moves_forward_only(db, service, outgoing):
    service.perform(_status_value("read"))
    db.refresh(outgoing)
    assert outgoing.status == MessageStatus.READ.value

    assert service.perform(_status_value("delivered")) == []
    db.refresh(outgoing)
    assert outgoing.status == MessageStatus.READ.value


def test_failed_status_records_error(db, service, outgoing):
    service.perform(
        _status_value(
            "failed",
            errors=[{"code": 131047, "title": "Re-engagement message"}],
        )
    )
    db.refresh(outgoing)
    assert outgoing.status == MessageStatus.FAILED.value
    assert outgoing.external_error == "Re-engagement message"


def test_failed_after_delivery_is_ignored(db, service, outgoing):
    service.perform(_status_value("delivered"))
    service.perform(_status_value("failed", errors=[{"title": "late"}]))
    db.refresh(outgoing)
    assert outgoing.status == MessageStatus.DELIVERED.value
    assert outgoing.external_error is None


def test_status_for_unknown_message_is_skipped(service, setup_whatsapp_channel):
    assert service.perform(_status_value("read", wamid="wamid.unknown")) == []


def test_message_and_status_share_thread_lock(service):
    [message] = normalize_whatsapp_value(_message_value())
    [status] = normalize_whatsapp_value(_status_value("delivered"))
    assert service.lock_key(message) == service.lock_key(status)
    assert service.lock_key(message) == f"WHATSAPP_MESSAGE_LOCK::{WA_ID}::pnid_1"
