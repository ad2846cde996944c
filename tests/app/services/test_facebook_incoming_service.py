"""Tests for FacebookIncomingService."""

from datetime import datetime, timedelta, timezone

import pytest

from app.channels.normalizer import FACEBOOK_SUPPORTED_KINDS, normalize_messaging_item
from app.constants.inbox import ChannelType, MessageStatus, MessageType
from app.core.registry import ChannelAdapterRegistry
from app.models.contact import Contact
from app.models.message import Message
from app.schemas.events import CanonicalEvent, EventKind
from app.services.incoming import FacebookIncomingService

PAGE = "page_1"
PSID = "psid_1"


def _ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


@pytest.fixture
def service(db, redis_client):
    return FacebookIncomingService(db, redis_client, registry=ChannelAdapterRegistry())


@pytest.fixture
def thread(setup_facebook_channel, make_contact_inbox, make_conversation):
    contact_inbox = make_contact_inbox(setup_facebook_channel, PSID)
    return make_conversation(contact_inbox)


def test_incoming_message(db, service, setup_facebook_channel):
    message = service.perform(
        {
            "sender": {"id": PSID},
            "recipient": {"id": PAGE},
            "timestamp": _ms(datetime.now(timezone.utc)),
            "message": {"mid": "m_in", "text": "hello page"},
        },
        entry_id=PAGE,
    )
    assert message.content == "hello page"
    contact = db.query(Contact).one()
    assert contact.identifier_facebook == PSID
    assert contact.name == f"Unknown (FB: {PSID})"


def test_delivery_watermark(db, service, thread, make_message):
    watermark = datetime.now(timezone.utc)
    before = make_message(
        thread,
        status=MessageStatus.SENT,
        source_id="m_before",
        created_at=watermark - timedelta(seconds=10),
    )
    after = make_message(
        thread,
        status=MessageStatus.SENT,
        source_id="m_after",
        created_at=watermark + timedelta(seconds=10),
    )

    service.perform(
        {
            "sender": {"id": PSID},
            "recipient": {"id": PAGE},
            "delivery": {"watermark": _ms(watermark)},
        }
    )

    db.refresh(before)
    db.refresh(after)
    assert before.status == MessageStatus.DELIVERED.value
    assert after.status == MessageStatus.SENT.value


def test_delivery_mids_advance_listed_messages(db, service, thread, make_message):
    late = make_message(
        thread,
        status=MessageStatus.SENT,
        source_id="m_late",
        created_at=datetime.now(timezone.utc) + timedelta(minutes=5),
    )
    service.perform(
        {
            "sender": {"id": PSID},
            "recipient": {"id": PAGE},
            "delivery": {
                "mids": ["m_late"],
                "watermark": _ms(datetime.now(timezone.utc)),
            },
        }
    )
    db.refresh(late)
    assert late.status == MessageStatus.DELIVERED.value


def test_read_watermark_never_moves_backwards(db, service, thread, make_message):
    now = datetime.now(timezone.utc)
    read = make_message(
        thread,
        status=MessageStatus.READ,
        source_id="m_read",
        created_at=now - timedelta(seconds=30),
    )
    sent = make_message(
        thread,
        status=MessageStatus.SENT,
        source_id="m_sent",
        created_at=now - timedelta(seconds=20),
    )

    service.perform(
        {"sender": {"id": PSID}, "recipient": {"id": PAGE}, "delivery": {"watermark": _ms(now)}}
    )

    db.refresh(read)
    db.refresh(sent)
    assert read.status == MessageStatus.READ.value
    assert sent.status == MessageStatus.DELIVERED.value

    service.perform(
        {"sender": {"id": PSID}, "recipient": {"id": PAGE}, "read": {"watermark": _ms(now)}}
    )
    db.refresh(sent)
    db.refresh(thread)
    assert sent.status == MessageStatus.READ.value
    assert thread.contact_last_seen_at is not None


def test_is_agent_echo(db, redis_client, monkeypatch):
    monkeypatch.setenv("FACEBOOK_APP_ID", "111")
    service = FacebookIncomingService(db, redis_client, registry=ChannelAdapterRegistry())

    def echo(app_id):
        return CanonicalEvent(
            platform="facebook", kind=EventKind.MESSAGE, is_echo=True, app_id=app_id
        )

    assert service.is_agent_echo(echo("999")) is True
    assert service.is_agent_echo(echo("111")) is False
    assert service.is_agent_echo(echo(None)) is False


def test_agent_echo_is_stored_as_new_reply(
    db, redis_client, monkeypatch, thread, make_message
):
    monkeypatch.setenv("FACEBOOK_APP_ID", "111")
    service = FacebookIncomingService(db, redis_client, registry=ChannelAdapterRegistry())
    pending = make_message(thread, content="thanks!")

    message = service.perform(
        {
            "sender": {"id": PAGE},
            "recipient": {"id": PSID},
            "timestamp": _ms(datetime.now(timezone.utc)),
            "message": {
                "mid": "m_agent",
                "text": "thanks!",
                "is_echo": True,
                "app_id": 999,
            },
        }
    )

    assert message.id != pending.id
    assert message.message_type == MessageType.OUTGOING.value
    db.refresh(pending)
    assert pending.source_id is None


def test_own_echo_completes_pending(db, redis_client, monkeypatch, thread, make_message):
    monkeypatch.setenv("FACEBOOK_APP_ID", "111")
    service = FacebookIncomingService(db, redis_client, registry=ChannelAdapterRegistry())
    pending = make_message(thread, content="thanks!")

    message = service.perform(
        {
            "sender": {"id": PAGE},
            "recipient": {"id": PSID},
            "timestamp": _ms(datetime.now(timezone.utc)),
            "message": {"mid": "m_own", "text": "thanks!", "is_echo": True, "app_id": 111},
        }
    )

    assert message.id == pending.id
    assert message.source_id == "m_own"
    assert db.query(Message).count() == 1


def test_inbound_and_echo_share_thread_lock(service):
    inbound = normalize_messaging_item(
        ChannelType.FACEBOOK,
        {"sender": {"id": PSID}, "recipient": {"id": PAGE}, "message": {"mid": "m1"}},
        PAGE,
        FACEBOOK_SUPPORTED_KINDS,
    )
    echo = normalize_messaging_item(
        ChannelType.FACEBOOK,
        {
            "sender": {"id": PAGE},
            "recipient": {"id": PSID},
            "message": {"mid": "m2", "is_echo": True},
        },
        PAGE,
        FACEBOOK_SUPPORTED_KINDS,
    )
    assert service.lock_key(inbound) == service.lock_key(echo)
    assert service.lock_key(inbound) == f"FB_MESSAGE_CREATE_LOCK::{PSID}::{PAGE}"
