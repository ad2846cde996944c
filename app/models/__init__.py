from app.models.attachment import Attachment
from app.models.channel import (
    Channel,
    FacebookChannel,
    InstagramChannel,
    WebWidgetChannel,
    WhatsAppChannel,
)
from app.models.contact import Contact
from app.models.contact_inbox import ContactInbox
from app.models.conversation import Conversation
from app.models.dead_letter_job import DeadLetterJob
from app.models.inbox import Inbox
from app.models.message import Message

__all__ = [
    "Attachment",
    "Channel",
    "Contact",
    "ContactInbox",
    "Conversation",
    "DeadLetterJob",
    "FacebookChannel",
    "Inbox",
    "InstagramChannel",
    "Message",
    "WebWidgetChannel",
    "WhatsAppChannel",
]
