"""Channel, conversation and message enumerations for the inbox model."""

from enum import IntEnum, StrEnum


class ChannelType(StrEnum):
    """Channel variants. Stored as the polymorphic discriminator on channels."""

    INSTAGRAM = "instagram"
    FACEBOOK = "facebook"
    WHATSAPP = "whatsapp"
    WEB_WIDGET = "web_widget"


class SetupState(StrEnum):
    """Channel setup lifecycle. Pending channels wait for their real platform id."""

    PENDING_SETUP = "pending_setup"
    ACTIVE = "active"


class ConversationStatus(IntEnum):
    OPEN = 0
    RESOLVED = 1
    PENDING = 2


class ConversationPriority(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2
    URGENT = 3


class MessageType(IntEnum):
    INCOMING = 0
    OUTGOING = 1
    ACTIVITY = 2


class MessageStatus(IntEnum):
    """Delivery states. Ordered so a status only ever moves forward."""

    PROGRESS = 0
    SENT = 1
    DELIVERED = 2
    READ = 3
    FAILED = 4


class AttachmentFileType(IntEnum):
    IMAGE = 0
    AUDIO = 1
    VIDEO = 2
    FILE = 3
    LOCATION = 4
    FALLBACK = 5
    SHARE = 6
    STORY_MENTION = 7
    CONTACT = 8
    IG_REEL = 9


# Platform attachment "type" strings -> stored file type
ATTACHMENT_TYPE_MAP: dict[str, AttachmentFileType] = {
    "image": AttachmentFileType.IMAGE,
    "audio": AttachmentFileType.AUDIO,
    "video": AttachmentFileType.VIDEO,
    "file": AttachmentFileType.FILE,
    "document": AttachmentFileType.FILE,
    "location": AttachmentFileType.LOCATION,
    "fallback": AttachmentFileType.FALLBACK,
    "share": AttachmentFileType.SHARE,
    "story_mention": AttachmentFileType.STORY_MENTION,
    "contact": AttachmentFileType.CONTACT,
    "contacts": AttachmentFileType.CONTACT,
    "ig_reel": AttachmentFileType.IG_REEL,
}

# Attachment types the platforms send that carry nothing we can store
UNSUPPORTED_ATTACHMENT_TYPES = frozenset({"template", "unsupported_type"})

DELETED_MESSAGE_CONTENT = "This message was deleted"

MESSAGE_CONTENT_TYPE_TEXT = "text"

# external_error column is bounded; longer errors are truncated with an ellipsis
EXTERNAL_ERROR_MAX_LENGTH = 1000
