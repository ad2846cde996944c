"""Tests for the message status state machine."""

import pytest

from app.constants.inbox import MessageStatus
from app.models.message import Message


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        (MessageStatus.PROGRESS, MessageStatus.SENT, True),
        (MessageStatus.SENT, MessageStatus.DELIVERED, True),
        (MessageStatus.SENT, MessageStatus.READ, True),
        (MessageStatus.DELIVERED, MessageStatus.READ, True),
        (MessageStatus.READ, MessageStatus.DELIVERED, False),
        (MessageStatus.DELIVERED, MessageStatus.DELIVERED, False),
        (MessageStatus.SENT, MessageStatus.FAILED, True),
        (MessageStatus.PROGRESS, MessageStatus.FAILED, True),
        (MessageStatus.DELIVERED, MessageStatus.FAILED, False),
        (MessageStatus.FAILED, MessageStatus.READ, False),
    ],
)
def test_can_transition_to(current, target, allowed):
    assert Message(status=current.value).can_transition_to(target) is allowed
