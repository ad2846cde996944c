"""
Commands to accept Instagram and Messenger webhook deliveries.

The body is validated and every ``messaging`` item is queued as its own job;
processing happens in the workers so the platform gets its 200 right away.
"""

from __future__ import annotations

from typing import Any, Mapping

from fastapi import HTTPException

from app.channels.normalizer import is_test_event, iter_messaging_items
from app.commands.base_webhook import BaseWebhookCommand
from app.constants.inbox import ChannelType
from app.infra.celery_app import QUEUE_HIGH, QUEUE_LOW
from app.tasks.facebook_events_task import facebook_events_task
from app.tasks.instagram_events_task import instagram_events_task

# Echoes wait so the send job can store the message's source_id first
ECHO_COUNTDOWN_SECONDS = 2


def _is_echo(item: dict[str, Any]) -> bool:
    return bool((item.get("message") or {}).get("is_echo"))


class MetaWebhookCommand(BaseWebhookCommand):
    expected_object: str

    def execute(self, raw_body: bytes, headers: Mapping[str, str]) -> dict[str, str]:
        """
        Validate the delivery and queue one job per messaging item.

        Returns:
            dict: {"status": "ok"}.

        Raises:
            HTTPException: 403 on a bad signature, 400 on invalid JSON,
                422 if ``object`` is not this platform's.
        """
        self.verify_request_signature(raw_body, headers)
        body = self.parse_body(raw_body)
        if body.get("object") != self.expected_object:
            raise HTTPException(
                status_code=422,
                detail=f"Unexpected object: expected {self.expected_object}",
            )

        for entry in body.get("entry") or []:
            if isinstance(entry, dict) and is_test_event(entry):
                self.logger.info(
                    "%s test event for entry %s ignored",
                    self.channel_type.value,
                    entry.get("id"),
                )

        queued = 0
        for entry_id, item in iter_messaging_items(body):
            self.enqueue(entry_id, item)
            queued += 1
        self.logger.debug("%s webhook queued %d jobs", self.channel_type.value, queued)
        return {"status": "ok"}

    def enqueue(self, entry_id: str | None, item: dict[str, Any]) -> None:
        raise NotImplementedError


class InstagramWebhookCommand(MetaWebhookCommand):
    channel_type = ChannelType.INSTAGRAM
    expected_object = "instagram"

    def enqueue(self, entry_id: str | None, item: dict[str, Any]) -> None:
        kwargs = {"messaging": item, "entry_id": entry_id}
        if _is_echo(item):
            instagram_events_task.apply_async(
                kwargs=kwargs, queue=QUEUE_LOW, countdown=ECHO_COUNTDOWN_SECONDS
            )
        else:
            instagram_events_task.apply_async(kwargs=kwargs, queue=QUEUE_HIGH)


class FacebookWebhookCommand(MetaWebhookCommand):
    channel_type = ChannelType.FACEBOOK
    expected_object = "page"

    def enqueue(self, entry_id: str | None, item: dict[str, Any]) -> None:
        facebook_events_task.apply_async(
            kwargs={"messaging": item, "entry_id": entry_id}, queue=QUEUE_HIGH
        )
