"""Attachment model: a local file reference or an external URL on a message."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, Float, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import relationship

from app.constants.inbox import AttachmentFileType
from app.db import Base, JSONType
from app.models.mixins import TimestampMixin


class Attachment(Base, TimestampMixin):
    __tablename__ = "attachments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    message_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_type = Column(Integer, nullable=False, default=AttachmentFileType.IMAGE.value)
    external_url = Column(String(4096), nullable=True)
    file_path = Column(String(1024), nullable=True)
    extension = Column(String(16), nullable=True)
    coordinates_lat = Column(Float, nullable=True)
    coordinates_long = Column(Float, nullable=True)
    fallback_title = Column(String(1024), nullable=True)
    meta = Column(JSONType, nullable=False, default=dict)

    message = relationship("Message", back_populates="attachments")

    @property
    def file_type_name(self) -> str:
        return AttachmentFileType(self.file_type).name.lower()

    def to_payload(self) -> dict:
        """Serializable view used by outgoing webhook payloads."""
        data = {
            "id": str(self.id),
            "file_type": self.file_type_name,
            "data_url": self.external_url or self.file_path,
        }
        if self.coordinates_lat is not None:
            data["coordinates_lat"] = self.coordinates_lat
            data["coordinates_long"] = self.coordinates_long
        if self.fallback_title:
            data["fallback_title"] = self.fallback_title
        return data
