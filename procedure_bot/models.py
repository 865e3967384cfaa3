from __future__ import annotations

from datetime import date
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field

IMAGE_CONTENT_PREFIX = "image/"


class ProcedureRecord(BaseModel):
    """Stored maintenance procedure for one equipment/operation pair."""
    id: int
    equipment: str
    operation: str
    description: Optional[str] = None
    photo_urls: List[str] = Field(default_factory=list)
    created_by: Optional[str] = None
    created_at: float


class User(BaseModel):
    """Ledger owner, keyed by WhatsApp number."""
    id: int
    wa_number: str
    name: Optional[str] = None
    created_at: float


class Transaction(BaseModel):
    """Expense or income entry in a user's ledger."""
    id: int
    user_id: int
    type: str = "expense"
    value_cents: int
    category: Optional[str] = None
    note: Optional[str] = None
    occurred_at: date
    created_at: float


class Attachment(BaseModel):
    """Media reference received with an inbound message."""
    url: str
    content_type: str = ""

    @property
    def is_image(self) -> bool:
        return self.content_type.lower().startswith(IMAGE_CONTENT_PREFIX)


class InboundMessage(BaseModel):
    """Transport-agnostic inbound chat message."""
    sender: str = ""
    profile_name: Optional[str] = None
    text: str = ""
    attachments: List[Attachment] = Field(default_factory=list)

    @property
    def image_urls(self) -> List[str]:
        return [attachment.url for attachment in self.attachments if attachment.is_image]

    @classmethod
    def from_twilio_form(cls, form: Mapping[str, str]) -> "InboundMessage":
        """Purpose: Build an InboundMessage from a Twilio WhatsApp webhook form.
        Inputs/Outputs: Input is the form mapping (From, ProfileName, Body, NumMedia,
            MediaUrl{i}, MediaContentType{i}); output is an InboundMessage.
        Side Effects / State: None.
        Dependencies: Attachment model.
        Failure Modes: A non-numeric NumMedia counts as zero attachments; missing
            fields become empty strings.
        If Removed: The webhook cannot read Twilio payloads.
        Testing Notes: Two media entries with one non-image keep one image_url.
        """
        # Read numbered media slots up to NumMedia.
        try:
            num_media = int(form.get("NumMedia") or 0)
        except ValueError:
            num_media = 0
        attachments = []
        for index in range(max(num_media, 0)):
            url = form.get(f"MediaUrl{index}")
            if not url:
                continue
            attachments.append(
                Attachment(url=url, content_type=form.get(f"MediaContentType{index}") or "")
            )
        return cls(
            sender=form.get("From") or "",
            profile_name=form.get("ProfileName") or None,
            text=form.get("Body") or "",
            attachments=attachments,
        )


class ReplySegment(BaseModel):
    """One outbound message: a text body or a single media reference."""
    text: Optional[str] = None
    media_url: Optional[str] = None


class BotReply(BaseModel):
    """Ordered reply segments; the first one carries the primary text."""
    segments: List[ReplySegment] = Field(default_factory=list)

    @property
    def text(self) -> str:
        for segment in self.segments:
            if segment.text:
                return segment.text
        return ""

    @property
    def media_urls(self) -> List[str]:
        return [segment.media_url for segment in self.segments if segment.media_url]
