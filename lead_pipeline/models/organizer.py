"""Organizer and contact models."""

import re
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from lead_pipeline.models.base import Record

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class Organizer(Record):
    """Event-producing company tracked per user. Unique on (name, user_id)."""

    name: str
    website: Optional[str] = None


class Contact(Record):
    """A person or mailbox attached to one organizer."""

    organizer_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    position: Optional[str] = None

    @model_validator(mode="after")
    def _has_identity(self) -> "Contact":
        if not self.name and not self.email:
            raise ValueError("contact needs a name or an email")
        if self.email and not EMAIL_RE.match(self.email):
            raise ValueError(f"invalid email: {self.email}")
        return self


class ContactCandidate(BaseModel):
    """Contact returned by the email finder, before persistence."""

    name: Optional[str] = None
    email: str
    position: Optional[str] = None
    confidence: int = Field(default=0, ge=0, le=100)  # Not persisted
