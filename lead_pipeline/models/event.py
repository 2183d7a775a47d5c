"""Canonical event records produced by the extractors."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from lead_pipeline.models.base import Record

# Placeholder for any field an extractor could not find
NOT_INFORMED = "Não informado"


class Platform(str, Enum):
    """Ticketing platform a URL belongs to."""

    SYMPLA = "sympla"
    EVENTBRITE = "eventbrite"
    UNRECOGNIZED = "unrecognized"


def informed(value: Any) -> str:
    """Coerce an extracted value to a display string, or the sentinel.

    Missing, null and blank values become NOT_INFORMED. Anything that is
    not a string is rejected so malformed payloads fail fast.
    """
    if value is None:
        return NOT_INFORMED
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {type(value).__name__}")
    value = " ".join(value.split())
    return value or NOT_INFORMED


class EventRecord(BaseModel):
    """Event + organizer data extracted from one listing page."""

    title: str = NOT_INFORMED
    date: str = NOT_INFORMED  # Kept verbatim, formats vary by platform
    location: str = NOT_INFORMED
    organizer: str = NOT_INFORMED
    organizer_website: Optional[str] = None
    source_url: str
    platform: Platform

    @field_validator("title", "date", "location", "organizer", mode="before")
    @classmethod
    def _fill_sentinel(cls, value: Any) -> str:
        return informed(value)

    @field_validator("organizer_website", mode="before")
    @classmethod
    def _blank_website(cls, value: Any) -> Optional[str]:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def has_organizer(self) -> bool:
        return self.organizer != NOT_INFORMED


class ExtractedEvent(BaseModel):
    """Strict shape of the JSON returned by the language model.

    Keys are the Portuguese names the prompt asks for.
    """

    nome_evento: str = NOT_INFORMED
    data_evento: str = NOT_INFORMED
    local: str = NOT_INFORMED
    produtor: str = NOT_INFORMED

    class Config:
        extra = "ignore"

    @field_validator("nome_evento", "data_evento", "local", "produtor", mode="before")
    @classmethod
    def _fill_sentinel(cls, value: Any) -> str:
        return informed(value)

    def to_record(self, url: str, platform: Platform = Platform.SYMPLA) -> EventRecord:
        return EventRecord(
            title=self.nome_evento,
            date=self.data_evento,
            location=self.local,
            organizer=self.produtor,
            source_url=url,
            platform=platform,
        )


class Event(Record):
    """Stored event row. Identity is the source URL."""

    organizer_id: str
    title: str
    date: str = NOT_INFORMED
    location: str = NOT_INFORMED
    source_url: str
