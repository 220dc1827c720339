"""Versioned on-disk encoding for journal entries.

Every entry file is a JSON envelope::

    {"versionSentinel": 2, "data": "<base64 of the entry payload>"}

Payload schemas form a chain: each schema knows its predecessor and how to
migrate it forward. Decoding tries the newest schema first and falls back
down the chain, so files written by any earlier release still load. The
chain is append-only; to change the format, add ``EntrySchemaV3`` with
``previous = EntrySchemaV2`` and point ``LatestSchema`` at it.
"""

from __future__ import annotations

import base64
import binascii
import json
from datetime import datetime, timedelta, timezone
from typing import ClassVar, cast
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..core.exceptions import ParseError
from .models import Entry

# Version 1 files store dates as seconds since 2001-01-01 UTC.
REFERENCE_DATE = datetime(2001, 1, 1, tzinfo=timezone.utc)


def _to_reference_seconds(dt: datetime) -> float:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - REFERENCE_DATE).total_seconds()


def _from_reference_seconds(seconds: float) -> datetime:
    return REFERENCE_DATE + timedelta(seconds=seconds)


class EntrySaveContainer(BaseModel):
    """The envelope written to each file."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, strict=True)

    version_sentinel: int
    data: str = Field(description="Base64-encoded schema payload")


class EntrySchema(BaseModel):
    """Base for payload schemas. Subclasses set ``version`` and ``previous``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, strict=True, frozen=True)

    version: ClassVar[int] = 0
    previous: ClassVar[type[EntrySchema] | None] = None

    @classmethod
    def decode(cls, payload: bytes) -> EntrySchema:
        """Parse *payload* as this schema, else as an older one migrated forward."""
        try:
            return cls.model_validate_json(payload)
        except ValidationError as own_error:
            if cls.previous is None:
                raise ParseError(cls.__name__, reason=own_error) from own_error
            try:
                older = cls.previous.decode(payload)
            except ParseError as e:
                raise ParseError(cls.__name__, reason=e) from e
            try:
                return cls.from_previous(older)
            except (OverflowError, ValueError) as e:
                raise ParseError(cls.__name__, reason=e) from e

    @classmethod
    def from_previous(cls, previous: EntrySchema) -> EntrySchema:
        raise NotImplementedError(f"{cls.__name__} has no predecessor to migrate from")

    @classmethod
    def from_entry(cls, entry: Entry) -> EntrySchema:
        raise NotImplementedError

    def to_payload(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")


class EntrySchemaV1(EntrySchema):
    """Original format: uppercase UUID string, dates as reference-date seconds."""

    version: ClassVar[int] = 1

    id: UUID
    title: str
    content: str
    date_created: float = Field(allow_inf_nan=False)
    date_edited: float = Field(allow_inf_nan=False)

    @classmethod
    def from_entry(cls, entry: Entry) -> EntrySchemaV1:
        return cls(
            id=entry.id,
            title=entry.title,
            content=entry.content,
            date_created=_to_reference_seconds(entry.date_created),
            date_edited=_to_reference_seconds(entry.date_edited),
        )

    def to_payload(self) -> bytes:
        # model_dump_json would lowercase the UUID; v1 readers expect uppercase.
        body = self.model_dump(mode="json", by_alias=True)
        body["id"] = str(self.id).upper()
        return json.dumps(body, separators=(",", ":")).encode("utf-8")


class EntrySchemaV2(EntrySchema):
    """Current format: ISO-8601 timestamps with UTC offset."""

    version: ClassVar[int] = 2
    previous: ClassVar[type[EntrySchema] | None] = EntrySchemaV1

    id: UUID
    title: str
    content: str
    date_created: AwareDatetime
    date_edited: AwareDatetime

    @classmethod
    def from_previous(cls, previous: EntrySchema) -> EntrySchemaV2:
        if not isinstance(previous, EntrySchemaV1):
            raise TypeError(f"Cannot migrate {type(previous).__name__} to {cls.__name__}")
        return cls(
            id=previous.id,
            title=previous.title,
            content=previous.content,
            date_created=_from_reference_seconds(previous.date_created),
            date_edited=_from_reference_seconds(previous.date_edited),
        )

    @classmethod
    def from_entry(cls, entry: Entry) -> EntrySchemaV2:
        return cls(
            id=entry.id,
            title=entry.title,
            content=entry.content,
            date_created=entry.date_created,
            date_edited=entry.date_edited,
        )

    def to_entry(self) -> Entry:
        return Entry(
            id=self.id,
            title=self.title,
            content=self.content,
            date_created=self.date_created,
            date_edited=self.date_edited,
        )


LatestSchema = EntrySchemaV2
CURRENT_VERSION = LatestSchema.version


def encode(entry: Entry, schema: type[EntrySchema] = LatestSchema) -> bytes:
    """Serialize *entry* into an envelope. Older schemas are for compatibility tests."""
    payload = schema.from_entry(entry).to_payload()
    container = EntrySaveContainer(
        version_sentinel=schema.version,
        data=base64.b64encode(payload).decode("ascii"),
    )
    return container.model_dump_json(by_alias=True).encode("utf-8")


def decode(data: bytes) -> Entry:
    """Parse an envelope into an Entry.

    Raises:
        ParseError: The envelope is malformed or no schema matches the payload.
    """
    try:
        container = EntrySaveContainer.model_validate_json(data)
        payload = base64.b64decode(container.data, validate=True)
    except (ValidationError, binascii.Error, ValueError) as e:
        raise ParseError(EntrySaveContainer.__name__, reason=e) from e

    schema = cast(LatestSchema, LatestSchema.decode(payload))
    return schema.to_entry()
