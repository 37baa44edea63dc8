# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base models with common fields and serialization settings.
"""

from datetime import datetime, timezone
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class VotingModel(BaseModel):
    """Base model for payloads exchanged with external collaborators (camelCase on the wire)."""

    model_config = ConfigDict(
        # Accept both snake_case field names and camelCase aliases
        populate_by_name=True,
        alias_generator=to_camel,
        # Use enum values instead of enum objects
        use_enum_values=True,
        validate_assignment=True
    )

    def to_payload(self) -> dict:
        """Serialize to a JSON-ready camelCase dictionary."""
        return self.model_dump(mode="json", by_alias=True)


class BaseEntity(VotingModel):
    """Base entity with common fields for persisted objects."""

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    created_by: str = Field(..., description="Identity that created this entity")
    schema_version: int = Field(default=1, description="Schema version for migrations")
