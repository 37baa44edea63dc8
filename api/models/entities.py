# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the civic voting engine.
"""

from datetime import date, datetime
from typing import Annotated, FrozenSet, List, Literal, Optional, Union
from pydantic import BaseModel, Field, ConfigDict, field_serializer, field_validator, model_validator
from .base import BaseEntity, VotingModel, ensure_utc, utc_now
from .enums import VotingItemType, VotingStatus, Jurisdiction


class VoteOption(VotingModel):
    """A single ballot choice; declaration order is significant."""

    option_id: str = Field(..., min_length=1, max_length=100, description="Option identifier")
    text: str = Field(..., min_length=1, max_length=500, description="Option label")
    description: Optional[str] = Field(None, max_length=1000, description="Option description")


class EveryoneEligible(VotingModel):
    """Eligibility variant admitting every authenticated voter."""

    kind: Literal["everyone"] = "everyone"

    def allows(self, voter_id: str) -> bool:
        return True


class RestrictedEligibility(VotingModel):
    """Eligibility variant admitting an explicit set of voter identities."""

    kind: Literal["restricted"] = "restricted"
    voter_ids: FrozenSet[str] = Field(..., description="Eligible voter identities")

    @field_validator('voter_ids')
    @classmethod
    def validate_voter_ids(cls, v):
        """Restricted eligibility must name at least one non-empty voter id."""
        if not v:
            raise ValueError('Restricted eligibility requires at least one voter')
        if any(not voter_id.strip() for voter_id in v):
            raise ValueError('Voter ids cannot be empty')
        return v

    @field_serializer('voter_ids')
    def serialize_voter_ids(self, v):
        return sorted(v)

    def allows(self, voter_id: str) -> bool:
        return voter_id in self.voter_ids


Eligibility = Annotated[Union[EveryoneEligible, RestrictedEligibility], Field(discriminator="kind")]


class VotingItem(BaseEntity):
    """Time-boxed unit of civic voting (bill, petition, referendum or poll)."""

    title: str = Field(..., min_length=1, max_length=300, description="Item title")
    description: str = Field(default="", max_length=5000, description="Item description")
    type: VotingItemType = Field(..., description="Item type")
    options: List[VoteOption] = Field(..., description="Ordered ballot options")
    start_date: datetime = Field(..., description="Voting window start (inclusive)")
    end_date: datetime = Field(..., description="Voting window end (exclusive)")
    status: VotingStatus = Field(default=VotingStatus.UPCOMING, description="Stored lifecycle status")
    jurisdiction: Jurisdiction = Field(..., description="Governmental level")
    eligible_voters: Eligibility = Field(default_factory=EveryoneEligible, description="Who may vote")
    required_quorum: int = Field(default=0, ge=0, description="Minimum total votes for a valid result")
    total_votes: int = Field(default=0, ge=0, description="Vote count, derived from vote records on read")
    ended_at: Optional[datetime] = Field(None, description="When voting was ended administratively")

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, v):
        return ensure_utc(v)

    @model_validator(mode='after')
    def validate_invariants(self):
        """Enforce window ordering and ballot shape."""
        if self.end_date <= self.start_date:
            raise ValueError('end_date must be after start_date')
        if len(self.options) < 2:
            raise ValueError('A voting item needs at least two options')
        option_ids = [option.option_id for option in self.options]
        if len(set(option_ids)) != len(option_ids):
            raise ValueError('Option ids must be unique')
        return self

    def get_option(self, option_id: str) -> Optional[VoteOption]:
        """Find an option by id."""
        for option in self.options:
            if option.option_id == option_id:
                return option
        return None

    def option_ids(self) -> List[str]:
        return [option.option_id for option in self.options]

    def status_at(self, now: datetime) -> VotingStatus:
        """Effective status: administrative 'ended' wins, otherwise derived from the window."""
        if self.status == VotingStatus.ENDED or now >= self.end_date:
            return VotingStatus.ENDED
        if now < self.start_date:
            return VotingStatus.UPCOMING
        return VotingStatus.ACTIVE

    def is_open_at(self, now: datetime) -> bool:
        """Check whether votes are accepted at the given instant."""
        return self.status_at(now) == VotingStatus.ACTIVE


class VoteRecord(VotingModel):
    """A single voter's immutable choice on a voting item."""

    voter_id: str = Field(..., min_length=1, description="Voter identity")
    item_id: str = Field(..., min_length=1, description="Voting item ID")
    option_id: str = Field(..., min_length=1, description="Chosen option ID")
    timestamp: datetime = Field(default_factory=utc_now, description="When the vote was cast")
    verified: bool = Field(default=False, description="True once durably committed")

    @field_validator('timestamp')
    @classmethod
    def normalize_timestamp(cls, v):
        return ensure_utc(v)


class BillMetadata(VotingModel):
    """Read-only bill metadata supplied by the legislative data collaborator."""

    id: str = Field(..., description="Bill identifier")
    title: str = Field(..., min_length=1, description="Bill title")
    summary: Optional[str] = Field(None, description="Bill summary")


class ElectionDateEstimate(VotingModel):
    """Computed election date; never persisted."""

    election_date: date = Field(..., alias="date", description="Election day (UTC calendar date)")
    estimated: bool = Field(default=True, description="Whether the date is an estimate")
    rule: str = Field(..., description="Human-readable rule description")


class UserContext(BaseModel):
    """Identity supplied by the session collaborator for request processing."""

    user_id: str = Field(..., description="Authenticated voter ID")
    email: Optional[str] = Field(None, description="User email")
    name: Optional[str] = Field(None, description="User display name")
    permissions: List[str] = Field(default_factory=list, description="User's effective permissions")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def has_permission(self, permission: str) -> bool:
        """Check if user has a specific permission."""
        return permission in self.permissions
