# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for voting endpoints and engine operations.
"""

from datetime import date, datetime
from typing import List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from .base import VotingModel, ensure_utc
from .entities import VoteOption, EveryoneEligible, RestrictedEligibility
from .enums import Jurisdiction

# Later references would push the next election past the last representable year
LATEST_REFERENCE_DATE = date(9990, 12, 31)


class CreateVotingItemRequest(VotingModel):
    """
    Item spec submitted by an administrator or the bill adapter.

    Enumerated fields are kept as plain strings here so that the engine can
    report every problem at once as a business validation failure.
    """

    title: str = Field(..., min_length=1, max_length=300, description="Item title")
    description: str = Field(default="", max_length=5000, description="Item description")
    type: str = Field(..., description="bill, petition, referendum or poll")
    options: List[VoteOption] = Field(default_factory=list, description="Ordered ballot options")
    start_date: datetime = Field(..., description="Voting window start")
    end_date: datetime = Field(..., description="Voting window end")
    jurisdiction: str = Field(..., description="federal, provincial or municipal")
    required_quorum: int = Field(default=0, description="Minimum total votes, 0 for none")
    eligible_voters: Union[Literal["everyone"], List[str]] = Field(
        default="everyone",
        description='"everyone" or an explicit list of voter ids'
    )

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, v):
        return ensure_utc(v)

    def build_eligibility(self) -> Union[EveryoneEligible, RestrictedEligibility]:
        """Convert the wire form into the tagged eligibility variant."""
        if self.eligible_voters == "everyone":
            return EveryoneEligible()
        return RestrictedEligibility(voter_ids=frozenset(self.eligible_voters))


class CastVoteRequest(VotingModel):
    """Vote submission; the voter identity comes from the session."""

    option_id: str = Field(..., min_length=1, description="Chosen option ID")


class ItemPath(BaseModel):
    """Path parameters for item-scoped endpoints."""

    item_id: str = Field(..., description="Voting item ID")


class BillPath(BaseModel):
    """Path parameters for bill-vote creation."""

    bill_id: str = Field(..., description="Bill ID")


class HistoryQuery(BaseModel):
    """Query parameters for voting history."""

    limit: int = Field(default=50, ge=1, le=200, description="Maximum entries to return")


class ElectionDateQuery(BaseModel):
    """Query parameters for the election date calculator."""

    jurisdiction: Jurisdiction = Field(..., description="federal, provincial or municipal")
    name: Optional[str] = Field(None, max_length=200, description="Province or municipality name")
    reference_date: Optional[date] = Field(
        None, alias="referenceDate", le=LATEST_REFERENCE_DATE,
        description="Date to compute from (defaults to today)"
    )

    model_config = ConfigDict(populate_by_name=True)
