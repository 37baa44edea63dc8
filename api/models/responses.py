# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Response models for voting endpoints.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import Field
from .base import VotingModel
from .entities import VotingItem
from .enums import VotingStatus


class OptionTally(VotingModel):
    """Per-option tally line."""

    option_id: str = Field(..., description="Option ID")
    option_text: str = Field(..., description="Option label")
    votes: int = Field(..., ge=0, description="Votes for this option")
    percentage: float = Field(..., ge=0, le=100, description="Share of total votes")


class VotingResults(VotingModel):
    """Aggregated results for one voting item."""

    item_id: str = Field(..., description="Voting item ID")
    title: str = Field(..., description="Voting item title")
    status: VotingStatus = Field(..., description="Effective status when the results were read")
    total_votes: int = Field(..., ge=0, description="Total votes in the snapshot")
    quorum_required: int = Field(..., ge=0, description="Required quorum")
    quorum_met: bool = Field(..., description="Whether total votes reach the quorum")
    per_option: List[OptionTally] = Field(default_factory=list, description="Tally ordered by votes")


class VotingItemResponse(VotingItem):
    """Voting item annotated for the calling voter."""

    user_has_voted: bool = Field(default=False, description="Whether the caller already voted")

    @classmethod
    def from_item(cls, item: VotingItem, user_has_voted: bool, status: VotingStatus) -> "VotingItemResponse":
        data = item.model_dump()
        data["status"] = status
        data["user_has_voted"] = user_has_voted
        return cls.model_validate(data)


class CreatedItemResponse(VotingModel):
    """Identifier of a newly created voting item."""

    item_id: str = Field(..., description="Voting item ID")


class VotingHistoryEntry(VotingModel):
    """One entry of a voter's history."""

    item_id: str = Field(..., description="Voting item ID")
    title: str = Field(..., description="Voting item title")
    type: str = Field(..., description="Voting item type")
    jurisdiction: str = Field(..., description="Voting item jurisdiction")
    option_id: str = Field(..., description="Chosen option ID")
    selected_option: str = Field(..., description="Chosen option label")
    timestamp: datetime = Field(..., description="When the vote was cast")


class ErrorResponse(VotingModel):
    """Problem document returned for business and infrastructure errors."""

    type: str = Field(..., description="Problem type URI")
    title: str = Field(..., description="Short problem title")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Human-readable explanation")
    code: Optional[str] = Field(None, description="Machine-readable reason code")
    item_id: Optional[str] = Field(None, description="Voting item the error refers to")
    instance: Optional[str] = Field(None, description="Request path")
    validation_errors: List[str] = Field(default_factory=list, description="Validation error messages")
