# SPDX-License-Identifier: Apache-2.0

"""
Voting item domain logic.

This module contains pure functions for item spec validation, lifecycle
status derivation and vote admission checks. Nothing here touches storage;
the voting engine service applies the results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from pydantic import ValidationError

from models.entities import VotingItem, VoteRecord
from models.enums import VotingItemType, VotingStatus, Jurisdiction, VotingErrorCode
from models.requests import CreateVotingItemRequest
from models.responses import VotingHistoryEntry

ITEM_TYPES = {item_type.value for item_type in VotingItemType}
JURISDICTIONS = {jurisdiction.value for jurisdiction in Jurisdiction}


@dataclass
class ValidationResult:
    """Result of item spec validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class VoteRejection:
    """Reason a vote cannot be admitted."""
    code: VotingErrorCode
    message: str


def validate_item_spec(spec: CreateVotingItemRequest) -> ValidationResult:
    """
    Validate a voting item spec before anything is written.

    Args:
        spec: Item spec submitted by an administrator or adapter

    Returns:
        ValidationResult with every problem found
    """
    errors = []

    if spec.type not in ITEM_TYPES:
        errors.append(f"Unknown item type '{spec.type}' (expected one of {', '.join(sorted(ITEM_TYPES))})")

    if spec.jurisdiction not in JURISDICTIONS:
        errors.append(
            f"Unknown jurisdiction '{spec.jurisdiction}' (expected one of {', '.join(sorted(JURISDICTIONS))})"
        )

    if len(spec.options) < 2:
        errors.append("At least two options are required")

    option_ids = [option.option_id for option in spec.options]
    duplicates = sorted({option_id for option_id in option_ids if option_ids.count(option_id) > 1})
    if duplicates:
        errors.append(f"Duplicate option ids: {', '.join(duplicates)}")

    if spec.end_date <= spec.start_date:
        errors.append("End date must be after start date")

    if spec.required_quorum < 0:
        errors.append("Required quorum cannot be negative")

    if spec.eligible_voters != "everyone":
        if not spec.eligible_voters:
            errors.append("Restricted eligibility requires at least one voter")
        elif any(not voter_id.strip() for voter_id in spec.eligible_voters):
            errors.append("Voter ids cannot be empty")

    return ValidationResult(is_valid=len(errors) == 0, errors=errors)


def initial_status(start_date: datetime, end_date: datetime, now: datetime) -> VotingStatus:
    """Status a new item starts in, derived from its window."""
    if now >= end_date:
        return VotingStatus.ENDED
    if now < start_date:
        return VotingStatus.UPCOMING
    return VotingStatus.ACTIVE


def build_voting_item(spec: CreateVotingItemRequest, created_by: str, now: datetime) -> VotingItem:
    """
    Build a validated VotingItem entity from a spec.

    Raises:
        pydantic.ValidationError: If the spec violates an entity invariant;
            callers run validate_item_spec first.
    """
    return VotingItem(
        title=spec.title.strip(),
        description=spec.description.strip(),
        type=spec.type,
        options=spec.options,
        start_date=spec.start_date,
        end_date=spec.end_date,
        jurisdiction=spec.jurisdiction,
        eligible_voters=spec.build_eligibility(),
        required_quorum=spec.required_quorum,
        created_by=created_by,
        created_at=now,
        status=initial_status(spec.start_date, spec.end_date, now)
    )


def describe_validation_error(error: ValidationError) -> List[str]:
    """Flatten pydantic errors into readable messages."""
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ()))
        messages.append(f"{location}: {detail.get('msg')}" if location else detail.get("msg", ""))
    return messages


def evaluate_vote(item: VotingItem, voter_id: str, option_id: str, now: datetime) -> Optional[VoteRejection]:
    """
    Check whether a vote may be admitted, in the order callers rely on:
    open window, eligibility, then option validity.

    Duplicate detection is not done here; it belongs to the atomic insert.

    Returns:
        None when the vote is admissible, otherwise the first rejection
    """
    status = item.status_at(now)
    if status == VotingStatus.UPCOMING:
        return VoteRejection(VotingErrorCode.VOTING_NOT_OPEN, "Voting has not opened yet for this item")
    if status == VotingStatus.ENDED:
        return VoteRejection(VotingErrorCode.VOTING_CLOSED, "Voting has closed for this item")

    if not item.eligible_voters.allows(voter_id):
        return VoteRejection(VotingErrorCode.NOT_ELIGIBLE, "You are not eligible to vote on this item")

    if item.get_option(option_id) is None:
        return VoteRejection(
            VotingErrorCode.INVALID_OPTION,
            f"Option '{option_id}' is not one of this item's options"
        )

    return None


def build_history_entry(record: VoteRecord, item: VotingItem) -> VotingHistoryEntry:
    """Join a vote record with its item for display."""
    option = item.get_option(record.option_id)
    return VotingHistoryEntry(
        item_id=item.id,
        title=item.title,
        type=item.type,
        jurisdiction=item.jurisdiction,
        option_id=record.option_id,
        selected_option=option.text if option else "Unknown",
        timestamp=record.timestamp
    )
