# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the civic voting engine.
"""

# Base models
from .base import VotingModel, BaseEntity, generate_object_id, utc_now, ensure_utc

# Enumerations
from .enums import (
    VotingItemType,
    VotingStatus,
    Jurisdiction,
    VotingErrorCode,
    VotingPermission
)

# Core entities
from .entities import (
    VoteOption,
    EveryoneEligible,
    RestrictedEligibility,
    Eligibility,
    VotingItem,
    VoteRecord,
    BillMetadata,
    ElectionDateEstimate,
    UserContext
)

# Request models
from .requests import (
    CreateVotingItemRequest,
    CastVoteRequest,
    ItemPath,
    BillPath,
    HistoryQuery,
    ElectionDateQuery
)

# Response models
from .responses import (
    OptionTally,
    VotingResults,
    VotingItemResponse,
    CreatedItemResponse,
    VotingHistoryEntry,
    ErrorResponse
)

__all__ = [
    # Base models
    "VotingModel",
    "BaseEntity",
    "generate_object_id",
    "utc_now",
    "ensure_utc",

    # Enumerations
    "VotingItemType",
    "VotingStatus",
    "Jurisdiction",
    "VotingErrorCode",
    "VotingPermission",

    # Core entities
    "VoteOption",
    "EveryoneEligible",
    "RestrictedEligibility",
    "Eligibility",
    "VotingItem",
    "VoteRecord",
    "BillMetadata",
    "ElectionDateEstimate",
    "UserContext",

    # Request models
    "CreateVotingItemRequest",
    "CastVoteRequest",
    "ItemPath",
    "BillPath",
    "HistoryQuery",
    "ElectionDateQuery",

    # Response models
    "OptionTally",
    "VotingResults",
    "VotingItemResponse",
    "CreatedItemResponse",
    "VotingHistoryEntry",
    "ErrorResponse"
]
