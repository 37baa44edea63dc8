# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the civic voting engine.
"""

from enum import Enum


class VotingItemType(str, Enum):
    """Kinds of civic voting items."""
    BILL = "bill"
    PETITION = "petition"
    REFERENDUM = "referendum"
    POLL = "poll"


class VotingStatus(str, Enum):
    """Voting item lifecycle status (upcoming -> active -> ended)."""
    UPCOMING = "upcoming"
    ACTIVE = "active"
    ENDED = "ended"


class Jurisdiction(str, Enum):
    """Governmental level an item or election rule applies to."""
    FEDERAL = "federal"
    PROVINCIAL = "provincial"
    MUNICIPAL = "municipal"


class VotingErrorCode(str, Enum):
    """Reason codes surfaced with business errors."""
    INVALID_ITEM = "INVALID_ITEM"
    INVALID_OPTION = "INVALID_OPTION"
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"
    BILL_NOT_FOUND = "BILL_NOT_FOUND"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
    NOT_PRIVILEGED = "NOT_PRIVILEGED"
    DUPLICATE_VOTE = "DUPLICATE_VOTE"
    VOTING_CLOSED = "VOTING_CLOSED"
    VOTING_NOT_OPEN = "VOTING_NOT_OPEN"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


class VotingPermission(str, Enum):
    """Permissions understood by the voting endpoints."""
    ADMIN = "voting:admin"
