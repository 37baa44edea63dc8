# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Persistence, engine operations and external collaborators.
"""

from .store import VoteStore, LocalVoteStore, StoreError, DuplicateVoteError
from .mongodb import MongoVoteStore
from .results import ResultsAggregator
from .voting import VotingEngine
from .bills import (
    BillMetadataProvider,
    StaticBillMetadataProvider,
    MongoBillMetadataProvider,
    BillVoteAdapter
)
from .auth import AuthService, TokenValidationError

__all__ = [
    "VoteStore",
    "LocalVoteStore",
    "StoreError",
    "DuplicateVoteError",
    "MongoVoteStore",
    "ResultsAggregator",
    "VotingEngine",
    "BillMetadataProvider",
    "StaticBillMetadataProvider",
    "MongoBillMetadataProvider",
    "BillVoteAdapter",
    "AuthService",
    "TokenValidationError"
]
