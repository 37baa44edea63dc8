# SPDX-License-Identifier: Apache-2.0

"""
Voting item store contract and the in-process backend.

The store owns the one correctness-critical invariant of the engine: a voter
has at most one vote record per item. Backends enforce it inside their insert
operation and signal violations with DuplicateVoteError.

Vote totals are never cached on items; they are counted from vote records
when items are read.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from models.entities import VotingItem, VoteRecord
from models.enums import VotingStatus

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the persistence layer fails or returns malformed data."""
    pass


class DuplicateVoteError(StoreError):
    """Raised when a vote record for (voter_id, item_id) already exists."""

    def __init__(self, voter_id: str, item_id: str):
        super().__init__(f"Voter {voter_id} already voted on item {item_id}")
        self.voter_id = voter_id
        self.item_id = item_id


class VoteStore(ABC):
    """Persistence contract used by the voting engine and results aggregator."""

    @abstractmethod
    def insert_item(self, item: VotingItem) -> str:
        """Durably insert a new voting item and return its id."""

    @abstractmethod
    def get_item(self, item_id: str) -> Optional[VotingItem]:
        """Read one item with total_votes counted from its vote records."""

    @abstractmethod
    def get_items(self, item_ids: Iterable[str]) -> Dict[str, VotingItem]:
        """Read several items by id; unknown ids are omitted."""

    @abstractmethod
    def list_items_open_at(self, now: datetime) -> List[VotingItem]:
        """Items not ended whose window contains now, ordered by end date."""

    @abstractmethod
    def mark_ended(self, item_id: str, ended_at: datetime) -> bool:
        """
        Set status to ended; idempotent.

        The first call records ended_at, later calls leave it untouched.
        Returns False when the item does not exist.
        """

    @abstractmethod
    def insert_vote(self, record: VoteRecord) -> VoteRecord:
        """
        Atomically insert a vote record.

        Raises:
            DuplicateVoteError: If (voter_id, item_id) already has a record
            StoreError: On any other persistence failure
        """

    @abstractmethod
    def has_vote(self, voter_id: str, item_id: str) -> bool:
        """Check whether a vote record exists for the pair."""

    @abstractmethod
    def voted_item_ids(self, voter_id: str, item_ids: Iterable[str]) -> Set[str]:
        """Subset of item_ids the voter has a record for."""

    @abstractmethod
    def count_votes_by_option(self, item_id: str) -> Dict[str, int]:
        """Vote counts grouped by option id, read as one snapshot."""

    @abstractmethod
    def find_votes_by_voter(self, voter_id: str, limit: int) -> List[VoteRecord]:
        """A voter's records, newest first."""

    @abstractmethod
    def health_check(self) -> Dict[str, object]:
        """Report backend health."""


class LocalVoteStore(VoteStore):
    """
    In-process vote store for local development and tests.

    A single lock serializes every operation, so the uniqueness check and the
    insert of a vote record happen as one step. Returned entities are copies;
    callers cannot mutate stored state.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._items: Dict[str, VotingItem] = {}
        self._votes: Dict[Tuple[str, str], VoteRecord] = {}
        logger.info("Local vote store initialized")

    def _with_total(self, item: VotingItem) -> VotingItem:
        total = sum(1 for (_, item_id) in self._votes if item_id == item.id)
        return item.model_copy(update={"total_votes": total}, deep=True)

    def insert_item(self, item: VotingItem) -> str:
        with self._lock:
            if item.id in self._items:
                raise StoreError(f"Voting item {item.id} already exists")
            self._items[item.id] = item.model_copy(update={"total_votes": 0}, deep=True)
        logger.debug(f"Stored voting item {item.id}")
        return item.id

    def get_item(self, item_id: str) -> Optional[VotingItem]:
        with self._lock:
            item = self._items.get(item_id)
            return self._with_total(item) if item else None

    def get_items(self, item_ids: Iterable[str]) -> Dict[str, VotingItem]:
        with self._lock:
            return {
                item_id: self._with_total(self._items[item_id])
                for item_id in set(item_ids) if item_id in self._items
            }

    def list_items_open_at(self, now: datetime) -> List[VotingItem]:
        with self._lock:
            items = [
                self._with_total(item) for item in self._items.values()
                if item.status != VotingStatus.ENDED and item.start_date <= now < item.end_date
            ]
        return sorted(items, key=lambda item: item.end_date)

    def mark_ended(self, item_id: str, ended_at: datetime) -> bool:
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return False
            if item.status != VotingStatus.ENDED:
                self._items[item_id] = item.model_copy(
                    update={"status": VotingStatus.ENDED, "ended_at": ended_at}
                )
            return True

    def insert_vote(self, record: VoteRecord) -> VoteRecord:
        key = (record.voter_id, record.item_id)
        with self._lock:
            if record.item_id not in self._items:
                raise StoreError(f"Voting item {record.item_id} does not exist")
            if key in self._votes:
                raise DuplicateVoteError(record.voter_id, record.item_id)
            committed = record.model_copy(update={"verified": True})
            self._votes[key] = committed
        return committed.model_copy()

    def has_vote(self, voter_id: str, item_id: str) -> bool:
        with self._lock:
            return (voter_id, item_id) in self._votes

    def voted_item_ids(self, voter_id: str, item_ids: Iterable[str]) -> Set[str]:
        with self._lock:
            return {item_id for item_id in item_ids if (voter_id, item_id) in self._votes}

    def count_votes_by_option(self, item_id: str) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        with self._lock:
            for (_, voted_item_id), record in self._votes.items():
                if voted_item_id == item_id:
                    counts[record.option_id] = counts.get(record.option_id, 0) + 1
        return counts

    def find_votes_by_voter(self, voter_id: str, limit: int) -> List[VoteRecord]:
        with self._lock:
            records = [record.model_copy() for (voted_by, _), record in self._votes.items()
                       if voted_by == voter_id]
        records.sort(key=lambda record: record.timestamp, reverse=True)
        return records[:limit]

    def health_check(self) -> Dict[str, object]:
        with self._lock:
            return {
                'status': 'healthy',
                'backend': 'local',
                'items': len(self._items),
                'votes': len(self._votes)
            }
