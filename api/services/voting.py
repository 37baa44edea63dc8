# SPDX-License-Identifier: Apache-2.0

"""
Voting engine: item lifecycle and vote casting.

The engine holds no locks and no shared state of its own. Every operation is
a short sequence of store calls; the one-vote-per-voter rule is enforced by
the store's atomic insert, never by a separate lookup beforehand.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import ValidationError

from domain import voting as voting_domain
from middleware.error_handler import (
    ValidationException, NotFoundException, AuthorizationException,
    ConflictException, StateException, InfrastructureException
)
from models.base import utc_now
from models.entities import VotingItem, VoteRecord
from models.enums import VotingErrorCode
from models.requests import CreateVotingItemRequest
from models.responses import VotingItemResponse, VotingResults, VotingHistoryEntry
from services.results import ResultsAggregator
from services.store import VoteStore, StoreError, DuplicateVoteError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

REJECTION_EXCEPTIONS = {
    VotingErrorCode.VOTING_CLOSED: StateException,
    VotingErrorCode.VOTING_NOT_OPEN: StateException,
    VotingErrorCode.NOT_ELIGIBLE: AuthorizationException,
    VotingErrorCode.INVALID_OPTION: ValidationException,
}


class VotingEngine:
    """Creates voting items, admits votes and closes voting."""

    def __init__(self, store: VoteStore, results: Optional[ResultsAggregator] = None,
                 clock: Callable[[], datetime] = utc_now):
        """
        Initialize the engine.

        Args:
            store: Persistence backend
            results: Aggregator used for final results (built from the store if omitted)
            clock: Source of the current UTC time
        """
        self.store = store
        self.clock = clock
        self.results = results or ResultsAggregator(store, clock)

    @contextmanager
    def _infrastructure_errors(self, item_id: Optional[str] = None) -> Iterator[None]:
        try:
            yield
        except DuplicateVoteError:
            raise
        except StoreError as e:
            raise InfrastructureException(f"Voting store unavailable: {e}", item_id) from e

    def _require_item(self, item_id: str) -> VotingItem:
        with self._infrastructure_errors(item_id):
            item = self.store.get_item(item_id)
        if item is None:
            raise NotFoundException(f"Voting item {item_id} not found", VotingErrorCode.ITEM_NOT_FOUND, item_id)
        return item

    def create_voting_item(self, spec: Union[CreateVotingItemRequest, Dict[str, Any]], created_by: str) -> str:
        """
        Validate a spec and insert a new voting item.

        Args:
            spec: Item spec (model or camelCase/snake_case dictionary)
            created_by: Identity creating the item

        Returns:
            The new item id

        Raises:
            ValidationException: If the spec is malformed; nothing is written
            InfrastructureException: If the store fails
        """
        with tracer.start_as_current_span("voting.item.create") as span:
            if not isinstance(spec, CreateVotingItemRequest):
                try:
                    spec = CreateVotingItemRequest.model_validate(spec)
                except ValidationError as e:
                    errors = voting_domain.describe_validation_error(e)
                    span.set_status(Status(StatusCode.ERROR, "Invalid item spec"))
                    raise ValidationException("Invalid voting item", validation_errors=errors) from e

            validation = voting_domain.validate_item_spec(spec)
            if not validation.is_valid:
                span.set_status(Status(StatusCode.ERROR, "Invalid item spec"))
                logger.warning(
                    "Voting item validation failed",
                    extra={"created_by": created_by, "validation_errors": validation.errors}
                )
                raise ValidationException("Invalid voting item", validation_errors=validation.errors)

            try:
                item = voting_domain.build_voting_item(spec, created_by, self.clock())
            except ValidationError as e:
                raise ValidationException(
                    "Invalid voting item",
                    validation_errors=voting_domain.describe_validation_error(e)
                ) from e

            with self._infrastructure_errors(item.id):
                item_id = self.store.insert_item(item)

            span.set_attributes({
                "voting.item_id": item_id,
                "voting.item_type": item.type,
                "voting.status": item.status
            })
            logger.info(
                f"Voting item created: {item_id}",
                extra={"item_id": item_id, "item_type": item.type, "created_by": created_by}
            )
            return item_id

    def cast_vote(self, voter_id: str, item_id: str, option_id: str) -> VoteRecord:
        """
        Record one voter's choice on an item.

        Checks run in order: item exists, voting open, voter eligible, option
        valid, then the atomic insert rejects duplicates.

        Raises:
            NotFoundException: Unknown item
            StateException: Voting not open yet or already closed
            AuthorizationException: Voter not eligible
            ValidationException: Option not on the ballot
            ConflictException: Voter already voted on this item
            InfrastructureException: Store failure
        """
        with tracer.start_as_current_span("voting.vote.cast") as span:
            span.set_attributes({"voting.item_id": item_id, "voting.option_id": option_id})

            item = self._require_item(item_id)
            now = self.clock()

            rejection = voting_domain.evaluate_vote(item, voter_id, option_id, now)
            if rejection is not None:
                span.set_status(Status(StatusCode.ERROR, rejection.code.value))
                logger.info(
                    f"Vote rejected: {rejection.code.value}",
                    extra={"item_id": item_id, "voter_id": voter_id, "reason": rejection.code.value}
                )
                raise REJECTION_EXCEPTIONS[rejection.code](rejection.message, rejection.code, item_id)

            record = VoteRecord(voter_id=voter_id, item_id=item_id, option_id=option_id, timestamp=now)

            try:
                with self._infrastructure_errors(item_id):
                    committed = self.store.insert_vote(record)
            except DuplicateVoteError as e:
                span.set_status(Status(StatusCode.ERROR, VotingErrorCode.DUPLICATE_VOTE.value))
                logger.info(
                    "Duplicate vote rejected",
                    extra={"item_id": item_id, "voter_id": voter_id}
                )
                raise ConflictException(
                    "You have already voted on this item",
                    VotingErrorCode.DUPLICATE_VOTE,
                    item_id
                ) from e

            logger.info("Vote recorded", extra={"item_id": item_id, "voter_id": voter_id})
            return committed

    def has_user_voted(self, voter_id: str, item_id: str) -> bool:
        """Check whether the voter already has a vote on the item."""
        with self._infrastructure_errors(item_id):
            return self.store.has_vote(voter_id, item_id)

    def get_active_voting_items(self, voter_id: Optional[str] = None) -> List[VotingItemResponse]:
        """
        List items currently accepting votes, soonest closing first.

        Each item is annotated with whether this voter already voted on it.
        """
        with tracer.start_as_current_span("voting.items.active") as span:
            now = self.clock()
            with self._infrastructure_errors():
                items = [item for item in self.store.list_items_open_at(now) if item.is_open_at(now)]
                voted = self.store.voted_item_ids(voter_id, [item.id for item in items]) if voter_id else set()

            span.set_attribute("voting.active_items", len(items))
            return [
                VotingItemResponse.from_item(item, item.id in voted, item.status_at(now))
                for item in items
            ]

    def get_voting_item(self, item_id: str, voter_id: Optional[str] = None) -> VotingItemResponse:
        """Fetch one item with its effective status and the caller's vote flag."""
        item = self._require_item(item_id)
        user_has_voted = self.has_user_voted(voter_id, item_id) if voter_id else False
        return VotingItemResponse.from_item(item, user_has_voted, item.status_at(self.clock()))

    def end_voting(self, item_id: str) -> VotingResults:
        """
        Close voting on an item and return its final results.

        Idempotent: ending an already ended item returns the current results.
        """
        with tracer.start_as_current_span("voting.item.end") as span:
            span.set_attribute("voting.item_id", item_id)

            with self._infrastructure_errors(item_id):
                found = self.store.mark_ended(item_id, self.clock())
            if not found:
                raise NotFoundException(f"Voting item {item_id} not found", VotingErrorCode.ITEM_NOT_FOUND, item_id)

            results = self.results.get_voting_results(item_id)
            logger.info(
                f"Voting ended for item {item_id}",
                extra={"item_id": item_id, "total_votes": results.total_votes, "quorum_met": results.quorum_met}
            )
            return results

    def get_user_voting_history(self, voter_id: str, limit: int = 50) -> List[VotingHistoryEntry]:
        """A voter's votes, newest first, joined with item details."""
        with self._infrastructure_errors():
            records = self.store.find_votes_by_voter(voter_id, limit)
            items = self.store.get_items({record.item_id for record in records})

        history = []
        for record in records:
            item = items.get(record.item_id)
            if item is None:
                logger.warning(
                    f"Vote record references missing item {record.item_id}",
                    extra={"item_id": record.item_id, "voter_id": voter_id}
                )
                continue
            history.append(voting_domain.build_history_entry(record, item))
        return history
