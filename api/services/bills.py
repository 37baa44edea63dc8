# SPDX-License-Identifier: Apache-2.0

"""
Bill-to-vote adapter and bill metadata providers.

The adapter only assembles a standard item spec from bill metadata and hands
it to the voting engine; it contains no voting logic of its own.
"""

import os
import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from opentelemetry import trace
from pymongo.database import Database
from pymongo.errors import PyMongoError

from middleware.error_handler import NotFoundException, InfrastructureException
from models.entities import BillMetadata, VoteOption
from models.enums import VotingItemType, Jurisdiction, VotingErrorCode
from models.requests import CreateVotingItemRequest
from services.voting import VotingEngine

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DEFAULT_BILL_VOTE_DURATION_DAYS = 30
DEFAULT_BILL_VOTE_QUORUM = 1000
DEFAULT_BILL_DESCRIPTION = "Parliamentary bill requiring public input"

BILL_VOTE_OPTIONS = (
    VoteOption(option_id="support", text="Support", description="I support this bill"),
    VoteOption(option_id="oppose", text="Oppose", description="I oppose this bill"),
    VoteOption(option_id="abstain", text="Abstain", description="I choose not to vote"),
)


class BillMetadataProvider(ABC):
    """Read-only lookup of bill metadata."""

    @abstractmethod
    def get_bill(self, bill_id: str) -> Optional[BillMetadata]:
        """Return the bill or None when it does not exist."""


class StaticBillMetadataProvider(BillMetadataProvider):
    """Bill metadata served from an in-process mapping."""

    def __init__(self, bills: Optional[Dict[str, BillMetadata]] = None):
        self.bills = dict(bills or {})

    def get_bill(self, bill_id: str) -> Optional[BillMetadata]:
        return self.bills.get(bill_id)


class MongoBillMetadataProvider(BillMetadataProvider):
    """Bill metadata read from the `bills` collection maintained by the ingestion pipeline."""

    def __init__(self, database: Database, collection_name: str = "bills"):
        self.database = database
        self.collection_name = collection_name

    def get_bill(self, bill_id: str) -> Optional[BillMetadata]:
        # Bills may be keyed by ObjectId or by their legislative identifier
        candidates = [{"_id": bill_id}]
        try:
            candidates.insert(0, {"_id": ObjectId(bill_id)})
        except (InvalidId, TypeError):
            pass

        try:
            document = self.database[self.collection_name].find_one(
                {"$or": candidates},
                {"title": 1, "summary": 1}
            )
        except PyMongoError as e:
            logger.error(f"Failed to read bill {bill_id}: {e}")
            raise InfrastructureException(f"Bill metadata unavailable: {e}") from e

        if document is None:
            return None

        title = document.get("title")
        if not isinstance(title, str) or not title.strip():
            logger.error(f"Bill {bill_id} has no usable title", extra={"bill_id": bill_id})
            raise InfrastructureException(f"Bill {bill_id} metadata is malformed")
        summary = document.get("summary")
        return BillMetadata(id=bill_id, title=title, summary=summary if isinstance(summary, str) else None)


class BillVoteAdapter:
    """Creates a standard support/oppose/abstain vote for a legislative bill."""

    def __init__(self, engine: VotingEngine, bills: BillMetadataProvider,
                 duration_days: Optional[int] = None, quorum: Optional[int] = None):
        self.engine = engine
        self.bills = bills
        self.duration = timedelta(days=duration_days if duration_days is not None else int(
            os.getenv('BILL_VOTE_DURATION_DAYS', str(DEFAULT_BILL_VOTE_DURATION_DAYS))
        ))
        self.quorum = quorum if quorum is not None else int(
            os.getenv('BILL_VOTE_QUORUM', str(DEFAULT_BILL_VOTE_QUORUM))
        )

    def build_bill_vote_spec(self, bill: BillMetadata) -> CreateVotingItemRequest:
        """Assemble the item spec for a bill vote opening now."""
        start = self.engine.clock()
        return CreateVotingItemRequest(
            title=f"Vote on: {bill.title}",
            description=bill.summary or DEFAULT_BILL_DESCRIPTION,
            type=VotingItemType.BILL.value,
            options=list(BILL_VOTE_OPTIONS),
            start_date=start,
            end_date=start + self.duration,
            jurisdiction=Jurisdiction.FEDERAL.value,
            required_quorum=self.quorum,
            eligible_voters="everyone"
        )

    def create_bill_vote(self, bill_id: str, initiating_voter_id: str) -> str:
        """
        Create a voting item for a bill.

        Raises:
            NotFoundException: If the bill does not exist
        """
        with tracer.start_as_current_span("voting.bill_vote.create") as span:
            span.set_attribute("voting.bill_id", bill_id)

            bill = self.bills.get_bill(bill_id)
            if bill is None:
                raise NotFoundException(f"Bill {bill_id} not found", VotingErrorCode.BILL_NOT_FOUND)

            item_id = self.engine.create_voting_item(self.build_bill_vote_spec(bill), initiating_voter_id)

            span.set_attribute("voting.item_id", item_id)
            logger.info(
                f"Bill vote created for bill {bill_id}",
                extra={"bill_id": bill_id, "item_id": item_id, "created_by": initiating_voter_id}
            )
            return item_id
