# SPDX-License-Identifier: Apache-2.0

"""
Results aggregator: read-only tallies and quorum evaluation.
"""

import logging
from datetime import datetime
from typing import Callable

from opentelemetry import trace

from domain.results import tally_votes
from middleware.error_handler import NotFoundException, InfrastructureException
from models.base import utc_now
from models.enums import VotingErrorCode
from models.responses import VotingResults
from services.store import VoteStore, StoreError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class ResultsAggregator:
    """Builds vote tallies from the store without mutating it."""

    def __init__(self, store: VoteStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def get_voting_results(self, item_id: str) -> VotingResults:
        """
        Tally the votes of one item.

        Counts are read in a single store call and the total is derived from
        that same read, so the percentages always describe one snapshot.

        Raises:
            NotFoundException: If the item does not exist
            InfrastructureException: If the store fails
        """
        with tracer.start_as_current_span("voting.results.get") as span:
            span.set_attribute("voting.item_id", item_id)

            try:
                item = self.store.get_item(item_id)
                if item is None:
                    raise NotFoundException(
                        f"Voting item {item_id} not found",
                        VotingErrorCode.ITEM_NOT_FOUND,
                        item_id
                    )
                counts = self.store.count_votes_by_option(item_id)
            except StoreError as e:
                raise InfrastructureException(f"Unable to read results: {e}", item_id) from e

            results = tally_votes(item, counts, self.clock())

            span.set_attributes({
                "voting.total_votes": results.total_votes,
                "voting.quorum_met": results.quorum_met
            })
            logger.debug(
                f"Tallied {results.total_votes} votes for item {item_id}",
                extra={"item_id": item_id, "total_votes": results.total_votes}
            )
            return results
