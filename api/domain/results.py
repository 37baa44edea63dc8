# SPDX-License-Identifier: Apache-2.0

"""
Results tallying domain logic.

Turns one snapshot of per-option vote counts into an ordered tally with
percentages and quorum evaluation.
"""

import logging
from datetime import datetime
from typing import Dict

from models.entities import VotingItem
from models.responses import OptionTally, VotingResults

logger = logging.getLogger(__name__)

PERCENTAGE_PRECISION = 2


def tally_votes(item: VotingItem, counts: Dict[str, int], now: datetime) -> VotingResults:
    """
    Build results for an item from a single snapshot of grouped counts.

    Every declared option appears, even with zero votes. The total is the sum
    of the same snapshot, so percentages are consistent with it. Ordering is
    by votes descending, ties broken by declaration order.

    Args:
        item: Voting item being tallied
        counts: Votes per option id, read in one store call
        now: Instant used to report the effective status

    Returns:
        VotingResults for the snapshot
    """
    declared = item.option_ids()
    orphans = {option_id: votes for option_id, votes in counts.items() if option_id not in declared}
    if orphans:
        logger.warning(
            f"Ignoring votes for undeclared options on item {item.id}",
            extra={"item_id": item.id, "orphan_options": sorted(orphans)}
        )

    per_option_votes = [(position, option, counts.get(option.option_id, 0))
                        for position, option in enumerate(item.options)]
    total_votes = sum(votes for _, _, votes in per_option_votes)

    ordered = sorted(per_option_votes, key=lambda entry: (-entry[2], entry[0]))

    per_option = [
        OptionTally(
            option_id=option.option_id,
            option_text=option.text,
            votes=votes,
            percentage=round(votes / total_votes * 100, PERCENTAGE_PRECISION) if total_votes > 0 else 0.0
        )
        for _, option, votes in ordered
    ]

    return VotingResults(
        item_id=item.id,
        title=item.title,
        status=item.status_at(now),
        total_votes=total_votes,
        quorum_required=item.required_quorum,
        quorum_met=total_votes >= item.required_quorum,
        per_option=per_option
    )
