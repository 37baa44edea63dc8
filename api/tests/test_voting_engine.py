# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the voting engine against the in-process store.
"""

import pytest
import threading
from datetime import timedelta
from unittest.mock import MagicMock

from middleware.error_handler import (
    ValidationException,
    NotFoundException,
    AuthorizationException,
    ConflictException,
    StateException,
    InfrastructureException
)
from models.enums import VotingErrorCode, VotingStatus
from services.store import StoreError
from services.voting import VotingEngine


class TestCreateVotingItem:
    """Test item creation and spec validation."""

    def test_create_active_item(self, engine, store, item_spec):
        item_id = engine.create_voting_item(item_spec, "admin-1")

        item = store.get_item(item_id)
        assert item is not None
        assert item.status == VotingStatus.ACTIVE
        assert item.created_by == "admin-1"
        assert item.option_ids() == ["support", "oppose", "abstain"]
        assert item.eligible_voters.kind == "everyone"

    def test_future_window_starts_upcoming(self, engine, store, item_spec, now):
        item_spec["startDate"] = now + timedelta(days=1)
        item_spec["endDate"] = now + timedelta(days=2)

        item_id = engine.create_voting_item(item_spec, "admin-1")

        assert store.get_item(item_id).status == VotingStatus.UPCOMING

    def test_restricted_eligibility(self, engine, store, item_spec):
        item_spec["eligibleVoters"] = ["voter-1", "voter-2"]

        item_id = engine.create_voting_item(item_spec, "admin-1")

        eligibility = store.get_item(item_id).eligible_voters
        assert eligibility.kind == "restricted"
        assert eligibility.voter_ids == frozenset({"voter-1", "voter-2"})

    def test_validation_reports_every_problem(self, engine, store, item_spec, now):
        item_spec["type"] = "raffle"
        item_spec["jurisdiction"] = "galactic"
        item_spec["options"] = [{"optionId": "only", "text": "Only"}]
        item_spec["endDate"] = item_spec["startDate"]
        item_spec["requiredQuorum"] = -1

        with pytest.raises(ValidationException) as exc_info:
            engine.create_voting_item(item_spec, "admin-1")

        error = exc_info.value
        assert error.error_code == VotingErrorCode.INVALID_ITEM
        assert len(error.validation_errors) == 5
        assert store.health_check()["items"] == 0

    def test_duplicate_option_ids_rejected(self, engine, item_spec):
        item_spec["options"].append({"optionId": "support", "text": "Support again"})

        with pytest.raises(ValidationException) as exc_info:
            engine.create_voting_item(item_spec, "admin-1")

        assert any("support" in message for message in exc_info.value.validation_errors)

    def test_empty_restricted_list_rejected(self, engine, item_spec):
        item_spec["eligibleVoters"] = []

        with pytest.raises(ValidationException):
            engine.create_voting_item(item_spec, "admin-1")

    def test_malformed_spec_rejected(self, engine):
        with pytest.raises(ValidationException) as exc_info:
            engine.create_voting_item({"title": "Missing everything"}, "admin-1")

        assert exc_info.value.validation_errors

    def test_store_failure_is_infrastructure_error(self, item_spec, clock):
        store = MagicMock()
        store.insert_item.side_effect = StoreError("connection refused")
        engine = VotingEngine(store, clock=clock)

        with pytest.raises(InfrastructureException) as exc_info:
            engine.create_voting_item(item_spec, "admin-1")

        assert exc_info.value.error_code == VotingErrorCode.STORE_UNAVAILABLE


class TestCastVote:
    """Test vote admission rules."""

    def test_one_vote_per_voter(self, engine, item_spec):
        item_id = engine.create_voting_item(item_spec, "admin-1")

        engine.cast_vote("U1", item_id, "support")
        engine.cast_vote("U2", item_id, "support")

        with pytest.raises(ConflictException) as exc_info:
            engine.cast_vote("U1", item_id, "oppose")
        assert exc_info.value.error_code == VotingErrorCode.DUPLICATE_VOTE
        assert exc_info.value.item_id == item_id

        results = engine.results.get_voting_results(item_id)
        tallies = {tally.option_id: (tally.votes, tally.percentage) for tally in results.per_option}
        assert tallies == {"support": (2, 100.0), "oppose": (0, 0.0), "abstain": (0, 0.0)}
        assert results.total_votes == 2
        assert results.quorum_met is True

    def test_returns_committed_record(self, engine, item_spec, now):
        item_id = engine.create_voting_item(item_spec, "admin-1")

        record = engine.cast_vote("U1", item_id, "oppose")

        assert record.voter_id == "U1"
        assert record.option_id == "oppose"
        assert record.timestamp == now
        assert record.verified is True

    def test_closed_window_rejects_every_voter(self, engine, item_spec, clock):
        item_id = engine.create_voting_item(item_spec, "admin-1")
        clock.advance(days=30)

        with pytest.raises(StateException) as exc_info:
            engine.cast_vote("never-voted", item_id, "support")

        assert exc_info.value.error_code == VotingErrorCode.VOTING_CLOSED

    def test_window_end_is_exclusive(self, engine, item_spec, clock, now):
        item_id = engine.create_voting_item(item_spec, "admin-1")
        clock.now = item_spec["endDate"]

        with pytest.raises(StateException):
            engine.cast_vote("U1", item_id, "support")

    def test_not_yet_open(self, engine, item_spec, now):
        item_spec["startDate"] = now + timedelta(hours=1)
        item_id = engine.create_voting_item(item_spec, "admin-1")

        with pytest.raises(StateException) as exc_info:
            engine.cast_vote("U1", item_id, "support")

        assert exc_info.value.error_code == VotingErrorCode.VOTING_NOT_OPEN

    def test_upcoming_item_opens_when_window_starts(self, engine, item_spec, clock, now):
        item_spec["startDate"] = now + timedelta(hours=1)
        item_id = engine.create_voting_item(item_spec, "admin-1")
        clock.advance(hours=1)

        assert engine.cast_vote("U1", item_id, "support").option_id == "support"

    def test_restricted_voter_not_eligible(self, engine, item_spec):
        item_spec["eligibleVoters"] = ["U1", "U2"]
        item_id = engine.create_voting_item(item_spec, "admin-1")

        with pytest.raises(AuthorizationException) as exc_info:
            engine.cast_vote("U3", item_id, "support")

        assert exc_info.value.error_code == VotingErrorCode.NOT_ELIGIBLE
        assert engine.cast_vote("U2", item_id, "support").voter_id == "U2"

    def test_unknown_option(self, engine, item_spec):
        item_id = engine.create_voting_item(item_spec, "admin-1")

        with pytest.raises(ValidationException) as exc_info:
            engine.cast_vote("U1", item_id, "maybe")

        assert exc_info.value.error_code == VotingErrorCode.INVALID_OPTION
        assert engine.has_user_voted("U1", item_id) is False

    def test_eligibility_checked_before_option(self, engine, item_spec):
        item_spec["eligibleVoters"] = ["U1"]
        item_id = engine.create_voting_item(item_spec, "admin-1")

        with pytest.raises(AuthorizationException):
            engine.cast_vote("U9", item_id, "maybe")

    def test_unknown_item(self, engine):
        with pytest.raises(NotFoundException) as exc_info:
            engine.cast_vote("U1", "64b7f0c2a1b2c3d4e5f60718", "support")

        assert exc_info.value.error_code == VotingErrorCode.ITEM_NOT_FOUND

    def test_concurrent_duplicate_casts(self, engine, store, item_spec):
        item_id = engine.create_voting_item(item_spec, "admin-1")
        outcomes = []
        barrier = threading.Barrier(16)

        def cast(option_id):
            barrier.wait()
            try:
                engine.cast_vote("U1", item_id, option_id)
                outcomes.append("ok")
            except ConflictException:
                outcomes.append("duplicate")

        threads = [
            threading.Thread(target=cast, args=("support" if index % 2 else "oppose",))
            for index in range(16)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("duplicate") == 15
        assert sum(store.count_votes_by_option(item_id).values()) == 1


class TestEndVoting:
    """Test administrative closing."""

    def test_end_voting_returns_final_results(self, engine, item_spec):
        item_id = engine.create_voting_item(item_spec, "admin-1")
        engine.cast_vote("U1", item_id, "oppose")

        results = engine.end_voting(item_id)

        assert results.status == VotingStatus.ENDED
        assert results.total_votes == 1
        assert results.per_option[0].option_id == "oppose"
        assert results.quorum_met is False

        with pytest.raises(StateException) as exc_info:
            engine.cast_vote("U2", item_id, "support")
        assert exc_info.value.error_code == VotingErrorCode.VOTING_CLOSED

    def test_end_voting_is_idempotent(self, engine, store, item_spec, clock, now):
        item_id = engine.create_voting_item(item_spec, "admin-1")

        engine.end_voting(item_id)
        clock.advance(hours=2)
        engine.end_voting(item_id)

        item = store.get_item(item_id)
        assert item.status == VotingStatus.ENDED
        assert item.ended_at == now

    def test_end_unknown_item(self, engine):
        with pytest.raises(NotFoundException):
            engine.end_voting("64b7f0c2a1b2c3d4e5f60718")


class TestQueries:
    """Test item listing, lookup and history."""

    def test_active_items_sorted_and_flagged(self, engine, item_spec, now):
        later_id = engine.create_voting_item(item_spec, "admin-1")

        sooner_spec = dict(item_spec, title="Closes sooner", endDate=now + timedelta(days=2))
        sooner_id = engine.create_voting_item(sooner_spec, "admin-1")

        upcoming_spec = dict(item_spec, title="Not open", startDate=now + timedelta(days=1))
        engine.create_voting_item(upcoming_spec, "admin-1")

        ended_id = engine.create_voting_item(dict(item_spec, title="Ended"), "admin-1")
        engine.end_voting(ended_id)

        engine.cast_vote("U1", later_id, "support")

        items = engine.get_active_voting_items("U1")

        assert [item.id for item in items] == [sooner_id, later_id]
        assert [item.user_has_voted for item in items] == [False, True]
        assert items[1].total_votes == 1
        assert all(item.status == VotingStatus.ACTIVE for item in items)

    def test_active_items_without_voter(self, engine, item_spec):
        engine.create_voting_item(item_spec, "admin-1")

        items = engine.get_active_voting_items()

        assert len(items) == 1
        assert items[0].user_has_voted is False

    def test_get_voting_item_reports_effective_status(self, engine, item_spec, clock):
        item_id = engine.create_voting_item(item_spec, "admin-1")
        engine.cast_vote("U1", item_id, "abstain")
        clock.advance(days=10)

        item = engine.get_voting_item(item_id, "U1")

        assert item.status == VotingStatus.ENDED
        assert item.user_has_voted is True

    def test_get_unknown_item(self, engine):
        with pytest.raises(NotFoundException):
            engine.get_voting_item("not-an-object-id")

    def test_history_newest_first(self, engine, item_spec, clock):
        first_id = engine.create_voting_item(item_spec, "admin-1")
        second_id = engine.create_voting_item(dict(item_spec, title="Second question"), "admin-1")

        engine.cast_vote("U1", first_id, "support")
        clock.advance(minutes=5)
        engine.cast_vote("U1", second_id, "abstain")
        engine.cast_vote("U2", first_id, "oppose")

        history = engine.get_user_voting_history("U1")

        assert [entry.item_id for entry in history] == [second_id, first_id]
        assert history[0].title == "Second question"
        assert history[0].selected_option == "Abstain"
        assert history[1].selected_option == "Support"
        assert history[1].jurisdiction == "municipal"

    def test_history_limit(self, engine, item_spec, clock):
        for index in range(3):
            item_id = engine.create_voting_item(dict(item_spec, title=f"Question {index}"), "admin-1")
            engine.cast_vote("U1", item_id, "support")
            clock.advance(minutes=1)

        assert len(engine.get_user_voting_history("U1", limit=2)) == 2
