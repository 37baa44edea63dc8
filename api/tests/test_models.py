# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for Pydantic models.
"""

import pytest
from datetime import datetime, timedelta, timezone
from pydantic import ValidationError, TypeAdapter

from models.entities import (
    VotingItem, VoteOption, VoteRecord, EveryoneEligible, RestrictedEligibility, Eligibility
)
from models.enums import VotingStatus
from models.requests import CreateVotingItemRequest, CastVoteRequest, ElectionDateQuery
from models.responses import VotingItemResponse


def _options():
    return [VoteOption(option_id="a", text="A"), VoteOption(option_id="b", text="B")]


class TestEligibility:
    """Test the tagged eligibility variants."""

    def test_everyone_allows_anyone(self):
        assert EveryoneEligible().allows("anyone") is True

    def test_restricted_membership(self):
        eligibility = RestrictedEligibility(voter_ids=frozenset({"U1", "U2"}))

        assert eligibility.allows("U1") is True
        assert eligibility.allows("U3") is False

    def test_restricted_requires_voters(self):
        with pytest.raises(ValidationError):
            RestrictedEligibility(voter_ids=frozenset())

    def test_restricted_rejects_blank_ids(self):
        with pytest.raises(ValidationError):
            RestrictedEligibility(voter_ids=frozenset({"U1", "  "}))

    def test_discriminated_on_kind(self):
        adapter = TypeAdapter(Eligibility)

        assert isinstance(adapter.validate_python({"kind": "everyone"}), EveryoneEligible)
        restricted = adapter.validate_python({"kind": "restricted", "voterIds": ["U2", "U1"]})
        assert isinstance(restricted, RestrictedEligibility)
        assert restricted.to_payload() == {"kind": "restricted", "voterIds": ["U1", "U2"]}

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            TypeAdapter(Eligibility).validate_python({"kind": "nobody"})


class TestVotingItemModel:
    """Test VotingItem invariants and status derivation."""

    @pytest.fixture
    def window(self, now):
        return now, now + timedelta(days=2)

    def _item(self, window, **overrides):
        start, end = window
        data = dict(
            title="Park Renaming", type="petition", options=_options(),
            start_date=start, end_date=end, jurisdiction="municipal", created_by="admin-1"
        )
        data.update(overrides)
        return VotingItem(**data)

    def test_defaults(self, window):
        item = self._item(window)

        assert item.status == VotingStatus.UPCOMING
        assert item.eligible_voters.kind == "everyone"
        assert item.required_quorum == 0
        assert item.total_votes == 0

    def test_end_must_follow_start(self, window):
        start, _ = window
        with pytest.raises(ValidationError):
            self._item(window, end_date=start)

    def test_needs_two_options(self, window):
        with pytest.raises(ValidationError):
            self._item(window, options=[VoteOption(option_id="a", text="A")])

    def test_unique_option_ids(self, window):
        with pytest.raises(ValidationError):
            self._item(window, options=[VoteOption(option_id="a", text="A"), VoteOption(option_id="a", text="B")])

    def test_negative_quorum(self, window):
        with pytest.raises(ValidationError):
            self._item(window, required_quorum=-1)

    def test_unknown_type(self, window):
        with pytest.raises(ValidationError):
            self._item(window, type="raffle")

    def test_naive_dates_are_utc(self):
        item = self._item((datetime(2025, 1, 1), datetime(2025, 1, 2)))

        assert item.start_date.tzinfo == timezone.utc

    def test_status_at(self, window):
        start, end = window
        item = self._item(window)

        assert item.status_at(start - timedelta(seconds=1)) == VotingStatus.UPCOMING
        assert item.status_at(start) == VotingStatus.ACTIVE
        assert item.status_at(end) == VotingStatus.ENDED
        assert item.is_open_at(start) is True
        assert item.is_open_at(end) is False

    def test_stored_ended_wins(self, window):
        start, _ = window
        item = self._item(window, status=VotingStatus.ENDED)

        assert item.status_at(start) == VotingStatus.ENDED

    def test_camel_case_payload(self, window):
        payload = self._item(window).to_payload()

        assert payload["startDate"].endswith("+00:00") or payload["startDate"].endswith("Z")
        assert payload["eligibleVoters"] == {"kind": "everyone"}
        assert payload["options"][0] == {"optionId": "a", "text": "A", "description": None}

    def test_response_annotation(self, window):
        item = self._item(window)

        response = VotingItemResponse.from_item(item, True, VotingStatus.ACTIVE)

        assert response.user_has_voted is True
        assert response.status == VotingStatus.ACTIVE
        assert response.to_payload()["userHasVoted"] is True


class TestRequestModels:
    """Test request payload parsing."""

    def test_create_request_accepts_camel_case(self, item_spec):
        request = CreateVotingItemRequest.model_validate(item_spec)

        assert request.required_quorum == 2
        assert isinstance(request.build_eligibility(), EveryoneEligible)

    def test_create_request_restricted(self, item_spec):
        item_spec["eligibleVoters"] = ["U1"]

        eligibility = CreateVotingItemRequest.model_validate(item_spec).build_eligibility()

        assert isinstance(eligibility, RestrictedEligibility)
        assert eligibility.voter_ids == frozenset({"U1"})

    def test_cast_vote_request(self):
        assert CastVoteRequest.model_validate({"optionId": "support"}).option_id == "support"

        with pytest.raises(ValidationError):
            CastVoteRequest.model_validate({"optionId": ""})

    def test_election_query_reference_date_alias(self):
        query = ElectionDateQuery.model_validate({"jurisdiction": "federal", "referenceDate": "2025-01-01"})

        assert query.reference_date.isoformat() == "2025-01-01"

    def test_vote_record_defaults(self):
        record = VoteRecord(voter_id="U1", item_id="item", option_id="a")

        assert record.verified is False
        assert record.timestamp.tzinfo is not None
