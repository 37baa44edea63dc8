# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the bill-to-vote adapter and bill metadata providers.
"""

import pytest
from datetime import timedelta
from unittest.mock import MagicMock
from bson import ObjectId
from pymongo.errors import AutoReconnect

from middleware.error_handler import NotFoundException, InfrastructureException
from models.enums import VotingErrorCode, VotingStatus
from services.bills import BillVoteAdapter, MongoBillMetadataProvider, DEFAULT_BILL_DESCRIPTION


class TestBillVoteAdapter:
    """Test bill vote creation."""

    def test_creates_standard_bill_vote(self, bill_adapter, store, now):
        item_id = bill_adapter.create_bill_vote("C-21", "voter-7")

        item = store.get_item(item_id)
        assert item.title == "Vote on: Firearms Act Amendment"
        assert item.description == "Amends firearms licensing."
        assert item.type == "bill"
        assert item.jurisdiction == "federal"
        assert item.option_ids() == ["support", "oppose", "abstain"]
        assert [option.description for option in item.options] == [
            "I support this bill", "I oppose this bill", "I choose not to vote"
        ]
        assert item.eligible_voters.kind == "everyone"
        assert item.required_quorum == 1000
        assert item.start_date == now
        assert item.end_date == now + timedelta(days=30)
        assert item.status == VotingStatus.ACTIVE
        assert item.created_by == "voter-7"

    def test_missing_summary_uses_default_description(self, bill_adapter, store):
        item_id = bill_adapter.create_bill_vote("S-5", "voter-7")

        assert store.get_item(item_id).description == DEFAULT_BILL_DESCRIPTION

    def test_unknown_bill(self, bill_adapter, store):
        with pytest.raises(NotFoundException) as exc_info:
            bill_adapter.create_bill_vote("X-999", "voter-7")

        assert exc_info.value.error_code == VotingErrorCode.BILL_NOT_FOUND
        assert store.health_check()["items"] == 0

    def test_configurable_window_and_quorum(self, engine, bill_provider, store, now):
        adapter = BillVoteAdapter(engine, bill_provider, duration_days=7, quorum=50)

        item = store.get_item(adapter.create_bill_vote("C-21", "voter-7"))

        assert item.end_date == now + timedelta(days=7)
        assert item.required_quorum == 50

    def test_bill_vote_accepts_votes(self, bill_adapter, engine):
        item_id = bill_adapter.create_bill_vote("C-21", "voter-7")

        engine.cast_vote("voter-7", item_id, "oppose")

        assert engine.results.get_voting_results(item_id).per_option[0].option_id == "oppose"


class TestMongoBillMetadataProvider:
    """Test bill lookups against a mocked collection."""

    def test_found_by_object_id(self):
        bill_id = str(ObjectId())
        collection = MagicMock()
        collection.find_one.return_value = {"_id": ObjectId(bill_id), "title": "Budget Act", "summary": None}
        provider = MongoBillMetadataProvider({"bills": collection})

        bill = provider.get_bill(bill_id)

        assert bill.id == bill_id
        assert bill.title == "Budget Act"
        query = collection.find_one.call_args.args[0]
        assert {"_id": ObjectId(bill_id)} in query["$or"]

    def test_legislative_identifier(self):
        collection = MagicMock()
        collection.find_one.return_value = None
        provider = MongoBillMetadataProvider({"bills": collection})

        assert provider.get_bill("C-21") is None
        query = collection.find_one.call_args.args[0]
        assert query["$or"] == [{"_id": "C-21"}]

    def test_driver_failure(self):
        collection = MagicMock()
        collection.find_one.side_effect = AutoReconnect("connection reset")
        provider = MongoBillMetadataProvider({"bills": collection})

        with pytest.raises(InfrastructureException):
            provider.get_bill("C-21")

    @pytest.mark.parametrize("document", [
        {"_id": "C-9", "summary": "Budget implementation."},
        {"_id": "C-9", "title": "", "summary": "Budget implementation."},
        {"_id": "C-9", "title": None}
    ])
    def test_malformed_document(self, document):
        collection = MagicMock()
        collection.find_one.return_value = document
        provider = MongoBillMetadataProvider({"bills": collection})

        with pytest.raises(InfrastructureException, match="malformed"):
            provider.get_bill("C-9")

    def test_non_text_summary_dropped(self):
        collection = MagicMock()
        collection.find_one.return_value = {"_id": "C-9", "title": "Budget Act", "summary": 42}
        provider = MongoBillMetadataProvider({"bills": collection})

        assert provider.get_bill("C-9").summary is None
