# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from datetime import datetime, timedelta, timezone
from typing import Dict, Any

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['VOTE_STORE_BACKEND'] = 'local'
os.environ['MONGODB_DATABASE'] = 'civic_voting_test'

from models.entities import BillMetadata
from models.enums import VotingPermission
from services.bills import BillVoteAdapter, StaticBillMetadataProvider
from services.store import LocalVoteStore
from services.voting import VotingEngine

TEST_JWT_SECRET = 'test-secret-key-for-the-civic-voting-api'


class FixedClock:
    """Controllable UTC clock for engine tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def now():
    return datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now):
    return FixedClock(now)


@pytest.fixture
def store():
    return LocalVoteStore()


@pytest.fixture
def engine(store, clock):
    return VotingEngine(store, clock=clock)


@pytest.fixture
def bill_provider():
    return StaticBillMetadataProvider({
        "C-21": BillMetadata(id="C-21", title="Firearms Act Amendment", summary="Amends firearms licensing."),
        "S-5": BillMetadata(id="S-5", title="Environmental Protection Update")
    })


@pytest.fixture
def bill_adapter(engine, bill_provider):
    return BillVoteAdapter(engine, bill_provider, duration_days=30, quorum=1000)


@pytest.fixture
def item_spec(now) -> Dict[str, Any]:
    """Active referendum spec with three options and a quorum of two."""
    return {
        "title": "Community Centre Referendum",
        "description": "Should the city fund a new community centre?",
        "type": "referendum",
        "options": [
            {"optionId": "support", "text": "Support"},
            {"optionId": "oppose", "text": "Oppose"},
            {"optionId": "abstain", "text": "Abstain"}
        ],
        "startDate": now - timedelta(days=1),
        "endDate": now + timedelta(days=7),
        "jurisdiction": "municipal",
        "requiredQuorum": 2,
        "eligibleVoters": "everyone"
    }


@pytest.fixture
def app(store, bill_provider):
    """Flask application wired to the in-process store."""
    from app import create_app

    application = create_app(
        config_overrides={'JWT_SECRET_KEY': TEST_JWT_SECRET, 'TESTING': True},
        vote_store=store,
        bill_provider=bill_provider
    )
    return application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def voter_headers(app):
    token = app.auth_service.issue_token("voter-1")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_voter_headers(app):
    token = app.auth_service.issue_token("voter-2")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(app):
    token = app.auth_service.issue_token("admin-1", [VotingPermission.ADMIN.value])
    return {"Authorization": f"Bearer {token}"}
