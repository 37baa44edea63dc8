# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Voting endpoints: item management, vote casting, results and history.
"""

from functools import wraps
from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging
from typing import Optional

from middleware.auth import require_auth, require_permission, optional_auth
from models.entities import UserContext
from models.enums import VotingPermission
from models.requests import CreateVotingItemRequest, CastVoteRequest, ItemPath, BillPath, HistoryQuery
from models.responses import CreatedItemResponse

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def voter_required(f):
    """Require an authenticated voter, resolved against the running app."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        return require_auth(current_app.auth_middleware)(f)(*args, **kwargs)
    return decorated_function


def voter_optional(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        return optional_auth(current_app.auth_middleware)(f)(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Require the voting administration permission."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        return require_permission(VotingPermission.ADMIN.value, current_app.auth_middleware)(f)(*args, **kwargs)
    return decorated_function


def _voter_id(user_context) -> Optional[str]:
    return user_context.user_id if user_context else None


voting_tag = Tag(name="Voting", description="Voting items, ballots and results")
voting_bp = APIBlueprint(
    'voting',
    __name__,
    url_prefix='/api/voting',
    abp_tags=[voting_tag]
)


@voting_bp.post('/items')
@admin_required
def create_voting_item(user_context: UserContext, body: CreateVotingItemRequest):
    """
    Create a voting item.

    Requires the voting administration permission. The item's initial status
    is derived from its window at creation time.
    """
    item_id = current_app.voting_engine.create_voting_item(body, user_context.user_id)
    return jsonify(CreatedItemResponse(item_id=item_id).to_payload()), 201


@voting_bp.get('/items')
@voter_optional
def list_active_items(user_context):
    """List items currently accepting votes, soonest closing first."""
    items = current_app.voting_engine.get_active_voting_items(_voter_id(user_context))
    return jsonify({
        "items": [item.to_payload() for item in items],
        "count": len(items)
    })


@voting_bp.get('/items/<item_id>')
@voter_optional
def get_voting_item(user_context, path: ItemPath):
    """Fetch one voting item with the caller's vote flag."""
    item = current_app.voting_engine.get_voting_item(path.item_id, _voter_id(user_context))
    return jsonify(item.to_payload())


@voting_bp.post('/items/<item_id>/votes')
@voter_required
def cast_vote(user_context: UserContext, path: ItemPath, body: CastVoteRequest):
    """
    Cast the caller's vote.

    A voter gets exactly one vote per item; a second attempt is rejected with
    409 regardless of the option chosen.
    """
    with tracer.start_as_current_span("voting.routes.cast_vote") as span:
        span.set_attributes({"user.id": user_context.user_id, "voting.item_id": path.item_id})
        record = current_app.voting_engine.cast_vote(user_context.user_id, path.item_id, body.option_id)
        return jsonify(record.to_payload()), 201


@voting_bp.get('/items/<item_id>/results')
def get_voting_results(path: ItemPath):
    """Current tally of an item."""
    results = current_app.results_aggregator.get_voting_results(path.item_id)
    return jsonify(results.to_payload())


@voting_bp.post('/items/<item_id>/end')
@admin_required
def end_voting(user_context: UserContext, path: ItemPath):
    """Close voting on an item and return its final results."""
    results = current_app.voting_engine.end_voting(path.item_id)
    logger.info(
        f"Voting ended by {user_context.user_id}",
        extra={"item_id": path.item_id, "user_id": user_context.user_id}
    )
    return jsonify(results.to_payload())


@voting_bp.post('/bills/<bill_id>')
@voter_required
def create_bill_vote(user_context: UserContext, path: BillPath):
    """Open a support/oppose/abstain vote on a legislative bill."""
    item_id = current_app.bill_vote_adapter.create_bill_vote(path.bill_id, user_context.user_id)
    return jsonify(CreatedItemResponse(item_id=item_id).to_payload()), 201


@voting_bp.get('/history')
@voter_required
def get_voting_history(user_context: UserContext, query: HistoryQuery):
    """The caller's votes, newest first."""
    history = current_app.voting_engine.get_user_voting_history(user_context.user_id, query.limit)
    return jsonify({
        "items": [entry.to_payload() for entry in history],
        "count": len(history)
    })
