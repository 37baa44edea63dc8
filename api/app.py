# SPDX-License-Identifier: Apache-2.0

"""
Civic Voting API - Flask Application Entry Point

This module builds the Flask application with OpenAPI 3.0 support, wires the
vote store, voting engine and collaborators, and registers the voting and
election routes.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag
from observability.config import setup_observability
from observability.middleware import add_observability_middleware

from middleware.error_handler import ErrorHandlerMiddleware, register_custom_error_handlers
from middleware.auth import AuthMiddleware
from services.auth import AuthService
from services.bills import BillMetadataProvider, StaticBillMetadataProvider, MongoBillMetadataProvider, BillVoteAdapter
from services.mongodb import MongoVoteStore
from services.results import ResultsAggregator
from services.store import VoteStore, LocalVoteStore
from services.voting import VotingEngine

info = Info(
    title="Civic Voting API",
    version="1.0.0",
    description="Civic engagement voting engine: ballots, results and election dates"
)

health_tag = Tag(name="Health", description="System health and status")


def _build_vote_store(app: OpenAPI) -> VoteStore:
    backend = app.config['VOTE_STORE_BACKEND']
    if backend == 'local':
        return LocalVoteStore()
    if backend == 'mongodb':
        return MongoVoteStore(app.config['MONGODB_URI'], app.config['MONGODB_DATABASE'])
    raise ValueError(f"Unknown VOTE_STORE_BACKEND: {backend}")


def _build_bill_provider(vote_store: VoteStore) -> BillMetadataProvider:
    if isinstance(vote_store, MongoVoteStore):
        return MongoBillMetadataProvider(vote_store.client[vote_store.database_name])
    return StaticBillMetadataProvider()


def create_app(config_overrides: Optional[Dict[str, Any]] = None,
               vote_store: Optional[VoteStore] = None,
               bill_provider: Optional[BillMetadataProvider] = None) -> OpenAPI:
    """
    Build the Flask application.

    Args:
        config_overrides: Values applied over the environment configuration
        vote_store: Store to use instead of the configured backend
        bill_provider: Bill metadata source to use instead of the default
    """
    setup_observability()

    app = OpenAPI(__name__, info=info)

    # Environment configuration
    app.config['ENVIRONMENT'] = os.getenv('ENVIRONMENT', 'development')
    app.config['DEBUG'] = app.config['ENVIRONMENT'] == 'development'

    # Security configuration
    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET', 'dev-secret-key')
    app.config['JWT_ALGORITHM'] = os.getenv('JWT_ALGORITHM', 'HS256')

    # Storage configuration
    app.config['VOTE_STORE_BACKEND'] = os.getenv('VOTE_STORE_BACKEND', 'mongodb').lower()
    app.config['MONGODB_URI'] = os.getenv('MONGODB_URI', 'mongodb://localhost:27017/civic_voting')
    app.config['MONGODB_DATABASE'] = os.getenv('MONGODB_DATABASE', 'civic_voting')

    # Bill vote defaults
    app.config['BILL_VOTE_DURATION_DAYS'] = int(os.getenv('BILL_VOTE_DURATION_DAYS', '30'))
    app.config['BILL_VOTE_QUORUM'] = int(os.getenv('BILL_VOTE_QUORUM', '1000'))

    app.config['OTEL_ENABLED'] = os.getenv('OTEL_ENABLED', 'true').lower() == 'true'
    app.config['BASE_URL'] = os.getenv('BASE_URL', 'http://localhost:5000')

    if config_overrides:
        app.config.update(config_overrides)

    add_observability_middleware(app)

    # Initialize services
    if vote_store is None:
        vote_store = _build_vote_store(app)
    if bill_provider is None:
        bill_provider = _build_bill_provider(vote_store)
    results_aggregator = ResultsAggregator(vote_store)
    voting_engine = VotingEngine(vote_store, results_aggregator)
    bill_vote_adapter = BillVoteAdapter(
        voting_engine,
        bill_provider,
        duration_days=app.config['BILL_VOTE_DURATION_DAYS'],
        quorum=app.config['BILL_VOTE_QUORUM']
    )
    auth_service = AuthService(app.config['JWT_SECRET_KEY'], app.config['JWT_ALGORITHM'])

    ErrorHandlerMiddleware(app)
    register_custom_error_handlers(app)

    # Make services available to routes
    app.vote_store = vote_store
    app.voting_engine = voting_engine
    app.results_aggregator = results_aggregator
    app.bill_vote_adapter = bill_vote_adapter
    app.auth_service = auth_service
    app.auth_middleware = AuthMiddleware(auth_service)

    from routes.voting import voting_bp
    from routes.elections import elections_bp

    app.register_api(voting_bp)
    app.register_api(elections_bp)

    @app.get('/api/healthz', tags=[health_tag])
    def health_check():
        """Report the vote store's health."""
        store_health = vote_store.health_check()
        healthy = store_health.get('status') == 'healthy'

        return jsonify({
            "status": "healthy" if healthy else "unhealthy",
            "service": "civic-voting-api",
            "version": info.version,
            "environment": app.config['ENVIRONMENT'],
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "dependencies": {"store": store_health}
        }), 200 if healthy else 503

    return app


if __name__ == '__main__':
    application = create_app()
    port = int(os.getenv('PORT', 5000))
    application.run(
        host='0.0.0.0',
        port=port,
        debug=application.config['DEBUG']
    )
