# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Election date endpoints.
"""

from flask import jsonify
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from domain.election_dates import next_election_date
from models.requests import ElectionDateQuery

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

elections_tag = Tag(name="Elections", description="Statutory election date estimates")
elections_bp = APIBlueprint(
    'elections',
    __name__,
    url_prefix='/api/elections',
    abp_tags=[elections_tag]
)


@elections_bp.get('/next-date')
def get_next_election_date(query: ElectionDateQuery):
    """
    Estimate the next election date for a jurisdiction level.

    Municipal queries take the province or territory as `name`; unknown
    names fall back to the default rule.
    """
    with tracer.start_as_current_span("elections.next_date") as span:
        span.set_attributes({
            "election.jurisdiction": query.jurisdiction.value,
            "election.name": query.name or ""
        })
        estimate = next_election_date(query.jurisdiction, query.reference_date, query.name)
        span.set_attribute("election.date", estimate.election_date.isoformat())
        return jsonify(estimate.to_payload())
