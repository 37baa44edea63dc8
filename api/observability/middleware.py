# SPDX-License-Identifier: Apache-2.0

"""
Observability Middleware

Flask auto-instrumentation plus one access log line per request. Requests
that address a voting item or bill carry its id on the span and in the log,
so a ballot can be followed from the HTTP edge down to the store.
"""

import time
import logging
from typing import Dict, Optional
from flask import Flask, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

logger = logging.getLogger(__name__)

# URL variables that identify the voting resource a request acts on
RESOURCE_VIEW_ARGS = {
    "item_id": "voting.item_id",
    "bill_id": "voting.bill_id",
}


def request_resource_attributes() -> Dict[str, str]:
    """Span attributes naming the item or bill addressed by the current request."""
    view_args = request.view_args or {}
    return {
        attribute: str(view_args[name])
        for name, attribute in RESOURCE_VIEW_ARGS.items()
        if view_args.get(name)
    }


def _route_name() -> Optional[str]:
    return request.url_rule.rule if request.url_rule is not None else None


def add_observability_middleware(app: Flask):
    """Instrument the app and log every request with its voting context."""

    FlaskInstrumentor().instrument_app(app)

    @app.before_request
    def before_request():
        g.start_time = time.perf_counter()
        g.trace_id = None

        span = trace.get_current_span()
        if span.is_recording():
            g.trace_id = format(span.get_span_context().trace_id, "032x")
            span.set_attributes(request_resource_attributes())

    @app.after_request
    def after_request(response):
        duration_ms = round((time.perf_counter() - g.get('start_time', time.perf_counter())) * 1000, 2)
        resource = request_resource_attributes()

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("voting.request.duration_ms", duration_ms)

        fields = {
            "method": request.method,
            "route": _route_name(),
            "status_code": response.status_code,
            "duration_ms": duration_ms,
            "trace_id": g.get('trace_id')
        }
        fields.update({attribute.split(".", 1)[1]: value for attribute, value in resource.items()})

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, f"{request.method} {_route_name() or request.path} -> {response.status_code}",
                   extra={"extra_fields": fields})

        if g.get('trace_id'):
            response.headers['X-Trace-Id'] = g.trace_id

        return response
