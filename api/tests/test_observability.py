# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for request observability: voting context on spans and access logs.
"""

import logging

from observability.middleware import request_resource_attributes


class TestRequestResourceAttributes:
    """Test extraction of the addressed item or bill."""

    def test_item_route(self, app):
        with app.test_request_context('/api/voting/items/64b7f0c2a1b2c3d4e5f60718/results'):
            assert request_resource_attributes() == {"voting.item_id": "64b7f0c2a1b2c3d4e5f60718"}

    def test_bill_route(self, app):
        with app.test_request_context('/api/voting/bills/C-21', method='POST'):
            assert request_resource_attributes() == {"voting.bill_id": "C-21"}

    def test_route_without_resource(self, app):
        with app.test_request_context('/api/healthz'):
            assert request_resource_attributes() == {}


class TestAccessLog:
    """Test the per-request log line."""

    def test_logs_route_and_item(self, client, caplog):
        caplog.set_level(logging.INFO, logger="observability.middleware")

        response = client.get('/api/voting/items/64b7f0c2a1b2c3d4e5f60718/results')

        records = [record for record in caplog.records if record.name == "observability.middleware"]
        assert response.status_code == 404
        assert records[-1].extra_fields["route"] == '/api/voting/items/<item_id>/results'
        assert records[-1].extra_fields["item_id"] == "64b7f0c2a1b2c3d4e5f60718"
        assert records[-1].extra_fields["status_code"] == 404
