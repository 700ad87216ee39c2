"""Tests for standardized error responses."""

from __future__ import annotations

import json

from codifier.core.exceptions import RoutingError
from codifier.core.logging import request_context
from codifier.server.errors import (
    INTERNAL_ERROR,
    METHOD_NOT_FOUND,
    internal_error,
    not_found_response,
    parse_error_response,
    routing_error_response,
    rpc_error,
)


def _body(response) -> dict:
    return json.loads(response.body)


class TestRpcError:
    def test_envelope(self):
        assert rpc_error(METHOD_NOT_FOUND, "Method not found: x", 7) == {
            "jsonrpc": "2.0",
            "error": {"code": -32601, "message": "Method not found: x"},
            "id": 7,
        }

    def test_data(self):
        assert rpc_error(INTERNAL_ERROR, "boom", data={"a": 1})["error"]["data"] == {"a": 1}


class TestResponses:
    def test_parse_error(self):
        response = parse_error_response()
        assert response.status_code == 400
        assert _body(response)["error"]["code"] == -32700

    def test_routing_error_method_not_allowed(self):
        response = routing_error_response(RoutingError("Method not allowed.", status_code=405, allow="POST"))
        assert response.status_code == 405
        assert response.headers["allow"] == "POST"
        assert _body(response)["error"] == {"code": -32000, "message": "Method not allowed."}

    def test_routing_error_unknown_session(self):
        response = routing_error_response(RoutingError("Not Found: Session not found"))
        assert response.status_code == 404
        assert "allow" not in response.headers
        assert _body(response)["error"]["message"] == "Not Found: Session not found"

    def test_not_found(self):
        response = not_found_response()
        assert response.status_code == 404
        assert _body(response) == {"error": "not_found"}

    def test_internal_error_carries_request_id(self):
        with request_context("rid-9"):
            response = internal_error(exc=RuntimeError("boom"))
        body = _body(response)
        assert response.status_code == 500
        assert body["error"]["code"] == -32603
        assert body["error"]["data"] == {"request_id": "rid-9"}
        assert "boom" not in json.dumps(body)
