"""Tests for request logging helpers."""

from __future__ import annotations

from api.observability import monotonic_ms, new_request_id, request_log_fields


def test_request_ids_are_unique_hex():
    a, b = new_request_id(), new_request_id()
    assert a != b
    assert len(a) == 32
    int(a, 16)


def test_request_log_fields_are_context_prefixed():
    fields = request_log_fields(method="GET", path="/api/v1/health", status_code=200, duration_ms=1.23456, client_ip=None)
    assert fields == {
        "ctx_method": "GET",
        "ctx_path": "/api/v1/health",
        "ctx_status_code": 200,
        "ctx_duration_ms": 1.23,
        "ctx_client_ip": "",
    }


def test_monotonic_ms_moves_forward():
    first = monotonic_ms()
    assert monotonic_ms() >= first
