"""
Idempotency Coordinator Unit Tests

Runs against the test database so the unique-constraint race behaves as it
does in production.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi import HTTPException
from sqlalchemy import select
from starlette.requests import Request

from backend.models.idempotency import IdempotencyRequest
from backend.services.idempotency import (
    BUSY_MESSAGE,
    CONFLICT_MESSAGE,
    IdempotencyCoordinator,
    IdempotencyMode,
    hash_idempotency_payload,
    idempotent_request,
    read_idempotency_key,
)

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
ENDPOINT = "/payroll/draft"


def _request(headers: dict[str, str] | None = None) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "POST", "path": "/", "headers": raw})


def _coordinator(session_factory, now: datetime = T0) -> IdempotencyCoordinator:
    return IdempotencyCoordinator(session_factory, stale_after=timedelta(minutes=5), clock=lambda: now)


class TestHelpers:

    def test_key_trimmed(self):
        assert read_idempotency_key(_request({"Idempotency-Key": "  run-42  "})) == "run-42"

    def test_blank_or_missing_key(self):
        assert read_idempotency_key(_request()) is None
        assert read_idempotency_key(_request({"Idempotency-Key": "   "})) is None

    def test_key_truncated(self):
        key = read_idempotency_key(_request({"Idempotency-Key": "k" * 300}), max_length=200)
        assert key == "k" * 200

    def test_hash_ignores_key_order(self):
        first = hash_idempotency_payload({"period_year": 2025, "period_month": 6})
        second = hash_idempotency_payload({"period_month": 6, "period_year": 2025})
        assert first == second
        assert len(first) == 64

    def test_hash_differs_on_values(self):
        assert hash_idempotency_payload({"period_month": 6}) != hash_idempotency_payload({"period_month": 7})

    def test_hash_accepts_uuids_and_decimals(self):
        payload = {"employee_id": uuid4(), "amount": Decimal("1000.50")}
        assert hash_idempotency_payload(payload) == hash_idempotency_payload(dict(payload))


class TestResolve:

    @pytest.mark.asyncio
    async def test_no_key_is_pass_through(self, session_factory, test_company):
        resolution = await _coordinator(session_factory).resolve(test_company.id, ENDPOINT, None, "h")
        assert resolution.mode == IdempotencyMode.NONE

    @pytest.mark.asyncio
    async def test_first_request_acquires(self, session_factory, test_company):
        resolution = await _coordinator(session_factory).resolve(test_company.id, ENDPOINT, "k1", "h")

        assert resolution.mode == IdempotencyMode.ACQUIRED
        async with session_factory() as session:
            record = (await session.execute(select(IdempotencyRequest))).scalar_one()
        assert record.status == "in_progress"
        assert record.request_hash == "h"

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_one_acquires(self, session_factory, test_company):
        coordinator = _coordinator(session_factory)

        results = await asyncio.gather(
            coordinator.resolve(test_company.id, ENDPOINT, "race", "h"),
            coordinator.resolve(test_company.id, ENDPOINT, "race", "h"),
        )

        assert sorted(r.mode.value for r in results) == ["acquired", "busy"]

    @pytest.mark.asyncio
    async def test_same_key_different_payload_conflicts(self, session_factory, test_company):
        coordinator = _coordinator(session_factory)
        await coordinator.resolve(test_company.id, ENDPOINT, "k1", "h1")

        resolution = await coordinator.resolve(test_company.id, ENDPOINT, "k1", "h2")
        assert resolution.mode == IdempotencyMode.CONFLICT

    @pytest.mark.asyncio
    async def test_keys_scoped_by_endpoint(self, session_factory, test_company):
        coordinator = _coordinator(session_factory)
        await coordinator.resolve(test_company.id, ENDPOINT, "k1", "h1")

        resolution = await coordinator.resolve(test_company.id, "/filings/generate", "k1", "h2")
        assert resolution.mode == IdempotencyMode.ACQUIRED

    @pytest.mark.asyncio
    async def test_completed_request_replays(self, session_factory, test_company):
        coordinator = _coordinator(session_factory)
        await coordinator.resolve(test_company.id, ENDPOINT, "k1", "h")
        await coordinator.finalize_success(test_company.id, ENDPOINT, "k1", 201, '{"data":{"id":"abc"}}')

        resolution = await coordinator.resolve(test_company.id, ENDPOINT, "k1", "h")

        assert resolution.mode == IdempotencyMode.REPLAY
        assert resolution.response_code == 201
        assert resolution.response_body == '{"data":{"id":"abc"}}'

    @pytest.mark.asyncio
    async def test_failed_request_can_be_retried(self, session_factory, test_company):
        coordinator = _coordinator(session_factory)
        await coordinator.resolve(test_company.id, ENDPOINT, "k1", "h")
        await coordinator.finalize_failure(test_company.id, ENDPOINT, "k1", 422, {"detail": "bad"})

        resolution = await coordinator.resolve(test_company.id, ENDPOINT, "k1", "h")

        assert resolution.mode == IdempotencyMode.ACQUIRED
        async with session_factory() as session:
            record = (await session.execute(select(IdempotencyRequest))).scalar_one()
        assert record.status == "in_progress"
        assert record.error_body is None

    @pytest.mark.asyncio
    async def test_in_progress_within_window_is_busy(self, session_factory, test_company):
        await _coordinator(session_factory, T0).resolve(test_company.id, ENDPOINT, "k1", "h")

        later = _coordinator(session_factory, T0 + timedelta(minutes=1))
        resolution = await later.resolve(test_company.id, ENDPOINT, "k1", "h")

        assert resolution.mode == IdempotencyMode.BUSY

    @pytest.mark.asyncio
    async def test_stale_in_progress_is_reclaimed(self, session_factory, test_company):
        await _coordinator(session_factory, T0).resolve(test_company.id, ENDPOINT, "k1", "h")

        later = _coordinator(session_factory, T0 + timedelta(minutes=10))
        resolution = await later.resolve(test_company.id, ENDPOINT, "k1", "h")

        assert resolution.mode == IdempotencyMode.ACQUIRED

    @pytest.mark.asyncio
    async def test_finalize_without_key_is_noop(self, session_factory, test_company):
        coordinator = _coordinator(session_factory)
        await coordinator.finalize_success(test_company.id, ENDPOINT, None, 201, "{}")

        async with session_factory() as session:
            records = (await session.execute(select(IdempotencyRequest))).scalars().all()
        assert records == []


class TestIdempotentRequest:

    @pytest.mark.asyncio
    async def test_complete_records_response(self, session_factory, test_company):
        coordinator = _coordinator(session_factory)
        request = _request({"Idempotency-Key": "k1"})

        async with idempotent_request(
            coordinator, request, company_id=test_company.id, endpoint=ENDPOINT, payload={"a": 1}
        ) as guard:
            assert guard.replay is None
            response = await guard.complete(201, {"data": {"amount": Decimal("10.00")}})

        assert response.status_code == 201
        async with idempotent_request(
            coordinator, request, company_id=test_company.id, endpoint=ENDPOINT, payload={"a": 1}
        ) as guard:
            replay = guard.replay

        assert replay is not None
        assert replay.status_code == 201
        assert replay.body == response.body

    @pytest.mark.asyncio
    async def test_replay_keeps_original_bytes(self, session_factory, test_company):
        """Key order and number formatting survive storage unchanged."""
        coordinator = _coordinator(session_factory)
        request = _request({"Idempotency-Key": "k1"})
        body = {"data": {"payroll_run_id": "r1", "rule_set_id": None, "gross_total": Decimal("1250000.50")}}

        async with idempotent_request(
            coordinator, request, company_id=test_company.id, endpoint=ENDPOINT, payload={"a": 1}
        ) as guard:
            response = await guard.complete(201, body)

        async with session_factory() as session:
            record = (await session.execute(select(IdempotencyRequest))).scalar_one()
        assert record.response_body == response.body.decode("utf-8")
        assert record.response_body.startswith('{"data":{"payroll_run_id":"r1","rule_set_id":null,')

        async with idempotent_request(
            coordinator, request, company_id=test_company.id, endpoint=ENDPOINT, payload={"a": 1}
        ) as guard:
            replay = guard.replay

        assert replay.body == response.body
        assert replay.media_type == "application/json"

    @pytest.mark.asyncio
    async def test_http_error_marks_failed(self, session_factory, test_company):
        coordinator = _coordinator(session_factory)
        request = _request({"Idempotency-Key": "k1"})

        with pytest.raises(HTTPException):
            async with idempotent_request(
                coordinator, request, company_id=test_company.id, endpoint=ENDPOINT, payload={}
            ):
                raise HTTPException(status_code=422, detail="No active employees found")

        async with session_factory() as session:
            record = (await session.execute(select(IdempotencyRequest))).scalar_one()
        assert record.status == "failed"
        assert record.response_code == 422
        assert record.error_body == {"detail": "No active employees found"}

    @pytest.mark.asyncio
    async def test_conflict_and_busy_raise_409(self, session_factory, test_company):
        coordinator = _coordinator(session_factory)
        await coordinator.resolve(test_company.id, ENDPOINT, "k1", hash_idempotency_payload({"a": 1}))
        request = _request({"Idempotency-Key": "k1"})

        with pytest.raises(HTTPException) as exc_info:
            async with idempotent_request(
                coordinator, request, company_id=test_company.id, endpoint=ENDPOINT, payload={"a": 2}
            ):
                pass
        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == CONFLICT_MESSAGE

        with pytest.raises(HTTPException) as exc_info:
            async with idempotent_request(
                coordinator, request, company_id=test_company.id, endpoint=ENDPOINT, payload={"a": 1}
            ):
                pass
        assert exc_info.value.detail == BUSY_MESSAGE
