"""
Idempotency Coordinator

Makes POST-style mutations safe to retry. A caller-supplied
``Idempotency-Key`` is recorded per (company, endpoint) together with a hash
of the request body; duplicates either replay the stored response, are told
the original is still running, or are rejected when the body differs.

Acquisition relies on the database unique constraint: the first INSERT wins,
everyone else lands in the comparison branch. Records left ``in_progress`` by
a crashed request become reclaimable after the stale window. Reclaiming is a
compare-and-set UPDATE on the status and timestamp that were read, so two
reclaimers cannot both acquire.

The coordinator uses its own short transactions so that its records are
visible to other workers while the wrapped operation is still running.
"""

import hashlib
import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
from sqlalchemy import null, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.config import get_settings
from backend.db.session import get_session_factory
from backend.models.idempotency import IdempotencyRequest, IdempotencyStatus

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "idempotency-key"
CONFLICT_MESSAGE = "Idempotency key conflict: payload differs from original request"
BUSY_MESSAGE = "Duplicate request is currently processing"


class IdempotencyMode(str, Enum):
    NONE = "none"  # No key supplied, no de-duplication
    ACQUIRED = "acquired"  # Caller owns the key and must finalize it
    BUSY = "busy"  # Same request still running elsewhere
    CONFLICT = "conflict"  # Same key, different payload
    REPLAY = "replay"  # Completed earlier, stored response returned


@dataclass(frozen=True)
class IdempotencyResolution:
    mode: IdempotencyMode
    key: str | None = None
    response_code: int | None = None
    response_body: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def read_idempotency_key(request: Request, max_length: int | None = None) -> str | None:
    """Trimmed ``Idempotency-Key`` header, truncated; None when absent or blank."""
    if max_length is None:
        max_length = get_settings().idempotency_key_max_length
    raw = request.headers.get(IDEMPOTENCY_HEADER)
    if raw is None:
        return None
    key = raw.strip()
    if not key:
        return None
    return key[:max_length]


def hash_idempotency_payload(payload: Any) -> str:
    """SHA-256 of the canonical JSON form (sorted keys, compact separators)."""
    canonical = json.dumps(
        jsonable_encoder(payload),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class IdempotencyCoordinator:
    """Keyed de-duplication of mutating requests backed by ``idempotency_requests``."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        stale_after: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._session_factory = session_factory
        self.stale_after = stale_after
        self._clock = clock

    def is_stale(self, updated_at: datetime | None, now: datetime) -> bool:
        if updated_at is None:
            return True
        return now - _as_utc(updated_at) > self.stale_after

    async def resolve(
        self,
        company_id: UUID,
        endpoint: str,
        key: str | None,
        request_hash: str,
        actor_id: UUID | None = None,
    ) -> IdempotencyResolution:
        """Acquire the key or classify the duplicate."""
        if not key:
            return IdempotencyResolution(mode=IdempotencyMode.NONE)

        now = self._clock()
        async with self._session_factory() as session:
            session.add(
                IdempotencyRequest(
                    company_id=company_id,
                    endpoint=endpoint,
                    idempotency_key=key,
                    request_hash=request_hash,
                    status=IdempotencyStatus.IN_PROGRESS.value,
                    created_by=actor_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            try:
                await session.commit()
                return IdempotencyResolution(mode=IdempotencyMode.ACQUIRED, key=key)
            except IntegrityError:
                await session.rollback()

            result = await session.execute(
                select(IdempotencyRequest).where(
                    IdempotencyRequest.company_id == company_id,
                    IdempotencyRequest.endpoint == endpoint,
                    IdempotencyRequest.idempotency_key == key,
                )
            )
            existing = result.scalar_one_or_none()
            if existing is None:
                # The insert failed for another reason (e.g. unknown company)
                raise RuntimeError(
                    f"Idempotency record for {endpoint} could not be created or read"
                )

            if existing.request_hash != request_hash:
                return IdempotencyResolution(mode=IdempotencyMode.CONFLICT, key=key)

            if (
                existing.status == IdempotencyStatus.COMPLETED.value
                and existing.response_code is not None
                and existing.response_body is not None
            ):
                return IdempotencyResolution(
                    mode=IdempotencyMode.REPLAY,
                    key=key,
                    response_code=existing.response_code,
                    response_body=existing.response_body,
                )

            if existing.status == IdempotencyStatus.IN_PROGRESS.value and not self.is_stale(
                existing.updated_at, now
            ):
                return IdempotencyResolution(mode=IdempotencyMode.BUSY, key=key)

            reclaimed = await session.execute(
                update(IdempotencyRequest)
                .where(
                    IdempotencyRequest.id == existing.id,
                    IdempotencyRequest.status == existing.status,
                    IdempotencyRequest.updated_at == existing.updated_at,
                )
                .values(
                    status=IdempotencyStatus.IN_PROGRESS.value,
                    request_hash=request_hash,
                    response_code=None,
                    response_body=null(),
                    error_body=null(),
                    created_by=actor_id,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()

            if reclaimed.rowcount == 0:
                # Another worker reclaimed it between our read and write
                return IdempotencyResolution(mode=IdempotencyMode.BUSY, key=key)

            logger.info(
                "Reclaimed %s idempotency record %s for %s",
                existing.status,
                key,
                endpoint,
            )
            return IdempotencyResolution(mode=IdempotencyMode.ACQUIRED, key=key)

    async def _finalize(self, company_id: UUID, endpoint: str, key: str | None, **values: Any) -> None:
        if not key:
            return
        async with self._session_factory() as session:
            await session.execute(
                update(IdempotencyRequest)
                .where(
                    IdempotencyRequest.company_id == company_id,
                    IdempotencyRequest.endpoint == endpoint,
                    IdempotencyRequest.idempotency_key == key,
                )
                .values(updated_at=self._clock(), **values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def finalize_success(
        self,
        company_id: UUID,
        endpoint: str,
        key: str | None,
        response_code: int,
        response_body: str,
    ) -> None:
        """Record the serialized response body for replay. No-op without a key."""
        await self._finalize(
            company_id,
            endpoint,
            key,
            status=IdempotencyStatus.COMPLETED.value,
            response_code=response_code,
            response_body=response_body,
            error_body=null(),
        )

    async def finalize_failure(
        self,
        company_id: UUID,
        endpoint: str,
        key: str | None,
        response_code: int,
        error_body: Any,
    ) -> None:
        """Mark the request failed so a retry can re-acquire. No-op without a key."""
        await self._finalize(
            company_id,
            endpoint,
            key,
            status=IdempotencyStatus.FAILED.value,
            response_code=response_code,
            error_body=error_body,
        )


def get_idempotency_coordinator(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> IdempotencyCoordinator:
    """FastAPI dependency building a coordinator with the configured stale window."""
    settings = get_settings()
    return IdempotencyCoordinator(
        session_factory,
        stale_after=timedelta(seconds=settings.idempotency_stale_seconds),
    )


# ── Route helper ──────────────────────────────────────


@dataclass
class IdempotencyGuard:
    """Per-request handle yielded by ``idempotent_request``."""

    coordinator: IdempotencyCoordinator
    company_id: UUID
    endpoint: str
    resolution: IdempotencyResolution
    finalized: bool = field(default=False, init=False)

    @property
    def replay(self) -> Response | None:
        """Stored response bytes to return verbatim, or None when the request should run."""
        if self.resolution.mode != IdempotencyMode.REPLAY:
            return None
        return Response(
            content=self.resolution.response_body,
            status_code=self.resolution.response_code,
            media_type="application/json",
        )

    @property
    def owns_key(self) -> bool:
        return self.resolution.mode == IdempotencyMode.ACQUIRED

    async def complete(self, status_code: int, body: Any) -> JSONResponse:
        """Record a successful response (when the key is held) and return it."""
        response = JSONResponse(status_code=status_code, content=jsonable_encoder(body))
        if self.owns_key:
            await self.coordinator.finalize_success(
                self.company_id,
                self.endpoint,
                self.resolution.key,
                status_code,
                response.body.decode("utf-8"),
            )
        self.finalized = True
        return response

    async def fail(self, status_code: int, error_body: Any) -> None:
        if self.owns_key and not self.finalized:
            await self.coordinator.finalize_failure(
                self.company_id,
                self.endpoint,
                self.resolution.key,
                status_code,
                jsonable_encoder(error_body),
            )
        self.finalized = True


@asynccontextmanager
async def idempotent_request(
    coordinator: IdempotencyCoordinator,
    request: Request,
    *,
    company_id: UUID,
    endpoint: str,
    payload: Any,
    actor_id: UUID | None = None,
) -> AsyncIterator[IdempotencyGuard]:
    """
    Wrap a mutating route body in the idempotency protocol.

    Raises 409 for conflicting or in-flight duplicates. Inside the block,
    return ``guard.replay`` when set, otherwise do the work and return
    ``await guard.complete(code, body)``. HTTPExceptions and unexpected
    errors mark the record failed and propagate.
    """
    resolution = await coordinator.resolve(
        company_id,
        endpoint,
        read_idempotency_key(request),
        hash_idempotency_payload(payload),
        actor_id,
    )
    if resolution.mode == IdempotencyMode.CONFLICT:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CONFLICT_MESSAGE)
    if resolution.mode == IdempotencyMode.BUSY:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=BUSY_MESSAGE)

    guard = IdempotencyGuard(coordinator, company_id, endpoint, resolution)
    try:
        yield guard
    except HTTPException as exc:
        await guard.fail(exc.status_code, {"detail": exc.detail})
        raise
    except Exception:
        logger.exception("Idempotent request to %s failed", endpoint)
        await guard.fail(status.HTTP_500_INTERNAL_SERVER_ERROR, {"detail": "Internal server error"})
        raise

    if guard.owns_key and not guard.finalized:
        logger.warning(
            "Idempotent request to %s returned without recording a response; "
            "key %s stays in progress until it goes stale",
            endpoint,
            resolution.key,
        )
