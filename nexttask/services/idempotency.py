"""Replay-safe execution of mutating requests.

Every mutation is keyed by a client-supplied idempotency key. The first request
with a key runs its handler and records the response; later requests with the
same key get that response back with a fresh trace id and never reach the
handler again.

The record is written after the handler runs, through a conditional insert on
the unique key. Two concurrent first requests can therefore both execute; the
loser of the insert replays the winner's stored response.
"""
from __future__ import annotations

import hashlib
import json
import logging
from datetime import timezone
from typing import Any, Callable, Protocol

from nexttask.api.messages import ApiResponse, failure
from nexttask.domain.entities import IdempotencyRecord
from nexttask.domain.errors import (
    CORRUPT_STORED_RESPONSE,
    IdempotencyConflictError,
    MissingIdempotencyKeyError,
    ServiceError,
    ValidationError,
)
from nexttask.domain.time import format_timestamp
from nexttask.infra.clock import Clock

logger = logging.getLogger(__name__)

# matches the idempotency_records.request_id column
KEY_MAX_LENGTH = 200


class IdempotencyStore(Protocol):
    def find_by_key(self, key: str) -> IdempotencyRecord | None:
        ...

    def append(self, record: IdempotencyRecord) -> bool:
        ...


def request_hash(method: str, path: str, body: Any) -> str:
    canonical = json.dumps(body, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(f"{method.upper()}|{path}|{canonical}".encode("utf-8")).hexdigest()


class IdempotencyGate:
    def __init__(self, store: IdempotencyStore, clock: Clock, enforce_hash: bool = False) -> None:
        self._store = store
        self._clock = clock
        self._enforce_hash = enforce_hash

    def execute(
        self,
        key: str | None,
        method: str,
        path: str,
        body: Any,
        handler: Callable[[], ApiResponse],
        trace_id: str,
    ) -> ApiResponse:
        key = (key or "").strip()
        if not key:
            raise MissingIdempotencyKeyError()
        if len(key) > KEY_MAX_LENGTH:
            raise ValidationError(
                f"Idempotency key must be at most {KEY_MAX_LENGTH} characters",
                {"fields": {"idempotencyKey": "too long"}},
            )

        digest = request_hash(method, path, body)
        stored = self._store.find_by_key(key)
        if stored is not None:
            if self._enforce_hash and stored.request_hash != digest:
                raise IdempotencyConflictError(
                    "Idempotency key was already used for a different request",
                    {"requestId": key, "method": stored.method, "path": stored.path},
                )
            logger.info("Replaying %s %s for idempotency key %s", stored.method, stored.path, key)
            return self._replay(stored, trace_id)

        try:
            response = handler()
        except ServiceError as exc:
            response = failure(exc, trace_id)

        record = IdempotencyRecord(
            request_id=key,
            trace_id=trace_id,
            created_at=format_timestamp(self._clock.now(), timezone.utc),
            method=method.upper(),
            path=path,
            request_hash=digest,
            status_code=response.status,
            response_body=json.dumps(response.body, default=str),
        )
        if not self._store.append(record):
            winner = self._store.find_by_key(key)
            if winner is not None:
                logger.warning("Lost idempotency claim for key %s; replaying the recorded response", key)
                return self._replay(winner, trace_id)
        return response

    @staticmethod
    def _replay(record: IdempotencyRecord, trace_id: str) -> ApiResponse:
        try:
            body = json.loads(record.response_body)
        except (TypeError, ValueError):
            body = None
        if not isinstance(body, dict):
            logger.error("Stored response for idempotency key %s is not valid JSON", record.request_id)
            body = {
                "ok": False,
                "error": {
                    "code": CORRUPT_STORED_RESPONSE,
                    "message": "Stored response could not be read",
                    "details": {"requestId": record.request_id},
                },
            }
        body["traceId"] = trace_id
        return ApiResponse(status=record.status_code, body=body)
