from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from nexttask.domain.errors import ServiceError


@dataclass(frozen=True)
class ApiRequest:
    method: str
    path: str
    query: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass(frozen=True)
class ApiResponse:
    status: int
    body: dict[str, Any]


def new_trace_id() -> str:
    return uuid.uuid4().hex


def success(trace_id: str, status: int = 200, **payload: Any) -> ApiResponse:
    return ApiResponse(status=status, body={"ok": True, **payload, "traceId": trace_id})


def failure(error: ServiceError, trace_id: str) -> ApiResponse:
    return ApiResponse(
        status=error.status,
        body={"ok": False, "error": error.to_dict(), "traceId": trace_id},
    )


def request_from_dict(raw: Any) -> ApiRequest:
    if not isinstance(raw, dict):
        raise TypeError("request must be a JSON object")
    return ApiRequest(
        method=str(raw.get("method") or "GET"),
        path=str(raw.get("path") or "/"),
        query={str(k): str(v) for k, v in (raw.get("query") or {}).items()},
        headers={str(k): str(v) for k, v in (raw.get("headers") or {}).items()},
        body=raw.get("body"),
    )
