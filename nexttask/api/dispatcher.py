from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Callable

from nexttask.config import ConfigSource, Settings
from nexttask.domain.entities import TaskEntity
from nexttask.domain.errors import NotFoundError, ServiceError, ValidationError
from nexttask.domain.time import format_timestamp, parse_timestamp, resolve_timezone
from nexttask.infra.clock import Clock
from nexttask.services.idempotency import IdempotencyGate, IdempotencyStore
from nexttask.services.task_service import TaskService

from .messages import ApiRequest, ApiResponse, failure, new_trace_id, success

logger = logging.getLogger(__name__)

TASK_PATH = re.compile(r"^/tasks/(?P<task_id>[^/]+)(?:/(?P<action>complete|snooze))?$")
IDEMPOTENCY_HEADER = "Idempotency-Key"
IDEMPOTENCY_BODY_FIELD = "idempotencyKey"
OVERRIDE_HEADER = "X-HTTP-Method-Override"


def parse_if_match(raw: str | None) -> int | None:
    if raw is None or not raw.strip():
        return None
    value = raw.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    try:
        return int(value)
    except ValueError:
        raise ValidationError("If-Match must carry an integer version", {"ifMatch": raw}) from None


class ApiDispatcher:
    def __init__(
        self,
        service: TaskService,
        idempotency_store: IdempotencyStore,
        clock: Clock,
        config: ConfigSource,
    ) -> None:
        self._service = service
        self._idempotency_store = idempotency_store
        self._clock = clock
        self._config = config

    def handle(self, request: ApiRequest) -> ApiResponse:
        trace_id = new_trace_id()
        try:
            settings = Settings.from_source(self._config)
            return self._route(request, settings, trace_id)
        except ServiceError as exc:
            return failure(exc, trace_id)
        except Exception:  # noqa: BLE001
            logger.exception("Unhandled error on %s %s (trace %s)", request.method, request.path, trace_id)
            return failure(ServiceError("Internal error"), trace_id)

    def _route(self, request: ApiRequest, settings: Settings, trace_id: str) -> ApiResponse:
        method = self._effective_method(request)
        path = "/" + request.path.strip("/")

        if path == "/health" and method == "GET":
            tz = resolve_timezone(settings.timezone)
            return success(trace_id, time=format_timestamp(self._clock.now(), tz))

        if path == "/tasks" and method == "GET":
            tasks = self._service.list_tasks(
                settings,
                status=request.query.get("status"),
                search=request.query.get("q"),
                limit=request.query.get("limit"),
            )
            return success(trace_id, tasks=[task.to_dict() for task in tasks], count=len(tasks))

        if path == "/tasks" and method == "POST":
            return self._mutate(
                request, method, path, settings, trace_id,
                lambda body: self._service.create_task(body, settings),
                status=201,
            )

        if path == "/tasks/next" and method == "GET":
            return success(trace_id, **self._service.next_task(settings, self._now_override(request, settings)))

        if path == "/analytics/summary" and method == "GET":
            return success(trace_id, summary=self._service.summary(settings))

        match = TASK_PATH.match(path)
        if match:
            task_id, action = match.group("task_id"), match.group("action")
            if action is None and method == "GET":
                return success(trace_id, task=self._service.get_task(task_id).to_dict())
            if action is None and method == "PATCH":
                return self._mutate(
                    request, method, path, settings, trace_id,
                    lambda body: self._service.patch_task(
                        task_id, body, settings, parse_if_match(request.header("If-Match"))
                    ),
                )
            if action == "complete" and method == "POST":
                return self._mutate(
                    request, method, path, settings, trace_id,
                    lambda body: self._service.complete_task(
                        task_id, settings, parse_if_match(request.header("If-Match"))
                    ),
                )
            if action == "snooze" and method == "POST":
                return self._mutate(
                    request, method, path, settings, trace_id,
                    lambda body: self._service.snooze_task(
                        task_id, body, settings, parse_if_match(request.header("If-Match"))
                    ),
                )

        raise NotFoundError(f"No route for {method} {path}", {"method": method, "path": path})

    def _mutate(
        self,
        request: ApiRequest,
        method: str,
        path: str,
        settings: Settings,
        trace_id: str,
        action: Callable[[Any], TaskEntity],
        status: int = 200,
    ) -> ApiResponse:
        body = request.body if request.body is not None else {}
        key = request.header(IDEMPOTENCY_HEADER)
        if isinstance(body, dict):
            body = dict(body)
            body_key = body.pop(IDEMPOTENCY_BODY_FIELD, None)
            key = key or (str(body_key) if body_key is not None else None)

        gate = IdempotencyGate(self._idempotency_store, self._clock, settings.idempotency_enforce_hash)
        return gate.execute(
            key,
            method,
            path,
            body,
            lambda: success(trace_id, status, task=action(body).to_dict()),
            trace_id,
        )

    @staticmethod
    def _effective_method(request: ApiRequest) -> str:
        method = request.method.upper()
        if method == "POST":
            override = request.header(OVERRIDE_HEADER) or request.query.get("method")
            if override and override.strip():
                return override.strip().upper()
        return method

    @staticmethod
    def _now_override(request: ApiRequest, settings: Settings) -> datetime | None:
        raw = request.query.get("now")
        if raw is None or not raw.strip():
            return None
        now = parse_timestamp(raw, resolve_timezone(settings.timezone))
        if now is None:
            raise ValidationError("now must be an ISO-8601 datetime", {"now": raw})
        return now
