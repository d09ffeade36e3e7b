from __future__ import annotations

import json
import logging
import sys
from typing import IO

from nexttask.api.dispatcher import ApiDispatcher
from nexttask.api.messages import ApiResponse, new_trace_id, request_from_dict
from nexttask.config import EnvConfigSource, Settings, load_settings
from nexttask.infra.clock import SystemClock
from nexttask.infra.db import create_schema, create_session_factory, get_engine, init_db
from nexttask.infra.logging import setup_logging
from nexttask.infra.repository import IdempotencyRepository, TaskRepository
from nexttask.services.task_service import TaskService

logger = logging.getLogger(__name__)


def build_dispatcher(settings: Settings) -> ApiDispatcher:
    engine = get_engine(settings.database_url)
    init_db(engine)
    if engine.dialect.name == "sqlite":
        create_schema(engine)
    session_factory = create_session_factory(engine)
    clock = SystemClock()
    return ApiDispatcher(
        service=TaskService(TaskRepository(session_factory), clock),
        idempotency_store=IdempotencyRepository(session_factory),
        clock=clock,
        config=EnvConfigSource(),
    )


def _bad_line(message: str) -> ApiResponse:
    return ApiResponse(
        status=400,
        body={
            "ok": False,
            "error": {"code": "VALIDATION_ERROR", "message": message, "details": {}},
            "traceId": new_trace_id(),
        },
    )


def serve(dispatcher: ApiDispatcher, stream_in: IO[str], stream_out: IO[str]) -> None:
    """One JSON request object per input line, one ``{status, body}`` object per output line."""
    for line in stream_in:
        line = line.strip()
        if not line:
            continue
        try:
            request = request_from_dict(json.loads(line))
        except (TypeError, ValueError, AttributeError):
            response = _bad_line("Request line is not a valid request object")
        else:
            response = dispatcher.handle(request)
        stream_out.write(json.dumps({"status": response.status, "body": response.body}) + "\n")
        stream_out.flush()


def main() -> None:
    settings = load_settings()
    setup_logging(settings)
    try:
        dispatcher = build_dispatcher(settings)
    except Exception:  # noqa: BLE001
        logger.exception("Database is not reachable at startup")
        sys.exit(1)
    serve(dispatcher, sys.stdin, sys.stdout)


if __name__ == "__main__":
    main()
