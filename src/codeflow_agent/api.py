from __future__ import annotations

import json
import logging
from typing import Iterator

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, Field

from codeflow_agent.agent import AgentOrchestrator
from codeflow_agent.domain.events import ToolEvent, event_to_dict, is_terminal
from codeflow_agent.domain.models import Task
from codeflow_agent.tools import TOOL_SHAPES

_log = logging.getLogger(__name__)

SSE_HEADERS = {
    'Cache-Control': 'no-cache, no-transform',
    'Connection': 'keep-alive',
    'X-Accel-Buffering': 'no',
}


class AgentRunRequest(BaseModel):
    task: str = Field(min_length=1, max_length=20000)
    model: str | None = Field(default=None, max_length=200)
    repo_url: str | None = Field(default=None, max_length=2000)
    sandbox_id: str | None = Field(default=None, max_length=200)
    max_steps: int | None = Field(default=None, ge=1, le=200)


class ToolsResponse(BaseModel):
    tools: dict[str, dict[str, str]]


class ValidationErrorResponse(BaseModel):
    code: str
    message: str
    field: str | None = None


class AppState:
    def __init__(self, orchestrator: AgentOrchestrator, default_model: str):
        self.orchestrator = orchestrator
        self.default_model = default_model


def format_sse(event: ToolEvent) -> str:
    payload = event_to_dict(event)
    return f'event: {payload["type"]}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n'


def stream_events(events: Iterator[ToolEvent]) -> Iterator[str]:
    """Frame events as SSE and stop after the first terminal event."""
    try:
        for event in events:
            yield format_sse(event)
            if is_terminal(event):
                break
    finally:
        close = getattr(events, 'close', None)
        if callable(close):
            close()


def create_app(
    *,
    orchestrator: AgentOrchestrator,
    default_model: str = 'openai:gpt-4o-mini',
) -> FastAPI:
    app = FastAPI(title='codeflow-agent api', version='0.1.0')
    app.state.container = AppState(orchestrator=orchestrator, default_model=default_model)

    def _field_from_loc(loc: tuple | list | None) -> str | None:
        if not loc:
            return None
        source_prefixes = {'body', 'query', 'path', 'header', 'cookie'}
        parts = list(loc)
        if parts and str(parts[0]) in source_prefixes:
            parts = parts[1:]
        field = ''
        for part in parts:
            if isinstance(part, int):
                field += f'[{part}]'
            elif field:
                field += f'.{part}'
            else:
                field = str(part)
        return field or None

    def _validation_error_payload(*, message: str, field: str | None = None, code: str = 'validation_error') -> dict:
        payload: dict[str, str] = {
            'code': code,
            'message': message,
        }
        if field:
            payload['field'] = field
        return payload

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):  # noqa: ARG001
        details = exc.errors()
        if details:
            first = details[0]
            message = str(first.get('msg') or 'invalid request body')
            field = _field_from_loc(first.get('loc'))
        else:
            message = 'invalid request body'
            field = None
        return JSONResponse(
            status_code=400,
            content=_validation_error_payload(message=message, field=field),
        )

    def get_state() -> AppState:
        return app.state.container

    @app.get('/healthz')
    def healthz() -> dict[str, str]:
        return {'status': 'ok'}

    @app.get('/api/tools', response_model=ToolsResponse)
    def list_tools() -> ToolsResponse:
        return ToolsResponse(tools={name: dict(shape) for name, shape in TOOL_SHAPES.items()})

    @app.post('/api/agent/run', responses={400: {'model': ValidationErrorResponse}})
    def run_agent(payload: AgentRunRequest, state: AppState = Depends(get_state)) -> Response:
        task_text = payload.task.strip()
        if not task_text:
            return JSONResponse(
                status_code=400,
                content=_validation_error_payload(message='task must not be blank', field='task'),
            )
        task = Task(
            description=task_text,
            model_id=(payload.model or '').strip() or state.default_model,
            repository_url=(payload.repo_url or '').strip() or None,
            existing_sandbox_id=(payload.sandbox_id or '').strip() or None,
        )
        _log.info('agent run requested model=%s sandbox_id=%s', task.model_id, task.existing_sandbox_id)
        events = state.orchestrator.run(task, max_steps=payload.max_steps)
        return StreamingResponse(
            stream_events(events),
            media_type='text/event-stream',
            headers=SSE_HEADERS,
        )

    return app


__all__ = ['AgentRunRequest', 'SSE_HEADERS', 'create_app', 'format_sse', 'stream_events']
