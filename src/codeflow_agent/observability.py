from __future__ import annotations

from contextlib import contextmanager, nullcontext
from contextvars import ContextVar
import json
import logging
import sys
from threading import Lock
from typing import Iterator

_run_id_var: ContextVar[str | None] = ContextVar('run_id', default=None)
_step_var: ContextVar[int | None] = ContextVar('step', default=None)


def set_run_context(run_id: str | None = None, step: int | None = None) -> None:
    """Set correlation context for structured log output."""
    _run_id_var.set(run_id)
    _step_var.set(step)


def get_run_id() -> str | None:
    return _run_id_var.get(None)


def get_step() -> int | None:
    return _step_var.get(None)


class _JsonFormatter(logging.Formatter):
    """Emit one JSON object per log line with correlation fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            'ts': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'msg': record.getMessage(),
        }
        run_id = getattr(record, 'run_id', None) or _run_id_var.get(None)
        if run_id:
            payload['run_id'] = run_id
        step = getattr(record, 'step', None) or _step_var.get(None)
        if step is not None:
            payload['step'] = step
        if record.exc_info and record.exc_info[1] is not None:
            payload['exc'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


_configured = False
_configured_otlp_endpoint: str | None = None
_configure_lock = Lock()


def get_logger(name: str) -> logging.Logger:
    """Return a logger. Safe to call before configure_observability."""
    return logging.getLogger(name)


def configure_observability(*, service_name: str, otlp_endpoint: str | None) -> None:
    global _configured
    global _configured_otlp_endpoint
    with _configure_lock:
        if not _configured:
            root = logging.getLogger('codeflow_agent')
            has_json_handler = any(
                isinstance(handler, logging.StreamHandler)
                and isinstance(getattr(handler, 'formatter', None), _JsonFormatter)
                for handler in root.handlers
            )
            if not has_json_handler:
                handler = logging.StreamHandler(sys.stderr)
                handler.setFormatter(_JsonFormatter())
                root.addHandler(handler)
            root.setLevel(logging.DEBUG)
            _configured = True

    if not otlp_endpoint:
        return
    endpoint = str(otlp_endpoint).strip()
    if not endpoint:
        return

    with _configure_lock:
        if _configured_otlp_endpoint == endpoint:
            return

    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except Exception:
        logging.getLogger('codeflow_agent.observability').warning(
            'OpenTelemetry import failed; tracing disabled', exc_info=True,
        )
        return

    provider = TracerProvider(resource=Resource.create({'service.name': service_name}))
    exporter = OTLPSpanExporter(endpoint=endpoint)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    with _configure_lock:
        _configured_otlp_endpoint = endpoint


def get_tracer(name: str = 'codeflow_agent.agent'):
    try:
        from opentelemetry import trace
        return trace.get_tracer(name)
    except Exception:
        logging.getLogger('codeflow_agent.observability').debug('OpenTelemetry tracer unavailable', exc_info=True)
        return None


@contextmanager
def _tracer_span(tracer, name: str, attributes: dict) -> Iterator[object]:
    with tracer.start_as_current_span(name) as current:
        for key, value in attributes.items():
            if value is None:
                continue
            current.set_attribute(key, value)
        yield current


def span(tracer, name: str, attributes: dict | None = None):
    if tracer is None:
        return nullcontext()
    return _tracer_span(tracer, name, dict(attributes or {}))
