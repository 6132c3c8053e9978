from __future__ import annotations

from codeflow_agent.adapters.factory import ModelClientFactory
from codeflow_agent.agent import AgentOrchestrator
from codeflow_agent.api import create_app
from codeflow_agent.config import load_settings
from codeflow_agent.observability import configure_observability, get_logger
from codeflow_agent.sandbox.factory import SandboxFactory

_log = get_logger('codeflow_agent.main')


def build_app():
    settings = load_settings()
    configure_observability(
        service_name=settings.service_name,
        otlp_endpoint=settings.otel_endpoint,
    )
    orchestrator = AgentOrchestrator(
        model_factory=ModelClientFactory.from_settings(settings),
        sandbox_factory=SandboxFactory.from_settings(settings),
        max_steps=settings.max_steps,
        default_model=settings.default_model,
    )
    _log.info(
        'app configured backend=%s default_model=%s max_steps=%d dry_run=%s',
        settings.sandbox_backend,
        settings.default_model,
        settings.max_steps,
        settings.dry_run,
    )
    return create_app(orchestrator=orchestrator, default_model=settings.default_model)


app = build_app()
