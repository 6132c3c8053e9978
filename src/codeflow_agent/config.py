from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    service_name: str
    otel_endpoint: str | None
    dry_run: bool
    default_model: str
    max_steps: int
    model_timeout_seconds: int
    command_timeout_seconds: int
    sandbox_backend: str
    sandbox_template: str
    sandbox_lifetime_seconds: int
    workspace_dir: str
    local_sandbox_root: Path
    e2b_api_key: str | None
    openai_base_url: str | None
    claude_command: str | None
    codex_command: str | None
    gemini_command: str | None


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = (os.getenv(name, '') or '').strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, value)


def _env_text(name: str) -> str | None:
    text = str(os.getenv(name, '') or '').strip()
    return text or None


def load_settings() -> Settings:
    service_name = os.getenv('CODEFLOW_SERVICE_NAME', 'codeflow-agent')
    otel_endpoint = _env_text('CODEFLOW_OTEL_EXPORTER_OTLP_ENDPOINT')
    dry_run = os.getenv('CODEFLOW_DRY_RUN', '').strip().lower() in {'1', 'true', 'yes', 'on'}
    default_model = _env_text('CODEFLOW_DEFAULT_MODEL') or 'openai:gpt-4o-mini'
    max_steps = _env_int('CODEFLOW_MAX_STEPS', 24, minimum=1)
    model_timeout_seconds = _env_int('CODEFLOW_MODEL_TIMEOUT_SECONDS', 300, minimum=10)
    command_timeout_seconds = _env_int('CODEFLOW_COMMAND_TIMEOUT_SECONDS', 600, minimum=10)
    sandbox_backend = str(os.getenv('CODEFLOW_SANDBOX_BACKEND', 'e2b') or 'e2b').strip().lower()
    if sandbox_backend not in {'e2b', 'local'}:
        sandbox_backend = 'e2b'
    sandbox_template = _env_text('CODEFLOW_SANDBOX_TEMPLATE') or 'codeflow-agent'
    sandbox_lifetime_seconds = _env_int('CODEFLOW_SANDBOX_LIFETIME_SECONDS', 3600, minimum=60)
    workspace_dir = (_env_text('CODEFLOW_WORKSPACE_DIR') or '/home/user/workspace').rstrip('/') or '/'
    local_sandbox_root = Path(os.getenv('CODEFLOW_LOCAL_SANDBOX_ROOT', '.sandboxes')).resolve()
    claude_command = _env_text('CODEFLOW_CLAUDE_COMMAND')
    codex_command = _env_text('CODEFLOW_CODEX_COMMAND')
    gemini_command = _env_text('CODEFLOW_GEMINI_COMMAND')
    return Settings(
        service_name=service_name,
        otel_endpoint=otel_endpoint,
        dry_run=dry_run,
        default_model=default_model,
        max_steps=max_steps,
        model_timeout_seconds=model_timeout_seconds,
        command_timeout_seconds=command_timeout_seconds,
        sandbox_backend=sandbox_backend,
        sandbox_template=sandbox_template,
        sandbox_lifetime_seconds=sandbox_lifetime_seconds,
        workspace_dir=workspace_dir,
        local_sandbox_root=local_sandbox_root,
        e2b_api_key=_env_text('E2B_API_KEY'),
        openai_base_url=_env_text('CODEFLOW_OPENAI_BASE_URL'),
        claude_command=claude_command,
        codex_command=codex_command,
        gemini_command=gemini_command,
    )
