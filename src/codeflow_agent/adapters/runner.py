from __future__ import annotations

import shlex
import subprocess
from typing import Sequence

from codeflow_agent.adapters.base import Completion, ModelClient, ModelClientError, ToolShapes, render_transcript
from codeflow_agent.domain.models import Message
from codeflow_agent.observability import get_logger

_log = get_logger('codeflow_agent.adapters.runner')

# provider -> flag that selects the model on its CLI
MODEL_FLAGS = {
    'claude': '--model',
    'codex': '-m',
    'gemini': '-m',
}


class CliModelClient(ModelClient):
    """Pipes the rendered transcript into a provider CLI and returns its stdout."""

    def __init__(self, *, provider: str, model: str, command: str, timeout_seconds: float = 300):
        super().__init__(model=model)
        self.provider = str(provider or '').strip().lower()
        if self.provider not in MODEL_FLAGS:
            raise ModelClientError(f'unsupported_provider provider={self.provider}')
        try:
            base = shlex.split(str(command or ''))
        except ValueError as exc:
            raise ModelClientError(f'invalid_command provider={self.provider}: {exc}') from exc
        if not base:
            raise ModelClientError(f'command_not_configured provider={self.provider}')
        self.argv = [*base, MODEL_FLAGS[self.provider], model]
        self.timeout_seconds = float(timeout_seconds)

    def complete(self, messages: Sequence[Message]) -> Completion:
        return Completion(text=self.run_prompt(render_transcript(messages)))

    def _request_tool_payload(self, messages: Sequence[Message], tool_shapes: ToolShapes) -> str:
        return self.run_prompt(render_transcript(self.with_tool_instruction(messages, tool_shapes)))

    def run_prompt(self, prompt: str) -> str:
        try:
            completed = subprocess.run(
                self.argv,
                input=prompt,
                capture_output=True,
                text=True,
                encoding='utf-8',
                errors='replace',
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise ModelClientError(f'command_not_found provider={self.provider} executable={self.argv[0]}') from exc
        except subprocess.TimeoutExpired as exc:
            raise ModelClientError(
                f'command_timeout provider={self.provider} timeout_seconds={self.timeout_seconds:g}'
            ) from exc

        if completed.returncode != 0:
            stderr = (completed.stderr or '').strip()
            raise ModelClientError(
                f'command_failed provider={self.provider} returncode={completed.returncode}: {stderr[-500:]}'
            )
        output = (completed.stdout or '').strip()
        _log.debug('cli_model_completed provider=%s chars=%d', self.provider, len(output))
        return output


__all__ = ['CliModelClient', 'MODEL_FLAGS']
