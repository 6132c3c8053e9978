from __future__ import annotations

from codeflow_agent.adapters.base import ModelClient, UnknownModelError, split_model_id
from codeflow_agent.adapters.dry_run import DryRunModelClient
from codeflow_agent.adapters.openai_chat import OpenAIChatClient
from codeflow_agent.adapters.runner import CliModelClient
from codeflow_agent.config import Settings

DEFAULT_CLI_COMMANDS = {
    'claude': 'claude -p --dangerously-skip-permissions',
    'codex': 'codex exec --skip-git-repo-check',
    'gemini': 'gemini --yolo',
}


class ModelClientFactory:
    """Maps ``<provider>:<model>`` ids onto model client variants."""

    def __init__(
        self,
        *,
        command_overrides: dict[str, str | None] | None = None,
        openai_base_url: str | None = None,
        timeout_seconds: int = 300,
        dry_run: bool = False,
    ):
        self.cli_commands = dict(DEFAULT_CLI_COMMANDS)
        for provider, command in (command_overrides or {}).items():
            key = str(provider or '').strip().lower()
            text = str(command or '').strip()
            if key in self.cli_commands and text:
                self.cli_commands[key] = text
        self.openai_base_url = openai_base_url
        self.timeout_seconds = timeout_seconds
        self.dry_run = dry_run

    @classmethod
    def from_settings(cls, settings: Settings) -> 'ModelClientFactory':
        return cls(
            command_overrides={
                'claude': settings.claude_command,
                'codex': settings.codex_command,
                'gemini': settings.gemini_command,
            },
            openai_base_url=settings.openai_base_url,
            timeout_seconds=settings.model_timeout_seconds,
            dry_run=settings.dry_run,
        )

    def create(self, model_id: str) -> ModelClient:
        provider, model = split_model_id(model_id)
        if self.dry_run or provider == 'dry-run':
            return DryRunModelClient()
        if not model:
            raise UnknownModelError(model_id)
        if provider == 'openai':
            return OpenAIChatClient(
                model=model,
                base_url=self.openai_base_url,
                timeout_seconds=self.timeout_seconds,
            )
        if provider in self.cli_commands:
            return CliModelClient(
                provider=provider,
                model=model,
                command=self.cli_commands[provider],
                timeout_seconds=self.timeout_seconds,
            )
        raise UnknownModelError(model_id)

    __call__ = create


__all__ = ['DEFAULT_CLI_COMMANDS', 'ModelClientFactory']
