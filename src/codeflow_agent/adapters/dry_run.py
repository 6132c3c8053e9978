from __future__ import annotations

from typing import Sequence

from codeflow_agent.adapters.base import Completion, ModelClient, ToolShapes
from codeflow_agent.domain.models import Message, Role

DRY_RUN_PLAN = (
    '[dry-run] Plan:\n'
    '1. Inspect the workspace with `ls -la`.\n'
    '2. Report what was found.'
)
DRY_RUN_SUMMARY = 'DONE: dry run complete; workspace listed.'


class DryRunModelClient(ModelClient):
    """Offline client with a fixed script: plan, one ``cmd.run``, then DONE."""

    def __init__(self, *, model: str = 'dry-run'):
        super().__init__(model=model)

    @staticmethod
    def _has_tool_output(messages: Sequence[Message]) -> bool:
        return any(
            message.role is Role.USER and message.content.startswith('Tool ')
            for message in messages
        )

    def complete(self, messages: Sequence[Message]) -> Completion:
        if self._has_tool_output(messages):
            return Completion(text=DRY_RUN_SUMMARY)
        return Completion(text=DRY_RUN_PLAN)

    def _request_tool_payload(self, messages: Sequence[Message], tool_shapes: ToolShapes) -> str:
        return '{"tool": "cmd.run", "args": {"cmd": "ls -la"}}'


__all__ = ['DRY_RUN_PLAN', 'DRY_RUN_SUMMARY', 'DryRunModelClient']
