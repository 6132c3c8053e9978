from __future__ import annotations

from codeflow_agent.adapters.base import (
    Completion,
    ModelClient,
    ModelClientError,
    UnknownModelError,
    parse_tool_call,
    render_tool_instruction,
    render_transcript,
    split_model_id,
)
from codeflow_agent.adapters.dry_run import DryRunModelClient
from codeflow_agent.adapters.factory import ModelClientFactory
from codeflow_agent.adapters.openai_chat import OpenAIChatClient
from codeflow_agent.adapters.runner import CliModelClient

__all__ = [
    'CliModelClient',
    'Completion',
    'DryRunModelClient',
    'ModelClient',
    'ModelClientError',
    'ModelClientFactory',
    'OpenAIChatClient',
    'UnknownModelError',
    'parse_tool_call',
    'render_tool_instruction',
    'render_transcript',
    'split_model_id',
]
