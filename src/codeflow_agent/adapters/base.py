from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import json
import re
from typing import Any, Mapping, Sequence

from codeflow_agent.domain.models import Message, ParsedToolCall, Role, ToolCallRequest, Unparsed


class ModelClientError(RuntimeError):
    pass


class UnknownModelError(ValueError):
    def __init__(self, model_id: str):
        super().__init__(f'Unknown model: {model_id}')
        self.model_id = model_id


@dataclass(frozen=True)
class Completion:
    text: str


ToolShapes = Mapping[str, Mapping[str, str]]


def split_model_id(model_id: str) -> tuple[str, str]:
    text = str(model_id or '').strip()
    if ':' not in text:
        return text.lower(), ''
    provider, model = text.split(':', 1)
    return provider.strip().lower(), model.strip()


def _iter_json_candidates(output: str) -> list[str]:
    text = str(output or '').strip()
    if not text:
        return []
    candidates: list[str] = [text]
    fence_re = re.compile(r'```(?:json)?\s*(\{.*?\})\s*```', re.IGNORECASE | re.DOTALL)
    for match in fence_re.finditer(text):
        payload = str(match.group(1) or '').strip()
        if payload:
            candidates.append(payload)
    for line in text.splitlines():
        line_text = str(line or '').strip()
        if line_text.startswith('{') and line_text.endswith('}'):
            candidates.append(line_text)
    out: list[str] = []
    seen: set[str] = set()
    for item in candidates:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def _coerce_args(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            return {}
        if isinstance(decoded, dict):
            return decoded
    return {}


def parse_tool_call(output: str) -> ToolCallRequest:
    """Decide once whether a backend payload names a tool call.

    Accepts ``tool`` or ``name`` for the tool and ``args`` or ``arguments``
    for its arguments. Never raises; anything unusable becomes Unparsed.
    """
    text = str(output or '')
    for candidate in _iter_json_candidates(text):
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if not isinstance(parsed, dict):
            continue
        name = parsed.get('tool')
        if name is None:
            name = parsed.get('name')
        if not isinstance(name, str) or not name.strip():
            continue
        raw_args = parsed.get('args')
        if raw_args is None:
            raw_args = parsed.get('arguments')
        return ParsedToolCall(name=name.strip(), args=_coerce_args(raw_args))
    reason = 'empty_output' if not text.strip() else 'no_tool_call'
    return Unparsed(raw=text, reason=reason)


def render_tool_instruction(tool_shapes: ToolShapes) -> str:
    shapes = json.dumps({name: dict(shape) for name, shape in tool_shapes.items()}, indent=2, sort_keys=True)
    return (
        'Available tools and their argument shapes:\n'
        f'{shapes}\n'
        'Respond with exactly one JSON object of the form {"tool": "<name>", "args": {...}} and nothing else.'
    )


def render_transcript(messages: Sequence[Message]) -> str:
    blocks = [f'[{message.role.value.upper()}]\n{message.content}' for message in messages]
    return '\n\n'.join(blocks)


class ModelClient(ABC):
    """Backend-neutral decision maker used by the orchestrator."""

    def __init__(self, *, model: str):
        self.model = model

    @abstractmethod
    def complete(self, messages: Sequence[Message]) -> Completion:
        raise NotImplementedError

    @abstractmethod
    def _request_tool_payload(self, messages: Sequence[Message], tool_shapes: ToolShapes) -> str:
        raise NotImplementedError

    def plan_tool(self, messages: Sequence[Message], tool_shapes: ToolShapes) -> ToolCallRequest:
        raw = self._request_tool_payload(messages, tool_shapes)
        return parse_tool_call(raw)

    @staticmethod
    def with_tool_instruction(messages: Sequence[Message], tool_shapes: ToolShapes) -> list[Message]:
        return [*messages, Message(Role.USER, render_tool_instruction(tool_shapes))]


__all__ = [
    'Completion',
    'ModelClient',
    'ModelClientError',
    'ToolShapes',
    'UnknownModelError',
    'parse_tool_call',
    'render_tool_instruction',
    'render_transcript',
    'split_model_id',
]
