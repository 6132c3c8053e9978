from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator, Union


class Role(str, Enum):
    SYSTEM = 'system'
    USER = 'user'
    ASSISTANT = 'assistant'


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def as_dict(self) -> dict[str, str]:
        return {'role': self.role.value, 'content': self.content}


@dataclass(frozen=True)
class Task:
    description: str
    model_id: str
    repository_url: str | None = None
    existing_sandbox_id: str | None = None


class ConversationHistory:
    """Append-only message log for a single run.

    Messages are never mutated or removed; callers get tuple snapshots.
    """

    def __init__(self, messages: Iterable[Message] = ()):
        self._messages: list[Message] = list(messages)

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def add_user(self, content: str) -> None:
        self.append(Message(Role.USER, content))

    def add_assistant(self, content: str) -> None:
        self.append(Message(Role.ASSISTANT, content))

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))


@dataclass(frozen=True)
class ParsedToolCall:
    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Unparsed:
    """Model output that did not yield a tool call; dispatched as an unknown tool."""

    raw: str = ''
    reason: str = 'unparsed'

    @property
    def name(self) -> None:
        return None

    @property
    def args(self) -> dict[str, Any]:
        return {}


ToolCallRequest = Union[ParsedToolCall, Unparsed]


@dataclass(frozen=True)
class ToolExecutionResult:
    name: str
    args: dict[str, Any]
    output: str
    truncated_output: str
    history_output: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RunState(str, Enum):
    BOOTSTRAPPING = 'bootstrapping'
    PLANNING = 'planning'
    AWAITING_TOOL_CALL = 'awaiting_tool_call'
    EXECUTING_TOOL = 'executing_tool'
    AWAITING_VERDICT = 'awaiting_verdict'
    DONE = 'done'
    FAILED = 'failed'


_ALLOWED_TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.BOOTSTRAPPING: frozenset({RunState.PLANNING, RunState.FAILED}),
    RunState.PLANNING: frozenset({RunState.AWAITING_TOOL_CALL, RunState.DONE, RunState.FAILED}),
    RunState.AWAITING_TOOL_CALL: frozenset({RunState.EXECUTING_TOOL, RunState.FAILED}),
    RunState.EXECUTING_TOOL: frozenset({RunState.AWAITING_VERDICT, RunState.FAILED}),
    RunState.AWAITING_VERDICT: frozenset({RunState.PLANNING, RunState.DONE, RunState.FAILED}),
    RunState.DONE: frozenset(),
    RunState.FAILED: frozenset(),
}


def can_transition(current: RunState, target: RunState) -> bool:
    return target in _ALLOWED_TRANSITIONS.get(current, frozenset())
