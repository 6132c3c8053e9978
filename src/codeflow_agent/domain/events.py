from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union


class EventType(str, Enum):
    PLAN = 'plan'
    TOOL = 'tool'
    LOG = 'log'
    DONE = 'done'
    ERROR = 'error'


TERMINAL_EVENT_TYPES = frozenset({EventType.DONE.value, EventType.ERROR.value})


@dataclass(frozen=True)
class PlanEvent:
    type: ClassVar[EventType] = EventType.PLAN
    content: str


@dataclass(frozen=True)
class ToolCallEvent:
    type: ClassVar[EventType] = EventType.TOOL
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    output: str | None = None


@dataclass(frozen=True)
class LogEvent:
    type: ClassVar[EventType] = EventType.LOG
    content: str


@dataclass(frozen=True)
class DoneEvent:
    type: ClassVar[EventType] = EventType.DONE
    summary: str


@dataclass(frozen=True)
class ErrorEvent:
    type: ClassVar[EventType] = EventType.ERROR
    error: str


ToolEvent = Union[PlanEvent, ToolCallEvent, LogEvent, DoneEvent, ErrorEvent]


def is_terminal(event: ToolEvent) -> bool:
    return event.type.value in TERMINAL_EVENT_TYPES


def event_to_dict(event: ToolEvent) -> dict[str, Any]:
    if isinstance(event, PlanEvent):
        return {'type': event.type.value, 'content': event.content}
    if isinstance(event, ToolCallEvent):
        payload: dict[str, Any] = {'type': event.type.value, 'name': event.name, 'input': dict(event.input)}
        if event.output is not None:
            payload['output'] = event.output
        return payload
    if isinstance(event, LogEvent):
        return {'type': event.type.value, 'content': event.content}
    if isinstance(event, DoneEvent):
        return {'type': event.type.value, 'summary': event.summary}
    if isinstance(event, ErrorEvent):
        return {'type': event.type.value, 'error': event.error}
    raise TypeError(f'unsupported event: {type(event).__name__}')
