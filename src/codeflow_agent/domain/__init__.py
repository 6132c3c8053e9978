from codeflow_agent.domain.events import (
    DoneEvent,
    ErrorEvent,
    EventType,
    LogEvent,
    PlanEvent,
    TERMINAL_EVENT_TYPES,
    ToolCallEvent,
    ToolEvent,
    event_to_dict,
    is_terminal,
)
from codeflow_agent.domain.models import (
    ConversationHistory,
    Message,
    ParsedToolCall,
    Role,
    RunState,
    Task,
    ToolCallRequest,
    ToolExecutionResult,
    Unparsed,
    can_transition,
)

__all__ = [
    'ConversationHistory',
    'DoneEvent',
    'ErrorEvent',
    'EventType',
    'LogEvent',
    'Message',
    'ParsedToolCall',
    'PlanEvent',
    'Role',
    'RunState',
    'TERMINAL_EVENT_TYPES',
    'Task',
    'ToolCallEvent',
    'ToolCallRequest',
    'ToolEvent',
    'ToolExecutionResult',
    'Unparsed',
    'can_transition',
    'event_to_dict',
    'is_terminal',
]
