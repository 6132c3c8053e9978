from __future__ import annotations

from dataclasses import replace
import re
from typing import Callable, Iterator, Protocol, Sequence
import uuid

from codeflow_agent import prompts
from codeflow_agent.adapters.base import ModelClient
from codeflow_agent.domain.events import DoneEvent, ErrorEvent, LogEvent, PlanEvent, ToolCallEvent, ToolEvent
from codeflow_agent.domain.models import ConversationHistory, Message, Role, RunState, Task, can_transition
from codeflow_agent.observability import get_logger, get_tracer, set_run_context, span
from codeflow_agent.sandbox.client import SandboxClient
from codeflow_agent.sandbox.git import clone_repository
from codeflow_agent.tools import TOOL_SHAPES, UNNAMED_TOOL, ToolDispatcher

_log = get_logger('codeflow_agent.agent')

DEFAULT_MAX_STEPS = 24

_DONE_RE = re.compile(r'DONE:', re.IGNORECASE)


def is_done_verdict(text: str) -> bool:
    return _DONE_RE.match(str(text or '')) is not None


class SandboxProvider(Protocol):
    def create(self) -> SandboxClient: ...

    def connect(self, sandbox_id: str) -> SandboxClient: ...


ModelFactory = Callable[[str], ModelClient]


class AgentRun:
    """State of one task run: its sandbox, history and step counter."""

    def __init__(
        self,
        task: Task,
        *,
        model_factory: ModelFactory,
        sandbox_factory: SandboxProvider,
        max_steps: int,
        tracer=None,
    ):
        self.task = task
        self.run_id = uuid.uuid4().hex
        self.model_factory = model_factory
        self.sandbox_factory = sandbox_factory
        self.max_steps = max_steps
        self.tracer = tracer
        self.history = ConversationHistory()
        self.state = RunState.BOOTSTRAPPING
        self.step = 0
        self.model: ModelClient | None = None
        self.sandbox: SandboxClient | None = None
        self.dispatcher: ToolDispatcher | None = None
        self._system = prompts.system_prompt()

    def events(self) -> Iterator[ToolEvent]:
        set_run_context(run_id=self.run_id)
        _log.info('run_started model=%s max_steps=%d', self.task.model_id, self.max_steps)
        try:
            yield from self._bootstrap()
        except Exception as exc:
            _log.warning('bootstrap_failed error=%s', exc, exc_info=True)
            yield self._fail(str(exc) or type(exc).__name__)
            return
        try:
            yield from self._loop()
        except Exception as exc:
            _log.exception('run_failed step=%d', self.step)
            yield self._fail(str(exc) or type(exc).__name__)

    def _transition(self, target: RunState) -> None:
        if not can_transition(self.state, target):
            raise RuntimeError(f'invalid run transition {self.state.value} -> {target.value}')
        _log.debug('run_transition from=%s to=%s', self.state.value, target.value)
        self.state = target

    def _fail(self, message: str) -> ErrorEvent:
        if can_transition(self.state, RunState.FAILED):
            self.state = RunState.FAILED
        return ErrorEvent(error=message)

    def _traced(self, name: str, fn, *args, **attributes):
        with span(self.tracer, name, {'run.id': self.run_id, 'step': self.step, **attributes}):
            return fn(*args)

    def _bootstrap(self) -> Iterator[ToolEvent]:
        self.model = self.model_factory(self.task.model_id)
        sandbox_id = self.task.existing_sandbox_id
        if sandbox_id:
            yield LogEvent(content=f'Connecting to sandbox {sandbox_id}...')
            self.sandbox = self._traced('agent.bootstrap', self.sandbox_factory.connect, sandbox_id)
        else:
            yield LogEvent(content='Creating sandbox...')
            self.sandbox = self._traced('agent.bootstrap', self.sandbox_factory.create)
        yield LogEvent(content=f'Sandbox ready: {self.sandbox.sandbox_id}')
        self._system = prompts.system_prompt(self.sandbox.workspace_root)
        repo_url = self.task.repository_url
        if repo_url and not sandbox_id:
            yield LogEvent(content=f'Cloning {repo_url}...')
            self._traced('agent.clone', clone_repository, self.sandbox, repo_url)
            yield LogEvent(content=f'Cloned {repo_url} into {self.sandbox.workspace_root}')
        self.dispatcher = ToolDispatcher(self.sandbox)

    def _with_system(self, *trailing: Message) -> list[Message]:
        return [Message(Role.SYSTEM, self._system), *self.history, *trailing]

    def _complete(self, span_name: str, messages: Sequence[Message]) -> str:
        completion = self._traced(span_name, self.model.complete, messages)
        return completion.text or ''

    def _loop(self) -> Iterator[ToolEvent]:
        self._transition(RunState.PLANNING)
        plan = self._complete('agent.plan', [
            Message(Role.SYSTEM, self._system),
            Message(Role.USER, prompts.planning_prompt(self.task.description)),
        ])
        yield PlanEvent(content=plan)
        self.history.add_user(prompts.task_message(self.task.description))
        self.history.add_assistant(plan)

        while self.step < self.max_steps:
            self.step += 1
            set_run_context(run_id=self.run_id, step=self.step)

            self._transition(RunState.AWAITING_TOOL_CALL)
            request = self._traced(
                'agent.tool_call',
                self.model.plan_tool,
                self._with_system(Message(Role.USER, prompts.TOOL_CALL_REQUEST)),
                TOOL_SHAPES,
            )
            name = request.name or UNNAMED_TOOL
            args = dict(request.args)
            yield ToolCallEvent(name=name, input=args)

            self._transition(RunState.EXECUTING_TOOL)
            result = self._traced('agent.tool', self.dispatcher.execute, request, tool=name)
            if result.error is not None:
                self.history.add_user(prompts.tool_error_message(name, result.error))
                self._transition(RunState.FAILED)
                _log.info('run_failed tool=%s error=%s', name, result.error)
                yield ErrorEvent(error=result.error)
                return
            yield ToolCallEvent(name=name, input=args, output=result.truncated_output)
            self.history.add_user(prompts.tool_output_message(name, result.history_output))

            self._transition(RunState.AWAITING_VERDICT)
            verdict = self._complete('agent.verdict', self._with_system(Message(Role.USER, prompts.VERDICT_REQUEST)))
            self.history.add_assistant(verdict)
            if is_done_verdict(verdict):
                self._transition(RunState.DONE)
                _log.info('run_done steps=%d', self.step)
                yield DoneEvent(summary=verdict)
                return
            yield PlanEvent(content=verdict)
            self._transition(RunState.PLANNING)

        self._transition(RunState.DONE)
        _log.info('run_exhausted steps=%d', self.step)
        yield DoneEvent(summary=prompts.exhausted_summary(self.max_steps))


class AgentOrchestrator:
    """Turns a Task into a bounded, ordered stream of ToolEvents.

    Holds no per-run state; each call to run() starts an independent AgentRun
    with its own sandbox and history. The returned generator always ends with
    exactly one ``done`` or ``error`` event and never raises.
    """

    def __init__(
        self,
        *,
        model_factory: ModelFactory,
        sandbox_factory: SandboxProvider,
        max_steps: int = DEFAULT_MAX_STEPS,
        default_model: str | None = None,
        tracer=None,
    ):
        if int(max_steps) < 1:
            raise ValueError('max_steps must be at least 1')
        self.model_factory = model_factory
        self.sandbox_factory = sandbox_factory
        self.max_steps = int(max_steps)
        self.default_model = default_model
        self.tracer = tracer if tracer is not None else get_tracer('codeflow_agent.agent')

    def start(self, task: Task, *, max_steps: int | None = None) -> AgentRun:
        steps = self.max_steps if max_steps is None else max(1, int(max_steps))
        if not str(task.model_id or '').strip() and self.default_model:
            task = replace(task, model_id=self.default_model)
        return AgentRun(
            task,
            model_factory=self.model_factory,
            sandbox_factory=self.sandbox_factory,
            max_steps=steps,
            tracer=self.tracer,
        )

    def run(self, task: Task, *, max_steps: int | None = None) -> Iterator[ToolEvent]:
        return self.start(task, max_steps=max_steps).events()


__all__ = ['AgentOrchestrator', 'AgentRun', 'DEFAULT_MAX_STEPS', 'SandboxProvider', 'is_done_verdict']
