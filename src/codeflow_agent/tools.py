from __future__ import annotations

from typing import Any, Callable

from codeflow_agent.domain.models import ToolCallRequest, ToolExecutionResult
from codeflow_agent.observability import get_logger
from codeflow_agent.patching import fast_apply
from codeflow_agent.sandbox.client import SandboxClient

_log = get_logger('codeflow_agent.tools')

EVENT_OUTPUT_LIMIT = 2000
HISTORY_OUTPUT_LIMIT = 4000
UNNAMED_TOOL = '<none>'

# Advisory shapes shown to the model; arguments are not validated against them.
TOOL_SHAPES: dict[str, dict[str, str]] = {
    'cmd.run': {'cmd': 'string', 'cwd': 'string?'},
    'fs.read': {'path': 'string'},
    'fs.write': {'path': 'string', 'content': 'string'},
    'pkg.install': {'pkgs': 'string[]'},
    'edit.fastApply': {'path': 'string', 'patch': 'string'},
}


class ToolArgumentError(ValueError):
    def __init__(self, tool: str, argument: str, message: str | None = None):
        super().__init__(message or f'{tool} requires argument {argument!r}')
        self.tool = tool
        self.argument = argument


def clip(text: str, limit: int) -> str:
    return (text or '')[:max(0, int(limit))]


def _require_str(tool: str, args: dict[str, Any], key: str, *, allow_empty: bool = False) -> str:
    value = args.get(key)
    if not isinstance(value, str):
        raise ToolArgumentError(tool, key)
    if not allow_empty and not value.strip():
        raise ToolArgumentError(tool, key)
    return value


def _optional_str(args: dict[str, Any], key: str) -> str | None:
    value = args.get(key)
    if isinstance(value, str) and value.strip():
        return value
    return None


def _package_list(tool: str, args: dict[str, Any]) -> list[str]:
    value = args.get('pkgs')
    if isinstance(value, str):
        names = value.split()
    elif isinstance(value, (list, tuple)):
        names = [str(item).strip() for item in value if str(item).strip()]
    else:
        names = []
    if not names:
        raise ToolArgumentError(tool, 'pkgs')
    return names


class ToolDispatcher:
    """Fixed registry mapping each tool name to one SandboxClient operation."""

    def __init__(self, sandbox: SandboxClient):
        self.sandbox = sandbox
        self._handlers: dict[str, Callable[[dict[str, Any]], str]] = {
            'cmd.run': self._run_command,
            'fs.read': self._read_file,
            'fs.write': self._write_file,
            'pkg.install': self._install_packages,
            'edit.fastApply': self._fast_apply,
        }

    @property
    def tool_names(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    def execute(self, request: ToolCallRequest) -> ToolExecutionResult:
        name = request.name
        args = dict(request.args or {})
        handler = self._handlers.get(name) if name else None
        if handler is None:
            output = f'Unknown tool: {name or UNNAMED_TOOL}'
            _log.info('tool_unknown name=%s', name)
            return self._result(name or UNNAMED_TOOL, args, output)
        try:
            output = handler(args)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            _log.warning('tool_failed name=%s error=%s', name, message, exc_info=True)
            return self._result(name, args, '', error=message)
        return self._result(name, args, output)

    @staticmethod
    def _result(name: str, args: dict[str, Any], output: Any, *, error: str | None = None) -> ToolExecutionResult:
        text = '' if output is None else str(output)
        return ToolExecutionResult(
            name=name,
            args=args,
            output=text,
            truncated_output=clip(text, EVENT_OUTPUT_LIMIT),
            history_output=clip(text, HISTORY_OUTPUT_LIMIT),
            error=error,
        )

    def _run_command(self, args: dict[str, Any]) -> str:
        command = _require_str('cmd.run', args, 'cmd')
        result = self.sandbox.run(command, cwd=_optional_str(args, 'cwd'))
        return result.stdout or result.stderr

    def _read_file(self, args: dict[str, Any]) -> str:
        return self.sandbox.read_file(_require_str('fs.read', args, 'path'))

    def _write_file(self, args: dict[str, Any]) -> str:
        path = _require_str('fs.write', args, 'path')
        content = _require_str('fs.write', args, 'content', allow_empty=True)
        self.sandbox.write_file(path, content)
        return 'OK'

    def _install_packages(self, args: dict[str, Any]) -> str:
        return self.sandbox.install_packages(_package_list('pkg.install', args))

    def _fast_apply(self, args: dict[str, Any]) -> str:
        path = _require_str('edit.fastApply', args, 'path')
        patch = _require_str('edit.fastApply', args, 'patch', allow_empty=True)
        return fast_apply(self.sandbox, path, patch)


__all__ = [
    'EVENT_OUTPUT_LIMIT',
    'HISTORY_OUTPUT_LIMIT',
    'TOOL_SHAPES',
    'UNNAMED_TOOL',
    'ToolArgumentError',
    'ToolDispatcher',
    'clip',
]
