from __future__ import annotations

import json
import re

from codeflow_agent.observability import get_logger
from codeflow_agent.sandbox.base import CommandResult, SandboxBackend, SandboxError

_log = get_logger('codeflow_agent.sandbox.e2b')

_EXIT_MARKER_RE = re.compile(r'__EXIT_CODE__=(\d+)')
_TRAILING_MARKER_RE = re.compile(r'\n?__EXIT_CODE__=\d+\s*$', re.MULTILINE)

_SHELL_SNIPPET = '''
import subprocess
result = subprocess.run({command}, shell=True, cwd={cwd}, capture_output=True, text=True)
if result.stdout:
    print(result.stdout, end='')
if result.stderr:
    print(result.stderr, end='')
print("\\n__EXIT_CODE__=%d" % result.returncode)
'''


def build_shell_snippet(command: str, cwd: str) -> str:
    return _SHELL_SNIPPET.format(command=json.dumps(command), cwd=json.dumps(cwd))


def parse_marked_output(stdout_lines: list[str], stderr_lines: list[str]) -> CommandResult:
    """Rebuild a CommandResult from run_code logs carrying an exit marker.

    A missing marker counts as exit 0.
    """
    raw_out = '\n'.join(stdout_lines or [])
    raw_err = '\n'.join(stderr_lines or [])
    combined = '\n'.join(part for part in (raw_out, raw_err) if part)
    match = _EXIT_MARKER_RE.search(combined)
    exit_code = int(match.group(1)) if match else 0
    return CommandResult(
        stdout=_TRAILING_MARKER_RE.sub('', raw_out),
        stderr=_TRAILING_MARKER_RE.sub('', raw_err),
        exit_code=exit_code,
    )


class E2BSandboxBackend(SandboxBackend):
    def __init__(self, sandbox):
        self._sandbox = sandbox

    @classmethod
    def create(cls, *, template: str, api_key: str | None, lifetime_seconds: int) -> 'E2BSandboxBackend':
        from e2b_code_interpreter import Sandbox

        _log.info('e2b_create template=%s', template)
        try:
            sandbox = Sandbox.create(template=template, api_key=api_key, timeout=lifetime_seconds)
        except Exception as exc:
            raise SandboxError(f'failed to create sandbox: {exc}') from exc
        _log.info('e2b_created sandbox_id=%s', sandbox.sandbox_id)
        return cls(sandbox)

    @classmethod
    def connect(cls, sandbox_id: str, *, api_key: str | None) -> 'E2BSandboxBackend':
        from e2b_code_interpreter import Sandbox

        _log.info('e2b_connect sandbox_id=%s', sandbox_id)
        try:
            sandbox = Sandbox.connect(sandbox_id, api_key=api_key)
        except Exception as exc:
            raise SandboxError(f'failed to connect to sandbox {sandbox_id}: {exc}') from exc
        return cls(sandbox)

    @property
    def sandbox_id(self) -> str:
        return str(self._sandbox.sandbox_id)

    def run_shell(self, command: str, *, cwd: str, timeout_seconds: float) -> CommandResult:
        try:
            execution = self._sandbox.run_code(build_shell_snippet(command, cwd), timeout=timeout_seconds)
        except Exception as exc:
            raise SandboxError(f'sandbox execution failed: {exc}') from exc
        error = getattr(execution, 'error', None)
        if error is not None:
            raise SandboxError(f'sandbox execution failed: {error.name}: {error.value}')
        logs = execution.logs
        return parse_marked_output(list(logs.stdout or []), list(logs.stderr or []))

    def read_text(self, path: str) -> str:
        try:
            return str(self._sandbox.files.read(path))
        except Exception as exc:
            raise SandboxError(f'failed to read {path}: {exc}') from exc

    def write_text(self, path: str, content: str) -> None:
        try:
            self._sandbox.files.write(path, content)
        except Exception as exc:
            raise SandboxError(f'failed to write {path}: {exc}') from exc


__all__ = ['E2BSandboxBackend', 'build_shell_snippet', 'parse_marked_output']
