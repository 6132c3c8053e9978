from __future__ import annotations

from pathlib import Path
import subprocess
import time
import uuid

from codeflow_agent.observability import get_logger
from codeflow_agent.sandbox.base import CommandResult, SandboxBackend, SandboxError

_log = get_logger('codeflow_agent.sandbox.local')


class LocalSandboxBackend(SandboxBackend):
    """Host directory standing in for a remote sandbox. Provides no isolation."""

    def __init__(self, *, sandbox_id: str, root: Path):
        self._sandbox_id = sandbox_id
        self.root = Path(root)

    @property
    def workspace_dir(self) -> str:
        return (self.root / 'workspace').as_posix()

    @classmethod
    def create(cls, *, base_dir: Path) -> 'LocalSandboxBackend':
        sandbox_id = f'local-{uuid.uuid4().hex[:12]}'
        root = Path(base_dir).resolve() / sandbox_id
        try:
            (root / 'workspace').mkdir(parents=True, exist_ok=False)
        except OSError as exc:
            raise SandboxError(f'failed to create local sandbox: {exc}') from exc
        _log.info('local_sandbox_created sandbox_id=%s root=%s', sandbox_id, root)
        return cls(sandbox_id=sandbox_id, root=root)

    @classmethod
    def connect(cls, sandbox_id: str, *, base_dir: Path) -> 'LocalSandboxBackend':
        name = Path(str(sandbox_id or '').strip()).name
        if not name or name != str(sandbox_id).strip():
            raise SandboxError(f'invalid sandbox id: {sandbox_id}')
        root = Path(base_dir).resolve() / name
        if not (root / 'workspace').is_dir():
            raise SandboxError(f'sandbox not found: {sandbox_id}')
        return cls(sandbox_id=name, root=root)

    @property
    def sandbox_id(self) -> str:
        return self._sandbox_id

    def run_shell(self, command: str, *, cwd: str, timeout_seconds: float) -> CommandResult:
        started = time.monotonic()
        try:
            completed = subprocess.run(
                command,
                shell=True,
                cwd=cwd,
                capture_output=True,
                text=True,
                encoding='utf-8',
                errors='replace',
                timeout=timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise SandboxError(f'command timed out after {timeout_seconds}s: {command}') from exc
        except OSError as exc:
            raise SandboxError(f'command could not start: {exc}') from exc
        _log.debug('local_shell command=%s returncode=%d duration=%.2fs',
                   command, completed.returncode, time.monotonic() - started)
        return CommandResult(
            stdout=completed.stdout or '',
            stderr=completed.stderr or '',
            exit_code=completed.returncode,
        )

    def read_text(self, path: str) -> str:
        try:
            return Path(path).read_text(encoding='utf-8')
        except OSError as exc:
            raise SandboxError(f'failed to read {path}: {exc}') from exc

    def write_text(self, path: str, content: str) -> None:
        try:
            target = Path(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding='utf-8')
        except OSError as exc:
            raise SandboxError(f'failed to write {path}: {exc}') from exc


__all__ = ['LocalSandboxBackend']
