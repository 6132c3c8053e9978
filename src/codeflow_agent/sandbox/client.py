from __future__ import annotations

import posixpath
import shlex
import uuid

from codeflow_agent.observability import get_logger
from codeflow_agent.sandbox.base import CommandFailedError, CommandResult, SandboxBackend
from codeflow_agent.sandbox.paths import WORKSPACE_DIR, normalize_workspace_path

_log = get_logger('codeflow_agent.sandbox')


class SandboxClient:
    """Workspace-relative operations on one sandbox.

    Every path goes through normalize_workspace_path before it reaches the
    backend. A client is owned by a single run.
    """

    def __init__(
        self,
        backend: SandboxBackend,
        *,
        workspace_root: str = WORKSPACE_DIR,
        command_timeout_seconds: float = 600,
    ):
        self.backend = backend
        self.workspace_root = normalize_workspace_path('', workspace_root)
        self.command_timeout_seconds = max(1.0, float(command_timeout_seconds))

    @property
    def sandbox_id(self) -> str:
        return self.backend.sandbox_id

    @property
    def supports_patch(self) -> bool:
        return bool(getattr(self.backend, 'supports_patch', False))

    @property
    def scratch_dir(self) -> str:
        return posixpath.join(posixpath.dirname(self.workspace_root), '.codeflow')

    def resolve(self, path: str) -> str:
        return normalize_workspace_path(path, self.workspace_root)

    def run_in(self, command: str, *, workdir: str) -> CommandResult:
        """Run a command in an absolute directory that may lie outside the workspace."""
        _log.info('sandbox_exec sandbox_id=%s cwd=%s command=%s', self.sandbox_id, workdir, command)
        return self.backend.run_shell(command, cwd=workdir, timeout_seconds=self.command_timeout_seconds)

    def exec(self, command: str, *, cwd: str | None = None) -> CommandResult:
        """Run a shell command and return its result whatever the exit code."""
        workdir = self.resolve(cwd) if cwd else self.workspace_root
        return self.run_in(command, workdir=workdir)

    def ensure_workspace(self) -> None:
        command = f'mkdir -p {shlex.quote(self.workspace_root)}'
        result = self.run_in(command, workdir='/')
        if not result.ok:
            raise CommandFailedError(command, result)

    def run(self, command: str, *, cwd: str | None = None) -> CommandResult:
        result = self.exec(command, cwd=cwd)
        if not result.ok:
            _log.warning('sandbox_command_failed sandbox_id=%s exit_code=%d', self.sandbox_id, result.exit_code)
            raise CommandFailedError(command, result)
        return result

    def read_file(self, path: str) -> str:
        target = self.resolve(path)
        _log.info('sandbox_read sandbox_id=%s path=%s', self.sandbox_id, target)
        return self.backend.read_text(target)

    def write_file(self, path: str, content: str) -> None:
        target = self.resolve(path)
        _log.info('sandbox_write sandbox_id=%s path=%s bytes=%d', self.sandbox_id, target, len(content or ''))
        parent = posixpath.dirname(target) or self.workspace_root
        self.run(f'mkdir -p {shlex.quote(parent)}')
        self.backend.write_text(target, content)

    def install_packages(self, packages: list[str]) -> str:
        names = ' '.join(shlex.quote(str(name)) for name in packages)
        inner = (
            'corepack enable >/dev/null 2>&1 || true; '
            'corepack prepare pnpm@latest --activate >/dev/null 2>&1 || true; '
            f'pnpm add -D {names}'
        )
        _log.info('sandbox_install sandbox_id=%s packages=%s', self.sandbox_id, packages)
        result = self.exec(f'bash -lc {shlex.quote(inner)}')
        return (result.stdout or '') + (result.stderr or '')

    def apply_patch(self, payload: str, *, cwd: str | None = None) -> CommandResult:
        patch_path = posixpath.join(self.scratch_dir, f'{uuid.uuid4().hex}.patch')
        self.run_in(f'mkdir -p {shlex.quote(self.scratch_dir)}', workdir='/')
        self.backend.write_text(patch_path, payload)
        quoted = shlex.quote(patch_path)
        command = (
            f'git apply --whitespace=nowarn {quoted} || patch -p0 -u -i {quoted}; '
            f'status=$?; rm -f {quoted}; exit $status'
        )
        result = self.exec(command, cwd=cwd)
        _log.info('sandbox_apply_patch sandbox_id=%s exit_code=%d', self.sandbox_id, result.exit_code)
        return result


__all__ = ['SandboxClient']
