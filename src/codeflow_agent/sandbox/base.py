from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


class SandboxError(RuntimeError):
    pass


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def combined(self) -> str:
        return '\n'.join(part for part in (self.stdout, self.stderr) if part)


class CommandFailedError(SandboxError):
    def __init__(self, command: str, result: CommandResult):
        detail = (result.stderr or result.stdout or '').strip()
        super().__init__(f'Command failed (exit {result.exit_code}): {detail}')
        self.command = command
        self.result = result


class SandboxBackend(ABC):
    """Primitive operations of one isolated execution environment.

    Paths handed to a backend are already absolute; resolution against the
    workspace happens in SandboxClient.
    """

    supports_patch: bool = True

    @property
    @abstractmethod
    def sandbox_id(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def run_shell(self, command: str, *, cwd: str, timeout_seconds: float) -> CommandResult:
        raise NotImplementedError

    @abstractmethod
    def read_text(self, path: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def write_text(self, path: str, content: str) -> None:
        raise NotImplementedError


__all__ = ['CommandFailedError', 'CommandResult', 'SandboxBackend', 'SandboxError']
