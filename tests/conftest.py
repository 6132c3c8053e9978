from __future__ import annotations

from pathlib import Path
import sys

import pytest


def _prepend_repo_src_to_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src = repo_root / 'src'
    if not src.is_dir():
        return
    src_text = str(src)
    normalized = src_text.replace('\\', '/').lower()
    cleaned = [src_text]
    for item in list(sys.path):
        text = str(item or '').strip()
        if not text or text.replace('\\', '/').lower() == normalized:
            continue
        if text not in cleaned:
            cleaned.append(text)
    sys.path[:] = cleaned


_prepend_repo_src_to_syspath()

from codeflow_agent.sandbox.base import CommandResult, SandboxBackend, SandboxError  # noqa: E402
from codeflow_agent.sandbox.client import SandboxClient  # noqa: E402

WORKSPACE = '/home/user/workspace'


class FakeBackend(SandboxBackend):
    """In-memory backend; shell commands succeed unless a scripted fragment matches."""

    def __init__(self, *, sandbox_id: str = 'sbx-test', supports_patch: bool = True):
        self._sandbox_id = sandbox_id
        self.supports_patch = supports_patch
        self.files: dict[str, str] = {}
        self.commands: list[tuple[str, str]] = []
        self._scripted: list[tuple[str, CommandResult]] = []

    def script(self, fragment: str, result: CommandResult) -> None:
        self._scripted.append((fragment, result))

    @property
    def sandbox_id(self) -> str:
        return self._sandbox_id

    def run_shell(self, command: str, *, cwd: str, timeout_seconds: float) -> CommandResult:
        self.commands.append((command, cwd))
        for fragment, result in self._scripted:
            if fragment in command:
                return result
        return CommandResult(stdout='', stderr='', exit_code=0)

    def read_text(self, path: str) -> str:
        if path not in self.files:
            raise SandboxError(f'failed to read {path}: not found')
        return self.files[path]

    def write_text(self, path: str, content: str) -> None:
        self.files[path] = content


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fake_sandbox(fake_backend: FakeBackend) -> SandboxClient:
    return SandboxClient(fake_backend, workspace_root=WORKSPACE, command_timeout_seconds=30)
