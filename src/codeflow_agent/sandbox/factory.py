from __future__ import annotations

from pathlib import Path

from codeflow_agent.config import Settings
from codeflow_agent.sandbox.client import SandboxClient
from codeflow_agent.sandbox.e2b import E2BSandboxBackend
from codeflow_agent.sandbox.local import LocalSandboxBackend
from codeflow_agent.sandbox.paths import WORKSPACE_DIR


class SandboxFactory:
    """Creates or reconnects the sandbox a run will own."""

    def __init__(
        self,
        *,
        backend: str = 'e2b',
        template: str = 'codeflow-agent',
        api_key: str | None = None,
        lifetime_seconds: int = 3600,
        workspace_dir: str = WORKSPACE_DIR,
        local_root: Path | None = None,
        command_timeout_seconds: int = 600,
    ):
        self.backend = str(backend or 'e2b').strip().lower()
        if self.backend not in {'e2b', 'local'}:
            raise ValueError(f'unsupported sandbox backend: {backend}')
        self.template = template
        self.api_key = api_key
        self.lifetime_seconds = lifetime_seconds
        self.workspace_dir = workspace_dir
        self.local_root = Path(local_root or Path.cwd() / '.sandboxes')
        self.command_timeout_seconds = command_timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> 'SandboxFactory':
        return cls(
            backend=settings.sandbox_backend,
            template=settings.sandbox_template,
            api_key=settings.e2b_api_key,
            lifetime_seconds=settings.sandbox_lifetime_seconds,
            workspace_dir=settings.workspace_dir,
            local_root=settings.local_sandbox_root,
            command_timeout_seconds=settings.command_timeout_seconds,
        )

    def create(self) -> SandboxClient:
        if self.backend == 'local':
            return self._local_client(LocalSandboxBackend.create(base_dir=self.local_root))
        backend = E2BSandboxBackend.create(
            template=self.template,
            api_key=self.api_key,
            lifetime_seconds=self.lifetime_seconds,
        )
        return self._prepared(SandboxClient(
            backend,
            workspace_root=self.workspace_dir,
            command_timeout_seconds=self.command_timeout_seconds,
        ))

    def connect(self, sandbox_id: str) -> SandboxClient:
        if self.backend == 'local':
            return self._local_client(LocalSandboxBackend.connect(sandbox_id, base_dir=self.local_root))
        backend = E2BSandboxBackend.connect(sandbox_id, api_key=self.api_key)
        return self._prepared(SandboxClient(
            backend,
            workspace_root=self.workspace_dir,
            command_timeout_seconds=self.command_timeout_seconds,
        ))

    def _local_client(self, backend: LocalSandboxBackend) -> SandboxClient:
        return self._prepared(SandboxClient(
            backend,
            workspace_root=backend.workspace_dir,
            command_timeout_seconds=self.command_timeout_seconds,
        ))

    @staticmethod
    def _prepared(client: SandboxClient) -> SandboxClient:
        client.ensure_workspace()
        return client


__all__ = ['SandboxFactory']
