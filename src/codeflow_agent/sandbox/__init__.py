from codeflow_agent.sandbox.base import CommandFailedError, CommandResult, SandboxBackend, SandboxError
from codeflow_agent.sandbox.client import SandboxClient
from codeflow_agent.sandbox.factory import SandboxFactory
from codeflow_agent.sandbox.git import clone_repository
from codeflow_agent.sandbox.paths import WORKSPACE_DIR, WorkspacePathError, normalize_workspace_path

__all__ = [
    'CommandFailedError',
    'CommandResult',
    'SandboxBackend',
    'SandboxClient',
    'SandboxError',
    'SandboxFactory',
    'WORKSPACE_DIR',
    'WorkspacePathError',
    'clone_repository',
    'normalize_workspace_path',
]
