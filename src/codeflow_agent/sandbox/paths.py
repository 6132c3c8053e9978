from __future__ import annotations

import posixpath

from codeflow_agent.sandbox.base import SandboxError

WORKSPACE_DIR = '/home/user/workspace'


class WorkspacePathError(SandboxError, ValueError):
    def __init__(self, path: str, *, workspace_root: str):
        super().__init__(f'path escapes workspace {workspace_root}: {path}')
        self.path = path
        self.workspace_root = workspace_root


def _clean_root(workspace_root: str) -> str:
    root = posixpath.normpath(str(workspace_root or '').strip() or WORKSPACE_DIR)
    if not root.startswith('/'):
        raise ValueError(f'workspace root must be absolute: {workspace_root}')
    return root


def is_under_workspace(path: str, workspace_root: str = WORKSPACE_DIR) -> bool:
    root = _clean_root(workspace_root)
    text = str(path or '')
    if root == '/':
        return text.startswith('/')
    return text == root or text.startswith(root + '/')


def normalize_workspace_path(path: str, workspace_root: str = WORKSPACE_DIR) -> str:
    """Resolve a tool-supplied path to an absolute path inside the workspace.

    Paths already rooted under the workspace are kept, everything else is
    joined under it. The result is normalised and idempotent.
    """
    root = _clean_root(workspace_root)
    text = str(path or '').strip()
    if not text:
        return root
    if is_under_workspace(text, root):
        candidate = text
    else:
        candidate = posixpath.join(root, text.lstrip('/'))
    resolved = posixpath.normpath(candidate)
    if not is_under_workspace(resolved, root):
        raise WorkspacePathError(text, workspace_root=root)
    return resolved


__all__ = ['WORKSPACE_DIR', 'WorkspacePathError', 'is_under_workspace', 'normalize_workspace_path']
