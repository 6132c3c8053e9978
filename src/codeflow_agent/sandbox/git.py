from __future__ import annotations

import shlex

from codeflow_agent.observability import get_logger
from codeflow_agent.sandbox.base import CommandFailedError
from codeflow_agent.sandbox.client import SandboxClient

_log = get_logger('codeflow_agent.sandbox.git')


def clone_repository(sandbox: SandboxClient, repo_url: str) -> str:
    """Replace the workspace with a fresh clone of repo_url."""
    url = str(repo_url or '').strip()
    if not url:
        raise ValueError('repo_url is required')
    root = shlex.quote(sandbox.workspace_root)
    reset = f'rm -rf {root} && mkdir -p {root}'
    result = sandbox.run_in(reset, workdir='/')
    if not result.ok:
        raise CommandFailedError(reset, result)
    clone = f'git clone {shlex.quote(url)} {root}'
    result = sandbox.run_in(clone, workdir='/')
    if not result.ok:
        raise CommandFailedError(clone, result)
    _log.info('git_clone_completed sandbox_id=%s url=%s', sandbox.sandbox_id, url)
    return (result.stdout or '') + (result.stderr or '')


__all__ = ['clone_repository']
