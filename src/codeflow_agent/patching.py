from __future__ import annotations

import difflib
import posixpath

from codeflow_agent.observability import get_logger
from codeflow_agent.sandbox.base import SandboxError
from codeflow_agent.sandbox.client import SandboxClient

_log = get_logger('codeflow_agent.patching')

PATCH_APPLIED = 'Patch applied'
FAST_APPLY_UPDATED = 'Fast-apply updated file'
PATCH_FAILED_WROTE_FILE = 'Patched failed; wrote file content directly'
PATCH_UNAVAILABLE_WROTE_FILE = 'Wrote file content directly (applyPatch unavailable)'

_NO_NEWLINE_MARKER = '\\ No newline at end of file\n'


def looks_like_unified_diff(payload: str) -> bool:
    text = str(payload or '')
    return text.startswith('--- ') and '\n+++ ' in text


def synthesize_unified_diff(
    relative_path: str,
    original: str,
    updated: str,
    *,
    original_exists: bool = True,
) -> str:
    """Unified diff turning original into updated, in git's a/ b/ layout.

    A missing original is diffed from /dev/null so the patch creates the file.
    """
    name = relative_path.lstrip('/')
    fromfile = f'a/{name}' if original_exists else '/dev/null'
    lines = difflib.unified_diff(
        (original or '').splitlines(keepends=True),
        (updated or '').splitlines(keepends=True),
        fromfile=fromfile,
        tofile=f'b/{name}',
    )
    out: list[str] = []
    for line in lines:
        if line.endswith('\n'):
            out.append(line)
        else:
            out.append(line + '\n')
            out.append(_NO_NEWLINE_MARKER)
    return ''.join(out)


def _read_current(sandbox: SandboxClient, target: str) -> tuple[str, bool]:
    try:
        return sandbox.read_file(target), True
    except SandboxError:
        _log.debug('fast_apply_read_missing path=%s', target)
        return '', False


def _try_apply(sandbox: SandboxClient, patch: str) -> bool:
    try:
        result = sandbox.apply_patch(patch)
    except SandboxError:
        _log.warning('fast_apply_patch_error sandbox_id=%s', sandbox.sandbox_id, exc_info=True)
        return False
    if not result.ok:
        _log.info('fast_apply_patch_rejected exit_code=%d stderr=%s', result.exit_code, result.stderr.strip()[:500])
    return result.ok


def fast_apply(sandbox: SandboxClient, path: str, payload: str) -> str:
    """Turn an arbitrary edit payload into a file mutation.

    Well-formed unified diffs are applied as-is; anything else is treated as
    the full new file content and applied as a synthesized diff. A rejected
    patch falls back to overwriting the file with the raw payload.
    """
    target = sandbox.resolve(path)
    text = str(payload or '')

    if not sandbox.supports_patch:
        sandbox.write_file(target, text)
        return PATCH_UNAVAILABLE_WROTE_FILE

    if looks_like_unified_diff(text):
        if _try_apply(sandbox, text):
            return PATCH_APPLIED
    else:
        original, exists = _read_current(sandbox, target)
        relative = posixpath.relpath(target, sandbox.workspace_root)
        diff = synthesize_unified_diff(relative, original, text, original_exists=exists)
        if not diff:
            # unchanged content still has to exist on disk
            if not exists:
                sandbox.write_file(target, text)
            return FAST_APPLY_UPDATED
        if _try_apply(sandbox, diff):
            return FAST_APPLY_UPDATED

    sandbox.write_file(target, text)
    return PATCH_FAILED_WROTE_FILE


__all__ = [
    'FAST_APPLY_UPDATED',
    'PATCH_APPLIED',
    'PATCH_FAILED_WROTE_FILE',
    'PATCH_UNAVAILABLE_WROTE_FILE',
    'fast_apply',
    'looks_like_unified_diff',
    'synthesize_unified_diff',
]
