from __future__ import annotations

from string import Template

from codeflow_agent.sandbox.paths import WORKSPACE_DIR

_SYSTEM_TEMPLATE = Template(
    'You are an autonomous coding agent operating in a secure sandbox.\n'
    'Your repository is located at $workspace_root.\n'
    'You can: run shell commands, read/write files, install packages, and apply partial code edits.\n'
    'Follow these rules strictly:\n'
    '- Use pnpm for Node.js package operations (never npm or yarn).\n'
    '- Never use interactive editors (nano, vim) or interactive prompts; all commands must be non-interactive.\n'
    '- Prefer small, testable iterations with concrete, reproducible commands and file edits.\n'
    '- Do not ask the user questions; decide and proceed with the best next step.'
)

_PLAN_TEMPLATE = Template(
    'Task: $task\n'
    'Constraints:\n'
    '- Use pnpm for all Node tasks\n'
    '- Keep steps atomic\n'
    '- After each step, propose the exact next tool call you will make'
)

TOOL_CALL_REQUEST = 'Return one JSON {tool, args}. Continue the task.'

VERDICT_REQUEST = (
    "If the task is complete, respond starting with 'DONE:' and provide a brief summary. "
    'Otherwise, describe the next step briefly.'
)


def system_prompt(workspace_root: str = WORKSPACE_DIR) -> str:
    return _SYSTEM_TEMPLATE.safe_substitute(workspace_root=workspace_root)


def planning_prompt(task: str) -> str:
    return _PLAN_TEMPLATE.safe_substitute(task=str(task or '').strip())


def task_message(task: str) -> str:
    return f'Task: {str(task or "").strip()}'


def tool_output_message(name: str, output: str) -> str:
    return f'Tool {name} output:\n{output}'


def tool_error_message(name: str, error: str) -> str:
    return f'Tool {name} error: {error}'


def exhausted_summary(max_steps: int) -> str:
    return f'Step limit reached ({max_steps} steps) without a DONE verdict'
