from __future__ import annotations

import argparse
import json
import sys
from typing import Iterable, Iterator

import httpx


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='codeflow-agent', description='Drive sandboxed coding-agent runs')
    parser.add_argument('--api-base', default='http://127.0.0.1:8000', help='Agent API base URL')

    sub = parser.add_subparsers(dest='command', required=True)

    run = sub.add_parser('run', help='Run a task and stream its events')
    run.add_argument('--task', required=True, help='Natural-language task description')
    run.add_argument('--model', default='', help='Model id, e.g. openai:gpt-4o-mini or dry-run')
    run.add_argument('--repo-url', default='', help='Git repository to clone into a new sandbox')
    run.add_argument('--sandbox-id', default='', help='Reconnect to an existing sandbox instead of creating one')
    run.add_argument('--max-steps', type=int, default=None, help='Override the step bound for this run')

    sub.add_parser('tools', help='List the tool registry')
    return parser


def _print_json(payload) -> None:
    print(json.dumps(payload, ensure_ascii=True, indent=2))


def iter_sse_events(lines: Iterable[str]) -> Iterator[dict]:
    """Decode ``event:``/``data:`` frames into event payloads."""
    data_lines: list[str] = []
    for raw in lines:
        line = str(raw).rstrip('\r')
        if not line:
            if data_lines:
                yield json.loads('\n'.join(data_lines))
                data_lines = []
            continue
        if line.startswith(':'):
            continue
        if line.startswith('data:'):
            data_lines.append(line[5:].lstrip())
    if data_lines:
        yield json.loads('\n'.join(data_lines))


def _build_run_payload(args: argparse.Namespace) -> dict:
    payload: dict = {'task': args.task}
    if args.model.strip():
        payload['model'] = args.model.strip()
    if args.repo_url.strip():
        payload['repo_url'] = args.repo_url.strip()
    if args.sandbox_id.strip():
        payload['sandbox_id'] = args.sandbox_id.strip()
    if args.max_steps is not None:
        payload['max_steps'] = int(args.max_steps)
    return payload


def _stream_run(client: httpx.Client, base: str, payload: dict) -> int:
    with client.stream('POST', f'{base}/api/agent/run', json=payload) as response:
        if response.status_code >= 400:
            response.read()
            print(f'HTTP {response.status_code}: {response.text}', file=sys.stderr)
            return 1
        for event in iter_sse_events(response.iter_lines()):
            print(json.dumps(event, ensure_ascii=True), flush=True)
            event_type = event.get('type')
            if event_type == 'done':
                return 0
            if event_type == 'error':
                return 1
    print('stream ended without a terminal event', file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    base = args.api_base.rstrip('/')

    try:
        with httpx.Client(timeout=httpx.Timeout(60.0, read=None)) as client:
            if args.command == 'run':
                if not args.task.strip():
                    parser.error('--task must not be blank')
                    return 2
                if args.max_steps is not None and args.max_steps < 1:
                    parser.error('--max-steps must be at least 1')
                    return 2
                return _stream_run(client, base, _build_run_payload(args))
            if args.command == 'tools':
                response = client.get(f'{base}/api/tools')
            else:
                parser.error(f'unsupported command: {args.command}')
                return 2
    except httpx.HTTPError as exc:
        print(f'request failed: {exc}', file=sys.stderr)
        return 1

    if response.status_code >= 400:
        print(f'HTTP {response.status_code}: {response.text}', file=sys.stderr)
        return 1

    _print_json(response.json())
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
