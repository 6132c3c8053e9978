from __future__ import annotations

import subprocess
from types import SimpleNamespace

import httpx
import openai
import pytest

from codeflow_agent.adapters import (
    CliModelClient,
    DryRunModelClient,
    ModelClientError,
    ModelClientFactory,
    OpenAIChatClient,
    UnknownModelError,
    parse_tool_call,
    render_transcript,
    split_model_id,
)
from codeflow_agent.adapters.dry_run import DRY_RUN_PLAN, DRY_RUN_SUMMARY
from codeflow_agent.adapters.factory import DEFAULT_CLI_COMMANDS
from codeflow_agent.domain.models import Message, ParsedToolCall, Role, Unparsed
from codeflow_agent.tools import TOOL_SHAPES


def test_parse_tool_call_reads_canonical_shape():
    request = parse_tool_call('{"tool": "cmd.run", "args": {"cmd": "ls -la"}}')
    assert request == ParsedToolCall(name='cmd.run', args={'cmd': 'ls -la'})


def test_parse_tool_call_accepts_name_and_arguments_aliases():
    request = parse_tool_call('{"name": "fs.read", "arguments": {"path": "package.json"}}')
    assert request == ParsedToolCall(name='fs.read', args={'path': 'package.json'})


def test_parse_tool_call_decodes_string_encoded_arguments():
    request = parse_tool_call('{"name": "fs.read", "arguments": "{\\"path\\": \\"a.txt\\"}"}')
    assert request == ParsedToolCall(name='fs.read', args={'path': 'a.txt'})


def test_parse_tool_call_finds_fenced_json_inside_prose():
    output = 'Next I will list files.\n```json\n{"tool": "cmd.run", "args": {"cmd": "ls"}}\n```\n'
    assert parse_tool_call(output) == ParsedToolCall(name='cmd.run', args={'cmd': 'ls'})


def test_parse_tool_call_finds_single_line_object():
    output = 'plan: read the manifest\n{"tool": "fs.read", "args": {"path": "package.json"}}'
    assert parse_tool_call(output).name == 'fs.read'


def test_parse_tool_call_missing_args_become_empty_dict():
    assert parse_tool_call('{"tool": "cmd.run"}') == ParsedToolCall(name='cmd.run', args={})


@pytest.mark.parametrize(
    'output,reason',
    [
        ('', 'empty_output'),
        ('   ', 'empty_output'),
        ('I would run the tests now.', 'no_tool_call'),
        ('["cmd.run"]', 'no_tool_call'),
        ('{"tool": 42, "args": {}}', 'no_tool_call'),
        ('{"tool": "cmd.run", "args": ', 'no_tool_call'),
    ],
)
def test_parse_tool_call_never_raises_on_bad_payloads(output, reason):
    request = parse_tool_call(output)
    assert isinstance(request, Unparsed)
    assert request.reason == reason
    assert request.name is None
    assert request.args == {}


def test_split_model_id():
    assert split_model_id('openai:gpt-4o-mini') == ('openai', 'gpt-4o-mini')
    assert split_model_id(' Claude:claude-sonnet-4-5 ') == ('claude', 'claude-sonnet-4-5')
    assert split_model_id('dry-run') == ('dry-run', '')


def test_render_transcript_labels_roles():
    text = render_transcript([Message(Role.SYSTEM, 'rules'), Message(Role.USER, 'do it')])
    assert text == '[SYSTEM]\nrules\n\n[USER]\ndo it'


def test_factory_builds_dry_run_client():
    assert isinstance(ModelClientFactory().create('dry-run'), DryRunModelClient)


def test_factory_dry_run_flag_overrides_model_id():
    assert isinstance(ModelClientFactory(dry_run=True).create('openai:gpt-4o'), DryRunModelClient)


@pytest.mark.parametrize('model_id', ['mystery:model-1', 'openai', 'openai:', ''])
def test_factory_rejects_unknown_model_ids(model_id):
    with pytest.raises(UnknownModelError) as exc_info:
        ModelClientFactory().create(model_id)
    assert str(exc_info.value) == f'Unknown model: {model_id}'


def test_factory_builds_openai_client(monkeypatch):
    monkeypatch.setenv('OPENAI_API_KEY', 'sk-test')
    client = ModelClientFactory(openai_base_url='http://127.0.0.1:9/v1').create('openai:gpt-4o-mini')
    assert isinstance(client, OpenAIChatClient)
    assert client.model == 'gpt-4o-mini'


def test_factory_builds_cli_client_with_command_override():
    factory = ModelClientFactory(command_overrides={'claude': 'claude -p', 'codex': None}, timeout_seconds=30)
    client = factory('claude:claude-sonnet-4-5')
    assert isinstance(client, CliModelClient)
    assert client.argv == ['claude', '-p', '--model', 'claude-sonnet-4-5']
    assert client.timeout_seconds == 30
    assert factory.cli_commands['codex'] == DEFAULT_CLI_COMMANDS['codex']


class _FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _fake_openai(completions: _FakeCompletions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_openai_client_complete_sends_role_dicts():
    completions = _FakeCompletions(content='Plan: inspect repo')
    client = OpenAIChatClient(model='gpt-4o-mini', client=_fake_openai(completions))

    completion = client.complete([Message(Role.SYSTEM, 'rules'), Message(Role.USER, 'Task: x')])

    assert completion.text == 'Plan: inspect repo'
    [call] = completions.calls
    assert call['model'] == 'gpt-4o-mini'
    assert call['temperature'] == 0.2
    assert call['messages'] == [{'role': 'system', 'content': 'rules'}, {'role': 'user', 'content': 'Task: x'}]


def test_openai_client_plan_tool_requests_json_object():
    completions = _FakeCompletions(content='{"tool": "fs.read", "args": {"path": "README.md"}}')
    client = OpenAIChatClient(model='gpt-4o-mini', client=_fake_openai(completions))

    request = client.plan_tool([Message(Role.USER, 'Task: x')], TOOL_SHAPES)

    assert request == ParsedToolCall(name='fs.read', args={'path': 'README.md'})
    [call] = completions.calls
    assert call['response_format'] == {'type': 'json_object'}
    assert call['temperature'] == 0
    assert 'edit.fastApply' in call['messages'][-1]['content']


def test_openai_client_empty_tool_payload_is_unparsed():
    client = OpenAIChatClient(model='gpt-4o-mini', client=_fake_openai(_FakeCompletions(content=None)))
    assert isinstance(client.plan_tool([Message(Role.USER, 'x')], TOOL_SHAPES), Unparsed)


def test_openai_client_wraps_transport_errors():
    error = openai.APIConnectionError(request=httpx.Request('POST', 'http://127.0.0.1/v1/chat/completions'))
    client = OpenAIChatClient(model='gpt-4o-mini', client=_fake_openai(_FakeCompletions(error=error)))
    with pytest.raises(ModelClientError):
        client.complete([Message(Role.USER, 'x')])


def _completed(argv, stdout='', stderr='', returncode=0):
    return subprocess.CompletedProcess(args=argv, returncode=returncode, stdout=stdout, stderr=stderr)


def test_cli_client_passes_transcript_on_stdin_and_appends_model_flag(monkeypatch):
    captured = {}

    def fake_run(argv, **kwargs):
        captured['argv'] = list(argv)
        captured['input'] = kwargs.get('input')
        captured['timeout'] = kwargs.get('timeout')
        return _completed(argv, stdout='{"tool": "cmd.run", "args": {"cmd": "pnpm test"}}\n')

    monkeypatch.setattr('codeflow_agent.adapters.runner.subprocess.run', fake_run)
    client = CliModelClient(provider='claude', model='claude-sonnet-4-5', command='claude -p', timeout_seconds=45)

    request = client.plan_tool([Message(Role.USER, 'Task: run tests')], TOOL_SHAPES)

    assert request == ParsedToolCall(name='cmd.run', args={'cmd': 'pnpm test'})
    assert captured['argv'] == ['claude', '-p', '--model', 'claude-sonnet-4-5']
    assert captured['timeout'] == 45
    assert captured['input'].startswith('[USER]\nTask: run tests')
    assert '{"tool": "<name>", "args": {...}}' in captured['input']


def test_cli_client_complete_returns_stripped_stdout(monkeypatch):
    monkeypatch.setattr(
        'codeflow_agent.adapters.runner.subprocess.run',
        lambda argv, **kwargs: _completed(argv, stdout='  DONE: all tests pass\n'),
    )
    client = CliModelClient(provider='gemini', model='gemini-2.5-pro', command='gemini --yolo')

    assert client.complete([Message(Role.USER, 'x')]).text == 'DONE: all tests pass'
    assert client.argv == ['gemini', '--yolo', '-m', 'gemini-2.5-pro']


def test_cli_client_runs_the_command_once_and_raises_on_timeout(monkeypatch):
    calls = {'n': 0}

    def fake_run(argv, **kwargs):
        calls['n'] += 1
        raise subprocess.TimeoutExpired(cmd=argv, timeout=kwargs['timeout'])

    monkeypatch.setattr('codeflow_agent.adapters.runner.subprocess.run', fake_run)
    client = CliModelClient(provider='claude', model='m', command='claude -p', timeout_seconds=1)

    with pytest.raises(ModelClientError) as exc_info:
        client.run_prompt('hello')
    assert 'command_timeout provider=claude' in str(exc_info.value)
    assert calls['n'] == 1


def test_cli_client_reports_missing_executable(monkeypatch):
    def fake_run(argv, **kwargs):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr('codeflow_agent.adapters.runner.subprocess.run', fake_run)
    client = CliModelClient(provider='codex', model='m', command='codex exec')

    with pytest.raises(ModelClientError) as exc_info:
        client.run_prompt('hello')
    assert 'command_not_found provider=codex' in str(exc_info.value)


def test_cli_client_non_zero_exit_is_command_failed(monkeypatch):
    monkeypatch.setattr(
        'codeflow_agent.adapters.runner.subprocess.run',
        lambda argv, **kwargs: _completed(argv, stderr='You have hit your limit', returncode=1),
    )
    client = CliModelClient(provider='claude', model='m', command='claude -p')

    with pytest.raises(ModelClientError) as exc_info:
        client.run_prompt('hello')
    assert 'returncode=1' in str(exc_info.value)
    assert 'hit your limit' in str(exc_info.value)


@pytest.mark.parametrize('command', ['', '   ', 'claude "unterminated'])
def test_cli_client_rejects_unusable_commands(command):
    with pytest.raises(ModelClientError):
        CliModelClient(provider='claude', model='m', command=command)


def test_dry_run_client_follows_fixed_script():
    client = DryRunModelClient()
    first = [Message(Role.USER, 'Task: x')]
    assert client.complete(first).text == DRY_RUN_PLAN
    assert client.plan_tool(first, TOOL_SHAPES) == ParsedToolCall(name='cmd.run', args={'cmd': 'ls -la'})

    after_tool = [*first, Message(Role.USER, 'Tool cmd.run output:\nfile.txt')]
    assert client.complete(after_tool).text == DRY_RUN_SUMMARY
    assert DRY_RUN_SUMMARY.startswith('DONE:')

