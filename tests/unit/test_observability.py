from __future__ import annotations

import json
import logging
import sys

from codeflow_agent.observability import (
    _JsonFormatter,
    configure_observability,
    get_logger,
    get_run_id,
    get_step,
    set_run_context,
    span,
)


def test_configure_observability_no_endpoint_is_noop():
    configure_observability(service_name='codeflow-agent', otlp_endpoint=None)


def test_configure_observability_is_idempotent_for_json_handler(monkeypatch):
    import codeflow_agent.observability as observability

    root = logging.getLogger('codeflow_agent')
    original_handlers = list(root.handlers)
    original_level = root.level

    try:
        for handler in list(root.handlers):
            if isinstance(handler, logging.StreamHandler) and isinstance(
                getattr(handler, 'formatter', None), _JsonFormatter
            ):
                root.removeHandler(handler)

        monkeypatch.setattr(observability, '_configured', False)
        monkeypatch.setattr(observability, '_configured_otlp_endpoint', None)

        configure_observability(service_name='codeflow-agent', otlp_endpoint=None)
        configure_observability(service_name='codeflow-agent', otlp_endpoint=None)

        json_handlers = [
            handler
            for handler in root.handlers
            if isinstance(handler, logging.StreamHandler)
            and isinstance(getattr(handler, 'formatter', None), _JsonFormatter)
        ]
        assert len(json_handlers) == 1
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in original_handlers:
            root.addHandler(handler)
        root.setLevel(original_level)


def test_set_and_get_run_context():
    set_run_context(run_id='run-1', step=4)
    assert get_run_id() == 'run-1'
    assert get_step() == 4
    set_run_context()
    assert get_run_id() is None
    assert get_step() is None


def test_json_formatter_includes_correlation_fields():
    fmt = _JsonFormatter()
    set_run_context(run_id='run-7', step=2)
    try:
        record = get_logger('codeflow_agent.test_fmt').makeRecord(
            'codeflow_agent.test_fmt', logging.INFO, 'test.py', 1,
            'tool %s', ('cmd.run',), None,
        )
        parsed = json.loads(fmt.format(record))
        assert parsed['msg'] == 'tool cmd.run'
        assert parsed['run_id'] == 'run-7'
        assert parsed['step'] == 2
        assert parsed['level'] == 'INFO'
    finally:
        set_run_context()


def test_json_formatter_omits_missing_correlation_and_keeps_exception():
    fmt = _JsonFormatter()
    set_run_context()
    try:
        raise RuntimeError('sandbox gone')
    except RuntimeError:
        exc_info = sys.exc_info()
    record = get_logger('codeflow_agent.test_exc').makeRecord(
        'codeflow_agent.test_exc', logging.ERROR, 'test.py', 1,
        'failed', (), exc_info,
    )
    parsed = json.loads(fmt.format(record))
    assert 'run_id' not in parsed
    assert 'step' not in parsed
    assert 'sandbox gone' in parsed['exc']


def test_span_without_tracer_is_noop_context():
    with span(None, 'agent.tool', {'tool': 'cmd.run'}) as current:
        assert current is None


def test_span_sets_non_null_attributes():
    recorded = {}

    class _Span:
        def set_attribute(self, key, value):
            recorded[key] = value

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

    class _Tracer:
        def start_as_current_span(self, name):
            recorded['name'] = name
            return _Span()

    with span(_Tracer(), 'agent.verdict', {'step': 3, 'tool': None}):
        pass
    assert recorded == {'name': 'agent.verdict', 'step': 3}


def test_json_formatter_prefers_record_extras_over_context():
    fmt = _JsonFormatter()
    set_run_context(run_id='run-ctx', step=1)
    try:
        record = get_logger('codeflow_agent.test_extra').makeRecord(
            'codeflow_agent.test_extra', logging.INFO, 'test.py', 1,
            'verdict', (), None, extra={'run_id': 'run-extra', 'step': 5},
        )
        parsed = json.loads(fmt.format(record))
        assert parsed['run_id'] == 'run-extra'
        assert parsed['step'] == 5
    finally:
        set_run_context()
