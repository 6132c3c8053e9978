from __future__ import annotations

from typing import Sequence

import openai
from openai import OpenAI

from codeflow_agent.adapters.base import Completion, ModelClient, ModelClientError, ToolShapes
from codeflow_agent.domain.models import Message
from codeflow_agent.observability import get_logger

_log = get_logger('codeflow_agent.adapters.openai')


class OpenAIChatClient(ModelClient):
    def __init__(
        self,
        *,
        model: str,
        client: OpenAI | None = None,
        base_url: str | None = None,
        timeout_seconds: float = 300,
    ):
        super().__init__(model=model)
        if client is None:
            try:
                client = OpenAI(base_url=base_url, timeout=timeout_seconds)
            except openai.OpenAIError as exc:
                raise ModelClientError(f'openai client unavailable: {exc}') from exc
        self._client = client

    def complete(self, messages: Sequence[Message]) -> Completion:
        text = self._chat(messages, temperature=0.2)
        return Completion(text=text)

    def _request_tool_payload(self, messages: Sequence[Message], tool_shapes: ToolShapes) -> str:
        return self._chat(
            self.with_tool_instruction(messages, tool_shapes),
            temperature=0,
            response_format={'type': 'json_object'},
        ) or '{}'

    def _chat(self, messages: Sequence[Message], **options) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[message.as_dict() for message in messages],
                **options,
            )
        except openai.OpenAIError as exc:
            _log.warning('openai_request_failed model=%s error=%s', self.model, exc)
            raise ModelClientError(f'openai request failed: {exc}') from exc
        if not response.choices:
            return ''
        return response.choices[0].message.content or ''


__all__ = ['OpenAIChatClient']
