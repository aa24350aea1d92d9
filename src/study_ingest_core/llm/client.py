from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from study_ingest_core.errors import CompletionError
from study_ingest_core.retry import LLM_RETRY, Retrier, RetryConfig

ChatMessage = dict[str, Any]


def _extract_message_content(payload: dict[str, Any]) -> str:
    choices = payload.get("choices") or []
    if not isinstance(choices, list) or not choices:
        raise CompletionError("LLM response missing choices", code="empty_response")
    first = choices[0] if isinstance(choices[0], dict) else {}
    msg = first.get("message") if isinstance(first.get("message"), dict) else {}
    content = msg.get("content")
    if isinstance(content, str):
        return content.strip()
    # Legacy completion backends put the text on the choice itself.
    text = first.get("text")
    if isinstance(text, str):
        return text.strip()
    return ""


def _error_from_response(resp: httpx.Response) -> CompletionError:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    err = body.get("error") if isinstance(body, dict) else None
    if not isinstance(err, dict):
        err = {}
    message = err.get("message") or f"LLM API error: {resp.status_code}"
    return CompletionError(
        str(message),
        status=resp.status_code,
        code=err.get("code") if isinstance(err.get("code"), str) else None,
        type=err.get("type") if isinstance(err.get("type"), str) else None,
    )


@dataclass(frozen=True)
class LlmServiceClient:
    """
    OpenAI-compatible `/v1/chat/completions` client.

    Each attempt is a single POST; non-2xx responses become `CompletionError` (carrying the
    HTTP status and the upstream error code/type) so the retrier can classify them.
    """

    base_url: str
    api_key: str | None = None
    model: str = "gpt-4o-mini"
    timeout_s: float = 120.0
    retry: RetryConfig = LLM_RETRY
    sleep: Callable[[float], None] | None = None
    transport: httpx.BaseTransport | None = field(default=None, repr=False)

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    def _retrier(self) -> Retrier:
        if self.sleep is None:
            return Retrier(config=self.retry)
        return Retrier(config=self.retry, sleep=self.sleep)

    def _post_once(self, client: httpx.Client, body: dict[str, Any]) -> str:
        url = self.base_url.rstrip("/") + "/v1/chat/completions"
        r = client.post(url, headers=self._headers(), json=body)
        if r.is_error:
            raise _error_from_response(r)
        return _extract_message_content(r.json())

    def chat_completion(
        self,
        *,
        messages: list[ChatMessage],
        model: str | None = None,
        max_tokens: int = 4000,
        temperature: float = 0.7,
        response_format: dict[str, str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> str:
        """
        Returns the first message content. Retries per `self.retry`; the last failure is
        re-raised as-is (`CompletionError`, `httpx.TimeoutException`, `httpx.TransportError`).
        """
        body: dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if response_format:
            body["response_format"] = response_format

        with httpx.Client(timeout=self.timeout_s, transport=self.transport) as client:
            return self._retrier().call(lambda: self._post_once(client, body), context=context)

    def complete_json(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 4000,
        temperature: float = 0.3,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        content = self.chat_completion(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
            response_format={"type": "json_object"},
            context=context,
        )
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise CompletionError("LLM returned malformed JSON", code="invalid_json") from e
        if not isinstance(data, dict):
            raise CompletionError("LLM returned a non-object JSON payload", code="invalid_json")
        return data
