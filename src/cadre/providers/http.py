"""HTTP provider: OpenAI-compatible chat completions over httpx."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator

import httpx

from cadre.errors import ExecutionError
from cadre.providers.base import (
    ChunkKind,
    OutputChunk,
    Provider,
    ProviderInvokeOptions,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"


class HttpProvider(Provider):
    id = "openai"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else os.environ.get("OPENAI_API_KEY", "")
        self._base_url = (
            base_url or os.environ.get("CADRE_OPENAI_BASE_URL") or DEFAULT_BASE_URL
        ).rstrip("/")
        self._model = model or os.environ.get("CADRE_OPENAI_MODEL") or DEFAULT_MODEL
        self._client = client

    def build_payload(self, options: ProviderInvokeOptions) -> dict:
        messages = []
        if options.system_prompt:
            messages.append({"role": "system", "content": options.system_prompt})
        messages.append({"role": "user", "content": options.message})
        payload: dict = {"model": self._model, "messages": messages}
        if options.session_ref:
            payload["user"] = options.session_ref
        return payload

    def stream(self, options: ProviderInvokeOptions) -> Iterator[OutputChunk]:
        if not self._api_key:
            raise ExecutionError(
                "OPENAI_API_KEY is not set", exit_code=1, stderr="missing api key", provider_id=self.id
            )

        client = self._client or httpx.Client(timeout=None)
        try:
            resp = client.post(
                f"{self._base_url}/chat/completions",
                json=self.build_payload(options),
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as e:
            raise ExecutionError(
                f"Provider request failed: {e}", exit_code=1, stderr=str(e), provider_id=self.id
            ) from e
        finally:
            if self._client is None:
                client.close()

        if resp.status_code >= 400:
            logger.warning(f"Provider {self.id} returned HTTP {resp.status_code}")
            yield OutputChunk(kind=ChunkKind.STDERR, text=resp.text)
            yield OutputChunk(kind=ChunkKind.EXIT, exit_code=1)
            return

        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ExecutionError(
                f"Malformed provider response: {e}",
                exit_code=1,
                stderr=resp.text,
                provider_id=self.id,
            ) from e

        yield OutputChunk(kind=ChunkKind.STDOUT, text=content)
        yield OutputChunk(kind=ChunkKind.EXIT, exit_code=0)
