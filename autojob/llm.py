"""Thin Groq chat client (OpenAI-compatible API) with JSON helpers."""
from __future__ import annotations

import asyncio
import json
import re
from typing import Any

from autojob.log import get_logger

log = get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


class MalformedResponse(ValueError):
    """Model answered, but not with the JSON we asked for."""


def parse_json(text: str) -> Any:
    cleaned = _FENCE_RE.sub("", (text or "").strip())
    if not cleaned:
        raise MalformedResponse("empty response")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"invalid JSON: {exc}") from exc


class GroqClient:
    def __init__(self, api_key: str, model: str, *, base_url: str = GROQ_BASE_URL, client: Any = None) -> None:
        if client is None:
            from openai import OpenAI

            client = OpenAI(api_key=api_key, base_url=base_url)
        self._client = client
        self.model = model

    def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int = 800,
        json_mode: bool = False,
    ) -> str:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        kwargs: dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        r = self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=max_tokens,
            **kwargs,
        )
        return (r.choices[0].message.content or "").strip()

    def complete_json(self, prompt: str, *, system: str | None = None, max_tokens: int = 1500) -> Any:
        return parse_json(self.complete(prompt, system=system, max_tokens=max_tokens, json_mode=True))

    async def acomplete(self, prompt: str, **kwargs: Any) -> str:
        return await asyncio.to_thread(self.complete, prompt, **kwargs)

    async def acomplete_json(self, prompt: str, **kwargs: Any) -> Any:
        return await asyncio.to_thread(self.complete_json, prompt, **kwargs)
