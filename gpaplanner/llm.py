"""
Language model adapter (OpenAI chat completions).

Three call shapes are used by the package:
- complete():            free text (the schedule itself)
- complete_json():       a JSON object answer, parsed by the caller
- complete_with_tools(): free text with function calling
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from gpaplanner.config import Settings
from gpaplanner.errors import LLMError
from gpaplanner.model import LLMReply


logger = logging.getLogger(__name__)

ToolHandler = Callable[[str, Dict[str, Any]], Awaitable[Any]]


class LLMClient:
    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o",
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model = model
        self._client = client
        if self._client is None and api_key:
            self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(settings.openai_api_key, settings.openai_model, settings.openai_base_url)

    def _require_client(self) -> AsyncOpenAI:
        if self._client is None:
            raise LLMError("language model is not configured (OPENAI_API_KEY)")
        return self._client

    async def _create(self, **kwargs: Any) -> Any:
        client = self._require_client()
        try:
            return await client.chat.completions.create(model=self.model, **kwargs)
        except OpenAIError as exc:
            raise LLMError(f"chat completion failed: {exc}") from exc

    async def complete(self, system: str, user: str, temperature: float = 0.7) -> LLMReply:
        resp = await self._create(
            messages=[{"role": "system", "content": system}, {"role": "user", "content": user}],
            temperature=temperature,
        )
        text = resp.choices[0].message.content or ""
        logger.info("llm: %d characters returned", len(text))
        return LLMReply(text=text)

    async def complete_json(self, system: str, user: str) -> str:
        """
        Ask for a JSON object; returns the raw text for a strict parser.
        """
        resp = await self._create(
            messages=[{"role": "system", "content": system}, {"role": "user", "content": user}],
            temperature=0,
            response_format={"type": "json_object"},
        )
        return resp.choices[0].message.content or ""

    async def complete_with_tools(
        self,
        system: str,
        user: str,
        tools: List[Dict[str, Any]],
        handler: ToolHandler,
        max_rounds: int = 4,
        temperature: float = 0.7,
    ) -> LLMReply:
        """
        Chat with function calling. Tool calls are answered through handler
        until the model replies with text or max_rounds is reached; then a
        final answer with tool use disabled is requested.
        """
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        for round_no in range(1, max_rounds + 1):
            resp = await self._create(messages=messages, tools=tools, temperature=temperature)
            message = resp.choices[0].message
            if not message.tool_calls:
                return LLMReply(text=message.content or "")

            logger.info("llm: round %d, %d tool calls", round_no, len(message.tool_calls))
            messages.append(
                {
                    "role": "assistant",
                    "content": message.content,
                    "tool_calls": [call.model_dump() for call in message.tool_calls],
                }
            )
            for call in message.tool_calls:
                try:
                    arguments = json.loads(call.function.arguments or "{}")
                except json.JSONDecodeError:
                    arguments = {}
                result = await handler(call.function.name, arguments)
                messages.append(
                    {"role": "tool", "tool_call_id": call.id, "content": json.dumps(result, ensure_ascii=False)}
                )

        resp = await self._create(messages=messages, tools=tools, tool_choice="none", temperature=temperature)
        return LLMReply(text=resp.choices[0].message.content or "")
