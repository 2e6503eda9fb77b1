"""Chat model access for the pipelines.

Wraps ``langchain_openai.ChatOpenAI`` with structured output, a plain-JSON
fallback when structured output fails, and retry on transient errors.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Sequence, TypeVar

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.output_parsers import PydanticOutputParser
from langchain_openai import ChatOpenAI
from pydantic import BaseModel
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from forge.config import settings

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

# (role, content) pairs, the tuple form langchain accepts as messages
Message = tuple[str, str]

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")

JSON_ONLY_INSTRUCTION = "IMPORTANT: Return only valid JSON with the required fields."


class LLMError(Exception):
    """Raised when the chat model cannot produce a usable answer."""
    pass


def create_chat_model(temperature: float | None = None) -> ChatOpenAI:
    """Build the configured chat model.

    Retries are handled here rather than by the OpenAI client.
    """
    kwargs: dict[str, Any] = {
        "model": settings.llm.model_name,
        "temperature": settings.llm.temperature if temperature is None else temperature,
        "timeout": settings.llm.timeout_seconds,
        "max_retries": 0,
    }
    if settings.llm.api_key:
        kwargs["api_key"] = settings.llm.api_key
    if settings.llm.base_url:
        kwargs["base_url"] = settings.llm.base_url
    return ChatOpenAI(**kwargs)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block, if present."""
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_json_payload(text: str) -> Any:
    """Parse JSON from a model reply that may be wrapped in prose or fences.

    Raises:
        ValueError: If no JSON document can be recovered
    """
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # Fall back to the outermost object or array in the reply
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = cleaned.find(opener), cleaned.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start:end + 1])
            except json.JSONDecodeError:
                continue
    raise ValueError(f"No JSON found in model reply: {cleaned[:200]!r}")


def message_text(response: Any) -> str:
    """Extract text content from a chat model response."""
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [p.get("text", "") if isinstance(p, dict) else str(p) for p in content]
        return "".join(parts)
    return json.dumps(content)


def _with_json_instruction(messages: Sequence[Message], instruction: str) -> list[Message]:
    messages = list(messages)
    if messages and messages[0][0] == "system":
        role, content = messages[0]
        messages[0] = (role, f"{content}\n\n{instruction}")
    else:
        messages.insert(0, ("system", instruction))
    return messages


class LLMClient:
    """Thin async facade over a langchain chat model."""

    def __init__(
        self,
        chat_model: BaseChatModel | None = None,
        *,
        temperature: float | None = None,
    ) -> None:
        self._chat_model = chat_model
        self._temperature = temperature

    @property
    def chat_model(self) -> BaseChatModel:
        # Built lazily so that importing the app never requires an API key
        if self._chat_model is None:
            self._chat_model = create_chat_model(self._temperature)
        return self._chat_model

    @retry(
        stop=stop_after_attempt(settings.llm.max_retries),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type((ValueError, TypeError, NotImplementedError)),
        reraise=True,
    )
    async def _ainvoke(self, runnable: Any, messages: list[Message]) -> Any:
        return await runnable.ainvoke(messages)

    async def complete(self, messages: Sequence[Message]) -> str:
        """Plain text completion."""
        try:
            response = await self._ainvoke(self.chat_model, list(messages))
        except Exception as e:
            logger.error(f"Chat completion failed: {e}")
            raise LLMError(f"Chat completion failed: {e}") from e
        return message_text(response)

    async def structured(self, messages: Sequence[Message], schema: type[SchemaT]) -> SchemaT:
        """Ask for output matching ``schema``.

        Tries native structured output first, then a plain call with JSON-only
        instructions whose reply is cleaned and validated against the schema.

        Raises:
            LLMError: If neither attempt yields a valid ``schema`` instance
        """
        try:
            runnable = self.chat_model.with_structured_output(schema)
            result = await self._ainvoke(runnable, list(messages))
            return schema.model_validate(result)
        except Exception as e:
            first_error = e
            logger.warning(f"Structured output for {schema.__name__} failed, retrying as plain JSON: {e}")

        parser = PydanticOutputParser(pydantic_object=schema)
        fallback_messages = _with_json_instruction(
            messages,
            f"{JSON_ONLY_INSTRUCTION}\n{parser.get_format_instructions()}",
        )
        try:
            response = await self._ainvoke(self.chat_model, fallback_messages)
            return schema.model_validate(parse_json_payload(message_text(response)))
        except Exception as e:
            logger.error(f"JSON fallback for {schema.__name__} also failed: {e}")
            raise LLMError(f"Model did not return a valid {schema.__name__}: {first_error}") from e
