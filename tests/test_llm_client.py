import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from pydantic import BaseModel

from assist.llm import LLMClient, LLMError, parse_json_payload, strip_code_fences


class Letter(BaseModel):
    content: str


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('```\n[1]\n```') == "[1]"
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'


def test_parse_json_payload_recovers_object_from_prose():
    assert parse_json_payload('Sure! Here it is: {"content": "hi"} Hope that helps.') == {"content": "hi"}


def test_parse_json_payload_rejects_non_json():
    with pytest.raises(ValueError):
        parse_json_payload("no json here")


async def test_structured_falls_back_to_plain_json():
    # The fake model has no tool calling, so structured output is unavailable
    model = FakeListChatModel(responses=['```json\n{"content": "Dear hiring team"}\n```'])
    client = LLMClient(model)

    letter = await client.structured([("system", "Write a letter"), ("human", "Go")], Letter)

    assert letter == Letter(content="Dear hiring team")


async def test_structured_raises_when_fallback_is_invalid():
    client = LLMClient(FakeListChatModel(responses=['{"wrong": "shape"}']))

    with pytest.raises(LLMError):
        await client.structured([("human", "Go")], Letter)


async def test_complete_returns_text():
    client = LLMClient(FakeListChatModel(responses=["Hello there"]))

    assert await client.complete([("human", "Hi")]) == "Hello there"
