from pydantic import BaseModel

from assist.llm import LLMClient, LLMError


class StubLLM(LLMClient):
    """LLM client returning canned answers in call order.

    Each canned answer is a dict or model (validated against the requested
    schema), a string (for ``complete``) or an exception to raise. When the
    queue is empty the call fails with ``LLMError``.
    """

    def __init__(self, *responses):
        super().__init__(chat_model=None)
        self.responses = list(responses)
        self.calls = []

    def _next(self):
        if not self.responses:
            raise LLMError("no canned response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def structured(self, messages, schema):
        self.calls.append((list(messages), schema))
        response = self._next()
        if isinstance(response, BaseModel):
            response = response.model_dump()
        return schema.model_validate(response)

    async def complete(self, messages):
        self.calls.append((list(messages), str))
        return self._next()
