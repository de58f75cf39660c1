"""
Scripted provider for offline tests.

Responses are consumed in order from a queue; when the queue is empty the
default reply is returned. A queued Exception instance is raised instead
of answered, which lets tests exercise the retry policy.
Every request is recorded so tests can assert call counts and prompts.
"""

from collections import deque
from typing import Iterable

from ..base import BaseLLMProvider, InferenceRequest, InferenceResponse

_DEFAULT_REPLY = "I could not find enough information to propose a fix."


class MockProvider(BaseLLMProvider):
    """Deterministic provider; never touches the network."""

    def __init__(
        self,
        responses: Iterable[str | Exception] | None = None,
        default: str = _DEFAULT_REPLY,
    ) -> None:
        self._queue: deque[str | Exception] = deque(responses or [])
        self._default = default
        self.requests: list[InferenceRequest] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    @property
    def model_name(self) -> str:
        return "mock-v1"

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def enqueue(self, *responses: str | Exception) -> None:
        self._queue.extend(responses)

    async def infer(self, request: InferenceRequest) -> InferenceResponse:
        self.requests.append(request)
        item = self._queue.popleft() if self._queue else self._default
        if isinstance(item, Exception):
            raise item
        return InferenceResponse(
            text=item,
            input_tokens=len(request.user_prompt.split()),
            output_tokens=len(item.split()),
            provider=self.provider_name,
            model=self.model_name,
        )
