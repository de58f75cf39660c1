"""
Provider contract for the reasoning service.

The fixer and the agent never talk to a backend directly; they build an
InferenceRequest and hand it to a provider through ReasoningClient.
Providers report failures as llm.errors.ProviderError so that the retry
policy can classify them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class InferenceRequest:
    system_prompt: str
    user_prompt: str
    max_new_tokens: int = 4096
    temperature: float = 0.1
    # kind of request ("refactor", "agent", ...); used for logs and mock routing
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class InferenceResponse:
    text: str
    # -1 when the backend does not report usage
    input_tokens: int = -1
    output_tokens: int = -1
    provider: str = ""
    model: str = ""


class BaseLLMProvider(ABC):
    """Stateless adapter around one model backend."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Identifier used in logs and InferenceResponse.provider."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Active model identifier."""

    @abstractmethod
    async def infer(self, request: InferenceRequest) -> InferenceResponse:
        """
        Run one completion. Must not block the event loop.

        Raises:
            ProviderError: transport, HTTP or backend failure
        """
