"""
ReasoningClient: the single point of contact with the reasoning provider.

Two entry points:
  - complete(): one raw completion with retry, used by the agent loop
  - request_fix(): a guarded direct fix request; the provider answers with
    SEARCH/REPLACE blocks that become a FileChange on the failing file

Provider selection priority:
  1. Explicit provider passed to the constructor (test injection)
  2. Environment variable: LLM_PROVIDER = ollama | mock
  3. Auto-detection: Ollama health check, else Mock with a warning
"""

import logging
import os
import re
from dataclasses import dataclass, field

import httpx

from agent.models import FailureSignature, FileChange, SearchReplace
from .base import BaseLLMProvider, InferenceRequest
from .context_builder import excerpt_around_line
from .guardrails import check_changes, check_request
from .prompt_loader import get_system_prompt, render_template
from .retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)

_SEARCH_REPLACE_PATTERN = re.compile(
    r"<<<<<<< SEARCH\n([\s\S]*?)\n=======\n([\s\S]*?)\n>>>>>>> REPLACE"
)


def _ollama_reachable(base_url: str) -> bool:
    try:
        return httpx.get(f"{base_url.rstrip('/')}/api/tags", timeout=5.0).status_code == 200
    except httpx.HTTPError:
        return False


def _resolve_provider() -> BaseLLMProvider:
    env_provider = os.environ.get("LLM_PROVIDER", "").lower()

    if env_provider == "mock":
        from .providers.mock_provider import MockProvider
        return MockProvider()

    from .providers.ollama_provider import OllamaProvider
    if env_provider == "ollama":
        return OllamaProvider()

    provider = OllamaProvider()
    base_url = os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
    if _ollama_reachable(base_url):
        logger.info("Auto-selected Ollama provider at %s", base_url)
        return provider

    logger.warning(
        "No reasoning provider available. Using Mock provider. "
        "Set LLM_PROVIDER=ollama to use a real model."
    )
    from .providers.mock_provider import MockProvider
    return MockProvider()


@dataclass
class FixRequest:
    kind: str
    failure: FailureSignature
    file_content: str
    target_version: str = ""
    constraints: list[str] = field(default_factory=list)


@dataclass
class ReasoningResponse:
    success: bool
    changes: list[FileChange] = field(default_factory=list)
    reasoning: str | None = None
    confidence: float | None = None
    # guardrail reason; set only when the request or response was refused
    rejection: str | None = None


def parse_search_replace(text: str) -> list[SearchReplace]:
    """Extract every SEARCH/REPLACE block from provider text, in order."""
    return [
        SearchReplace(search=m.group(1), replace=m.group(2))
        for m in _SEARCH_REPLACE_PATTERN.finditer(text)
    ]


class ReasoningClient:
    def __init__(
        self,
        provider: BaseLLMProvider | None = None,
        retry_policy: RetryPolicy | None = None,
        logger: logging.Logger | None = None,
        max_new_tokens: int = 4096,
    ) -> None:
        self._provider = provider or _resolve_provider()
        self._retry_policy = retry_policy or RetryPolicy()
        self._log = logger or logging.getLogger(__name__)
        self._max_new_tokens = max_new_tokens
        self._log.info(
            "ReasoningClient initialized with provider=%s model=%s",
            self._provider.provider_name,
            self._provider.model_name,
        )

    @property
    def provider(self) -> BaseLLMProvider:
        return self._provider

    async def complete(self, system_prompt: str, user_prompt: str, kind: str = "agent") -> str:
        """
        One completion with retry. Retryable errors are retried per the
        policy; everything else, and the last retryable error, propagates.
        """
        request = InferenceRequest(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            max_new_tokens=self._max_new_tokens,
            metadata={"kind": kind},
        )
        response = await with_retry(
            lambda: self._provider.infer(request),
            self._retry_policy,
            log=self._log,
        )
        self._log.debug(
            "kind=%s input_tokens=%d output_tokens=%d",
            kind,
            response.input_tokens,
            response.output_tokens,
        )
        return response.text

    async def request_fix(self, request: FixRequest) -> ReasoningResponse:
        rejection = check_request(
            request.kind, request.failure.message, request.file_content, request.constraints
        )
        if rejection:
            self._log.warning("Fix request rejected: %s", rejection)
            return ReasoningResponse(success=False, rejection=rejection, reasoning=rejection)

        failure = request.failure
        if request.kind == "migration-reasoning":
            code_context = request.file_content
        elif failure.line:
            code_context = excerpt_around_line(request.file_content, failure.line)
        else:
            code_context = request.file_content

        user_prompt = render_template(
            "fixer",
            request.kind,
            {
                "target_version": request.target_version,
                "message": failure.message,
                "file": failure.file or "unknown",
                "line": failure.line or "unknown",
                "code_context": code_context,
                "file_content": request.file_content,
                "constraints": "\n".join(f"- {c}" for c in request.constraints),
            },
        )
        text = await self.complete(get_system_prompt("fixer"), user_prompt, kind=request.kind)

        if request.kind == "migration-reasoning":
            # free-form answer; the agent scans it for tool calls
            return ReasoningResponse(success=True, reasoning=text)

        pairs = parse_search_replace(text)
        if not pairs:
            return ReasoningResponse(
                success=False,
                reasoning="No SEARCH/REPLACE blocks found in response",
            )

        changes = [
            FileChange(
                file=failure.file or "",
                type="modify",
                search_replace=pairs,
                reasoning=f"Fix for: {failure.message}",
            )
        ]
        rejection = check_changes(changes)
        if rejection:
            self._log.warning("Fix response rejected: %s", rejection)
            return ReasoningResponse(success=False, rejection=rejection, reasoning=text)

        return ReasoningResponse(success=True, changes=changes, reasoning=text)
