"""
Ollama provider: local inference via the Ollama REST API.

OLLAMA_BASE_URL, OLLAMA_MODEL and OLLAMA_TIMEOUT override the defaults.
Every transport or HTTP failure is re-raised as ProviderError with enough
detail (status code, error code, retryable flag) for the retry policy.
"""

import logging
import os

import httpx

from ..base import BaseLLMProvider, InferenceRequest, InferenceResponse
from ..errors import ProviderError

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "http://localhost:11434"
_DEFAULT_MODEL = "llama3.1:8b"
_DEFAULT_TIMEOUT = 600.0


class OllamaProvider(BaseLLMProvider):
    """Calls Ollama's /api/generate endpoint with a system + user prompt."""

    def __init__(
        self,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._model = model or os.environ.get("OLLAMA_MODEL", _DEFAULT_MODEL)
        self._base_url = (
            base_url or os.environ.get("OLLAMA_BASE_URL", _DEFAULT_BASE_URL)
        ).rstrip("/")
        self._timeout = timeout or float(os.environ.get("OLLAMA_TIMEOUT", _DEFAULT_TIMEOUT))

    @property
    def provider_name(self) -> str:
        return "ollama"

    @property
    def model_name(self) -> str:
        return self._model

    async def infer(self, request: InferenceRequest) -> InferenceResponse:
        payload = {
            "model": self._model,
            "system": request.system_prompt,
            "prompt": request.user_prompt,
            "stream": False,
            "options": {
                "temperature": request.temperature,
                "num_predict": request.max_new_tokens,
            },
        }

        # connect must be fast; read may take minutes on CPU inference
        timeout_config = httpx.Timeout(connect=10.0, read=self._timeout, write=30.0, pool=10.0)
        async with httpx.AsyncClient(timeout=timeout_config) as client:
            try:
                response = await client.post(f"{self._base_url}/api/generate", json=payload)
                response.raise_for_status()
                data = response.json()
            except httpx.ConnectError as exc:
                raise ProviderError(
                    f"Ollama not reachable at {self._base_url}. "
                    "Ensure `ollama serve` is running.",
                    code="ECONNREFUSED",
                    retryable=True,
                ) from exc
            except httpx.TimeoutException as exc:
                raise ProviderError(
                    f"Ollama request timed out after {self._timeout}s for model '{self._model}'",
                    code="ETIMEDOUT",
                    retryable=True,
                ) from exc
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                raise ProviderError(
                    f"Ollama returned HTTP {status}: {exc.response.text[:200]}",
                    status_code=status,
                ) from exc
            except (httpx.HTTPError, ValueError) as exc:
                raise ProviderError(f"Ollama request failed: {exc}") from exc

        if not isinstance(data, dict):
            raise ProviderError(f"Ollama returned a non-object body: {type(data).__name__}")
        if data.get("error"):
            raise ProviderError(f"Ollama error: {data['error']}")

        logger.debug(
            "ollama model=%s prompt_eval_count=%s eval_count=%s",
            self._model,
            data.get("prompt_eval_count"),
            data.get("eval_count"),
        )
        return InferenceResponse(
            text=data.get("response", ""),
            input_tokens=data.get("prompt_eval_count", -1),
            output_tokens=data.get("eval_count", -1),
            provider=self.provider_name,
            model=self._model,
        )
