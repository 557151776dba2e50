"""LLM client for analysis and chat with OpenAI integration.

Security: Reads API key from environment only, never hardcoded.
Provides a deterministic stub when no key is present, for local development
and tests. Vendor failures are never papered over with stub output: every
call returns an ``LLMSuccess`` or an ``LLMFailure`` carrying the upstream
status.
"""

import asyncio
import base64
import logging
import time
from dataclasses import dataclass
from typing import Protocol

from openai import APIStatusError, APITimeoutError, AsyncOpenAI, OpenAIError

from backend.app.config import get_settings
from backend.app.utils.metrics import PrometheusLLMMetrics

logger = logging.getLogger(__name__)

# Status reported when the vendor could not be reached or did not answer in time
STATUS_TIMEOUT = 504
STATUS_UNREACHABLE = 503
STATUS_EMPTY_RESPONSE = 502
STATUS_TRUNCATED = 502


@dataclass(frozen=True)
class LLMSuccess:
    """Vendor call succeeded."""

    text: str
    ok: bool = True


@dataclass(frozen=True)
class LLMFailure:
    """Vendor call failed with an upstream status."""

    status: int
    detail: str
    ok: bool = False


LLMResult = LLMSuccess | LLMFailure


class LLMClient(Protocol):
    """Protocol for LLM client implementations."""

    async def complete(
        self, *, system_prompt: str, user_prompt: str, temperature: float
    ) -> LLMResult:
        """Submit a text prompt.

        Args:
            system_prompt: Instruction template
            user_prompt: Content to analyze or the rendered conversation
            temperature: Sampling temperature

        Returns:
            LLMSuccess with the reply text, or LLMFailure with upstream status
        """
        ...

    async def complete_with_image(
        self, *, prompt: str, image: bytes, media_type: str, temperature: float
    ) -> LLMResult:
        """Submit a prompt together with an image payload."""
        ...

    async def transcribe(self, *, audio: bytes, file_name: str) -> LLMResult:
        """Convert speech to text."""
        ...


class DeterministicStubClient:
    """Deterministic stub client for testing (no API key required)."""

    async def complete(
        self, *, system_prompt: str, user_prompt: str, temperature: float
    ) -> LLMResult:
        """Echo a fixed analysis built from the prompt sizes."""
        return LLMSuccess(
            text=(
                "**Resumo Executivo**\n"
                f"Análise gerada sem serviço de IA ({len(user_prompt)} caracteres recebidos).\n\n"
                "*Esta é uma resposta de demonstração.*"
            )
        )

    async def complete_with_image(
        self, *, prompt: str, image: bytes, media_type: str, temperature: float
    ) -> LLMResult:
        """Echo a fixed analysis for an image."""
        return LLMSuccess(
            text=(
                "**Resumo Executivo**\n"
                f"Imagem {media_type} recebida ({len(image)} bytes).\n\n"
                "*Esta é uma resposta de demonstração.*"
            )
        )

    async def transcribe(self, *, audio: bytes, file_name: str) -> LLMResult:
        """Return a placeholder transcript."""
        return LLMSuccess(text=f"Transcrição de demonstração de {file_name}.")


class OpenAIClient:
    """OpenAI-backed LLM client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        vision_model: str = "gpt-4o-mini",
        transcription_model: str = "whisper-1",
        timeout_seconds: float = 60.0,
        max_tokens: int | None = None,
        client: AsyncOpenAI | None = None,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (read from environment)
            model: Model for text prompts (default: gpt-4o-mini for cost efficiency)
            vision_model: Model for image prompts
            transcription_model: Speech-to-text model
            timeout_seconds: Bound on every vendor call
            max_tokens: Completion token cap; None leaves the model maximum
            client: Preconfigured AsyncOpenAI (for testing with mocks)
        """
        # Retries are left to the caller; a failed call must not bill twice
        self.client = client or AsyncOpenAI(
            api_key=api_key, max_retries=0, timeout=timeout_seconds
        )
        self.model = model
        self.vision_model = vision_model
        self.transcription_model = transcription_model
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self.metrics = PrometheusLLMMetrics()

    async def complete(
        self, *, system_prompt: str, user_prompt: str, temperature: float
    ) -> LLMResult:
        """Generate a reply using the chat completions API."""
        return await self._chat(
            operation="text",
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
        )

    async def complete_with_image(
        self, *, prompt: str, image: bytes, media_type: str, temperature: float
    ) -> LLMResult:
        """Generate a reply for an image sent inline as a base64 data URL."""
        encoded = base64.b64encode(image).decode("ascii")
        return await self._chat(
            operation="vision",
            model=self.vision_model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{media_type};base64,{encoded}"},
                        },
                    ],
                }
            ],
            temperature=temperature,
        )

    async def transcribe(self, *, audio: bytes, file_name: str) -> LLMResult:
        """Transcribe audio with the speech-to-text endpoint."""
        start = time.perf_counter()
        try:
            transcription = await asyncio.wait_for(
                self.client.audio.transcriptions.create(
                    model=self.transcription_model,
                    file=(file_name, audio),
                ),
                timeout=self.timeout_seconds,
            )
        except (OpenAIError, asyncio.TimeoutError) as e:
            return self._failure("transcription", e, start)

        text = transcription.text or ""
        if not text.strip():
            return self._failure_status(
                "transcription", STATUS_EMPTY_RESPONSE, "empty transcript", start
            )

        self.metrics.record_latency("transcription", "success", _elapsed_ms(start))
        return LLMSuccess(text=text)

    async def _chat(
        self,
        *,
        operation: str,
        model: str,
        messages: list[dict[str, object]],
        temperature: float,
    ) -> LLMResult:
        start = time.perf_counter()
        options: dict[str, object] = {"temperature": temperature}
        if self.max_tokens is not None:
            options["max_tokens"] = self.max_tokens

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=model,
                    messages=messages,  # type: ignore[arg-type]
                    **options,  # type: ignore[arg-type]
                ),
                timeout=self.timeout_seconds,
            )
        except (OpenAIError, asyncio.TimeoutError) as e:
            return self._failure(operation, e, start)

        if not response.choices:
            return self._failure_status(operation, STATUS_EMPTY_RESPONSE, "empty response", start)

        choice = response.choices[0]
        # A reply cut at the token cap is partial output, never a success
        if choice.finish_reason == "length":
            return self._failure_status(operation, STATUS_TRUNCATED, "truncated", start)

        content = choice.message.content
        if not content or not content.strip():
            return self._failure_status(operation, STATUS_EMPTY_RESPONSE, "empty response", start)

        self.metrics.record_latency(operation, "success", _elapsed_ms(start))
        return LLMSuccess(text=content)

    def _failure(self, operation: str, error: Exception, start: float) -> LLMFailure:
        """Map a vendor exception onto an upstream status."""
        if isinstance(error, APIStatusError):
            return self._failure_status(operation, error.status_code, error.message, start)
        if isinstance(error, (asyncio.TimeoutError, APITimeoutError)):
            return self._failure_status(operation, STATUS_TIMEOUT, "timeout", start)
        return self._failure_status(operation, STATUS_UNREACHABLE, type(error).__name__, start)

    def _failure_status(
        self, operation: str, status: int, detail: str, start: float
    ) -> LLMFailure:
        logger.error(f"OpenAI {operation} call failed with status {status}: {detail}")
        self.metrics.record_latency(operation, "error", _elapsed_ms(start))
        self.metrics.inc_error(operation, str(status))
        return LLMFailure(status=status, detail=detail)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def get_llm_client() -> LLMClient:
    """Factory function to get appropriate LLM client based on config.

    Returns:
        OpenAIClient if API key is configured, DeterministicStubClient otherwise
    """
    settings = get_settings()
    api_key = settings.openai_api_key

    if api_key and api_key.get_secret_value():
        logger.info("Using OpenAI client")
        return OpenAIClient(
            api_key=api_key.get_secret_value(),
            model=settings.openai_model,
            vision_model=settings.openai_vision_model,
            transcription_model=settings.openai_transcription_model,
            timeout_seconds=settings.llm_timeout_seconds,
            max_tokens=settings.llm_max_tokens,
        )
    else:
        logger.warning("No OpenAI API key configured, using deterministic stub client")
        return DeterministicStubClient()
