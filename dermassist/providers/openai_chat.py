"""OpenAI chat-completion adapter (cloud API, credential-gated)."""

from typing import Any

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    OpenAIError,
    PermissionDeniedError,
    RateLimitError,
)
import structlog

from dermassist.providers.base import (
    GenerationRequest,
    GenerationResult,
    ProbeResult,
    ProviderAdapter,
    ProviderDescriptor,
    match_chat_choices,
    match_generated_text,
    match_response_field,
)
from dermassist.providers.errors import ErrorKind, ProviderError, kind_for_status

logger = structlog.get_logger(__name__)


class OpenAIChatAdapter(ProviderAdapter[GenerationRequest, GenerationResult]):
    """Async client for the chat completions API.

    The response shapes beyond ``choices[].message`` cover OpenAI-compatible
    gateways configured through ``openai_base_url``.
    """

    text_shapes = (match_chat_choices, match_response_field, match_generated_text)

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        api_key: str,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        super().__init__(descriptor)
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        """Get or create the OpenAI client instance."""
        if self._client is None:
            if not self._api_key:
                raise self.error(ErrorKind.AUTH_REJECTED, "OpenAI API key not configured")
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self.descriptor.timeout,
                max_retries=0,  # fallback to the next provider instead of retrying
            )
        return self._client

    async def invoke(self, request: GenerationRequest, timeout: float) -> GenerationResult:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        logger.debug(
            "Sending OpenAI request",
            model=self.descriptor.model,
            prompt_length=len(request.prompt),
        )
        try:
            response = await self.client.chat.completions.create(
                model=self.descriptor.model,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                presence_penalty=0.1,
                frequency_penalty=0.1,
                timeout=timeout,
            )
        except OpenAIError as e:
            raise self.translate(e) from e

        payload: Any = response.model_dump() if hasattr(response, "model_dump") else response
        logger.debug(
            "OpenAI response received",
            model=self.descriptor.model,
            usage=payload.get("usage") if isinstance(payload, dict) else None,
        )
        return GenerationResult(
            text=self.extract_text(payload),
            provider=self.descriptor.kind,
            model=self.descriptor.model,
            payload=payload,
        )

    def translate(self, exc: OpenAIError) -> ProviderError:
        """Map SDK exceptions onto the error taxonomy."""
        # APITimeoutError subclasses APIConnectionError, so it is checked first.
        if isinstance(exc, APITimeoutError):
            return self.error(ErrorKind.TIMEOUT, "OpenAI request timed out")
        if isinstance(exc, APIConnectionError):
            return self.error(ErrorKind.CONNECTION_REFUSED, "Cannot connect to OpenAI")
        if isinstance(exc, (AuthenticationError, PermissionDeniedError)):
            return self.error(
                ErrorKind.AUTH_REJECTED, "Invalid OpenAI API key", status_code=exc.status_code
            )
        if isinstance(exc, RateLimitError):
            return self.error(
                ErrorKind.BACKEND_OVERLOADED,
                "OpenAI rate limit exceeded",
                status_code=exc.status_code,
            )
        if isinstance(exc, APIStatusError):
            return self.error(
                kind_for_status(exc.status_code),
                f"OpenAI error: {exc.message}",
                status_code=exc.status_code,
            )
        return self.error(ErrorKind.INVALID_RESPONSE_SHAPE, f"OpenAI error: {exc}")

    async def probe(self, timeout: float) -> ProbeResult:
        try:
            await self.client.models.retrieve(self.descriptor.model, timeout=timeout)
        except OpenAIError as e:
            raise self.translate(e) from e
        return ProbeResult(ok=True, detail="model available")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


__all__ = ["OpenAIChatAdapter"]
