"""Hosted inference endpoint adapter (Hugging Face Inference API / Spaces)."""

import httpx
import structlog

from dermassist.providers.base import (
    GenerationRequest,
    GenerationResult,
    HttpProviderAdapter,
    ProbeResult,
    ProviderDescriptor,
    error_message,
    match_completion_choices,
    match_generated_text,
    match_generated_text_list,
    match_response_field,
)
from dermassist.providers.errors import ErrorKind, ProviderError

logger = structlog.get_logger(__name__)


class HostedInferenceAdapter(HttpProviderAdapter[GenerationRequest, GenerationResult]):
    """Sends ``{"inputs": ...}`` text-generation requests to a hosted model.

    The ``wait_for_model`` option asks a cold endpoint to load the model instead of
    replying 503 straight away.
    """

    text_shapes = (
        match_generated_text_list,
        match_generated_text,
        match_response_field,
        match_completion_choices,
    )

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        token: str = "",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(descriptor, client=client)
        self._token = token

    def default_headers(self) -> dict[str, str]:
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    async def invoke(self, request: GenerationRequest, timeout: float) -> GenerationResult:
        inputs = request.prompt
        if request.system_prompt:
            inputs = f"{request.system_prompt}\n\n{request.prompt}"

        payload = {
            "inputs": inputs,
            "parameters": {
                "max_new_tokens": request.max_tokens,
                "temperature": request.temperature,
                "return_full_text": False,
            },
            "options": {"wait_for_model": True, "use_cache": False},
        }

        logger.debug("Sending hosted inference request", endpoint=self.descriptor.endpoint)
        response = await self.request(
            "POST", self.descriptor.endpoint, json=payload, timeout=timeout
        )
        body = self.decode_json(response)
        text = self.extract_text(body)

        # Some deployments ignore return_full_text and echo the prompt back.
        if text.startswith(inputs.strip()):
            text = text[len(inputs.strip()) :].strip()
            if not text:
                raise self.error(
                    ErrorKind.INVALID_RESPONSE_SHAPE, "Hosted model returned only the prompt"
                )

        return GenerationResult(
            text=text,
            provider=self.descriptor.kind,
            model=self.descriptor.model,
            payload=body,
        )

    def status_error(self, response: httpx.Response) -> ProviderError:
        message = error_message(response)
        if "loading" in message.lower():
            return self.error(
                ErrorKind.BACKEND_OVERLOADED,
                f"Hosted model is still loading: {message}",
                status_code=response.status_code,
            )
        return self.status_error_from(response.status_code, message)

    async def probe(self, timeout: float) -> ProbeResult:
        root = httpx.URL(self.descriptor.endpoint).join("/")
        await self.request("GET", str(root), timeout=timeout)
        return ProbeResult(ok=True, detail="reachable")


__all__ = ["HostedInferenceAdapter"]
