"""Local Ollama daemon adapter (prompt-completion protocol)."""

import httpx
import structlog

from dermassist.providers.base import (
    GenerationRequest,
    GenerationResult,
    HttpProviderAdapter,
    ProbeResult,
    error_message,
    match_generated_text,
    match_message_content,
    match_response_field,
)
from dermassist.providers.errors import ErrorKind, ProviderError

logger = structlog.get_logger(__name__)

DEFAULT_STOP = ("\n\n\n", "User:", "Question:")


def model_installed(model: str, installed: list[str]) -> bool:
    """True when the model, or another tag of the same base model, is pulled."""
    base = model.split(":")[0]
    return any(name == model or name.startswith(base) for name in installed)


class OllamaAdapter(HttpProviderAdapter[GenerationRequest, GenerationResult]):
    """Calls ``POST /api/generate`` with streaming disabled."""

    text_shapes = (match_response_field, match_message_content, match_generated_text)

    async def invoke(self, request: GenerationRequest, timeout: float) -> GenerationResult:
        payload = {
            "model": self.descriptor.model,
            "prompt": request.prompt,
            "stream": False,
            "options": {
                "temperature": request.temperature,
                "top_p": 0.9,
                "top_k": 40,
                "num_predict": request.max_tokens,
                "num_ctx": 1024,
                "repeat_penalty": 1.1,
                "stop": list(request.stop or DEFAULT_STOP),
            },
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt

        logger.debug(
            "Sending Ollama request",
            model=self.descriptor.model,
            prompt_length=len(request.prompt),
            timeout=timeout,
        )
        response = await self.request(
            "POST", f"{self.descriptor.endpoint}/api/generate", json=payload, timeout=timeout
        )
        body = self.decode_json(response)
        if isinstance(body, dict) and body.get("error"):
            raise self.body_error(str(body["error"]), response.status_code)

        return GenerationResult(
            text=self.extract_text(body),
            provider=self.descriptor.kind,
            model=self.descriptor.model,
            payload=body,
        )

    def status_error(self, response: httpx.Response) -> ProviderError:
        return self.body_error(error_message(response), response.status_code)

    def body_error(self, message: str, status_code: int) -> ProviderError:
        lowered = message.lower()
        if "memory" in lowered:
            return self.error(
                ErrorKind.BACKEND_OVERLOADED,
                f"Model too large for available RAM: {message}",
                status_code=status_code,
            )
        if "not found" in lowered or "does not exist" in lowered:
            return self.error(
                ErrorKind.INVALID_RESPONSE_SHAPE,
                f"Model '{self.descriptor.model}' not found; "
                f"run: ollama pull {self.descriptor.model}",
                status_code=status_code,
            )
        return self.status_error_from(status_code, message)

    async def probe(self, timeout: float) -> ProbeResult:
        response = await self.request(
            "GET", f"{self.descriptor.endpoint}/api/tags", timeout=timeout
        )
        body = self.decode_json(response)
        models = body.get("models", []) if isinstance(body, dict) else []
        installed = [m["name"] for m in models if isinstance(m, dict) and "name" in m]

        if not model_installed(self.descriptor.model, installed):
            return ProbeResult(
                ok=False,
                detail=f"Ollama running but model '{self.descriptor.model}' not found",
                models=tuple(installed),
            )
        return ProbeResult(ok=True, detail="ready", models=tuple(installed))


__all__ = ["OllamaAdapter", "model_installed"]
