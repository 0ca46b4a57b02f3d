"""Canonical request/result types and the adapter interface for external backends."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

import httpx
import structlog

from dermassist.providers.errors import ErrorKind, ProviderError, kind_for_status

logger = structlog.get_logger(__name__)

RequestT = TypeVar("RequestT")
ResultT = TypeVar("ResultT")


class RequestKind(str, Enum):
    """What a provider can serve."""

    CLASSIFICATION = "classification"
    GENERATION = "generation"


class ProviderKind(str, Enum):
    """Backend kinds; the value is the tag reported as ``providerUsed``."""

    OPENAI = "openai"
    HOSTED = "hosted"
    OLLAMA = "ollama"
    CLASSIFIER = "classifier"

    @property
    def request_kind(self) -> RequestKind:
        if self is ProviderKind.CLASSIFIER:
            return RequestKind.CLASSIFICATION
        return RequestKind.GENERATION


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static description of one configured backend."""

    id: str
    kind: ProviderKind
    endpoint: str
    timeout: float
    model: str = ""
    has_credentials: bool = False
    requires_credentials: bool = False
    requires_health: bool = False

    @property
    def request_kind(self) -> RequestKind:
        return self.kind.request_kind

    def to_public_dict(self) -> dict[str, Any]:
        """Descriptor fields safe to expose; never includes secrets."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "endpoint": self.endpoint,
            "model": self.model or None,
            "credentials_present": self.has_credentials,
            "requires_credentials": self.requires_credentials,
            "requires_health": self.requires_health,
            "timeout": self.timeout,
        }


@dataclass(frozen=True)
class ProviderConfig:
    """Ordered, immutable provider list built once at startup."""

    providers: tuple[ProviderDescriptor, ...] = ()

    def for_kind(self, kind: RequestKind) -> tuple[ProviderDescriptor, ...]:
        return tuple(p for p in self.providers if p.request_kind is kind)

    def get(self, provider_id: str) -> ProviderDescriptor:
        for provider in self.providers:
            if provider.id == provider_id:
                return provider
        raise KeyError(provider_id)

    def __iter__(self):
        return iter(self.providers)

    def __len__(self) -> int:
        return len(self.providers)


@dataclass(frozen=True)
class SymptomContext:
    """Structured context submitted alongside an image."""

    symptoms: str = ""
    duration: str = ""
    severity: str = ""
    extra: dict[str, str] = field(default_factory=dict)

    def form_fields(self) -> dict[str, str]:
        """Non-empty fields, flattened for a multipart form."""
        fields = {
            "symptoms": self.symptoms,
            "duration": self.duration,
            "severity": self.severity,
            **self.extra,
        }
        return {key: value for key, value in fields.items() if value}


@dataclass(frozen=True)
class ClassificationRequest:
    """An image to classify. Immutable once constructed."""

    image: bytes
    filename: str = "upload.jpg"
    content_type: str = "image/jpeg"
    context: SymptomContext = field(default_factory=SymptomContext)

    @property
    def size(self) -> int:
        return len(self.image)


@dataclass(frozen=True)
class RawPrediction:
    """Classifier output before validation. Confidence is as reported."""

    label: str
    confidence: float
    payload: Any = None
    description: str | None = None
    recommendations: list[str] | None = None
    all_predictions: Any = None
    model_details: Any = None


@dataclass(frozen=True)
class GenerationRequest:
    """Canonical text-generation request."""

    prompt: str
    system_prompt: str = ""
    max_tokens: int = 600
    temperature: float = 0.7
    stop: tuple[str, ...] = ()


@dataclass(frozen=True)
class GenerationResult:
    """Canonical generated text."""

    text: str
    provider: ProviderKind
    model: str = ""
    payload: Any = None


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a liveness probe."""

    ok: bool
    detail: str = ""
    models: tuple[str, ...] = ()


# A shape matcher returns the extracted value, or None when the payload is not its shape.
ShapeMatcher = Callable[[Any], Any]


def match_first(payload: Any, matchers: Sequence[ShapeMatcher]) -> Any:
    """Return the value from the first matcher that recognizes the payload."""
    for matcher in matchers:
        value = matcher(payload)
        if value is not None:
            return value
    return None


def _non_empty_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def match_response_field(payload: Any) -> str | None:
    """``{"response": "..."}``"""
    if isinstance(payload, dict):
        return _non_empty_str(payload.get("response"))
    return None


def match_generated_text(payload: Any) -> str | None:
    """``{"generated_text": "..."}``"""
    if isinstance(payload, dict):
        return _non_empty_str(payload.get("generated_text"))
    return None


def match_generated_text_list(payload: Any) -> str | None:
    """``[{"generated_text": "..."}]``"""
    if isinstance(payload, list) and payload:
        return match_generated_text(payload[0])
    return None


def match_chat_choices(payload: Any) -> str | None:
    """``{"choices": [{"message": {"content": "..."}}]}``"""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if isinstance(message, dict):
        return _non_empty_str(message.get("content"))
    return None


def match_completion_choices(payload: Any) -> str | None:
    """``{"choices": [{"text": "..."}]}``"""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return _non_empty_str(choices[0].get("text"))
    return None


def match_message_content(payload: Any) -> str | None:
    """``{"message": {"content": "..."}}``"""
    if isinstance(payload, dict) and isinstance(payload.get("message"), dict):
        return _non_empty_str(payload["message"].get("content"))
    return None


class ProviderAdapter(ABC, Generic[RequestT, ResultT]):
    """Translates canonical requests into one backend's wire protocol.

    Adapters are stateless apart from their (lazily created) HTTP client and
    are safe to invoke concurrently. They raise only ProviderError.
    """

    text_shapes: tuple[ShapeMatcher, ...] = ()

    def __init__(self, descriptor: ProviderDescriptor) -> None:
        self.descriptor = descriptor

    @property
    def provider_id(self) -> str:
        return self.descriptor.id

    @abstractmethod
    async def invoke(self, request: RequestT, timeout: float) -> ResultT:
        """Call the backend and return a canonical result."""

    @abstractmethod
    async def probe(self, timeout: float) -> ProbeResult:
        """Hit the backend's cheapest liveness endpoint."""

    async def aclose(self) -> None:
        """Release network resources."""

    def error(
        self, kind: ErrorKind, message: str, status_code: int | None = None
    ) -> ProviderError:
        return ProviderError(kind, self.provider_id, message, status_code=status_code)

    def extract_text(self, payload: Any) -> str:
        """Run the adapter's shape matchers; unknown shapes are an error."""
        text = match_first(payload, self.text_shapes)
        if text is None:
            logger.debug(
                "Unrecognized response shape",
                provider=self.provider_id,
                payload_type=type(payload).__name__,
            )
            raise self.error(
                ErrorKind.INVALID_RESPONSE_SHAPE,
                f"Unrecognized response shape from {self.provider_id}",
            )
        return text.strip()


class HttpProviderAdapter(ProviderAdapter[RequestT, ResultT]):
    """Adapter base for backends spoken to directly over HTTP with httpx."""

    def __init__(
        self, descriptor: ProviderDescriptor, client: httpx.AsyncClient | None = None
    ) -> None:
        super().__init__(descriptor)
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client instance."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def default_headers(self) -> dict[str, str]:
        return {}

    async def request(
        self, method: str, url: str, *, timeout: float, **kwargs: Any
    ) -> httpx.Response:
        """Send a request, translating transport failures and non-2xx replies."""
        headers = {**self.default_headers(), **kwargs.pop("headers", {})}
        try:
            response = await self.client.request(
                method, url, headers=headers, timeout=timeout, **kwargs
            )
        except httpx.TimeoutException as e:
            raise self.error(ErrorKind.TIMEOUT, f"Timed out after {timeout:.0f}s") from e
        except httpx.ConnectError as e:
            raise self.error(ErrorKind.CONNECTION_REFUSED, f"Cannot connect to {url}") from e
        except httpx.DecodingError as e:
            raise self.error(
                ErrorKind.INVALID_RESPONSE_SHAPE, f"Undecodable response body from {url}"
            ) from e
        except httpx.RequestError as e:
            raise self.error(
                ErrorKind.CONNECTION_REFUSED, f"Transport error: {type(e).__name__}"
            ) from e

        if response.is_error:
            raise self.status_error(response)
        return response

    def status_error(self, response: httpx.Response) -> ProviderError:
        """Build the error for a non-2xx reply. Subclasses refine by body."""
        return self.status_error_from(response.status_code, error_message(response))

    def status_error_from(self, status_code: int, message: str) -> ProviderError:
        return self.error(
            kind_for_status(status_code),
            f"HTTP {status_code}: {message}",
            status_code=status_code,
        )

    def decode_json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise self.error(
                ErrorKind.INVALID_RESPONSE_SHAPE, "Response body is not valid JSON"
            ) from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def error_message(response: httpx.Response) -> str:
    """Best-effort short error text from a failed reply."""
    try:
        body = response.json()
    except ValueError:
        return (response.text or "").strip().replace("\n", " ")[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message", ""))[:200]
        if error:
            return str(error)[:200]
    return str(body)[:200]


__all__ = [
    "ClassificationRequest",
    "GenerationRequest",
    "GenerationResult",
    "HttpProviderAdapter",
    "ProbeResult",
    "ProviderAdapter",
    "ProviderConfig",
    "ProviderDescriptor",
    "ProviderKind",
    "RawPrediction",
    "RequestKind",
    "ShapeMatcher",
    "SymptomContext",
    "error_message",
    "match_chat_choices",
    "match_completion_choices",
    "match_first",
    "match_generated_text",
    "match_generated_text_list",
    "match_message_content",
    "match_response_field",
]
