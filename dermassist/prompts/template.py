"""Prompt template dataclass and rendering logic."""

from dataclasses import dataclass, field
from typing import Any

from jinja2 import Environment, StrictUndefined, Template, TemplateError
import structlog

from dermassist.providers.base import GenerationRequest

logger = structlog.get_logger(__name__)

_environment = Environment(
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    autoescape=False,
)


@dataclass(frozen=True)
class SamplingConfig:
    """Generation settings shipped with a prompt."""

    temperature: float = 0.7
    max_tokens: int = 600


@dataclass
class PromptTemplate:
    """A named prompt: fixed system prompt plus a Jinja2 user prompt.

    Attributes:
        id: Unique identifier for the prompt (e.g., "advice")
        system_prompt: The system prompt text
        user_prompt_template: Jinja2 template for the user prompt
        sampling: Generation settings used with this prompt
    """

    id: str
    system_prompt: str
    user_prompt_template: str
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    _compiled: Template = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Compile the template so syntax errors surface at import time."""
        try:
            self._compiled = _environment.from_string(self.user_prompt_template)
        except TemplateError as e:
            logger.error("Invalid Jinja2 template", prompt_id=self.id, error=str(e))
            raise ValueError(f"Invalid template syntax in {self.id}: {e}") from e

    def render(self, **variables: Any) -> str:
        """Render the user prompt.

        Raises:
            ValueError: If a variable the template uses is missing.
        """
        try:
            return self._compiled.render(**variables).strip()
        except TemplateError as e:
            logger.error(
                "Failed to render prompt template",
                prompt_id=self.id,
                error=str(e),
                variables=sorted(variables),
            )
            raise ValueError(f"Failed to render template for {self.id}: {e}") from e

    def to_request(self, prompt: str) -> GenerationRequest:
        """Wrap a rendered prompt into a canonical generation request."""
        return GenerationRequest(
            prompt=prompt,
            system_prompt=self.system_prompt,
            max_tokens=self.sampling.max_tokens,
            temperature=self.sampling.temperature,
        )

    def __repr__(self) -> str:
        return f"PromptTemplate(id='{self.id}')"


__all__ = ["PromptTemplate", "SamplingConfig"]
