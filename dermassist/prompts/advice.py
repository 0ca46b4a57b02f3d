"""Advice and follow-up chat prompts for the dermatology assistant."""

from collections.abc import Sequence
from dataclasses import dataclass

from dermassist.prompts.template import PromptTemplate, SamplingConfig

NOT_PROVIDED = "not provided"

URGENT_CONDITIONS = (
    "melanoma",
    "basal cell carcinoma",
    "squamous cell carcinoma",
    "stevens-johnson syndrome",
    "sjs",
    "cellulitis",
    "sepsis",
)

URGENT_DIRECTIVE = (
    "URGENT: this condition can be serious. Begin your answer with a clear warning that "
    "the person should seek immediate medical attention."
)

DISCLAIMER = (
    "This is AI-generated information, not a diagnosis. Always consult a qualified "
    "dermatologist or healthcare professional for proper diagnosis and treatment."
)

REQUIRED_SECTIONS = (
    "Overview",
    "Causes",
    "Symptoms",
    "Safe home care",
    "Professional treatment",
    "Red flags: when to seek medical help",
    "Prevention",
)

CHAT_HISTORY_TURNS = 5

ADVICE_SYSTEM_PROMPT = (
    "You are a knowledgeable medical information assistant specializing in dermatology. "
    "Provide clear, evidence-based information about skin conditions in simple language. "
    "Always remind the reader to seek professional medical attention for serious conditions."
)

CHAT_SYSTEM_PROMPT = (
    "You are a medical assistant specializing in dermatology. "
    "Be helpful, accurate, and empathetic."
)

ADVICE_TEMPLATE = PromptTemplate(
    id="advice",
    system_prompt=ADVICE_SYSTEM_PROMPT,
    sampling=SamplingConfig(temperature=0.7, max_tokens=600),
    user_prompt_template="""\
{% if urgent %}
{{ urgent_directive }}

{% endif %}
Provide information about the skin condition: {{ condition }}

Patient information:
- Condition: {{ condition }}
- Confidence: {{ confidence }}
- Symptoms: {{ symptoms }}
- Severity: {{ severity }}
- Duration: {{ duration }}

Write about 400-500 words using these sections, in this order:
{% for section in sections %}
{{ loop.index }}. {{ section }}
{% endfor %}

{% if urgent %}
Lead with the urgent warning and stress that professional consultation is needed now.
{% else %}
Give a realistic timeline for seeing a doctor if the condition does not improve.
{% endif %}
Use simple language. End with this sentence exactly:
"{{ disclaimer }}"
""",
)

CHAT_TEMPLATE = PromptTemplate(
    id="chat",
    system_prompt=CHAT_SYSTEM_PROMPT,
    sampling=SamplingConfig(temperature=0.8, max_tokens=300),
    user_prompt_template="""\
Medical assistant for dermatology.{% if condition %} Patient has: {{ condition }}{% endif %}

{% if history %}
Recent chat:
{% for turn in history %}
{{ turn.role }}: {{ turn.content }}
{% endfor %}

{% endif %}
Question: {{ message }}

Provide a brief, helpful answer (2-3 sentences). If it sounds serious, recommend seeing a doctor.
""",
)


@dataclass(frozen=True)
class ChatTurn:
    role: str
    content: str


def is_urgent(condition: str) -> bool:
    """Whether the condition name contains a high-risk entry (case-insensitive)."""
    lowered = condition.lower()
    return any(entry in lowered for entry in URGENT_CONDITIONS)


def format_confidence(confidence: float | None) -> str:
    """Render a confidence as a whole percentage; values above 1 are already percentages."""
    if confidence is None:
        return NOT_PROVIDED
    percent = confidence if confidence > 1 else confidence * 100
    return f"{percent:.0f}%"


def _or_placeholder(value: str | None) -> str:
    if value is None or not str(value).strip():
        return NOT_PROVIDED
    return str(value).strip()


def build_advice_prompt(
    condition: str,
    symptoms: str | None = None,
    severity: str | None = None,
    duration: str | None = None,
    confidence: float | None = None,
) -> str:
    """Deterministic advice prompt for a diagnosed condition."""
    condition = condition.strip()
    urgent = is_urgent(condition)
    return ADVICE_TEMPLATE.render(
        condition=condition,
        symptoms=_or_placeholder(symptoms),
        severity=_or_placeholder(severity),
        duration=_or_placeholder(duration),
        confidence=format_confidence(confidence),
        sections=REQUIRED_SECTIONS,
        urgent=urgent,
        urgent_directive=URGENT_DIRECTIVE,
        disclaimer=DISCLAIMER,
    )


def build_chat_prompt(
    message: str,
    condition: str | None = None,
    history: Sequence[ChatTurn] = (),
) -> str:
    """Short follow-up question prompt; only the most recent turns are kept."""
    return CHAT_TEMPLATE.render(
        message=message.strip(),
        condition=(condition or "").strip(),
        history=list(history)[-CHAT_HISTORY_TURNS:],
    )


__all__ = [
    "ADVICE_SYSTEM_PROMPT",
    "ADVICE_TEMPLATE",
    "CHAT_HISTORY_TURNS",
    "CHAT_SYSTEM_PROMPT",
    "CHAT_TEMPLATE",
    "DISCLAIMER",
    "NOT_PROVIDED",
    "REQUIRED_SECTIONS",
    "URGENT_CONDITIONS",
    "URGENT_DIRECTIVE",
    "ChatTurn",
    "build_advice_prompt",
    "build_chat_prompt",
    "format_confidence",
    "is_urgent",
]
