"""Model table, prompt templates and prompt-text composition.

Model identifiers are resolved to a closed set of :class:`ModelFamily` values
through :data:`MODELS`; anything not in the table is ``GENERIC``.  Per-family
behaviour (the image-analysis preamble here, the canned mock descriptions in
:mod:`describer.backend.mock`) is looked up in explicit tables keyed by family.
"""
from enum import Enum
from typing import Dict, NamedTuple, Optional


class ModelFamily(str, Enum):
    GPT_4O = "gpt-4o"
    GPT_4O_MINI = "gpt-4o-mini"
    CLAUDE_SONNET = "claude-sonnet"
    CLAUDE_HAIKU = "claude-haiku"
    GEMINI_PRO = "gemini-pro"
    GEMINI_FLASH = "gemini-flash"
    GENERIC = "generic"


class ModelSpec(NamedTuple):
    family: ModelFamily
    label: str


MODELS: Dict[str, ModelSpec] = {
    "gpt-4o": ModelSpec(ModelFamily.GPT_4O, "GPT-4o - latest vision model"),
    "gpt-4o-mini": ModelSpec(ModelFamily.GPT_4O_MINI, "GPT-4o Mini - fast and efficient"),
    "claude-3-5-sonnet": ModelSpec(ModelFamily.CLAUDE_SONNET, "Claude 3.5 Sonnet"),
    "claude-3-5-sonnet-20240620": ModelSpec(ModelFamily.CLAUDE_SONNET, "Claude 3.5 Sonnet - strong image analysis"),
    "claude-3-haiku": ModelSpec(ModelFamily.CLAUDE_HAIKU, "Claude 3 Haiku"),
    "claude-3-haiku-20240307": ModelSpec(ModelFamily.CLAUDE_HAIKU, "Claude 3 Haiku - fast responses"),
    "gemini-1.5-pro": ModelSpec(ModelFamily.GEMINI_PRO, "Gemini 1.5 Pro"),
    "gemini-1.5-flash": ModelSpec(ModelFamily.GEMINI_FLASH, "Gemini 1.5 Flash - fast processing"),
}


def resolve_family(model_id: str) -> ModelFamily:
    spec = MODELS.get(model_id)
    return spec.family if spec else ModelFamily.GENERIC


GENERIC_PREAMBLE = "Please carefully analyze the content of the provided image. "

IMAGE_PREAMBLES: Dict[ModelFamily, str] = {
    ModelFamily.GPT_4O: "I will provide you with an image. Please observe and analyze its content carefully. ",
    ModelFamily.GPT_4O_MINI: "I will provide you with an image. Please observe and analyze its content carefully. ",
}

NO_IMAGE_NOTICE = "Note: no image was provided. "
NOTE_SUFFIX = "\n\nAdditional product information: {note}"


class PromptTemplate(NamedTuple):
    label: str
    content: str


PROMPT_TEMPLATES: Dict[str, PromptTemplate] = {
    "brief": PromptTemplate(
        "Brief",
        "Please write a concise, clear description of this image that highlights its main features and elements.",
    ),
    "detailed": PromptTemplate(
        "Detailed analysis",
        "Please describe this image in detail, including the main objects, colors, composition, background "
        "and every other visible element, as well as its possible purpose or meaning.",
    ),
    "marketing": PromptTemplate(
        "Marketing copy",
        "Please write an engaging marketing description for this image that highlights the selling points "
        "and advantages of the product or content, suitable for commercial promotion.",
    ),
    "social": PromptTemplate(
        "Social media",
        "Please write an image description suitable for sharing on social media, lively and fun, "
        "that draws attention and engagement.",
    ),
    "professional": PromptTemplate(
        "Professional analysis",
        "Please analyze this image from a professional point of view, covering technical characteristics, "
        "design elements and a quality assessment.",
    ),
    "seo": PromptTemplate(
        "SEO",
        "Please write an SEO-friendly description of this image that includes keywords and is suitable "
        "as alt text or an image caption.",
    ),
}

DEFAULT_TEMPLATE = "brief"
DEFAULT_PROMPT = PROMPT_TEMPLATES[DEFAULT_TEMPLATE].content


def build_prompt_text(prompt: str, note: Optional[str], has_image: bool, model_id: str) -> str:
    """Compose the text part of the chat message."""
    if has_image:
        preamble = IMAGE_PREAMBLES.get(resolve_family(model_id), GENERIC_PREAMBLE)
        text = preamble + prompt
    else:
        text = NO_IMAGE_NOTICE + prompt
    if note:
        text += NOTE_SUFFIX.format(note=note)
    return text
