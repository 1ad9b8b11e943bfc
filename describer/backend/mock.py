"""Offline backend that returns canned descriptions, for demos and development."""
import logging
import random
from typing import Callable, Dict, Optional

from describer.models import Credentials, ErrorKind, GenerationOutcome
from describer.prompts import DEFAULT_PROMPT, ModelFamily, resolve_family
from .base import DescriptionBackend
from .request import ImageReference

logger = logging.getLogger(__name__)


def _subject(note: str) -> str:
    return f'"{note}"' if note else "this image"


def _source(image: ImageReference) -> str:
    return "The linked image" if isinstance(image, str) else "The uploaded image"


def _gpt4o(note: str, image: ImageReference, prompt: str) -> str:
    return (f"Based on GPT-4o visual analysis, {_subject(note)} shows fine detail with a clear composition "
            f"and rich visual elements. {_source(image)} has good quality and balanced color saturation, "
            f"giving an overall professional impression.")


def _gpt4o_mini(note: str, image: ImageReference, prompt: str) -> str:
    return (f"A clear picture of {_subject(note)}. {_source(image)} shows the main features and key "
            f"details; the design is simple and practical.")


def _claude_sonnet(note: str, image: ImageReference, prompt: str) -> str:
    return (f"Claude 3.5 Sonnet analysis of {_subject(note)}:\n"
            f"- Composition: balanced, with a prominent subject\n"
            f"- Color: harmonious palette with good visual layering\n"
            f"- Detail: {_source(image).lower()} is sharp and detailed")


def _claude_haiku(note: str, image: ImageReference, prompt: str) -> str:
    return f"Concise analysis: {_subject(note)} clearly presents its core elements with a distinct subject."


def _gemini_pro(note: str, image: ImageReference, prompt: str) -> str:
    return (f"Gemini 1.5 Pro multimodal analysis of {_subject(note)}: reasonable resolution, modern "
            f"design sensibility and complete detail retention.")


def _gemini_flash(note: str, image: ImageReference, prompt: str) -> str:
    return f"Quick analysis: {_subject(note)} has distinct features and the main elements are clearly visible."


Formatter = Callable[[str, ImageReference, str], str]

FORMATTERS: Dict[ModelFamily, Formatter] = {
    ModelFamily.GPT_4O: _gpt4o,
    ModelFamily.GPT_4O_MINI: _gpt4o_mini,
    ModelFamily.CLAUDE_SONNET: _claude_sonnet,
    ModelFamily.CLAUDE_HAIKU: _claude_haiku,
    ModelFamily.GEMINI_PRO: _gemini_pro,
    ModelFamily.GEMINI_FLASH: _gemini_flash,
    ModelFamily.GENERIC: _gpt4o_mini,
}


class MockDescriptionBackend(DescriptionBackend):
    """Backend that never touches the network."""

    def __init__(self, failure_rate: float = 0.0, empty_rate: float = 0.0, rng: Optional[random.Random] = None):
        """
        Initialize the mock backend.

        Args:
            failure_rate: Probability (0-1) that a call reports a transport failure
            empty_rate: Probability (0-1) that a call returns empty output
            rng: Random source, for deterministic tests
        """
        self.failure_rate = failure_rate
        self.empty_rate = empty_rate
        self.rng = rng or random.Random()
        self.calls = 0

    def check_config(self, credentials: Credentials) -> None:
        pass

    def generate(self,
                 image: ImageReference,
                 note: Optional[str],
                 model_id: str,
                 prompt: str,
                 credentials: Credentials) -> GenerationOutcome:
        self.calls += 1

        if self.failure_rate > 0 and self.rng.random() < self.failure_rate:
            return GenerationOutcome.failure("API request failed: service temporarily unavailable",
                                             ErrorKind.TRANSPORT)
        if self.empty_rate > 0 and self.rng.random() < self.empty_rate:
            return GenerationOutcome.failure("empty output", ErrorKind.PROVIDER)

        text = FORMATTERS[resolve_family(model_id)](note or "", image, prompt)
        if prompt and prompt != DEFAULT_PROMPT:
            text = f'Following your request "{prompt}": {text}'
        logger.debug(f"Mock description generated for model {model_id}")
        return GenerationOutcome.success(text)
