from abc import ABC, abstractmethod
from typing import Optional

from describer.models import Credentials, GenerationOutcome
from .request import ImageReference


class DescriptionBackend(ABC):
    """Produces one description per call from an image and a prompt."""

    @abstractmethod
    def check_config(self, credentials: Credentials) -> None:
        """
        Validate credentials before any work starts.

        Raises:
            ConfigurationError: if the backend cannot be called with these credentials
        """
        pass

    @abstractmethod
    def generate(self,
                 image: ImageReference,
                 note: Optional[str],
                 model_id: str,
                 prompt: str,
                 credentials: Credentials) -> GenerationOutcome:
        """
        Describe one image.

        Every failure other than a configuration problem is captured in the
        returned outcome; nothing else is raised.

        Args:
            image: Remote URL, data URL, raw bytes, or None for a text-only request
            note: Optional auxiliary text appended to the prompt
            model_id: Provider model identifier
            prompt: Instruction text
            credentials: API key and base URL

        Returns:
            The normalized outcome of the call
        """
        pass
