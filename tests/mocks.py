from typing import Callable, List, Optional, Union

from describer.backend.base import DescriptionBackend
from describer.exceptions import ConfigurationError
from describer.models import Credentials, ErrorKind, GenerationOutcome

ScriptEntry = Union[GenerationOutcome, Exception, Callable[..., GenerationOutcome]]


def ok(text: str) -> GenerationOutcome:
    return GenerationOutcome.success(text)


def http_error(status: int, body: str = "") -> GenerationOutcome:
    return GenerationOutcome.failure(f"API request failed: {status} {body}", ErrorKind.TRANSPORT)


class ScriptedBackend(DescriptionBackend):
    """
    A backend that replays a script of outcomes.

    Entries are consumed one per call; an Exception entry is raised, a
    callable is invoked with the call arguments.  When the script runs out
    ``default`` is returned.
    """

    def __init__(self, script: Optional[List[ScriptEntry]] = None,
                 default: Optional[GenerationOutcome] = None,
                 reject_config: bool = False):
        self.script = list(script or [])
        self.default = default or ok("A default description.")
        self.reject_config = reject_config
        self.calls = []
        self.config_checks = 0

    def check_config(self, credentials: Credentials) -> None:
        self.config_checks += 1
        if self.reject_config:
            raise ConfigurationError("Please configure the API key and service URL first")

    def generate(self, image, note, model_id, prompt, credentials) -> GenerationOutcome:
        self.calls.append({"image": image, "note": note, "model": model_id, "prompt": prompt})
        if not self.script:
            return self.default
        entry = self.script.pop(0)
        if isinstance(entry, Exception):
            raise entry
        if callable(entry):
            return entry(image, note, model_id, prompt, credentials)
        return entry


class SleepRecorder:
    """Stand-in for time.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    def __call__(self, seconds: float):
        self.delays.append(seconds)


CREDENTIALS = Credentials(api_key="sk-test-key-123", base_url="https://api.example.com/v1")
