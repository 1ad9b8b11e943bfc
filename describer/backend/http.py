import json
import logging
from typing import Optional

import requests

from describer.exceptions import TransportError
from describer.models import Credentials, ErrorKind, GenerationOutcome
from .base import DescriptionBackend
from .request import ImageReference, build_request_body, get_error_message, get_text, redact_body

logger = logging.getLogger(__name__)


class HttpDescriptionBackend(DescriptionBackend):
    """Calls an OpenAI-compatible ``/chat/completions`` endpoint with requests."""

    def __init__(self, request_timeout: float = 120, session: Optional[requests.Session] = None):
        """
        Initialize the HTTP backend.

        Args:
            request_timeout: Seconds to wait for the provider before giving up
            session: Optional requests session to reuse connections
        """
        self.request_timeout = request_timeout
        self.session = session or requests.Session()

    def check_config(self, credentials: Credentials) -> None:
        credentials.validate_config()

    def generate(self,
                 image: ImageReference,
                 note: Optional[str],
                 model_id: str,
                 prompt: str,
                 credentials: Credentials) -> GenerationOutcome:
        credentials.validate_config()

        body = build_request_body(image, note, model_id, prompt)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Request body: {json.dumps(redact_body(body), ensure_ascii=False)}")

        try:
            payload = self._post(credentials, body)
        except TransportError as e:
            logger.warning(f"Transport failure calling {model_id}: {e}")
            return GenerationOutcome.failure(str(e), ErrorKind.TRANSPORT)
        except ValueError as e:
            logger.warning(f"Provider returned a non-JSON body: {e}")
            return GenerationOutcome.failure(f"invalid response body: {e}", ErrorKind.PROVIDER)

        error_message = get_error_message(payload)
        if error_message is not None:
            return GenerationOutcome.failure(error_message, ErrorKind.PROVIDER)

        text = get_text(payload)
        if not isinstance(text, str) or not text.strip():
            return GenerationOutcome.failure("empty output", ErrorKind.PROVIDER)

        return GenerationOutcome.success(text.strip())

    def _post(self, credentials: Credentials, body: dict):
        url = f"{credentials.base_url.rstrip('/')}/chat/completions"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {credentials.api_key}",
        }
        try:
            resp = self.session.post(url, json=body, headers=headers, timeout=self.request_timeout)
        except requests.Timeout:
            raise TransportError(None, f"request timed out after {self.request_timeout}s")
        except requests.RequestException as e:
            raise TransportError(None, str(e))

        if not resp.ok:
            raise TransportError(resp.status_code, resp.text)

        return resp.json()
