import base64
from typing import Any, Dict, Optional, Union

from describer.prompts import build_prompt_text

MAX_TOKENS = 1000
TEMPERATURE = 0.7

ImageReference = Union[str, bytes, None]

_MAGIC = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def sniff_mime_type(data: bytes) -> str:
    """Guess an image MIME type from its leading bytes (JPEG if unknown)."""
    for magic, mime in _MAGIC:
        if data.startswith(magic):
            return mime
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def to_data_url(data: bytes) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{sniff_mime_type(data)};base64,{encoded}"


def image_url_for(image: ImageReference) -> Optional[str]:
    """URL to place in the image part: remote URLs and data URLs pass through, bytes are encoded."""
    if not image:
        return None
    if isinstance(image, bytes):
        return to_data_url(image)
    return image


def build_request_body(image: ImageReference, note: Optional[str], model_id: str, prompt: str) -> Dict[str, Any]:
    """
    Build a chat-completions body with one user message.

    The message holds a text part and, when an image is supplied, an
    ``image_url`` part with ``detail: high``.
    """
    url = image_url_for(image)
    content = [{"type": "text", "text": build_prompt_text(prompt, note, url is not None, model_id)}]
    if url is not None:
        content.append({"type": "image_url", "image_url": {"url": url, "detail": "high"}})

    return {
        "model": model_id,
        "messages": [{"role": "user", "content": content}],
        "max_tokens": MAX_TOKENS,
        "temperature": TEMPERATURE,
    }


def redact_body(body: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a request body with inline image payloads elided, for logging."""
    redacted = dict(body)
    messages = []
    for message in body.get("messages", []):
        parts = []
        for part in message.get("content", []):
            if part.get("type") == "image_url" and part["image_url"]["url"].startswith("data:"):
                url = part["image_url"]["url"]
                part = {"type": "image_url", "image_url": {**part["image_url"], "url": f"{url[:32]}...({len(url)} chars)"}}
            parts.append(part)
        messages.append({**message, "content": parts})
    redacted["messages"] = messages
    return redacted


def get_text(payload: Any) -> Optional[str]:
    """Extract ``choices[0].message.content``; None if absent or the payload is not a dict."""
    if not isinstance(payload, dict):
        return None
    try:
        return payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None


def get_error_message(payload: Any) -> Optional[str]:
    """Provider error message from an ``{"error": {...}}`` body, or None if there is no error."""
    if not isinstance(payload, dict) or not payload.get("error"):
        return None
    error = payload["error"]
    if isinstance(error, dict):
        return error.get("message") or "generation failed"
    return str(error)
