"""
Schema-tolerant field extraction.

Upstream responses are not contractually fixed, so every value the
workflows need is described as a *fallback chain*: an ordered list of
accessors, each a plain function ``payload -> value | None``.  The first
accessor that yields a non-empty value wins; later accessors are never
called.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

Accessor = Callable[[Any], Any]


def is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, tuple, dict)) and not value)


def dig(payload: Any, *keys: str | int) -> Any:
    """Walk *payload* along *keys*; ``None`` as soon as a step is missing."""
    node = payload
    for key in keys:
        if isinstance(key, int):
            if not isinstance(node, (list, tuple)) or not -len(node) <= key < len(node):
                return None
            node = node[key]
        else:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        if node is None:
            return None
    return node


def path(*keys: str | int) -> Accessor:
    """Build an accessor for a fixed nested path."""

    def _accessor(payload: Any) -> Any:
        return dig(payload, *keys)

    _accessor.__qualname__ = "path(" + ".".join(str(k) for k in keys) + ")"
    return _accessor


def first_present(payload: Any, chain: Iterable[Accessor]) -> Any:
    for accessor in chain:
        value = accessor(payload)
        if not is_empty(value):
            return value
    return None


# ── Chains used by the workflows ──────────────────────────────────────

ENCODED_IMAGE = (path("imagePanels", 0, "generatedImages", 0, "encodedImage"),)

IMAGE_UPLOAD_MEDIA_ID = (
    path("result", "data", "json", "result", "uploadMediaGenerationId"),
    path("mediaGenerationId", "mediaGenerationId"),
    path("mediaId"),
)

VIDEO_UPLOAD_MEDIA_ID = (
    path("mediaGenerationId", "mediaGenerationId"),
    path("mediaId"),
)

VIDEO_URL = (
    path("operation", "metadata", "video", "fifeUrl"),
    path("metadata", "video", "fifeUrl"),
    path("result", "generatedVideo", 0, "fifeUrl"),
    path("result", "generatedVideos", 0, "fifeUrl"),
    path("video", "fifeUrl"),
    path("fifeUrl"),
)


def _string_error(payload: Any) -> Any:
    error = dig(payload, "error")
    return error if isinstance(error, str) else None


ERROR_MESSAGE = (
    path("error", "message"),
    _string_error,
    path("message"),
)


def error_message(payload: Any, default: str) -> str:
    """Best-effort human-readable message from an error response body."""
    message = first_present(payload, ERROR_MESSAGE)
    return str(message) if message is not None else default
