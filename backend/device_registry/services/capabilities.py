import json
from collections.abc import Mapping
from typing import Any

EMPTY_DOCUMENT = "{}"


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def normalize_capabilities(value: Any) -> str:
    """Return the serialized text to store for a capabilities document.

    Text is checked and kept verbatim so a caller reads back exactly what it
    wrote. Mappings are serialized with ``json.dumps``. Either way the
    document must decode to a JSON object.
    """
    if isinstance(value, (str, bytes, bytearray)):
        text = value.decode("utf-8") if isinstance(value, (bytes, bytearray)) else value
        try:
            decoded = json.loads(text, parse_constant=_reject_constant)
        except ValueError as exc:
            raise ValueError(f"capabilities is not valid JSON: {exc}") from exc
        if not isinstance(decoded, dict):
            raise ValueError("capabilities must be a JSON object")
        return text
    if isinstance(value, Mapping):
        try:
            return json.dumps(dict(value), allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"capabilities is not serializable: {exc}") from exc
    raise ValueError(f"capabilities must be JSON text or a mapping, got {type(value).__name__}")


def parse_capabilities(text: str) -> dict:
    """Decode a stored capabilities document."""
    return json.loads(text or EMPTY_DOCUMENT)
