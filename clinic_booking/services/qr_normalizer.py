"""Turn whatever a QR decoder produced into an appointment code string.

Scanner libraries disagree on their result shape: a plain string, an object
carrying ``text``, ``data`` or ``rawValue``, or a list of any of those. The raw
value is classified into a small tagged union first and then resolved to
text, after which the code is extracted from that text.

Normalisation never raises. Input that cannot be understood is passed through
as a string and the lookup step reports it as not found.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Union
from urllib.parse import parse_qs, urlsplit

logger = logging.getLogger(__name__)

# Keys probed on object payloads, in precedence order
PAYLOAD_TEXT_KEYS = ("text", "data", "rawValue")

_CODE_PARAM = re.compile(r"code=([^&\"'\s]+)")


@dataclass(frozen=True)
class TextPayload:
    text: str


@dataclass(frozen=True)
class SequencePayload:
    items: tuple


@dataclass(frozen=True)
class KeyedPayload:
    fields: Mapping[str, Any]


@dataclass(frozen=True)
class OtherPayload:
    value: Any


ScanPayload = Union[TextPayload, SequencePayload, KeyedPayload, OtherPayload]


def classify(raw: Any) -> ScanPayload:
    if isinstance(raw, str):
        return TextPayload(raw)
    if isinstance(raw, Mapping):
        return KeyedPayload(raw)
    if isinstance(raw, Sequence) and not isinstance(raw, (bytes, bytearray)):
        return SequencePayload(tuple(raw))
    return OtherPayload(raw)


def _serialize(value: Any) -> str:
    try:
        return json.dumps(value, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return str(value)


def _stringify(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    try:
        return str(value)
    except Exception:  # normalisation never raises
        logger.warning("Unprintable scan payload of type %s", type(value).__name__)
        return ""


def resolve_text(payload: ScanPayload, depth: int = 0) -> str:
    """Resolve a classified payload to its text."""
    if depth > 16:
        return ""

    if isinstance(payload, TextPayload):
        return payload.text

    if isinstance(payload, SequencePayload):
        if not payload.items:
            return ""
        return resolve_text(classify(payload.items[0]), depth + 1)

    if isinstance(payload, KeyedPayload):
        for key in PAYLOAD_TEXT_KEYS:
            value = payload.fields.get(key)
            if value is None or value == "":
                continue
            return resolve_text(classify(value), depth + 1)
        return _serialize(dict(payload.fields))

    return _stringify(payload.value)


def extract_code(text: str) -> str:
    """Pull the appointment code out of scanned text."""
    if "code=" in text:
        match = _CODE_PARAM.search(text)
        return match.group(1) if match else text

    if text.startswith("http") or "://" in text:
        try:
            query = parse_qs(urlsplit(text).query)
        except ValueError:
            logger.debug("Scanned text looks like a URL but does not parse: %r", text)
            return text
        codes = query.get("code")
        return codes[0] if codes else text

    # Canonical codes and unrecognised text both pass through unchanged
    return text


def normalize_scan(raw: Any) -> str:
    """Canonical appointment code (or the raw text) for a decoder result."""
    text = resolve_text(classify(raw)).strip()
    code = extract_code(text)
    logger.debug("Normalized scan %r -> %r", raw, code)
    return code
