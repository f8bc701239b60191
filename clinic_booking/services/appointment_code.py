"""Human-facing appointment codes of the form ``AAA-NNNNNN-BBB``.

The code is printed on confirmation screens and encoded into QR images that
have already been handed to patients, so the shape is a fixed contract:

    ^[A-Z0-9]{3}-\\d{6}-[A-Z0-9]{3}$

Codes are derived from the appointment's and the patient's store ids and are
fully deterministic: the same pair always yields the same code.
"""

import hashlib
import re

from ..core.exceptions import InvalidArgumentError

APPOINTMENT_CODE_PATTERN = re.compile(r"^[A-Z0-9]{3}-[0-9]{6}-[A-Z0-9]{3}$")

_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_SEGMENT_LENGTH = 3


def _base36(data: bytes) -> str:
    number = int.from_bytes(data, "big")
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_ALPHABET[remainder])
    return "".join(reversed(digits)) or "0"


def _alphanumerics(identifier: str) -> str:
    return "".join(ch for ch in identifier.upper() if ch in _ALPHABET)


def _segment(identifier: str, from_end: bool) -> str:
    """Three recognisable characters from one end of an id.

    Ids with fewer than three ASCII alphanumerics are padded from a digest of
    the whole id.
    """
    chars = _alphanumerics(identifier)
    chars = chars[-_SEGMENT_LENGTH:] if from_end else chars[:_SEGMENT_LENGTH]
    if len(chars) < _SEGMENT_LENGTH:
        padding = _base36(hashlib.sha256(identifier.encode("utf-8")).digest())
        missing = _SEGMENT_LENGTH - len(chars)
        chars = padding[:missing] + chars if from_end else chars + padding[:missing]
    return chars


def _check_identifier(name: str, value) -> str:
    if not isinstance(value, str):
        raise InvalidArgumentError(f"{name} must be a string")
    if not value.strip():
        raise InvalidArgumentError(f"{name} must not be empty")
    return value


def generate_appointment_code(appointment_id: str, patient_id: str) -> str:
    """Derive the appointment code for an (appointment, patient) id pair.

    The first segment comes from the head of the appointment id, the last
    from the tail of the patient id, and the six digits from a SHA-256 over
    both ids.

    Raises:
        InvalidArgumentError: if either id is not a non-blank string.
    """
    appointment_id = _check_identifier("appointment_id", appointment_id)
    patient_id = _check_identifier("patient_id", patient_id)

    digest = hashlib.sha256(
        appointment_id.encode("utf-8") + b"\x00" + patient_id.encode("utf-8")
    ).digest()
    digits = int.from_bytes(digest[:8], "big") % 1_000_000

    return f"{_segment(appointment_id, from_end=False)}-{digits:06d}-{_segment(patient_id, from_end=True)}"


def is_appointment_code(value: str) -> bool:
    return isinstance(value, str) and bool(APPOINTMENT_CODE_PATTERN.fullmatch(value))
