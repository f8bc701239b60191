import io
import logging
from urllib.parse import quote

import qrcode

from ..core.config import settings
from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def verification_url(code: str) -> str:
    """URL staff scanners open; the normalizer reads ``code`` back out of it."""
    separator = "&" if "?" in settings.VERIFY_BASE_URL else "?"
    return f"{settings.VERIFY_BASE_URL}{separator}code={quote(code)}"


def generate_qr_png(data: str, size: int = 10) -> bytes:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=size,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def render_qr_png(appointment) -> bytes:
    if not appointment.appointment_code:
        raise ValidationError("Appointment has no code yet")
    logger.debug(f"Rendering QR for appointment {appointment.id}")
    return generate_qr_png(verification_url(appointment.appointment_code))
