from __future__ import annotations
import base64
import uuid
from io import BytesIO

import qrcode

from ..core.config import get_settings
settings = get_settings()

PASS_ID_LENGTH = 6


def generate_pass_id() -> str:
    return str(uuid.uuid4())[:PASS_ID_LENGTH].upper()


def verification_url(pass_id: str) -> str:
    return f"{settings.verify_base_url.rstrip('/')}/qr-verify-pass/{pass_id}"


def render_png(data: str) -> bytes:
    img = qrcode.make(data)
    b = BytesIO()
    img.save(b, format="PNG")
    return b.getvalue()


def render_data_url(data: str) -> str:
    """PNG QR code for `data` as a data URL, ready for an <img src>."""
    encoded = base64.b64encode(render_png(data)).decode("ascii")
    return f"data:image/png;base64,{encoded}"
