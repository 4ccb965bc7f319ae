"""
auth/otp.py -- TOTP primitives: secrets, provisioning URIs, QR codes, code checks.

pyotp implements RFC 4226/6238 (HMAC-SHA1, dynamic truncation, 6 zero-padded
digits, 30-second steps). This module only adds what the protocol needs on
top of it:

  matching_step(): like TOTP.verify(valid_window=...) but returns WHICH time
      step matched, so the caller can record it for replay protection.

  render_qr_svg(): SVG output through qrcode's pure-Python SVG factory, so no
      imaging library is required.

Layer rule: no imports from api/, web/, or vault/.
"""

from __future__ import annotations

import base64
import io
import re
from typing import Optional

import pyotp
import qrcode
import qrcode.image.svg
from pyotp.utils import strings_equal

INTERVAL = 30
DIGITS = 6

_CODE_RE = re.compile(r"^\d{6}$")


def generate_secret() -> str:
    """Return a new base32 secret: 32 characters, 160 bits of entropy."""
    return pyotp.random_base32()


def provisioning_uri(secret: str, email: str, issuer: str) -> str:
    """Build the otpauth://totp/ URI authenticator apps import."""
    totp = pyotp.TOTP(secret, digits=DIGITS, interval=INTERVAL)
    return totp.provisioning_uri(name=email, issuer_name=issuer)


def render_qr_svg(uri: str) -> bytes:
    """Render uri as an SVG QR code and return the document bytes."""
    img = qrcode.make(uri, image_factory=qrcode.image.svg.SvgPathImage)
    buf = io.BytesIO()
    img.save(buf)
    return buf.getvalue()


def svg_data_uri(svg: bytes) -> str:
    return "data:image/svg+xml;base64," + base64.b64encode(svg).decode("ascii")


def time_step(for_time: float) -> int:
    """floor(unix_time / 30)."""
    return int(for_time // INTERVAL)


def normalize_code(code: str) -> Optional[str]:
    """Strip whitespace; return None unless exactly six ASCII digits remain."""
    cleaned = "".join(code.split())
    return cleaned if _CODE_RE.match(cleaned) else None


def code_at_step(secret: str, step: int) -> str:
    return pyotp.TOTP(secret, digits=DIGITS, interval=INTERVAL).generate_otp(step)


def matching_step(secret: str, code: str, for_time: float, window: int = 1) -> Optional[int]:
    """Return the time step whose code equals code, or None.

    Checks the current step and `window` steps on either side, so with the
    default window of 1 at most three candidates are tested. Every candidate
    is compared in constant time.
    """
    cleaned = normalize_code(code)
    if cleaned is None:
        return None
    current = time_step(for_time)
    matched: Optional[int] = None
    for offset in range(-window, window + 1):
        if strings_equal(cleaned, code_at_step(secret, current + offset)):
            matched = current + offset
    return matched
