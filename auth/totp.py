"""
auth/totp.py -- RFC 6238 time-based one-time passwords (pyotp).

Codes are 6 digits over 30-second steps with HMAC-SHA1, the defaults every
authenticator app understands. verify_code() accepts the current step and
`window` steps either side of it to tolerate clock drift between the server
and the user's phone (window=1 -> +/- 30 s).

Shape check first: anything that is not exactly six ASCII digits is rejected
before any HMAC is computed. pyotp.TOTP.verify() compares codes in constant
time.

Layer rule: no imports from api/, audit/, or inventory/.
"""

from __future__ import annotations

import base64
import io
import logging
import re
from datetime import datetime

import pyotp
import qrcode
import qrcode.image.svg

logger = logging.getLogger("inventory.auth")

CODE_DIGITS = 6
STEP_SECONDS = 30

# 32 base32 characters = 160 bits, the RFC 4226 recommended secret length.
_SECRET_LENGTH = 32

_CODE_RE = re.compile(r"[0-9]{6}")


def generate_secret(label: str, issuer: str) -> tuple[str, str]:
    """Return (base32 secret, otpauth:// provisioning URI) for a new enrollment.

    label is the account name shown in the authenticator app (the email).
    """
    secret = pyotp.random_base32(length=_SECRET_LENGTH)
    uri = pyotp.TOTP(secret, digits=CODE_DIGITS, interval=STEP_SECONDS).provisioning_uri(
        name=label, issuer_name=issuer
    )
    return secret, uri


def provisioning_qr_data_url(uri: str) -> str:
    """Render the provisioning URI as a scannable QR code data URL (SVG).

    The SVG factory needs no imaging library, so the payload can be dropped
    straight into an <img src=...> by the front end.
    """
    image = qrcode.make(uri, image_factory=qrcode.image.svg.SvgPathImage)
    buf = io.BytesIO()
    image.save(buf)
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def is_well_formed_code(code: object) -> bool:
    return isinstance(code, str) and _CODE_RE.fullmatch(code) is not None


def verify_code(secret: str | None, code: object, window: int = 1, for_time: datetime | int | None = None) -> bool:
    """Return True if code matches secret within +/- window steps of for_time.

    for_time defaults to now. A missing or undecodable secret verifies
    nothing; a malformed code is rejected without computing any HMAC.
    """
    if not secret or not is_well_formed_code(code):
        return False
    totp = pyotp.TOTP(secret, digits=CODE_DIGITS, interval=STEP_SECONDS)
    try:
        return totp.verify(code, for_time=for_time, valid_window=window)
    except (ValueError, TypeError):
        # binascii.Error (bad base32) is a ValueError subclass.
        logger.warning("TOTP verification skipped: stored secret could not be decoded")
        return False
