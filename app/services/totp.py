"""
TOTP engine (RFC 6238) sobre pyotp.

Generación de secretos, URI de aprovisionamiento, QR en data URL y
verificación con ventana de tolerancia. La verificación no guarda estado:
la protección contra replay la hace el servicio 2FA con el step devuelto
por `match_step`.
"""
import base64
import time
from io import BytesIO

import pyotp
import qrcode
from pyotp.utils import strings_equal

from app.core.config import settings

SUPPORTED_DIGITS = (6, 8)


def generate_secret() -> str:
    # 32 chars base32 = 160 bits
    return pyotp.random_base32(length=32)


def build_provisioning_uri(
    account_label: str,
    secret: str,
    issuer: str,
    digits: int = 6,
    period: int = 30,
) -> str:
    # pyotp se encarga del percent-encoding del label y del issuer
    totp = pyotp.TOTP(secret, digits=digits, interval=period)
    return totp.provisioning_uri(name=account_label, issuer_name=issuer)


def render_qr_code(uri: str) -> str:
    """QR PNG negro sobre blanco como data URL (`data:image/png;base64,...`)."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=6,
        border=2,
    )
    qr.add_data(uri)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def time_step(period: int, for_time: float | None = None) -> int:
    now = time.time() if for_time is None else for_time
    return int(now // period)


def match_step(
    token: str,
    secret: str,
    digits: int,
    period: int,
    *,
    window: int | None = None,
    for_time: float | None = None,
) -> int | None:
    """
    Devuelve el time-step que coincide con `token` dentro de la ventana
    [step - window, step + window], o None. Falla cerrado ante secreto o
    parámetros inválidos.
    """
    if window is None:
        window = settings.TOTP_VALID_WINDOW
    if digits not in SUPPORTED_DIGITS or period <= 0 or not secret:
        return None
    token = (token or "").replace(" ", "")
    if len(token) != digits or not token.isdigit():
        return None

    try:
        totp = pyotp.TOTP(secret, digits=digits, interval=period)
        current = time_step(period, for_time)
        for offset in range(-window, window + 1):
            step = current + offset
            if step < 0:
                continue
            if strings_equal(token, totp.generate_otp(step)):
                return step
    except (ValueError, TypeError):
        # base32 inválido u otro secreto malformado
        return None
    return None


def verify(
    token: str,
    secret: str,
    digits: int,
    period: int,
    *,
    window: int | None = None,
    for_time: float | None = None,
) -> bool:
    return match_step(token, secret, digits, period, window=window, for_time=for_time) is not None


def token_at(secret: str, for_time: float, digits: int = 6, period: int = 30) -> str:
    return pyotp.TOTP(secret, digits=digits, interval=period).generate_otp(time_step(period, for_time))
