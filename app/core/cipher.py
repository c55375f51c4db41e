# app/core/cipher.py
"""
Cifrado simétrico de los secretos TOTP en reposo.

Usa Fernet (AES-128-CBC + HMAC-SHA256). La clave Fernet se deriva con
PBKDF2 a partir de ENCRYPTION_KEY, así cualquier string sirve como clave
de configuración. Como Fernet autentica el mensaje, cambiar la clave hace
fallar `decrypt` con DecryptionError en lugar de devolver basura.
"""
import base64
import logging

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from app.core.config import settings

logger = logging.getLogger(__name__)

# solo para desarrollo: en producción ENCRYPTION_KEY es obligatoria
UNSAFE_FALLBACK_KEY = "your-secret-encryption-key-here"

_KDF_SALT = b"totp-secret-cipher"
_KDF_ITERATIONS = 200_000


class DecryptionError(Exception):
    """El texto cifrado está malformado o fue cifrado con otra clave."""


def _derive_key(passphrase: str) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_KDF_SALT,
        iterations=_KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))


class SecretCipher:
    def __init__(self, key: str | None = None):
        if not key:
            logger.warning("ENCRYPTION_KEY not set; using the insecure built-in fallback key")
            key = UNSAFE_FALLBACK_KEY
        self._fernet = Fernet(_derive_key(key))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError, ValueError, TypeError) as exc:
            raise DecryptionError("could not decrypt stored secret") from exc


_cipher: SecretCipher | None = None

def get_cipher() -> SecretCipher:
    global _cipher
    if _cipher is None:
        _cipher = SecretCipher(settings.ENCRYPTION_KEY)
    return _cipher
