import base64
import binascii
from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from securechat.core.errors import DecodeError, InvalidKey, SignatureInvalid
from securechat.core.logging_config import key_logger
from securechat.core.settings import KEY_DIR, RSA_KEY_SIZE, RSA_PUBLIC_EXPONENT


# ============================================================
# INTERNAL HELPERS
# ============================================================
def _to_bytes(message) -> bytes:
    return message.encode("utf-8") if isinstance(message, str) else bytes(message)


def _b64decode(text: str, what: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise DecodeError(f"Malformed base64 {what}: {e}") from e


# ============================================================
# KEY GENERATION
# ============================================================
def generate_key_pair(key_size: int = RSA_KEY_SIZE):
    """
    Generate an RSA keypair.

    Returns:
        (public_key, private_key)
    """
    key_logger.info(f"Generating RSA-{key_size} keypair")

    private_key = rsa.generate_private_key(
        public_exponent=RSA_PUBLIC_EXPONENT,
        key_size=key_size,
    )
    return private_key.public_key(), private_key


# ============================================================
# PUBLIC KEY INTERCHANGE
# ============================================================
def export_public_key(public_key) -> str:
    """Base64 of the DER SubjectPublicKeyInfo (one line, safe to send over the socket)."""
    der = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(der).decode("ascii")


def import_public_key(text: str):
    der = _b64decode(text, "public key")
    try:
        public_key = serialization.load_der_public_key(der)
    except ValueError as e:
        raise DecodeError(f"Not a DER SubjectPublicKeyInfo: {e}") from e

    if not isinstance(public_key, rsa.RSAPublicKey):
        raise DecodeError(f"Expected an RSA public key, got {type(public_key).__name__}")
    return public_key


# ============================================================
# SYMMETRIC KEY SEALING
# ============================================================
def seal_symmetric_key(symmetric_key: str, recipient_public_key) -> str:
    """
    Encrypt the short session key text directly with RSA (PKCS#1 v1.5).

    Only valid because the payload is far smaller than the modulus.
    """
    sealed = recipient_public_key.encrypt(_to_bytes(symmetric_key), padding.PKCS1v15())
    key_logger.info("Symmetric key sealed for peer")
    return base64.b64encode(sealed).decode("ascii")


def open_symmetric_key(sealed: str, own_private_key) -> str:
    raw = _b64decode(sealed, "sealed key")
    try:
        opened = own_private_key.decrypt(raw, padding.PKCS1v15())
    except ValueError as e:
        raise DecodeError(f"Sealed key could not be opened: {e}") from e

    key_logger.info("Symmetric key opened")
    return opened.decode("utf-8", errors="replace")


# ============================================================
# SIGN / VERIFY
# ============================================================
def sign(message, private_key) -> str:
    """SHA256withRSA signature, base64. Failures propagate."""
    signature = private_key.sign(
        _to_bytes(message),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )
    return base64.b64encode(signature).decode("ascii")


def verify(message, signature: str, public_key) -> bool:
    """
    True only when ``signature`` is a valid SHA256withRSA signature of
    ``message``. Malformed signatures and unusable keys give False.
    """
    try:
        public_key.verify(
            base64.b64decode(signature, validate=True),
            _to_bytes(message),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        return True
    except (InvalidSignature, binascii.Error, ValueError, TypeError, AttributeError):
        return False


def ensure_signature(message, signature: str, public_key):
    if not verify(message, signature, public_key):
        key_logger.warning("Signature verification FAILED")
        raise SignatureInvalid("Signature does not match the peer public key")


# ============================================================
# IDENTITY PERSISTENCE
# ============================================================
def save_key_pair(private_key, directory=KEY_DIR, password: str = None) -> Path:
    """
    Write private.pem (PKCS8, encrypted when a password is given) and
    public.pem into ``directory``.
    """
    key_dir = Path(directory)
    key_dir.mkdir(parents=True, exist_ok=True)

    if password:
        encryption = serialization.BestAvailableEncryption(password.encode())
    else:
        encryption = serialization.NoEncryption()

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )
    (key_dir / "private.pem").write_bytes(private_pem)

    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    (key_dir / "public.pem").write_bytes(public_pem)

    key_logger.info(f"RSA keypair saved to {key_dir}")
    return key_dir


def load_private_key(directory=KEY_DIR, password: str = None):
    key_path = Path(directory) / "private.pem"
    if not key_path.exists():
        raise FileNotFoundError(f"RSA private key not found in {directory}")

    try:
        return serialization.load_pem_private_key(
            key_path.read_bytes(),
            password=password.encode() if password else None,
        )
    except (ValueError, TypeError) as e:
        raise InvalidKey("Incorrect RSA private key password") from e


def load_public_key(directory=KEY_DIR):
    key_path = Path(directory) / "public.pem"
    if not key_path.exists():
        raise FileNotFoundError(f"RSA public key not found in {directory}")

    return serialization.load_pem_public_key(key_path.read_bytes())
