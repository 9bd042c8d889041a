import hashlib
import hmac

def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()

def checksum_matches(data: bytes, expected: str) -> bool:
    """Constant-time compare of sha256(data) against a hex digest (case-insensitive)."""
    return hmac.compare_digest(sha256_bytes(data).encode("ascii"), expected.lower().encode("utf-8"))
