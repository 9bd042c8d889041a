"""
Typed failures raised by the cipher, key exchange and file transfer layers.

Nothing in the core corrects or masks these; the caller (transport, UI)
decides whether to drop the connection, warn about tampering or retry.
"""


class SecureChatError(Exception):
    """Base class for every failure raised by securechat."""


class InvalidKey(SecureChatError, ValueError):
    """Symmetric key has the wrong shape, or a private key cannot be loaded."""


class DecodeError(SecureChatError, ValueError):
    """Base64 (or DER) input could not be decoded."""


class FormatError(SecureChatError, ValueError):
    """Decoded data or a wire record does not have the expected layout."""


class UnsupportedFile(SecureChatError):
    """File is missing, not a regular file, too large, or has an unusable name."""


class ChunkCountMismatch(SecureChatError):
    """Number of received chunks differs from the metadata."""


class ChecksumMismatch(SecureChatError):
    """Reassembled content does not match what the metadata attests.

    Treated as corruption or tampering.
    """


class ChunkSizeMismatch(ChecksumMismatch):
    """A decrypted chunk differs in length from its recorded original size."""


class FileSizeMismatch(ChecksumMismatch):
    """Reassembled file differs in length from the metadata file size."""


class SignatureInvalid(SecureChatError):
    """Signature does not verify against the peer public key."""
