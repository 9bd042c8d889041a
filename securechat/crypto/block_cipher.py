import os
import base64
import logging
import binascii
from typing import Callable, Optional, Union

from securechat.core.errors import DecodeError, FormatError, InvalidKey
from securechat.core.logging_config import cipher_logger
from securechat.core.settings import IV_SIZE, ROUNDS, SYMMETRIC_KEY_HEX_LENGTH
from securechat.crypto.round_logic import (
    iv_positions,
    key_sum,
    overlay_iv,
    reverse_transform,
    split_and_mix,
    transform,
    unsplit_and_unmix,
    xor_with_iv,
)

# trace(round_no, stage, byte_count); round_no is 0 outside the round loop
TraceCallback = Callable[[int, str, int], None]


def logging_trace(logger=cipher_logger, level=logging.DEBUG) -> TraceCallback:
    """Build a trace callback that writes every stage to ``logger`` (DEBUG by default)."""
    def _trace(round_no: int, stage: str, byte_count: int):
        logger.log(level, f"round={round_no} | stage={stage} | bytes={byte_count}")
    return _trace


class BlockCipher:
    """
    10-round keyed byte cipher with a random per-message IV.

    Envelope: base64(IV || rounds(IV-whitened plaintext) with the IV
    XOR-overlaid at key-derived positions). Length preserving apart from
    the 16-byte IV prefix.
    """

    def __init__(self, key: str, trace: Optional[TraceCallback] = None):
        if not isinstance(key, str) or len(key) != SYMMETRIC_KEY_HEX_LENGTH:
            raise InvalidKey(
                f"Key must be a {SYMMETRIC_KEY_HEX_LENGTH}-character hex string (128-bit)."
            )
        self._key = key
        self._digest = key_sum(key)
        self._trace = trace

    def _emit(self, round_no: int, stage: str, data: bytes):
        if self._trace is not None:
            self._trace(round_no, stage, len(data))

    # ============================================================
    # ENCRYPT
    # ============================================================
    def encrypt(self, plaintext: Union[bytes, str]) -> str:
        if isinstance(plaintext, str):
            plaintext = plaintext.encode("utf-8")

        iv = os.urandom(IV_SIZE)

        block = xor_with_iv(plaintext, iv)
        self._emit(0, "pre_whiten", block)

        for round_no in range(1, ROUNDS + 1):
            block = transform(block, round_no, self._key)
            self._emit(round_no, "transform", block)
            block = split_and_mix(block, round_no, self._key)
            self._emit(round_no, "split_and_mix", block)

        block = overlay_iv(block, iv, iv_positions(len(block), self._digest))
        envelope = iv + block
        self._emit(0, "embed_iv", envelope)

        return base64.b64encode(envelope).decode("ascii")

    # ============================================================
    # DECRYPT
    # ============================================================
    def decrypt(self, ciphertext: str) -> bytes:
        envelope = b64decode_strict(ciphertext)

        if len(envelope) < IV_SIZE:
            raise FormatError(
                f"Ciphertext envelope is {len(envelope)} bytes, shorter than the {IV_SIZE}-byte IV"
            )

        iv, block = envelope[:IV_SIZE], envelope[IV_SIZE:]
        block = overlay_iv(block, iv, iv_positions(len(block), self._digest))
        self._emit(0, "extract_iv", block)

        for round_no in range(ROUNDS, 0, -1):
            block = unsplit_and_unmix(block, round_no, self._key)
            self._emit(round_no, "unsplit_and_unmix", block)
            block = reverse_transform(block, round_no, self._key)
            self._emit(round_no, "reverse_transform", block)

        plaintext = xor_with_iv(block, iv)
        self._emit(0, "post_whiten", plaintext)
        return plaintext

    def decrypt_text(self, ciphertext: str) -> str:
        """Decrypt and decode UTF-8; undecodable bytes are replaced, never raised."""
        return self.decrypt(ciphertext).decode("utf-8", errors="replace")


def b64decode_strict(text) -> bytes:
    try:
        raw = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise DecodeError(f"Malformed base64 ciphertext: {e}") from e

    # reject encodings with stray bits in the padding so that every
    # altered character changes the decoded envelope
    canonical = base64.b64encode(raw)
    given = text.encode("ascii") if isinstance(text, str) else bytes(text)
    if canonical != given:
        raise DecodeError("Malformed base64 ciphertext: non-canonical encoding")
    return raw


# ============================================================
# FUNCTIONAL API
# ============================================================
def encrypt(key: str, plaintext: Union[bytes, str], trace: Optional[TraceCallback] = None) -> str:
    return BlockCipher(key, trace).encrypt(plaintext)


def decrypt(key: str, ciphertext: str, trace: Optional[TraceCallback] = None) -> bytes:
    return BlockCipher(key, trace).decrypt(ciphertext)
