from __future__ import annotations

import base64
import os

import pytest

from securechat.core.errors import DecodeError, FormatError, InvalidKey
from securechat.crypto.block_cipher import BlockCipher, decrypt, encrypt, logging_trace
from securechat.crypto.key_generator import generate_symmetric_key

KEY = "0123456789abcdef0123456789abcdef"
OTHER_KEY = "00112233445566778899aabbccddeeff"


def test_hello_world_roundtrip():
    ciphertext = encrypt(KEY, "Hello World!")
    assert len(base64.b64decode(ciphertext)) == 16 + 12
    assert decrypt(KEY, ciphertext) == b"Hello World!"


def test_empty_plaintext(cipher):
    ciphertext = cipher.encrypt(b"")
    assert len(base64.b64decode(ciphertext)) == 16
    assert cipher.decrypt(ciphertext) == b""


@pytest.mark.parametrize("length", [1, 2, 3, 7, 8, 15, 16, 17, 63, 64, 65, 1000, 4099])
def test_roundtrip_random_bytes(cipher, length):
    data = os.urandom(length)
    ciphertext = cipher.encrypt(data)
    assert len(base64.b64decode(ciphertext)) == 16 + length
    assert cipher.decrypt(ciphertext) == data


def test_roundtrip_all_byte_values(cipher):
    data = bytes(range(256)) * 3
    assert cipher.decrypt(cipher.encrypt(data)) == data


def test_text_roundtrip_with_unicode_and_newlines(cipher):
    text = "Line 1\nLine 2\tTabbed 🔒 Ünïcödé |pipes||SIG||"
    assert cipher.decrypt_text(cipher.encrypt(text)) == text


def test_same_plaintext_gives_different_ciphertexts(cipher):
    first = cipher.encrypt("Repeat me")
    second = cipher.encrypt("Repeat me")
    assert first != second
    assert cipher.decrypt(first) == cipher.decrypt(second) == b"Repeat me"


def test_iv_is_prepended(cipher):
    envelope = base64.b64decode(cipher.encrypt("some secret message"))
    other = base64.b64decode(cipher.encrypt("some secret message"))
    assert envelope[:16] != other[:16]


def test_wrong_key_does_not_raise_and_does_not_recover_plaintext():
    plaintext = b"The quick brown fox jumps over the lazy dog"
    ciphertext = encrypt(KEY, plaintext)
    recovered = decrypt(OTHER_KEY, ciphertext)
    assert len(recovered) == len(plaintext)
    assert recovered != plaintext
    BlockCipher(OTHER_KEY).decrypt_text(ciphertext)


def test_different_keys_give_different_ciphertext_bodies():
    a = base64.b64decode(encrypt(KEY, b"x" * 50))[16:]
    b = base64.b64decode(encrypt(OTHER_KEY, b"x" * 50))[16:]
    assert a != b


@pytest.mark.parametrize("bad_key", ["", "0123", KEY + "0", KEY[:-1], None, b"0123456789abcdef0123456789abcdef"])
def test_invalid_key_rejected_at_construction(bad_key):
    with pytest.raises(InvalidKey):
        BlockCipher(bad_key)


def test_invalid_key_is_value_error():
    with pytest.raises(ValueError):
        encrypt("short", b"data")


def test_malformed_base64(cipher):
    with pytest.raises(DecodeError):
        cipher.decrypt("not base64 !!!")
    with pytest.raises(DecodeError):
        cipher.decrypt("ÄÖÜ")


def test_non_canonical_base64_rejected(cipher):
    # 34-byte envelope: the last data character carries 4 unused bits
    ciphertext = cipher.encrypt(b"abcdefghijklmnopqr")
    assert ciphertext.endswith("=")
    last = ciphertext.rstrip("=")[-1]
    alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
    tweaked_char = alphabet[alphabet.index(last) ^ 1]
    tweaked = ciphertext.rstrip("=")[:-1] + tweaked_char + "=" * (len(ciphertext) - len(ciphertext.rstrip("=")))
    with pytest.raises(DecodeError):
        cipher.decrypt(tweaked)


def test_short_envelope(cipher):
    with pytest.raises(FormatError):
        cipher.decrypt(base64.b64encode(b"0123456789").decode())


def test_generated_key_is_usable():
    key = generate_symmetric_key()
    assert len(key) == 32
    int(key, 16)
    assert decrypt(key, encrypt(key, b"payload")) == b"payload"


def test_trace_callback_reports_every_stage():
    events = []
    traced = BlockCipher(KEY, trace=lambda r, stage, n: events.append((r, stage, n)))

    ciphertext = traced.encrypt(b"twelve bytes")
    stages = [stage for _, stage, _ in events]
    assert stages[0] == "pre_whiten"
    assert stages.count("transform") == 10
    assert stages.count("split_and_mix") == 10
    assert stages[-1] == "embed_iv"
    assert events[-1][2] == 28
    assert [r for r, stage, _ in events if stage == "transform"] == list(range(1, 11))

    events.clear()
    traced.decrypt(ciphertext)
    stages = [stage for _, stage, _ in events]
    assert stages[0] == "extract_iv"
    assert [r for r, stage, _ in events if stage == "reverse_transform"] == list(range(10, 0, -1))
    assert stages[-1] == "post_whiten"
    assert events[-1][2] == 12


def test_logging_trace_writes_to_logger(caplog):
    import logging

    logger = logging.getLogger("securechat.test.trace")
    with caplog.at_level(logging.DEBUG, logger="securechat.test.trace"):
        BlockCipher(KEY, trace=logging_trace(logger)).encrypt(b"abc")
    assert any("stage=split_and_mix" in r.getMessage() for r in caplog.records)
