from __future__ import annotations

import os

import pytest

from securechat.core.errors import ChecksumMismatch, FormatError, SignatureInvalid
from securechat.crypto.rsa_utils import export_public_key, sign
from securechat.transfer.framing import SIG_SEPARATOR
from securechat.transfer.session import (
    ReceivedFile,
    ReceivedMessage,
    SecureSession,
    TransferState,
)


@pytest.fixture
def pair(alice_keys, bob_keys):
    """Alice initiates, Bob accepts the sealed key."""
    alice_public, alice_private = alice_keys
    bob_public, bob_private = bob_keys

    alice, sealed = SecureSession.initiate(alice_private, export_public_key(bob_public))
    bob = SecureSession.accept(bob_private, export_public_key(alice_public), sealed)
    return alice, bob


@pytest.fixture
def photo(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(os.urandom(5000))
    return path


def _flip(text: str, index: int) -> str:
    return text[:index] + chr(ord(text[index]) ^ 1) + text[index + 1:]


def test_bootstrap_shares_one_key(pair):
    alice, bob = pair
    assert bob.cipher.decrypt(alice.cipher.encrypt(b"ping")) == b"ping"


def test_chat_roundtrip_both_ways(pair):
    alice, bob = pair
    assert bob.handle_line(alice.seal_message("hi Bob")) == ReceivedMessage("hi Bob")
    assert alice.handle_line(bob.seal_message("hi Alice ✓")) == ReceivedMessage("hi Alice ✓")


def test_chat_with_forged_signature_rejected(pair, alice_keys):
    alice, bob = pair
    line = alice.seal_message("pay 10")
    ciphertext, _ = line.split(SIG_SEPARATOR)
    forged = ciphertext + SIG_SEPARATOR + sign("pay 1000", alice_keys[1])

    with pytest.raises(SignatureInvalid):
        bob.handle_line(forged)


def test_chat_signed_by_wrong_party_rejected(pair):
    alice, bob = pair
    # Bob's own message is not signed with Alice's key
    with pytest.raises(SignatureInvalid):
        bob.handle_line(bob.seal_message("spoof"))


def test_file_roundtrip(pair, photo):
    alice, bob = pair
    lines = alice.send_file(photo)
    assert alice.outgoing_state("photo.png") is TransferState.SENT
    assert lines[0].startswith("FILE_START||photo.png|5000|image/png|1|")
    assert lines[-1].startswith("FILE_END||")

    results = [bob.handle_line(line) for line in lines]

    assert results[:-1] == [None] * (len(lines) - 1)
    received = results[-1]
    assert isinstance(received, ReceivedFile)
    assert received.data == photo.read_bytes()
    assert received.metadata.filename == "photo.png"
    assert bob.transfer_state("photo.png") is TransferState.COMPLETE


def test_receiving_state_while_chunks_arrive(pair, photo):
    alice, bob = pair
    lines = alice.send_file(photo)
    for line in lines[:-1]:
        bob.handle_line(line)
    assert bob.transfer_state("photo.png") is TransferState.RECEIVING


def test_empty_file_transfer(pair, tmp_path):
    alice, bob = pair
    path = tmp_path / "empty.txt"
    path.write_bytes(b"")

    lines = alice.send_file(path)
    assert len(lines) == 2
    bob.handle_line(lines[0])
    received = bob.handle_line(lines[1])
    assert received.data == b""


def test_file_end_with_bad_signature_rejects_transfer(pair, photo, alice_keys):
    alice, bob = pair
    lines = alice.send_file(photo)
    head, _ = lines[-1].split(SIG_SEPARATOR)
    lines[-1] = head + SIG_SEPARATOR + sign("something else", alice_keys[1])

    for line in lines[:-1]:
        bob.handle_line(line)
    with pytest.raises(SignatureInvalid):
        bob.handle_line(lines[-1])
    assert bob.transfer_state("photo.png") is TransferState.REJECTED


def test_tampered_chunk_rejects_transfer(pair, photo):
    alice, bob = pair
    lines = alice.send_file(photo)
    lines[1] = _flip(lines[1], len(lines[1]) // 2)

    for line in lines[:-1]:
        bob.handle_line(line)
    with pytest.raises(ChecksumMismatch):
        bob.handle_line(lines[-1])
    assert bob.transfer_state("photo.png") is TransferState.REJECTED


def test_transfer_can_be_retried_after_rejection(pair, photo):
    alice, bob = pair
    bad = alice.send_file(photo)
    bad[1] = _flip(bad[1], len(bad[1]) // 2)
    for line in bad[:-1]:
        bob.handle_line(line)
    with pytest.raises(ChecksumMismatch):
        bob.handle_line(bad[-1])

    good = alice.send_file(photo)
    results = [bob.handle_line(line) for line in good]
    assert results[-1].data == photo.read_bytes()
    assert bob.transfer_state("photo.png") is TransferState.COMPLETE


def test_chunk_without_transfer_is_format_error(pair, photo):
    alice, bob = pair
    lines = alice.send_file(photo)
    with pytest.raises(FormatError):
        bob.handle_line(lines[1])


def test_file_end_without_transfer_is_format_error(pair, photo):
    alice, bob = pair
    lines = alice.send_file(photo)
    with pytest.raises(FormatError):
        bob.handle_line(lines[-1])


def test_unknown_names_are_idle(pair):
    alice, bob = pair
    assert bob.transfer_state("nothing.bin") is TransferState.IDLE
    assert alice.outgoing_state("nothing.bin") is TransferState.IDLE


def test_chunk_matching_two_open_transfers_is_rejected(pair, tmp_path):
    alice, bob = pair
    first = tmp_path / "first.txt"
    second = tmp_path / "second.txt"
    first.write_bytes(b"first file")
    second.write_bytes(b"second file")

    first_lines = alice.send_file(first)
    second_lines = alice.send_file(second)
    bob.handle_line(first_lines[0])
    bob.handle_line(second_lines[0])

    with pytest.raises(FormatError):
        bob.handle_line(first_lines[1])


def test_files_received_one_after_another(pair, tmp_path):
    alice, bob = pair
    for name in ("one.txt", "two.txt"):
        path = tmp_path / name
        path.write_bytes(name.encode() * 10)
        results = [bob.handle_line(line) for line in alice.send_file(path)]
        assert results[-1].data == path.read_bytes()
