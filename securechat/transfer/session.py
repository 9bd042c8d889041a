"""
Per-connection message handling.

A SecureSession turns outgoing chat text and files into framed lines and
consumes incoming lines, tracking each incoming file through
RECEIVING -> VERIFYING -> COMPLETE | REJECTED. It never touches sockets:
the transport feeds it lines from its receive loop and forwards whatever
it returns to the display queue.

Chunk frames carry no filename, so incoming files are received one at a
time; a chunk that several open transfers could take is rejected.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Union

from securechat.core.errors import FormatError, SecureChatError
from securechat.core.logging_config import error_logger, session_logger
from securechat.crypto.block_cipher import BlockCipher, TraceCallback
from securechat.crypto.key_generator import generate_symmetric_key
from securechat.crypto.rsa_utils import (
    ensure_signature,
    import_public_key,
    open_symmetric_key,
    seal_symmetric_key,
    sign,
)
from securechat.transfer.file_transfer import FileTransferHandler
from securechat.transfer.framing import (
    ChatFrame,
    FileChunkFrame,
    FileEndFrame,
    FileStartFrame,
    encode_chat_message,
    encode_file_chunk,
    encode_file_end,
    encode_file_start,
    parse_line,
)
from securechat.transfer.metadata import EncryptedChunk, FileMetadata


class TransferState(enum.Enum):
    IDLE = "idle"
    # outgoing
    PREPARED = "prepared"
    SENT = "sent"
    # incoming
    RECEIVING = "receiving"
    VERIFYING = "verifying"
    COMPLETE = "complete"
    REJECTED = "rejected"


@dataclass(slots=True)
class IncomingTransfer:
    metadata: FileMetadata
    chunks: list = field(default_factory=list)
    state: TransferState = TransferState.RECEIVING

    @property
    def next_index(self) -> int:
        return len(self.chunks)

    def accepts(self, chunk: EncryptedChunk) -> bool:
        return (
            self.state is TransferState.RECEIVING
            and chunk.total_chunks == self.metadata.total_chunks
            and chunk.index == self.next_index
        )


@dataclass(frozen=True, slots=True)
class ReceivedMessage:
    text: str


@dataclass(frozen=True, slots=True)
class ReceivedFile:
    metadata: FileMetadata
    data: bytes


Received = Union[ReceivedMessage, ReceivedFile]


class SecureSession:
    def __init__(self, symmetric_key: str, own_private_key, peer_public_key,
                 trace: Optional[TraceCallback] = None):
        self.cipher = BlockCipher(symmetric_key, trace)
        self.files = FileTransferHandler(self.cipher)
        self.own_private_key = own_private_key
        self.peer_public_key = peer_public_key

        self._incoming: dict[str, IncomingTransfer] = {}
        self._finished: dict[str, TransferState] = {}
        self._outgoing: dict[str, TransferState] = {}

    # ============================================================
    # KEY BOOTSTRAP
    # ============================================================
    @classmethod
    def initiate(cls, own_private_key, peer_public_key_text: str, trace=None):
        """
        Side that picks the session key.

        Returns:
            (session, sealed_key) - sealed_key goes to the peer as one line.
        """
        peer_public_key = import_public_key(peer_public_key_text)
        symmetric_key = generate_symmetric_key()
        sealed = seal_symmetric_key(symmetric_key, peer_public_key)

        session_logger.info("Session key generated and sealed for peer")
        return cls(symmetric_key, own_private_key, peer_public_key, trace), sealed

    @classmethod
    def accept(cls, own_private_key, peer_public_key_text: str, sealed_key: str, trace=None):
        peer_public_key = import_public_key(peer_public_key_text)
        symmetric_key = open_symmetric_key(sealed_key, own_private_key)

        session_logger.info("Session key received from peer")
        return cls(symmetric_key, own_private_key, peer_public_key, trace)

    # ============================================================
    # CHAT
    # ============================================================
    def seal_message(self, text: str) -> str:
        ciphertext = self.cipher.encrypt(text)
        signature = sign(text, self.own_private_key)
        return encode_chat_message(ciphertext, signature)

    def open_message(self, ciphertext: str, signature: str) -> ReceivedMessage:
        text = self.cipher.decrypt_text(ciphertext)
        ensure_signature(text, signature, self.peer_public_key)
        return ReceivedMessage(text)

    # ============================================================
    # OUTGOING FILES
    # ============================================================
    def send_file(self, path) -> list:
        """Frames for one file: FILE_START, every FILE_CHUNK, signed FILE_END."""
        metadata, chunks = self.files.prepare(path)
        self._outgoing[metadata.filename] = TransferState.PREPARED

        lines = [encode_file_start(metadata)]
        lines.extend(encode_file_chunk(chunk) for chunk in chunks)
        lines.append(encode_file_end(metadata.checksum, sign(metadata.checksum, self.own_private_key)))

        self._outgoing[metadata.filename] = TransferState.SENT
        session_logger.info(f"File framed for sending | {metadata} | {len(lines)} lines")
        return lines

    def outgoing_state(self, filename: str) -> TransferState:
        return self._outgoing.get(filename, TransferState.IDLE)

    # ============================================================
    # INCOMING
    # ============================================================
    def transfer_state(self, filename: str) -> TransferState:
        transfer = self._incoming.get(filename)
        if transfer is not None:
            return transfer.state
        return self._finished.get(filename, TransferState.IDLE)

    def handle_line(self, line: str) -> Optional[Received]:
        """
        Consume one received line.

        Returns a ReceivedMessage for chat text, a ReceivedFile once a
        transfer has been verified, None for intermediate file frames.
        """
        frame = parse_line(line)

        if isinstance(frame, FileStartFrame):
            self._start_transfer(frame.metadata)
            return None
        if isinstance(frame, FileChunkFrame):
            self._add_chunk(frame.chunk)
            return None
        if isinstance(frame, FileEndFrame):
            return self._finish_transfer(frame.checksum, frame.signature)
        if isinstance(frame, ChatFrame):
            return self.open_message(frame.ciphertext, frame.signature)

        raise FormatError(f"Unhandled frame {type(frame).__name__}")

    def _start_transfer(self, metadata: FileMetadata):
        self._finished.pop(metadata.filename, None)
        self._incoming[metadata.filename] = IncomingTransfer(metadata)
        session_logger.info(f"Receiving {metadata}")

    def _add_chunk(self, chunk: EncryptedChunk):
        # chunk frames carry no filename, so they can only be routed while a
        # single receiving transfer expects this index
        candidates = [t for t in self._incoming.values() if t.accepts(chunk)]
        if not candidates:
            raise FormatError(f"{chunk} does not belong to any transfer in progress")
        if len(candidates) > 1:
            names = ", ".join(t.metadata.filename for t in candidates)
            raise FormatError(f"{chunk} matches several transfers in progress ({names})")

        candidates[0].chunks.append(chunk)

    def _finish_transfer(self, checksum: str, signature: str) -> ReceivedFile:
        transfer = next(
            (t for t in self._incoming.values()
             if t.state is TransferState.RECEIVING and t.metadata.checksum == checksum),
            None,
        )
        if transfer is None:
            raise FormatError("FILE_END for a file that is not being received")

        metadata = transfer.metadata
        transfer.state = TransferState.VERIFYING

        try:
            # metadata travels in clear; its checksum is only trusted once signed
            ensure_signature(checksum, signature, self.peer_public_key)
            data = self.files.reassemble(metadata, transfer.chunks)
        except SecureChatError as e:
            self._close_transfer(metadata.filename, TransferState.REJECTED)
            error_logger.error(f"REJECTED {metadata.filename} | {type(e).__name__}: {e}")
            raise

        self._close_transfer(metadata.filename, TransferState.COMPLETE)
        session_logger.info(f"Received {metadata} | VERIFIED")
        return ReceivedFile(metadata, data)

    def _close_transfer(self, filename: str, state: TransferState):
        self._incoming.pop(filename, None)
        self._finished[filename] = state
