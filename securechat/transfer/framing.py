"""
Line framing shared by the chat and file transfer traffic.

One frame per line:

    FILE_START||<metadata record>
    FILE_CHUNK||<chunk record>
    FILE_END||<checksum>||SIG||<signature>
    <ciphertext>||SIG||<signature>          (chat message)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from securechat.core.errors import FormatError
from securechat.transfer.metadata import EncryptedChunk, FileMetadata

FILE_START = "FILE_START||"
FILE_CHUNK = "FILE_CHUNK||"
FILE_END = "FILE_END||"
SIG_SEPARATOR = "||SIG||"


@dataclass(frozen=True, slots=True)
class FileStartFrame:
    metadata: FileMetadata


@dataclass(frozen=True, slots=True)
class FileChunkFrame:
    chunk: EncryptedChunk


@dataclass(frozen=True, slots=True)
class FileEndFrame:
    checksum: str
    signature: str


@dataclass(frozen=True, slots=True)
class ChatFrame:
    ciphertext: str
    signature: str


Frame = Union[FileStartFrame, FileChunkFrame, FileEndFrame, ChatFrame]


def encode_file_start(metadata: FileMetadata) -> str:
    return FILE_START + metadata.to_record()


def encode_file_chunk(chunk: EncryptedChunk) -> str:
    return FILE_CHUNK + chunk.to_record()


def encode_file_end(checksum: str, signature: str) -> str:
    return FILE_END + checksum + SIG_SEPARATOR + signature


def encode_chat_message(ciphertext: str, signature: str) -> str:
    return ciphertext + SIG_SEPARATOR + signature


def _split_signed(body: str, what: str):
    parts = body.split(SIG_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise FormatError(f"Malformed {what}: expected '<payload>{SIG_SEPARATOR}<signature>'")
    return parts[0], parts[1]


def parse_line(line: str) -> Frame:
    line = line.rstrip("\r\n")

    if line.startswith(FILE_START):
        return FileStartFrame(FileMetadata.from_record(line[len(FILE_START):]))

    if line.startswith(FILE_CHUNK):
        return FileChunkFrame(EncryptedChunk.from_record(line[len(FILE_CHUNK):]))

    if line.startswith(FILE_END):
        checksum, signature = _split_signed(line[len(FILE_END):], "FILE_END frame")
        return FileEndFrame(checksum, signature)

    ciphertext, signature = _split_signed(line, "chat message")
    return ChatFrame(ciphertext, signature)
