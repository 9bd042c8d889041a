from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath

from securechat.core.errors import FormatError
from securechat.utils.file_utils import format_file_size

FIELD_SEPARATOR = "|"

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES = {
    # Images
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
    # Documents
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    # Text
    ".txt": "text/plain",
    ".csv": "text/csv",
    ".json": "application/json",
    ".xml": "application/xml",
    # Video
    ".mp4": "video/mp4",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".wmv": "video/x-ms-wmv",
    ".mkv": "video/x-matroska",
    # Audio
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    # Archives
    ".zip": "application/zip",
    ".rar": "application/x-rar-compressed",
    ".7z": "application/x-7z-compressed",
}


def determine_mime_type(filename: str) -> str:
    return MIME_TYPES.get(PurePath(filename).suffix.lower(), DEFAULT_MIME_TYPE)


def _parse_count(value: str, field: str) -> int:
    try:
        number = int(value)
    except ValueError as e:
        raise FormatError(f"Field '{field}' is not an integer: {value!r}") from e
    if number < 0:
        raise FormatError(f"Field '{field}' is negative: {number}")
    return number


def _check_filename(filename: str) -> str:
    # the name arrives unsigned, so it must stay a bare name inside the download dir
    if not filename:
        raise FormatError("Metadata record has an empty filename")
    if "/" in filename or "\\" in filename or "\x00" in filename:
        raise FormatError(f"Filename may not contain a path: {filename!r}")
    if filename in (".", "..") or PurePath(filename).is_absolute():
        raise FormatError(f"Filename is not a plain file name: {filename!r}")
    return filename


@dataclass(frozen=True, slots=True)
class FileMetadata:
    filename: str
    file_size: int
    mime_type: str
    total_chunks: int
    checksum: str

    @property
    def formatted_size(self) -> str:
        return format_file_size(self.file_size)

    def to_record(self) -> str:
        """filename|fileSize|mimeType|totalChunks|checksum"""
        if FIELD_SEPARATOR in self.filename:
            raise FormatError(f"Filename may not contain '{FIELD_SEPARATOR}': {self.filename!r}")
        return FIELD_SEPARATOR.join((
            self.filename,
            str(self.file_size),
            self.mime_type,
            str(self.total_chunks),
            self.checksum,
        ))

    @staticmethod
    def from_record(record: str) -> "FileMetadata":
        parts = record.split(FIELD_SEPARATOR)
        if len(parts) != 5:
            raise FormatError(f"Metadata record needs 5 fields, got {len(parts)}")

        filename, file_size, mime_type, total_chunks, checksum = parts

        return FileMetadata(
            filename=_check_filename(filename),
            file_size=_parse_count(file_size, "fileSize"),
            mime_type=mime_type,
            total_chunks=_parse_count(total_chunks, "totalChunks"),
            checksum=checksum,
        )

    def __str__(self) -> str:
        return (
            f"FileMetadata(filename='{self.filename}', size={self.formatted_size}, "
            f"type='{self.mime_type}', chunks={self.total_chunks})"
        )


@dataclass(frozen=True, slots=True)
class EncryptedChunk:
    index: int
    total_chunks: int
    encrypted_text: str
    original_size: int

    @property
    def is_last(self) -> bool:
        return self.index == self.total_chunks - 1

    @property
    def progress_percentage(self) -> int:
        if self.total_chunks <= 0:
            return 0
        return (self.index + 1) * 100 // self.total_chunks

    def to_record(self) -> str:
        """chunkIndex|totalChunks|originalSize|encryptedText"""
        return FIELD_SEPARATOR.join((
            str(self.index),
            str(self.total_chunks),
            str(self.original_size),
            self.encrypted_text,
        ))

    @staticmethod
    def from_record(record: str) -> "EncryptedChunk":
        parts = record.split(FIELD_SEPARATOR, 3)
        if len(parts) != 4:
            raise FormatError(f"Chunk record needs 4 fields, got {len(parts)}")

        index, total_chunks, original_size, encrypted_text = parts
        return EncryptedChunk(
            index=_parse_count(index, "chunkIndex"),
            total_chunks=_parse_count(total_chunks, "totalChunks"),
            encrypted_text=encrypted_text,
            original_size=_parse_count(original_size, "originalSize"),
        )

    def __str__(self) -> str:
        return (
            f"Chunk {self.index + 1}/{self.total_chunks} "
            f"(size={self.original_size} bytes, encrypted={len(self.encrypted_text)} chars)"
        )
