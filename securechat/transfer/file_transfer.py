import base64
import math
import time
from pathlib import Path

from securechat.core.errors import (
    ChecksumMismatch,
    ChunkCountMismatch,
    ChunkSizeMismatch,
    DecodeError,
    FileSizeMismatch,
    FormatError,
    UnsupportedFile,
)
from securechat.core.logging_config import error_logger, transfer_logger
from securechat.core.settings import CHUNK_SIZE, MAX_FILE_SIZE
from securechat.crypto.block_cipher import BlockCipher, b64decode_strict
from securechat.transfer.metadata import (
    FIELD_SEPARATOR,
    EncryptedChunk,
    FileMetadata,
    determine_mime_type,
)
from securechat.utils.checksum import checksum_matches, sha256_bytes
from securechat.utils.file_utils import ensure_dir, format_file_size


class FileTransferHandler:
    """
    Chunking, encryption and verified reassembly of whole files.

    Every chunk is base64 encoded before encryption, so the cipher only
    ever sees printable text, and is encrypted under its own IV.
    """

    def __init__(self, cipher: BlockCipher, chunk_size: int = CHUNK_SIZE, max_file_size: int = MAX_FILE_SIZE):
        self.cipher = cipher
        self.chunk_size = chunk_size
        self.max_file_size = max_file_size

    # ============================================================
    # SEND SIDE
    # ============================================================
    def prepare(self, path):
        """
        Build metadata and encrypted chunks for ``path``.

        Returns:
            (FileMetadata, list[EncryptedChunk])

        Raises:
            UnsupportedFile: missing, not a regular file, too large,
                or the name contains the record separator.
        """
        file_path = Path(path)

        if not file_path.is_file():
            raise UnsupportedFile(f"File does not exist or is not a regular file: {file_path}")

        file_size = file_path.stat().st_size
        if file_size > self.max_file_size:
            raise UnsupportedFile(
                f"File too large ({format_file_size(file_size)}). "
                f"Maximum size: {format_file_size(self.max_file_size)}"
            )

        if FIELD_SEPARATOR in file_path.name:
            raise UnsupportedFile(f"Filename may not contain '{FIELD_SEPARATOR}': {file_path.name}")

        start = time.perf_counter()
        transfer_logger.info(f"START prepare | file={file_path.name} | size={format_file_size(file_size)}")

        file_data = file_path.read_bytes()
        checksum = sha256_bytes(file_data)
        total_chunks = math.ceil(len(file_data) / self.chunk_size)

        metadata = FileMetadata(
            filename=file_path.name,
            file_size=len(file_data),
            mime_type=determine_mime_type(file_path.name),
            total_chunks=total_chunks,
            checksum=checksum,
        )

        chunks = []
        for index in range(total_chunks):
            raw = file_data[index * self.chunk_size:(index + 1) * self.chunk_size]
            chunk_text = base64.b64encode(raw).decode("ascii")

            chunks.append(EncryptedChunk(
                index=index,
                total_chunks=total_chunks,
                encrypted_text=self.cipher.encrypt(chunk_text),
                original_size=len(raw),
            ))

        elapsed = time.perf_counter() - start
        transfer_logger.info(
            f"SUCCESS prepare | {metadata} | sha256={checksum[:16]}... | {elapsed:.2f}s"
        )
        return metadata, chunks

    # ============================================================
    # RECEIVE SIDE
    # ============================================================
    def reassemble(self, metadata: FileMetadata, chunks) -> bytes:
        """
        Decrypt, verify and concatenate ``chunks``.

        Nothing is returned unless chunk count, every chunk size, the
        total size and the SHA-256 checksum all match ``metadata``.
        """
        start = time.perf_counter()
        transfer_logger.info(f"START reassemble | {metadata}")

        try:
            if len(chunks) != metadata.total_chunks:
                raise ChunkCountMismatch(
                    f"Chunk count mismatch! Expected {metadata.total_chunks}, got {len(chunks)}"
                )

            ordered = sorted(chunks, key=lambda c: c.index)
            if [c.index for c in ordered] != list(range(metadata.total_chunks)):
                raise FormatError("Chunk indices are not contiguous from 0")
            for chunk in ordered:
                if chunk.total_chunks != metadata.total_chunks:
                    raise FormatError(
                        f"Chunk {chunk.index} claims {chunk.total_chunks} chunks, "
                        f"metadata says {metadata.total_chunks}"
                    )

            parts = [self._open_chunk(chunk) for chunk in ordered]
            file_data = b"".join(parts)

            if len(file_data) != metadata.file_size:
                raise FileSizeMismatch(
                    f"File size mismatch! Expected {metadata.file_size}, got {len(file_data)}"
                )

            if not checksum_matches(file_data, metadata.checksum):
                raise ChecksumMismatch(
                    f"Checksum mismatch! File may be corrupted "
                    f"(expected={metadata.checksum}, actual={sha256_bytes(file_data)})"
                )

        except Exception as e:
            error_logger.error(f"FAIL reassemble | {metadata.filename} | {e}")
            raise

        elapsed = time.perf_counter() - start
        transfer_logger.info(f"SUCCESS reassemble | {metadata.filename} | VERIFIED | {elapsed:.2f}s")
        return file_data

    def _open_chunk(self, chunk: EncryptedChunk) -> bytes:
        try:
            chunk_text = self.cipher.decrypt(chunk.encrypted_text)
            data = b64decode_strict(chunk_text)
        except (DecodeError, FormatError) as e:
            raise ChecksumMismatch(f"Chunk {chunk.index} is corrupted: {e}") from e

        if len(data) != chunk.original_size:
            raise ChunkSizeMismatch(
                f"Chunk {chunk.index} size mismatch after decryption! "
                f"Expected {chunk.original_size}, got {len(data)}"
            )

        transfer_logger.debug(f"{chunk} decrypted | {chunk.progress_percentage}%")
        return data

    # ============================================================
    # OUTPUT
    # ============================================================
    def save_file(self, file_data: bytes, destination) -> Path:
        destination = Path(destination)
        ensure_dir(destination.parent)
        destination.write_bytes(file_data)

        transfer_logger.info(f"Saved {destination} ({format_file_size(len(file_data))})")
        return destination
