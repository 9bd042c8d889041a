from functools import lru_cache

# ============================================================
# CONSTANTS
# ============================================================
RANGE = 256
MASK32 = 0xFFFFFFFF

LCG_MULTIPLIER = 1103515245
LCG_INCREMENT = 12345
LCG_MASK = 0x7FFFFFFF

MIX_MULTIPLIER = 0x045D9F3B
GOLDEN_RATIO_32 = 0x9E3779B9


# ============================================================
# KEY MATERIAL
# ============================================================
def key_sum(key: str) -> int:
    """Additive digest of the key character codes."""
    return sum(ord(ch) for ch in key)


def key_digit(key: str, index: int) -> int:
    """
    Character code at ``index`` (mod key length) minus ord('0').

    Hex letters a-f give 49-54, not 10-15. Ciphertexts depend on it.
    """
    return ord(key[index % len(key)]) - ord("0")


def round_shift(key: str, round_no: int, position: int) -> int:
    return 5 + round_no * 3 + key_digit(key, position + round_no)


@lru_cache(maxsize=RANGE)
def _shift_table(shift: int) -> bytes:
    return bytes((value + shift) % RANGE for value in range(RANGE))


# ============================================================
# KEYED ADDITIVE TRANSFORM
# ============================================================
def _apply_shifts(data: bytes, round_no: int, key: str, sign: int) -> bytes:
    # the shift only depends on position mod len(key), so every residue
    # class is a single strided slice run through a translation table
    period = len(key)
    result = bytearray(data)
    for offset in range(min(period, len(data))):
        shift = sign * round_shift(key, round_no, offset)
        result[offset::period] = data[offset::period].translate(_shift_table(shift % RANGE))
    return bytes(result)


def transform(data: bytes, round_no: int, key: str) -> bytes:
    """(byte + shift) mod 256 for every byte."""
    return _apply_shifts(data, round_no, key, 1)


def reverse_transform(data: bytes, round_no: int, key: str) -> bytes:
    """(byte - shift + 256) mod 256 for every byte."""
    return _apply_shifts(data, round_no, key, -1)


# ============================================================
# SPLIT & MIX
# ============================================================
def chunk_boundaries(length: int, round_no: int, digest: int) -> list:
    """
    Offsets of 2-5 variable-length chunks covering ``length`` bytes.

    Boundaries are clamped to [1, length - 1] and sorted, so two of them
    may coincide and leave an empty chunk.
    """
    num_chunks = min(5, max(2, length // 2 + round_no % 3))

    boundaries = [0] * (num_chunks + 1)
    boundaries[num_chunks] = length

    for i in range(1, num_chunks):
        base_pos = (length * i) // num_chunks
        variation = (round_no * 13 + digest * 7 + i * 5) % (length // num_chunks + 1)
        boundaries[i] = min(length - 1, max(1, base_pos + variation - length // (num_chunks * 2)))

    boundaries.sort()
    return boundaries


def shuffle_pattern(num_chunks: int, round_no: int, digest: int) -> list:
    """Fisher-Yates permutation driven by a 31-bit LCG."""
    pattern = list(range(num_chunks))

    seed = round_no * 31 + digest
    for i in range(num_chunks - 1, 0, -1):
        seed = (seed * LCG_MULTIPLIER + LCG_INCREMENT) & LCG_MASK
        j = seed % (i + 1)
        pattern[i], pattern[j] = pattern[j], pattern[i]

    return pattern


def split_and_mix(data: bytes, round_no: int, key: str) -> bytes:
    if len(data) <= 1:
        return data

    digest = key_sum(key)
    boundaries = chunk_boundaries(len(data), round_no, digest)
    num_chunks = len(boundaries) - 1

    chunks = [data[boundaries[i]:boundaries[i + 1]] for i in range(num_chunks)]
    pattern = shuffle_pattern(num_chunks, round_no, digest)

    return b"".join(chunks[src] for src in pattern)


def unsplit_and_unmix(data: bytes, round_no: int, key: str) -> bytes:
    if len(data) <= 1:
        return data

    digest = key_sum(key)
    boundaries = chunk_boundaries(len(data), round_no, digest)
    num_chunks = len(boundaries) - 1
    pattern = shuffle_pattern(num_chunks, round_no, digest)

    # chunks sit in the data in shuffled order
    original = [b""] * num_chunks
    pos = 0
    for src in pattern:
        size = boundaries[src + 1] - boundaries[src]
        original[src] = data[pos:pos + size]
        pos += size

    return b"".join(original)


# ============================================================
# IV HELPERS
# ============================================================
def xor_with_iv(data: bytes, iv: bytes) -> bytes:
    """XOR ``data`` with ``iv`` repeated to the same length."""
    if not data:
        return b""

    keystream = (iv * (len(data) // len(iv) + 1))[:len(data)]
    mixed = int.from_bytes(data, "big") ^ int.from_bytes(keystream, "big")
    return mixed.to_bytes(len(data), "big")


def _mix32(value: int) -> int:
    value &= MASK32
    value ^= value >> 16
    value = (value * MIX_MULTIPLIER) & MASK32
    value ^= value >> 16
    value = (value * MIX_MULTIPLIER) & MASK32
    value ^= value >> 16
    return value


def iv_position_count(length: int) -> int:
    if length < 8:
        return 2
    if length < 16:
        return 3
    if length < 64:
        return 4
    return 5


def iv_positions(length: int, digest: int) -> list:
    """
    Offsets where the IV is XOR-overlaid on a buffer of ``length`` bytes.

    Each candidate hashes the key digest with a per-slot constant and
    scales the 32-bit result into [0, length). Duplicates are dropped,
    order of first appearance is kept.
    """
    if length <= 0:
        return []

    positions = []
    state = digest & MASK32
    for slot in range(iv_position_count(length)):
        state = _mix32(state ^ (((slot + 1) * GOLDEN_RATIO_32) & MASK32))
        pos = (state * length) >> 32
        if pos not in positions:
            positions.append(pos)

    return positions


def overlay_iv(data: bytes, iv: bytes, positions) -> bytes:
    """XOR ``iv`` into ``data`` at each position, truncated at the end. Self-inverse."""
    result = bytearray(data)
    for pos in positions:
        for j in range(min(len(iv), len(result) - pos)):
            result[pos + j] ^= iv[j]
    return bytes(result)
