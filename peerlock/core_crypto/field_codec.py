"""
Field Codec

Binary helpers shared by the handshake and the message protection code:
- compose / decompose: pack an ordered list of byte fields into one
  self-describing blob and back
- md5_digest: MD5 over the concatenation of one or more fields
- generate_nonce: fixed-length random nonce
- split_halves: cut a blob into two parts for the interlock exchange

Composed blob format (all integers big-endian, 4 bytes):
    [-(field_count) | len(field_0) | ... | len(field_n-1) | field_0 | ... | field_n-1]

The field count is stored negated so the most significant bit of the blob
is always set. RSA implementations that treat the plaintext as a big
integer would otherwise strip leading zero bytes.
"""

import hashlib
import secrets
import struct
from typing import List, Sequence, Tuple

from ..errors import DecompositionFailure


# Constants
NONCE_LENGTH = 5        # bytes, fixed for the whole system
INT_SIZE = 4            # bytes per header integer
MD5_SIZE = 16           # bytes

_INT = struct.Struct('>i')


def int_to_bytes(value: int) -> bytes:
    """Encode a signed 32-bit integer as 4 big-endian bytes."""
    return _INT.pack(value)


def bytes_to_int(data: bytes) -> int:
    """Decode 4 big-endian bytes as a signed 32-bit integer."""
    if len(data) != INT_SIZE:
        raise DecompositionFailure(f"Expected {INT_SIZE} bytes, got {len(data)}")
    return _INT.unpack(data)[0]


def compose(*fields: bytes) -> bytes:
    """
    Pack byte fields into a single blob that decompose() can split again.

    Args:
        *fields: One or more byte strings

    Returns:
        Composed blob

    Raises:
        ValueError: If no fields are given
    """
    if not fields:
        raise ValueError("compose() needs at least one field")

    header = [int_to_bytes(-len(fields))]
    header.extend(int_to_bytes(len(f)) for f in fields)
    return b''.join(header) + b''.join(bytes(f) for f in fields)


def decompose(blob: bytes) -> List[bytes]:
    """
    Split a composed blob back into its fields.

    Args:
        blob: Output of compose()

    Returns:
        List of fields, in the order they were composed

    Raises:
        DecompositionFailure: If the blob is truncated, carries trailing
            bytes, or its header is not a negative field count
    """
    if len(blob) < INT_SIZE:
        raise DecompositionFailure("Blob shorter than its field-count header")

    count = -bytes_to_int(blob[:INT_SIZE])
    if count <= 0:
        raise DecompositionFailure("Field-count header must be negative")

    offset = INT_SIZE + count * INT_SIZE
    if len(blob) < offset:
        raise DecompositionFailure("Blob shorter than its field-length table")

    lengths = []
    for i in range(count):
        start = INT_SIZE * (i + 1)
        length = bytes_to_int(blob[start:start + INT_SIZE])
        if length < 0:
            raise DecompositionFailure("Negative field length")
        lengths.append(length)

    if len(blob) != offset + sum(lengths):
        raise DecompositionFailure(
            f"Declared length {offset + sum(lengths)} does not match blob length {len(blob)}"
        )

    fields = []
    for length in lengths:
        fields.append(blob[offset:offset + length])
        offset += length
    return fields


def decompose_exactly(blob: bytes, count: int) -> List[bytes]:
    """decompose() that also insists on a specific number of fields."""
    fields = decompose(blob)
    if len(fields) != count:
        raise DecompositionFailure(f"Expected {count} fields, got {len(fields)}")
    return fields


def md5_digest(*parts: bytes) -> bytes:
    """MD5 over the concatenation of parts."""
    md5 = hashlib.md5()
    for part in parts:
        md5.update(part)
    return md5.digest()


def generate_nonce(length: int = NONCE_LENGTH) -> bytes:
    """Generate a random freshness nonce."""
    return secrets.token_bytes(length)


def split_halves(blob: bytes) -> Tuple[bytes, bytes]:
    """
    Split a blob into two parts.

    The first half is the shorter one when the length is odd.
    """
    middle = len(blob) // 2
    return blob[:middle], blob[middle:]


def join(parts: Sequence[bytes]) -> bytes:
    """Concatenate parts in order."""
    return b''.join(parts)
