"""
Disclosure metadata codec.

Packs the revealed statement indices and the range proof triples of a
derived proof into the base64 `domain` field, and unpacks them again on
the verifier side.

Layout (little-endian unsigned 32-bit words):
    [FORMAT_TAG, revealCount, rowCount, reveal..., (index, min, max)...]

Blobs without the format tag (`[revealCount, rowCount, ...]`) are still
accepted on decode.
"""

from __future__ import annotations

import base64
import binascii
import struct
from dataclasses import dataclass, field
from typing import Iterable, Sequence

FORMAT_TAG = 0x53440001  # "SD", layout version 1
WORD_SIZE = 4
MAX_WORD = 0xFFFFFFFF


class MetadataCorruptError(Exception):
    """Raised when a disclosure metadata blob is malformed."""


@dataclass(frozen=True)
class RangeTriple:
    """A range constraint on one hidden integer message."""

    message_index: int
    min: int
    max: int

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.message_index, self.min, self.max)


@dataclass
class DisclosureMetadata:
    """Decoded contents of a derived proof's `domain` field."""

    reveal_indices: list[int]
    range_triples: list[RangeTriple] = field(default_factory=list)
    version: int | None = 1


def _check_word(value: int, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < 0 or value > MAX_WORD:
        raise ValueError(f"{name} {value} does not fit in an unsigned 32-bit word")
    return value


def pack_words(
    reveal_indices: Sequence[int],
    range_triples: Iterable[RangeTriple],
) -> list[int]:
    """Lay out the metadata as a list of 32-bit words (without the tag)."""
    triples = list(range_triples)
    words = [len(reveal_indices), len(triples)]
    words.extend(_check_word(i, "reveal index") for i in reveal_indices)
    for triple in triples:
        words.append(_check_word(triple.message_index, "range message index"))
        words.append(_check_word(triple.min, "range minimum"))
        words.append(_check_word(triple.max, "range maximum"))
    return words


def encode_metadata(
    reveal_indices: Sequence[int],
    range_triples: Iterable[RangeTriple] = (),
) -> str:
    """Encode revealed indices and range triples into a base64 blob.

    Args:
        reveal_indices: Ordered indices of the revealed statements.
        range_triples: Range constraints on appended integer messages.

    Returns:
        Base64 string suitable for `proof.domain`.

    Raises:
        ValueError: If any value does not fit in an unsigned 32-bit word.
    """
    words = [FORMAT_TAG] + pack_words(reveal_indices, range_triples)
    raw = struct.pack(f"<{len(words)}I", *words)
    return base64.b64encode(raw).decode("ascii")


def _unpack_words(blob: str) -> tuple[int, ...]:
    try:
        raw = base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MetadataCorruptError(f"Metadata is not valid base64: {e}") from e

    if len(raw) % WORD_SIZE:
        raise MetadataCorruptError(
            f"Metadata length {len(raw)} is not a multiple of {WORD_SIZE} bytes"
        )
    return struct.unpack(f"<{len(raw) // WORD_SIZE}I", raw)


def decode_metadata(blob: str) -> DisclosureMetadata:
    """Decode a base64 metadata blob.

    Args:
        blob: The `domain` value of a derived proof.

    Returns:
        DisclosureMetadata with the reveal indices and range triples.

    Raises:
        MetadataCorruptError: If the blob is not base64 or its declared
            counts disagree with its length.
    """
    if not isinstance(blob, str) or not blob:
        raise MetadataCorruptError("Missing disclosure metadata")

    words = _unpack_words(blob)

    version: int | None = None
    if words and words[0] == FORMAT_TAG:
        version = FORMAT_TAG & 0xFFFF
        words = words[1:]

    if len(words) < 2:
        raise MetadataCorruptError(
            f"Metadata too short: {len(words)} words, need at least 2"
        )

    reveal_count, row_count = words[0], words[1]
    expected = 2 + reveal_count + 3 * row_count
    if len(words) != expected:
        raise MetadataCorruptError(
            f"Metadata declares {reveal_count} indices and {row_count} ranges "
            f"({expected} words) but holds {len(words)} words"
        )

    reveal_indices = list(words[2 : 2 + reveal_count])
    range_data = words[2 + reveal_count :]
    range_triples = [
        RangeTriple(*range_data[row * 3 : row * 3 + 3]) for row in range(row_count)
    ]

    return DisclosureMetadata(
        reveal_indices=reveal_indices,
        range_triples=range_triples,
        version=version,
    )
