"""Tests for the disclosure metadata codec."""

import base64
import struct

import pytest

from vc_disclosure.metadata import (
    FORMAT_TAG,
    DisclosureMetadata,
    MetadataCorruptError,
    RangeTriple,
    decode_metadata,
    encode_metadata,
    pack_words,
)


def words_of(blob: str) -> list[int]:
    raw = base64.b64decode(blob)
    return list(struct.unpack(f"<{len(raw) // 4}I", raw))


def blob_of(words: list[int]) -> str:
    return base64.b64encode(struct.pack(f"<{len(words)}I", *words)).decode()


class TestEncode:
    """Tests for encoding metadata."""

    def test_word_layout(self):
        """Indices and triples are laid out behind the format tag."""
        blob = encode_metadata([0, 1, 2, 5], [RangeTriple(9, 18, 60)])
        assert words_of(blob) == [FORMAT_TAG, 4, 1, 0, 1, 2, 5, 9, 18, 60]

    def test_pack_words_without_tag(self):
        assert pack_words([0, 1, 2, 5], [RangeTriple(9, 18, 60)]) == [4, 1, 0, 1, 2, 5, 9, 18, 60]

    def test_little_endian(self):
        """Words are little-endian regardless of host byte order."""
        raw = base64.b64decode(encode_metadata([1]))
        assert raw[4:8] == b"\x01\x00\x00\x00"  # revealCount
        assert raw[12:16] == b"\x01\x00\x00\x00"  # the index itself

    def test_triple_order_preserved(self):
        triples = [RangeTriple(20, 1, 2), RangeTriple(14, 3, 4)]
        assert decode_metadata(encode_metadata([0], triples)).range_triples == triples

    @pytest.mark.parametrize("bad", [-1, 2**32])
    def test_out_of_range_value(self, bad):
        with pytest.raises(ValueError):
            encode_metadata([0, bad])

    def test_out_of_range_bound(self):
        with pytest.raises(ValueError):
            encode_metadata([0], [RangeTriple(3, 0, 2**32)])


class TestDecode:
    """Tests for decoding metadata."""

    def test_round_trip(self):
        indices = [0, 1, 2, 3, 7, 5]
        triples = [RangeTriple(14, 18, 60), RangeTriple(16, 0, 100)]
        decoded = decode_metadata(encode_metadata(indices, triples))
        assert decoded == DisclosureMetadata(reveal_indices=indices, range_triples=triples, version=1)

    def test_empty_ranges(self):
        decoded = decode_metadata(encode_metadata([0, 1]))
        assert decoded.reveal_indices == [0, 1]
        assert decoded.range_triples == []

    def test_legacy_layout(self):
        """Blobs without the format tag still decode."""
        decoded = decode_metadata(blob_of([4, 1, 0, 1, 2, 5, 9, 18, 60]))
        assert decoded.version is None
        assert decoded.reveal_indices == [0, 1, 2, 5]
        assert decoded.range_triples == [RangeTriple(9, 18, 60)]

    def test_length_mismatch(self):
        """Declared counts must agree with the blob length."""
        with pytest.raises(MetadataCorruptError):
            decode_metadata(blob_of([FORMAT_TAG, 4, 1, 0, 1, 2, 5, 9, 18]))

    def test_legacy_length_mismatch(self):
        with pytest.raises(MetadataCorruptError):
            decode_metadata(blob_of([3, 0, 0, 1]))

    def test_too_short(self):
        with pytest.raises(MetadataCorruptError):
            decode_metadata(blob_of([FORMAT_TAG, 1]))

    def test_partial_word(self):
        with pytest.raises(MetadataCorruptError):
            decode_metadata(base64.b64encode(b"\x01\x00\x00\x00\x00\x00").decode())

    def test_not_base64(self):
        with pytest.raises(MetadataCorruptError):
            decode_metadata("not base64!")

    @pytest.mark.parametrize("blob", ["", None])
    def test_missing(self, blob):
        with pytest.raises(MetadataCorruptError):
            decode_metadata(blob)
