"""Tests for CRLF framing and length-delimited body reassembly."""

import io

import pytest

from jackd.errors import MalformedResponseError, ShortBodyError
from jackd.framing import FrameReader, read_body


def reader_for(data: bytes, chunk: int = 4096) -> FrameReader:
    """A FrameReader over ``data`` delivered ``chunk`` bytes at a time."""
    stream = io.BytesIO(data)
    return FrameReader(lambda n: stream.read(min(n, chunk)))


# --- Frame Reader ---


class TestFrameReader:
    def test_single_frame(self):
        reader = reader_for(b"DELETED\r\n")
        assert reader.next_frame() == b"DELETED"
        assert reader.next_frame() is None

    def test_multiple_frames_one_chunk(self):
        reader = reader_for(b"USING a\r\nWATCHING 2\r\n")
        assert reader.next_frame() == b"USING a"
        assert reader.next_frame() == b"WATCHING 2"

    def test_byte_at_a_time(self):
        reader = reader_for(b"INSERTED 12\r\nDELETED\r\n", chunk=1)
        assert list(reader) == [b"INSERTED 12", b"DELETED"]

    def test_delimiter_split_across_reads(self):
        # First chunk ends in CR, second starts with LF.
        reader = reader_for(b"KICKED 3\r\nOK", chunk=9)
        assert reader.next_frame() == b"KICKED 3"

    def test_lone_cr_is_data(self):
        reader = reader_for(b"a\rb\r\n")
        assert reader.next_frame() == b"a\rb"

    def test_lone_lf_is_data(self):
        reader = reader_for(b"a\nb\r\n")
        assert reader.next_frame() == b"a\nb"

    def test_lf_before_cr_is_data(self):
        reader = reader_for(b"a\n\rb\r\n", chunk=2)
        assert reader.next_frame() == b"a\n\rb"

    def test_empty_frame(self):
        reader = reader_for(b"\r\n\r\n")
        assert list(reader) == [b"", b""]

    def test_eof_with_leftover_yields_final_frame(self):
        reader = reader_for(b"DELETED\r\nTRUNC")
        assert reader.next_frame() == b"DELETED"
        assert not reader.truncated
        assert reader.next_frame() == b"TRUNC"
        assert reader.truncated
        assert reader.next_frame() is None

    def test_eof_with_trailing_cr_yields_it(self):
        reader = reader_for(b"abc\r")
        assert reader.next_frame() == b"abc\r"

    def test_eof_without_leftover_ends(self):
        reader = reader_for(b"")
        assert reader.next_frame() is None
        assert reader.next_frame() is None

    def test_buffered_count(self):
        reader = reader_for(b"A\r\nBCD\r\n")
        reader.next_frame()
        assert reader.buffered == 5

    def test_read_error_propagates(self):
        def broken(n):
            raise OSError("connection reset")

        reader = FrameReader(broken)
        with pytest.raises(OSError, match="reset"):
            reader.next_frame()

    def test_chunk_size_is_requested(self):
        requested = []

        def read(n):
            requested.append(n)
            return b""

        FrameReader(read, chunk_size=128).next_frame()
        assert requested == [128]


# --- Body Extractor ---


class TestReadBody:
    def test_plain_body(self):
        reader = reader_for(b"test job\r\n")
        assert read_body(reader, 8) == b"test job"

    def test_embedded_delimiter(self):
        reader = reader_for(b"line1\r\nline2\r\n")
        body = read_body(reader, 12)
        assert body == b"line1\r\nline2"
        assert len(body) == 12

    def test_body_of_only_delimiters(self):
        reader = reader_for(b"\r\n\r\n\r\n")
        assert read_body(reader, 4) == b"\r\n\r\n"

    def test_body_ending_in_delimiter(self):
        reader = reader_for(b"abc\r\n\r\n")
        assert read_body(reader, 5) == b"abc\r\n"

    def test_body_starting_with_delimiter(self):
        reader = reader_for(b"\r\nabc\r\n")
        assert read_body(reader, 5) == b"\r\nabc"

    def test_body_ending_in_cr(self):
        reader = reader_for(b"abc\r\r\n")
        assert read_body(reader, 4) == b"abc\r"

    def test_zero_length_consumes_terminator_only(self):
        reader = reader_for(b"\r\nDELETED\r\n")
        assert read_body(reader, 0) == b""
        assert reader.next_frame() == b"DELETED"

    def test_stops_at_declared_length(self):
        reader = reader_for(b"a\r\nb\r\nNEXT\r\n")
        assert read_body(reader, 4) == b"a\r\nb"
        assert reader.next_frame() == b"NEXT"

    def test_short_body_raises(self):
        reader = reader_for(b"abc")
        with pytest.raises(ShortBodyError) as info:
            read_body(reader, 10)
        assert info.value.expected == 10
        assert info.value.received == 3

    def test_short_body_counts_payload_only(self):
        reader = reader_for(b"only a bit\r\n")
        with pytest.raises(ShortBodyError) as info:
            read_body(reader, 100)
        assert info.value.received == 10

    def test_missing_body_raises(self):
        with pytest.raises(ShortBodyError):
            read_body(reader_for(b""), 3)

    def test_overrun_raises(self):
        reader = reader_for(b"abcdef\r\n")
        with pytest.raises(MalformedResponseError, match="overran"):
            read_body(reader, 4)

    @pytest.mark.parametrize("chunk", [1, 2, 3, 5, 64])
    @pytest.mark.parametrize(
        "body",
        [
            b"x",
            b"\r\n",
            b"\r",
            b"\n",
            b"\n\r",
            b"a\r\n\r\nb",
            b"\r\n" * 10,
            bytes(range(256)),
        ],
    )
    def test_exact_consumption(self, body, chunk):
        reader = reader_for(body + b"\r\nAFTER\r\n", chunk)
        assert read_body(reader, len(body)) == body
        assert reader.next_frame() == b"AFTER"
