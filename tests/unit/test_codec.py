"""Unit tests for record framing: headers, hashing writer, bounded readers."""

import hashlib
import io
import zlib

import pytest

from minigit.codec import (
    MAX_HEADER_LENGTH,
    BoundedReader,
    HashWriter,
    Kind,
    NullSink,
    ZlibReader,
    ZlibWriter,
    encode_header,
    read_header,
)
from minigit.errors import CorruptStream, MalformedHeader, UnknownKind


class ShortWriter:
    """Accepts at most ``limit`` bytes per call."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.received = bytearray()

    def write(self, data) -> int:
        accepted = bytes(data[: self.limit])
        self.received += accepted
        return len(accepted)

    def flush(self) -> None:
        pass


def _header_reader(raw: bytes) -> io.BufferedReader:
    return io.BufferedReader(io.BytesIO(raw))


class TestHeader:
    def test_encode(self) -> None:
        assert encode_header(Kind.BLOB, 5) == b"blob 5\0"
        assert encode_header(Kind.TREE, 0) == b"tree 0\0"
        assert encode_header(Kind.COMMIT, 1234) == b"commit 1234\0"

    def test_kind_names(self) -> None:
        assert [str(k) for k in Kind] == ["blob", "tree", "commit"]
        assert Kind.from_name("tree") is Kind.TREE

    def test_read_stops_after_nul(self) -> None:
        """Payload bytes, NULs included, are left unread."""
        reader = _header_reader(b"blob 3\0\0a\0trailing")
        assert read_header(reader) == (Kind.BLOB, 3)
        assert reader.read() == b"\0a\0trailing"

    def test_unknown_kind(self) -> None:
        with pytest.raises(UnknownKind):
            read_header(_header_reader(b"widget 5\0hello"))

    @pytest.mark.parametrize(
        "raw",
        [
            b"",
            b"blob 5",
            b"blob5\0",
            b"blob \0",
            b"blob -5\0",
            b"blob 5x\0",
            b"blob 0x10\0",
            b"blob \xff\xfe\0",
            b"\xff\xfe 5\0",
        ],
    )
    def test_malformed(self, raw: bytes) -> None:
        with pytest.raises(MalformedHeader):
            read_header(_header_reader(raw))

    def test_scan_is_bounded(self) -> None:
        """A NUL beyond the scan bound is never reached."""
        raw = b"blob " + b"1" * MAX_HEADER_LENGTH + b"\0"
        reader = _header_reader(raw)
        with pytest.raises(MalformedHeader):
            read_header(reader)
        assert reader.tell() == MAX_HEADER_LENGTH


class TestHashWriter:
    def test_digest_covers_uncompressed_stream(self) -> None:
        sink = io.BytesIO()
        writer = HashWriter(ZlibWriter(sink))
        writer.write_all(b"blob 5\0")
        writer.write_all(b"hello")
        digest = writer.finish()
        assert digest == hashlib.sha1(b"blob 5\0hello").digest()
        assert zlib.decompress(sink.getvalue()) == b"blob 5\0hello"

    def test_hashes_only_accepted_bytes(self) -> None:
        """A short write hashes what the writer took, not what was offered."""
        inner = ShortWriter(limit=3)
        writer = HashWriter(inner)
        assert writer.write(b"abcdef") == 3
        assert writer.finish() == hashlib.sha1(b"abc").digest()

    def test_write_all_retries_short_writes(self) -> None:
        inner = ShortWriter(limit=2)
        writer = HashWriter(inner)
        writer.write_all(b"abcdefg")
        assert bytes(inner.received) == b"abcdefg"
        assert writer.finish() == hashlib.sha1(b"abcdefg").digest()

    def test_write_all_gives_up_when_nothing_accepted(self) -> None:
        writer = HashWriter(ShortWriter(limit=0))
        with pytest.raises(OSError):
            writer.write_all(b"abc")

    def test_flush_forwards(self) -> None:
        sink = io.BytesIO()
        writer = HashWriter(ZlibWriter(sink))
        writer.write_all(b"partial")
        writer.flush()
        # a sync flush makes everything written so far decodable
        assert zlib.decompressobj().decompress(sink.getvalue()) == b"partial"

    def test_null_sink(self) -> None:
        writer = HashWriter(ZlibWriter(NullSink()))
        writer.write_all(b"blob 0\0")
        assert writer.finish().hex() == "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"


class TestReaders:
    def test_bounded_reader_ignores_trailing_bytes(self) -> None:
        reader = BoundedReader(io.BytesIO(b"hello, padding"), 5)
        assert reader.read() == b"hello"
        assert reader.read(10) == b""

    def test_bounded_reader_zero(self) -> None:
        assert BoundedReader(io.BytesIO(b"data"), 0).read() == b""

    def test_zlib_reader(self) -> None:
        data = b"x" * 300_000
        reader = ZlibReader(io.BytesIO(zlib.compress(data)))
        assert reader.read() == data

    def test_zlib_reader_corrupt(self) -> None:
        reader = ZlibReader(io.BytesIO(b"not a zlib stream"), name="abc")
        with pytest.raises(CorruptStream) as excinfo:
            reader.read()
        assert excinfo.value.target == "abc"

    def test_zlib_reader_truncated(self) -> None:
        compressed = zlib.compress(bytes(range(256)) * 64, 0)
        reader = ZlibReader(io.BytesIO(compressed[:-100]))
        with pytest.raises(CorruptStream, match="truncated"):
            reader.read()

    def test_close_closes_source(self) -> None:
        source = io.BytesIO(zlib.compress(b"abc"))
        reader = BoundedReader(ZlibReader(source), 3)
        reader.close()
        assert source.closed
