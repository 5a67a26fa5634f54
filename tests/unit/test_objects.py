"""Unit tests for the Object abstraction, independent of on-disk storage."""

import hashlib
import io
from pathlib import Path

import pytest

from minigit.codec import Kind, NullSink
from minigit.errors import IoFailure, SizeMismatch
from minigit.objects import Object


def _encode(kind: Kind, data: bytes) -> tuple[bytes, bytes]:
    sink = io.BytesIO()
    digest = Object.from_bytes(kind, data).write(sink)
    return digest, sink.getvalue()


class TestObject:
    @pytest.mark.parametrize("kind", list(Kind))
    def test_write_then_decode(self, kind: Kind) -> None:
        """Encoded bytes decode back to the same kind, size and payload."""
        data = b"payload\0with\nbytes" * 7
        _, record = _encode(kind, data)
        with Object.decode(io.BytesIO(record)) as obj:
            assert obj.kind is kind
            assert obj.expected_size == len(data)
            assert obj.read_all() == data

    def test_digest_is_sha1_of_header_and_payload(self) -> None:
        digest, _ = _encode(Kind.COMMIT, b"tree abc\n")
        assert digest == hashlib.sha1(b"commit 9\0tree abc\n").digest()

    def test_dry_run_matches_stored_digest(self) -> None:
        """Hashing into a null sink gives the same digest as a real write."""
        dry = Object.from_bytes(Kind.BLOB, b"data").write(NullSink())
        real, _ = _encode(Kind.BLOB, b"data")
        assert dry == real

    def test_independent_writes_agree(self) -> None:
        assert _encode(Kind.TREE, b"x" * 70_000) == _encode(Kind.TREE, b"x" * 70_000)

    def test_blob_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "a.txt"
        path.write_bytes(b"hello")
        with Object.blob_from_file(path) as obj:
            assert obj.kind is Kind.BLOB
            assert obj.expected_size == 5
            assert obj.write(NullSink()).hex() == "b6fc4c620b67d95f953a5c1c1230aaab5db5a1b0"

    def test_blob_from_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(IoFailure) as excinfo:
            Object.blob_from_file(tmp_path / "missing.txt")
        assert excinfo.value.path == tmp_path / "missing.txt"

    def test_declared_size_is_not_checked_on_write(self) -> None:
        """A lying size goes into the header as-is; the digest covers what streamed."""
        sink = io.BytesIO()
        digest = Object(Kind.BLOB, 10, io.BytesIO(b"short")).write(sink)
        assert digest == hashlib.sha1(b"blob 10\0short").digest()

        with Object.decode(io.BytesIO(sink.getvalue())) as obj:
            assert obj.expected_size == 10
            with pytest.raises(SizeMismatch) as excinfo:
                obj.read_all()
        assert (excinfo.value.expected, excinfo.value.actual) == (10, 5)

    def test_long_source_is_cut_on_read(self) -> None:
        """Bytes streamed past the declared size are never handed back."""
        sink = io.BytesIO()
        Object(Kind.BLOB, 3, io.BytesIO(b"abcdef")).write(sink)
        with Object.decode(io.BytesIO(sink.getvalue())) as obj:
            assert obj.read_all() == b"abc"

    def test_close_closes_record_stream(self) -> None:
        _, record = _encode(Kind.BLOB, b"abc")
        stream = io.BytesIO(record)
        with Object.decode(stream):
            pass
        assert stream.closed
