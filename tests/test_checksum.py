"""Tests for S3 ETag calculation and verification."""

import hashlib
from pathlib import Path
from unittest.mock import Mock

import pytest

from cdn_sync.checksum import ChecksumCalculator, is_multipart_etag
from cdn_sync.exceptions import AssetReadError, ChecksumError

# Chunk sizes in these tests are expressed in KiB to keep fixtures small
UNIT = 1024


def multipart_etag(content: bytes, chunk_bytes: int) -> str:
    """Reference implementation of the S3 multipart ETag."""
    parts = [content[i:i + chunk_bytes] for i in range(0, len(content), chunk_bytes)] or [b""]
    digests = b"".join(hashlib.md5(part).digest() for part in parts)
    return f"{hashlib.md5(digests).hexdigest()}-{len(parts)}"


def deterministic_content(size: int) -> bytes:
    return bytes((i * 31 + 7) % 251 for i in range(size))


class TestChecksumCalculator:
    """Test ETag calculation."""

    def setup_method(self):
        """Set up test fixtures."""
        self.calculator = ChecksumCalculator(unit=UNIT, read_size=100)

    def _write(self, tmp_path: Path, content: bytes, name: str = "asset.bin") -> Path:
        path = tmp_path / name
        path.write_bytes(content)
        return path

    def test_small_file_uses_plain_md5(self, tmp_path):
        """Test that a file smaller than one chunk gets its plain MD5."""
        content = b"body { color: red; }"
        path = self._write(tmp_path, content)

        etag = self.calculator.calculate_etag(path, 8)

        assert etag == hashlib.md5(content).hexdigest()
        assert "-" not in etag

    def test_large_file_uses_multipart_format(self, tmp_path):
        """Test multipart ETag for a file spanning several chunks."""
        content = deterministic_content(10 * UNIT + 37)
        path = self._write(tmp_path, content)

        etag = self.calculator.calculate_etag(path, 3)

        assert etag == multipart_etag(content, 3 * UNIT)
        assert etag.endswith("-4")

    def test_exact_multiple_of_chunk_size(self, tmp_path):
        """Test that no empty trailing part is counted."""
        content = deterministic_content(6 * UNIT)
        path = self._write(tmp_path, content)

        etag = self.calculator.calculate_etag(path, 2)

        assert etag == multipart_etag(content, 2 * UNIT)
        assert etag.endswith("-3")

    def test_calculation_is_idempotent(self, tmp_path):
        """Test that hashing the same file twice gives the same ETag."""
        path = self._write(tmp_path, deterministic_content(5 * UNIT + 1))

        assert self.calculator.calculate_etag(path, 2) == self.calculator.calculate_etag(path, 2)

    def test_threshold_boundary(self, tmp_path):
        """Test files exactly at and one byte below the chunk size."""
        at_threshold = deterministic_content(4 * UNIT)
        below_threshold = at_threshold[:-1]
        at_path = self._write(tmp_path, at_threshold, "at.bin")
        below_path = self._write(tmp_path, below_threshold, "below.bin")

        at_etag = self.calculator.calculate_etag(at_path, 4)
        below_etag = self.calculator.calculate_etag(below_path, 4)

        # Different code paths
        assert at_etag == multipart_etag(at_threshold, 4 * UNIT)
        assert at_etag.endswith("-1")
        assert below_etag == hashlib.md5(below_threshold).hexdigest()

        # Both verify against their own ETag
        assert self.calculator.verify_etag(at_path, 4, at_etag) is True
        assert self.calculator.verify_etag(below_path, 4, below_etag) is True

    def test_multipart_expected_forces_single_part_format(self, tmp_path):
        """Test that a small file compared with a multipart tag keeps the -1 suffix."""
        content = b"tiny"
        path = self._write(tmp_path, content)
        expected = multipart_etag(content, 8 * UNIT)

        etag = self.calculator.calculate_etag(path, 8, expected)

        assert etag == expected
        assert etag.endswith("-1")

    def test_empty_file(self, tmp_path):
        """Test ETags of an empty file."""
        path = self._write(tmp_path, b"")

        assert self.calculator.calculate_etag(path, 8) == hashlib.md5(b"").hexdigest()
        assert self.calculator.calculate_etag(path, 8, "a" * 32 + "-1") == multipart_etag(b"", UNIT)

    def test_zero_chunk_size_raises(self, tmp_path):
        """Test that a zero chunk size is rejected."""
        path = self._write(tmp_path, b"data")

        with pytest.raises(ChecksumError):
            self.calculator.calculate_etag(path, 0)

    def test_missing_file_raises_read_error(self, tmp_path):
        """Test that unreadable files raise AssetReadError."""
        with pytest.raises(AssetReadError):
            self.calculator.calculate_etag(tmp_path / "missing.css", 8)

    def test_default_unit_is_one_megabyte(self):
        """Test the default chunk unit."""
        assert ChecksumCalculator().unit == 1024 * 1024


class TestVerifyEtag:
    """Test ETag verification and chunk size guessing."""

    def setup_method(self):
        """Set up test fixtures."""
        self.calculator = ChecksumCalculator(unit=UNIT, read_size=100)

    def test_verify_plain_md5_case_insensitive(self, tmp_path):
        """Test verification ignores case and surrounding quotes."""
        content = b"console.log('hello');"
        path = tmp_path / "app.js"
        path.write_bytes(content)
        expected = '"' + hashlib.md5(content).hexdigest().upper() + '"'

        assert self.calculator.verify_etag(path, 8, expected) is True

    def test_verify_mismatch(self, tmp_path):
        """Test verification fails for different content."""
        path = tmp_path / "app.js"
        path.write_bytes(b"new content")

        assert self.calculator.verify_etag(path, 8, hashlib.md5(b"old content").hexdigest()) is False

    def test_verify_round_trip(self, tmp_path):
        """Test verify(compute(file)) for several chunk sizes."""
        path = tmp_path / "bundle.js"
        path.write_bytes(deterministic_content(9 * UNIT + 5))

        for chunk_size in (1, 2, 3, 5, 9, 10, 16):
            etag = self.calculator.calculate_etag(path, chunk_size)
            assert self.calculator.verify_etag(path, chunk_size, etag) is True

    def test_guess_recovers_unknown_chunk_size(self, tmp_path):
        """Test that the part size is found from the part count."""
        content = deterministic_content(10 * UNIT + 37)
        path = tmp_path / "video.mp4"
        path.write_bytes(content)
        expected = multipart_etag(content, 3 * UNIT)

        assert self.calculator.verify_etag(path, 8, expected, guess=True) is True
        assert self.calculator.guess_chunk_size(path, expected) == 3

    def test_no_guess_without_flag(self, tmp_path):
        """Test that guessing only happens when requested."""
        content = deterministic_content(10 * UNIT + 37)
        path = tmp_path / "video.mp4"
        path.write_bytes(content)
        expected = multipart_etag(content, 3 * UNIT)

        assert self.calculator.verify_etag(path, 8, expected) is False

    def test_guess_returns_smallest_matching_size(self, tmp_path):
        """Test the scan runs in ascending order and stops at the first match."""
        content = deterministic_content(20 * UNIT)
        path = tmp_path / "archive.zip"
        path.write_bytes(content)
        expected = multipart_etag(content, 5 * UNIT)

        assert list(self.calculator.candidate_chunk_sizes(20 * UNIT, 4)) == [5, 6]
        assert self.calculator.guess_chunk_size(path, expected) == 5

    def test_guess_fails_for_changed_content(self, tmp_path):
        """Test that guessing exhausts the range and reports a mismatch."""
        original = deterministic_content(10 * UNIT)
        path = tmp_path / "image.png"
        path.write_bytes(original[:-1] + b"\x00")
        expected = multipart_etag(original, 3 * UNIT)

        assert self.calculator.verify_etag(path, 8, expected, guess=True) is False
        assert self.calculator.guess_chunk_size(path, expected) is None

    def test_guess_skipped_for_plain_hash(self, tmp_path):
        """Test that a bare 32 character hash never triggers guessing."""
        path = tmp_path / "large.bin"
        path.write_bytes(deterministic_content(10 * UNIT))
        calculator = ChecksumCalculator(unit=UNIT)

        calculator.guess_chunk_size = lambda *args: pytest.fail("guess should not run")
        assert calculator.verify_etag(path, 2, "0" * 32, guess=True) is False

    def test_verify_zero_chunk_size_fails(self, tmp_path):
        """Test that an invalid chunk size verifies as a mismatch."""
        path = tmp_path / "a.css"
        path.write_bytes(b"a")

        assert self.calculator.verify_etag(path, 0, hashlib.md5(b"a").hexdigest()) is False

    def test_verify_unreadable_file_fails(self, tmp_path):
        """Test that a missing file verifies as a mismatch."""
        assert self.calculator.verify_etag(tmp_path / "missing", 8, "a" * 32 + "-2", guess=True) is False

    def test_verify_unreadable_file_warns(self, tmp_path):
        """Test that a read failure during verification is reported."""
        console = Mock()
        calculator = ChecksumCalculator(unit=UNIT, console=console)

        assert calculator.verify_etag(tmp_path / "missing.css", 8, "a" * 32) is False

        message = console.print.call_args[0][0]
        assert message.startswith("[yellow]Warning: Could not verify")
        assert "missing.css" in message

    def test_verify_zero_chunk_size_does_not_warn(self, tmp_path):
        """Test that an invalid chunk size fails silently."""
        path = tmp_path / "a.css"
        path.write_bytes(b"a")
        console = Mock()

        assert ChecksumCalculator(unit=UNIT, console=console).verify_etag(path, 0, "a" * 32) is False
        console.print.assert_not_called()

    def test_verify_without_expected(self, tmp_path):
        """Test that an empty expected ETag never verifies."""
        path = tmp_path / "a.css"
        path.write_bytes(b"a")

        assert self.calculator.verify_etag(path, 8, "") is False
        assert self.calculator.verify_etag(path, 8, None) is False

    def test_single_part_candidates(self):
        """Test candidate sizes for a single-part tag."""
        assert list(self.calculator.candidate_chunk_sizes(3 * UNIT + 1, 1)) == [4]
        assert list(self.calculator.candidate_chunk_sizes(0, 1)) == [1]


class TestMultipartFormat:
    """Test multipart ETag detection."""

    def test_is_multipart_etag(self):
        assert is_multipart_etag("d41d8cd98f00b204e9800998ecf8427e-3") is True
        assert is_multipart_etag("d41d8cd98f00b204e9800998ecf8427e") is False
        assert is_multipart_etag("abc-3") is False
        assert is_multipart_etag(None) is False
