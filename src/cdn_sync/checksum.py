"""S3 ETag calculation and verification for local assets."""

import hashlib
import re
from pathlib import Path
from typing import List, Optional, Union

from rich.console import Console
from rich.markup import escape

from cdn_sync.exceptions import AssetReadError, ChecksumError

MEGABYTE = 1024 * 1024

# "<32 hex chars>-<part count>" as reported for multipart uploads
MULTIPART_ETAG_RE = re.compile(r"^\w{32}-\w+$")
PART_COUNT_RE = re.compile(r"-(\d+)$")

PathLike = Union[str, Path]


def is_multipart_etag(etag: Optional[str]) -> bool:
    """Return True if the ETag uses the multipart ``hash-count`` format."""
    return bool(etag) and MULTIPART_ETAG_RE.match(etag) is not None


class ChecksumCalculator:
    """Calculate S3-compatible ETags for local files.

    Objects uploaded in a single request carry the plain MD5 of their
    content. Multipart uploads carry the MD5 of the concatenated binary
    digests of every part, followed by ``-<part count>``. The part size is
    not part of the tag, so verification can scan every part size that
    yields the declared count for the file's size.

    Chunk sizes are expressed in units of ``unit`` bytes (one MiB by default).
    """

    def __init__(
        self,
        unit: int = MEGABYTE,
        read_size: int = 64 * 1024,
        console: Optional[Console] = None,
    ):
        self.unit = unit
        self.read_size = read_size
        self.console = console or Console()

    def calculate_md5(self, file_path: PathLike) -> str:
        """Calculate the MD5 hex digest of a whole file."""
        md5_hash = hashlib.md5()
        try:
            with open(file_path, "rb") as f:
                for block in iter(lambda: f.read(self.read_size), b""):
                    md5_hash.update(block)
        except OSError as e:
            raise AssetReadError(file_path, e.strerror or str(e)) from e
        return md5_hash.hexdigest()

    def calculate_etag(
        self,
        file_path: PathLike,
        chunk_size_mb: int,
        expected: Optional[str] = None,
    ) -> str:
        """
        Calculate the ETag S3 would report for a file.

        Args:
            file_path: File to hash
            chunk_size_mb: Part size used for the multipart format
            expected: ETag the result will be compared with; a multipart
                expected value forces the multipart format even for files
                smaller than one part

        Returns:
            Plain MD5 hex digest, or ``"<md5>-<parts>"`` for the multipart format

        Raises:
            ChecksumError: If the chunk size is not positive
            AssetReadError: If the file cannot be read
        """
        if chunk_size_mb <= 0:
            raise ChecksumError(f"Chunk size must be positive, got {chunk_size_mb}")

        chunk_bytes = chunk_size_mb * self.unit
        file_size = self._file_size(file_path)

        if file_size < chunk_bytes and not is_multipart_etag(expected):
            return self.calculate_md5(file_path)

        return self._multipart_etag(file_path, chunk_bytes)

    def verify_etag(
        self,
        file_path: PathLike,
        chunk_size_mb: int,
        expected: Optional[str],
        guess: bool = False,
    ) -> bool:
        """
        Check a local file against an ETag from the bucket listing.

        When ``guess`` is set and the multipart tag does not match at
        ``chunk_size_mb``, every part size consistent with the tag's part
        count is tried. Unreadable files (reported as a warning) and invalid
        chunk sizes verify as False so the caller re-uploads them.
        """
        if not expected:
            return False
        expected = expected.strip('"').lower()

        try:
            actual = self.calculate_etag(file_path, chunk_size_mb, expected)
            if actual == expected:
                return True

            if not guess or len(expected) == 32 or not is_multipart_etag(expected):
                return False

            return self.guess_chunk_size(file_path, expected) is not None
        except AssetReadError as e:
            self.console.print(f"[yellow]Warning: Could not verify {escape(str(e))}[/yellow]")
            return False
        except ChecksumError:
            return False

    def guess_chunk_size(self, file_path: PathLike, expected: str) -> Optional[int]:
        """
        Find the part size (in units) that reproduces a multipart ETag.

        Returns:
            The smallest matching chunk size, or None if no candidate matches
        """
        match = PART_COUNT_RE.search(expected)
        if not match:
            return None

        parts = int(match.group(1))
        if parts < 1:
            return None

        expected = expected.lower()
        file_size = self._file_size(file_path)
        for chunk_size_mb in self.candidate_chunk_sizes(file_size, parts):
            if self._multipart_etag(file_path, chunk_size_mb * self.unit) == expected:
                return chunk_size_mb

        return None

    def candidate_chunk_sizes(self, file_size: int, parts: int) -> range:
        """Chunk sizes (in units) that split ``file_size`` into exactly ``parts``."""
        min_chunk = max(1, -(-file_size // (parts * self.unit)))
        if parts == 1:
            return range(min_chunk, min_chunk + 1)

        max_chunk = file_size // ((parts - 1) * self.unit)
        return range(min_chunk, max_chunk + 1)

    def _multipart_etag(self, file_path: PathLike, chunk_bytes: int) -> str:
        digests: List[bytes] = []

        try:
            with open(file_path, "rb") as f:
                while True:
                    part_hash = hashlib.md5()
                    remaining = chunk_bytes
                    while remaining > 0:
                        block = f.read(min(self.read_size, remaining))
                        if not block:
                            break
                        part_hash.update(block)
                        remaining -= len(block)

                    # Nothing left after a full part
                    if remaining == chunk_bytes and digests:
                        break

                    digests.append(part_hash.digest())
                    if remaining > 0:
                        break
        except OSError as e:
            raise AssetReadError(file_path, e.strerror or str(e)) from e

        return f"{hashlib.md5(b''.join(digests)).hexdigest()}-{len(digests)}"

    def _file_size(self, file_path: PathLike) -> int:
        try:
            return Path(file_path).stat().st_size
        except OSError as e:
            raise AssetReadError(file_path, e.strerror or str(e)) from e
