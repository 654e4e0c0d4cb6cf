"""Compression of assets before upload."""

import zlib
from typing import BinaryIO, Tuple, Union

from cdn_sync.assets import LocalAsset
from cdn_sync.config import SUPPORTED_COMPRESSION, CompressionConfig
from cdn_sync.exceptions import AssetReadError, CompressionError

IDENTITY_ENCODING = "identity"

# zlib wbits selecting the container format
_WBITS = {
    "gzip": 16 + zlib.MAX_WBITS,
    "deflate": zlib.MAX_WBITS,
}

Body = Union[bytes, BinaryIO]


def needs_compression(asset: LocalAsset, policy: CompressionConfig) -> bool:
    """Return True if the asset is compressed before upload under ``policy``."""
    return (
        bool(policy.algorithm)
        and bool(policy.extensions)
        and policy.algorithm in SUPPORTED_COMPRESSION
        and asset.extension in policy.extensions
    )


def compress(data: bytes, algorithm: str, level: int) -> bytes:
    """Compress ``data`` with the gzip or zlib (deflate) container."""
    if algorithm not in _WBITS:
        raise CompressionError(f"Unsupported compression algorithm: {algorithm}")

    try:
        compressor = zlib.compressobj(level, zlib.DEFLATED, _WBITS[algorithm])
        return compressor.compress(data) + compressor.flush()
    except (zlib.error, ValueError) as e:
        raise CompressionError(f"{algorithm} compression failed: {e}") from e


def materialize(asset: LocalAsset, policy: CompressionConfig) -> Tuple[Body, str]:
    """
    Produce the upload body for an asset.

    Compressed assets are read whole and returned as bytes with the
    algorithm name as content encoding. Other assets are returned as an
    open binary file with the ``identity`` encoding; the caller closes it.

    Raises:
        AssetReadError: If the file cannot be read
        CompressionError: If compression fails
    """
    if needs_compression(asset, policy):
        try:
            data = asset.path.read_bytes()
        except OSError as e:
            raise AssetReadError(asset.path, e.strerror or str(e)) from e
        return compress(data, policy.algorithm, policy.level), policy.algorithm

    try:
        return open(asset.path, "rb"), IDENTITY_ENCODING
    except OSError as e:
        raise AssetReadError(asset.path, e.strerror or str(e)) from e
