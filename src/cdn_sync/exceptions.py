"""Error kinds raised by the CDN sync engine."""

from typing import Optional


class CdnSyncError(Exception):
    """Base exception for cdn-sync errors."""
    pass


class ConfigurationError(CdnSyncError):
    """Raised when a required setting is missing or invalid."""

    def __init__(self, message: str, missing: Optional[list] = None):
        self.missing = list(missing or [])
        super().__init__(message)


class StorageConnectionError(CdnSyncError):
    """Raised when the S3 client cannot be created or authenticated."""
    pass


class StorageError(CdnSyncError):
    """Raised when listing, uploading or deleting objects fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        key: Optional[str] = None,
        code: Optional[str] = None,
    ):
        self.operation = operation
        self.key = key
        self.code = code
        super().__init__(message)


class AssetReadError(CdnSyncError):
    """Raised when a local asset cannot be read."""

    def __init__(self, path, reason: str):
        self.path = path
        super().__init__(f"Cannot read {path}: {reason}")


class CompressionError(CdnSyncError):
    """Raised when compressing an asset fails."""
    pass


class ChecksumError(CdnSyncError):
    """Raised for checksum requests that cannot be computed."""
    pass
