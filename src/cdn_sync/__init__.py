"""cdn-sync - Push static assets to S3 and serve them from a CDN."""

__version__ = "0.1.0"

from cdn_sync.config import Config
from cdn_sync.sync_engine import CdnSync, SyncResult, SyncState

__all__ = ["CdnSync", "Config", "SyncResult", "SyncState", "__version__"]
