"""Decide which local assets must be uploaded."""

from typing import Dict, Iterable, List, Optional

from rich.console import Console
from rich.markup import escape

from cdn_sync.assets import LocalAsset, normalize_key
from cdn_sync.checksum import ChecksumCalculator
from cdn_sync.inventory import RemoteObjectRecord

DEFAULT_GUESS_CHUNK_SIZE_MB = 8


class SyncPlanner:
    """Compare local assets with the bucket inventory.

    An asset is skipped when an object with the same key has the same
    modification time and size, or when its ETag verifies against the local
    content. Metadata matches are trusted without reading the file, so a
    content change that keeps both mtime and size identical goes unnoticed.
    """

    def __init__(
        self,
        checksum_calculator: Optional[ChecksumCalculator] = None,
        key_prefix: str = "",
        console: Optional[Console] = None,
        verbose: bool = False,
    ):
        self.console = console or Console()
        self.checksum_calculator = checksum_calculator or ChecksumCalculator(console=self.console)
        self.key_prefix = key_prefix
        self.verbose = verbose

    def remote_key(self, asset: LocalAsset) -> str:
        return self.key_prefix + normalize_key(asset.relative_path)

    def plan(
        self,
        local_assets: Iterable[LocalAsset],
        inventory: Dict[str, RemoteObjectRecord],
        chunk_size_mb: int = DEFAULT_GUESS_CHUNK_SIZE_MB,
    ) -> List[LocalAsset]:
        """Return the assets that are missing or changed, in input order."""
        local_assets = list(local_assets)
        if not inventory:
            return local_assets

        return [
            asset for asset in local_assets
            if self.needs_upload(asset, inventory.get(self.remote_key(asset)), chunk_size_mb)
        ]

    def needs_upload(
        self,
        asset: LocalAsset,
        record: Optional[RemoteObjectRecord],
        chunk_size_mb: int = DEFAULT_GUESS_CHUNK_SIZE_MB,
    ) -> bool:
        if record is None:
            self._explain(asset, "new")
            return True

        if record.last_modified == asset.mtime and record.size == asset.size:
            self._explain(asset, "unchanged (timestamp and size)", skipped=True)
            return False

        if self.checksum_calculator.verify_etag(asset.path, chunk_size_mb, record.etag, guess=True):
            self._explain(asset, "unchanged (etag)", skipped=True)
            return False

        self._explain(asset, "changed")
        return True

    def _explain(self, asset: LocalAsset, reason: str, skipped: bool = False) -> None:
        if not self.verbose:
            return
        color = "bright_black" if skipped else "cyan"
        self.console.print(f"[{color}]{escape(asset.relative_path)}: {reason}[/{color}]")
