"""Sync engine pushing local assets to an S3 bucket."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from cdn_sync.assets import AssetFinder, LocalAsset, MimetypeResolver
from cdn_sync.checksum import ChecksumCalculator
from cdn_sync.compression import materialize, needs_compression
from cdn_sync.config import Config
from cdn_sync.exceptions import CdnSyncError
from cdn_sync.inventory import RemoteInventory
from cdn_sync.planner import SyncPlanner
from cdn_sync.storage import S3Storage
from cdn_sync.url import UrlResolver


class SyncState(Enum):
    """States of a sync pass."""

    IDLE = "idle"
    CONNECTED = "connected"
    PLANNING = "planning"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Outcome of a push or empty pass."""

    state: SyncState = SyncState.IDLE
    planned: List[LocalAsset] = field(default_factory=list)
    uploaded: List[LocalAsset] = field(default_factory=list)
    deleted: int = 0
    dry_run: bool = False
    error: Optional[str] = None
    transitions: List[SyncState] = field(default_factory=lambda: [SyncState.IDLE])

    def advance(self, state: SyncState) -> None:
        self.state = state
        self.transitions.append(state)

    @property
    def succeeded(self) -> bool:
        return self.state is SyncState.COMPLETED

    @property
    def files_uploaded(self) -> int:
        return len(self.uploaded)


class CdnSync:
    """Synchronize local assets with the configured bucket."""

    def __init__(
        self,
        config: Config,
        console: Optional[Console] = None,
        storage: Optional[S3Storage] = None,
    ):
        """Initialize the sync engine."""
        self.config = config
        self.console = console or Console()
        self.storage = storage or S3Storage(config)
        self.checksum_calculator = ChecksumCalculator(console=self.console)
        self.inventory = RemoteInventory(self.storage)
        self.mimetypes = MimetypeResolver(config.mimetypes)
        self.planner = SyncPlanner(
            self.checksum_calculator,
            key_prefix=config.s3.upload_folder,
            console=self.console,
            verbose=config.verbose,
        )

    def find_assets(self) -> List[LocalAsset]:
        """Scan the configured source root for assets."""
        finder = AssetFinder(
            self.config.source_root,
            include=self.config.include,
            exclude=self.config.exclude,
        )
        return finder.find()

    def push(
        self,
        assets: Optional[Sequence[LocalAsset]] = None,
        dry_run: bool = False,
    ) -> SyncResult:
        """
        Upload the assets that are missing from the bucket or changed.

        Args:
            assets: Assets to consider; the configured source root is scanned if None
            dry_run: Stop after planning without uploading anything

        Returns:
            SyncResult ending in COMPLETED, or FAILED at the first error.
            Objects uploaded before a failure stay in the bucket.
        """
        result = SyncResult(dry_run=dry_run)

        try:
            if assets is None:
                assets = self.find_assets()
            self.storage.connect()
        except CdnSyncError as e:
            return self._fail(result, e)
        result.advance(SyncState.CONNECTED)

        self.console.print("[yellow]Comparing local files and bucket...[/yellow]")
        result.advance(SyncState.PLANNING)
        try:
            inventory = self.inventory.fetch(self.config.bucket, self.config.s3.upload_folder)
            result.planned = self.planner.plan(assets, inventory, self.config.chunk_size_mb)
        except CdnSyncError as e:
            return self._fail(result, e)

        if not result.planned:
            self.console.print("[yellow]No new files to upload.[/yellow]")
            result.advance(SyncState.COMPLETED)
            return result

        if dry_run:
            result.advance(SyncState.COMPLETED)
            return result

        result.advance(SyncState.UPLOADING)
        self.console.print("[yellow]Upload in progress......[/yellow]")

        count = len(result.planned)
        for index, asset in enumerate(result.planned):
            try:
                self._upload_asset(asset, index, count)
            except CdnSyncError as e:
                return self._fail(result, e)
            result.uploaded.append(asset)

        self.console.print("[green]Upload completed successfully.[/green]")
        result.advance(SyncState.COMPLETED)
        return result

    def empty_bucket(self) -> SyncResult:
        """Delete every object in the configured bucket."""
        result = SyncResult()
        bucket = self.config.bucket

        try:
            self.storage.connect()
        except CdnSyncError as e:
            return self._fail(result, e)
        result.advance(SyncState.CONNECTED)

        self.console.print("[yellow]Emptying in progress...[/yellow]")
        try:
            result.deleted = self.storage.empty_bucket(bucket)
        except CdnSyncError as e:
            return self._fail(result, e)

        if result.deleted:
            self.console.print(f"[green]The bucket {bucket} is now empty.[/green]")
        else:
            self.console.print(f"[green]The bucket {bucket} is already empty.[/green]")

        result.advance(SyncState.COMPLETED)
        return result

    def url(self, relative_path: str) -> str:
        """Public URL of an asset."""
        return UrlResolver(self.config).resolve(relative_path)

    def remote_key(self, asset: LocalAsset) -> str:
        return self.planner.remote_key(asset)

    def _upload_asset(self, asset: LocalAsset, index: int, count: int) -> None:
        compressed = needs_compression(asset, self.config.compression)
        percent = 100 / count * (index + 1)
        self.console.print(
            f"[magenta]{percent:6.2f}% [/magenta]"
            f"[cyan]Uploading file path: {escape(str(asset.path))}[/cyan]"
            + (" [green]Compressed[/green]" if compressed else "")
        )

        s3 = self.config.s3
        body, content_encoding = materialize(asset, self.config.compression)
        try:
            self.storage.put_object(
                self.config.bucket,
                self.remote_key(asset),
                body,
                content_type=self.mimetypes.lookup(asset),
                content_encoding=content_encoding,
                acl=s3.acl,
                cache_control=s3.cache_control,
                metadata=s3.metadata,
                expires=s3.expires,
            )
        finally:
            if hasattr(body, "close"):
                body.close()

    def _fail(self, result: SyncResult, error: Exception) -> SyncResult:
        result.error = str(error)
        self.console.print(f"[red]❌ {escape(str(error))}[/red]")
        result.advance(SyncState.FAILED)
        return result
