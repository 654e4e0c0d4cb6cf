"""Snapshot of the objects currently stored in the bucket."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from cdn_sync.storage import S3Storage


@dataclass(frozen=True)
class RemoteObjectRecord:
    """One object from the bucket listing."""

    key: str
    etag: str
    size: int
    last_modified: int

    @classmethod
    def from_listing(cls, obj: Dict[str, Any]) -> "RemoteObjectRecord":
        """Build a record from a ``list_objects_v2`` entry."""
        last_modified = obj.get("LastModified")
        if isinstance(last_modified, datetime):
            last_modified = int(last_modified.timestamp())

        return cls(
            key=obj["Key"],
            etag=normalize_etag(obj.get("ETag", "")),
            size=int(obj.get("Size", 0)),
            last_modified=int(last_modified or 0),
        )


def normalize_etag(etag: str) -> str:
    """Strip the quotes S3 puts around ETags and lowercase the hash."""
    return etag.strip('"').lower()


class RemoteInventory:
    """Fetch the bucket listing as a mapping of key to record."""

    def __init__(self, storage: S3Storage):
        self.storage = storage

    def fetch(self, bucket: str, prefix: str = "") -> Dict[str, RemoteObjectRecord]:
        inventory = {}
        for obj in self.storage.list_objects(bucket, prefix):
            record = RemoteObjectRecord.from_listing(obj)
            inventory[record.key] = record
        return inventory
