"""Local asset discovery and content type lookup."""

import fnmatch
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional

import filetype

from cdn_sync.config import ExcludeConfig, IncludeConfig
from cdn_sync.exceptions import AssetReadError

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class LocalAsset:
    """A local file that is a candidate for upload."""

    relative_path: str
    path: Path
    mtime: int
    size: int
    extension: str

    @classmethod
    def from_path(cls, path: Path, root: Path) -> "LocalAsset":
        """Describe ``path``, keyed by its location relative to ``root``."""
        stat = path.stat()
        relative = path.relative_to(root)
        return cls(
            relative_path=normalize_key(str(relative)),
            path=path.resolve(),
            mtime=int(stat.st_mtime),
            size=stat.st_size,
            extension=path.suffix,
        )


def normalize_key(relative_path: str) -> str:
    """Convert a relative path to the forward-slash form used for object keys."""
    return relative_path.replace("\\", "/")


class AssetFinder:
    """Enumerate the assets under a source root that should be synchronized."""

    def __init__(
        self,
        root: Path,
        include: Optional[IncludeConfig] = None,
        exclude: Optional[ExcludeConfig] = None,
    ):
        self.root = Path(root).resolve()
        self.include = include or IncludeConfig()
        self.exclude = exclude or ExcludeConfig()

    def find(self) -> List[LocalAsset]:
        """Return the selected assets, ordered by relative path."""
        assets = []
        for directory in self._search_roots():
            for dirpath, dirnames, filenames in os.walk(directory):
                current = Path(dirpath)
                # Prune in place so os.walk does not descend
                dirnames[:] = sorted(
                    d for d in dirnames if not self._is_excluded_dir(current / d)
                )
                for filename in sorted(filenames):
                    file_path = current / filename
                    if not (file_path.is_file() and self._is_selected(file_path)):
                        continue
                    try:
                        assets.append(LocalAsset.from_path(file_path, self.root))
                    except OSError as e:
                        raise AssetReadError(file_path, e.strerror or str(e)) from e

        unique = {asset.relative_path: asset for asset in assets}
        return [unique[key] for key in sorted(unique)]

    def _search_roots(self) -> List[Path]:
        if not self.include.directories:
            return [self.root]
        return [
            self.root / directory
            for directory in self.include.directories
            if (self.root / directory).is_dir()
        ]

    def _relative(self, path: Path) -> str:
        return normalize_key(str(path.relative_to(self.root)))

    def _is_excluded_dir(self, path: Path) -> bool:
        if self.exclude.hidden and path.name.startswith("."):
            return True
        relative = self._relative(path)
        return any(
            relative == directory.strip("/") or path.name == directory.strip("/")
            for directory in self.exclude.directories
        )

    def _is_selected(self, path: Path) -> bool:
        relative = self._relative(path)
        name = path.name

        if self.exclude.hidden and name.startswith("."):
            return False
        if name in self.exclude.files or relative in self.exclude.files:
            return False
        if path.suffix in self.exclude.extensions:
            return False
        if any(_matches(relative, pattern) for pattern in self.exclude.patterns):
            return False

        if self.include.extensions and path.suffix not in self.include.extensions:
            return False
        if self.include.patterns and not any(
            _matches(relative, pattern) for pattern in self.include.patterns
        ):
            return False

        return True


def _matches(relative_path: str, pattern: str) -> bool:
    return (
        fnmatch.fnmatch(relative_path, pattern)
        or fnmatch.fnmatch(PurePosixPath(relative_path).name, pattern)
    )


class MimetypeResolver:
    """Resolve content types from overrides, the system table, then file content."""

    def __init__(self, overrides: Optional[Dict[str, str]] = None):
        self.overrides = dict(overrides or {})

    def lookup(self, asset: LocalAsset) -> str:
        if asset.extension in self.overrides:
            return self.overrides[asset.extension]

        content_type, _ = mimetypes.guess_type(asset.path.name)
        if content_type:
            return content_type

        return self._sniff(asset) or DEFAULT_CONTENT_TYPE

    def _sniff(self, asset: LocalAsset) -> Optional[str]:
        try:
            return filetype.guess_mime(str(asset.path))
        except OSError:
            return None
