"""User configuration file management."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_DIR_NAME = ".cdn-sync"
CONFIG_FILE_NAME = "config.yaml"

# Written by `cdn-sync init`
DEFAULT_CONFIG: Dict[str, Any] = {
    "url": "https://s3.amazonaws.com",
    "source_root": ".",
    "chunk_size_mb": 8,
    "aws": {
        "profile": None,
        "region": "us-east-1",
    },
    "s3": {
        "buckets": {"your-bucket-name": "*"},
        "upload_folder": "",
        "acl": "public-read",
        "use_path_style_endpoint": False,
        "cloudfront": {"use": False, "cdn_url": None},
    },
    "compression": {
        "algorithm": None,
        "level": 9,
        "extensions": [".css", ".js", ".svg"],
    },
    "mimetypes": {},
    "include": {
        "directories": ["public"],
        "extensions": [],
        "patterns": [],
    },
    "exclude": {
        "directories": [],
        "files": [],
        "extensions": [],
        "patterns": [],
        "hidden": True,
    },
}


def get_config_path() -> Path:
    """Get the path to the user configuration file."""
    return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def load_config(config_path: Path) -> Optional[Dict[str, Any]]:
    """
    Load configuration from a YAML file.

    Returns:
        The parsed mapping, or None if the file does not exist

    Raises:
        yaml.YAMLError: If the file is not valid YAML
    """
    if not config_path.exists():
        return None

    with open(config_path, "r") as f:
        return yaml.safe_load(f)


def save_config(config_path: Path, config_data: Dict[str, Any]) -> None:
    """Save configuration to a YAML file, creating its directory if needed."""
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        yaml.safe_dump(config_data, f, default_flow_style=False, sort_keys=False)
