"""Command-line interface for cdn-sync."""

from pathlib import Path
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from cdn_sync import __version__
from cdn_sync.assets import LocalAsset
from cdn_sync.compression import needs_compression
from cdn_sync.config import Config
from cdn_sync.config_manager import DEFAULT_CONFIG, get_config_path, load_config, save_config
from cdn_sync.exceptions import ConfigurationError
from cdn_sync.sync_engine import CdnSync, SyncResult

app = typer.Typer(
    name="cdn-sync",
    help="Push static assets to an S3 bucket and build their public URLs",
    add_completion=False,
)
console = Console()


# Color constants for consistent styling
class Colors:
    RED = "[red]"
    GREEN = "[green]"
    RESET = "[/red]"
    GREEN_RESET = "[/green]"


# Message templates for consistent formatting
class Messages:
    # Error messages
    CONFIG_LOAD_ERROR = "Error loading configuration: {error}"
    CONFIG_INVALID = "Invalid configuration: {error}"
    CONFIG_EXISTS = "Configuration already exists at {path} (use --force to overwrite)"
    PUSH_FAILED = "Push failed: {error}"
    EMPTY_FAILED = "Emptying bucket failed: {error}"

    # Success messages
    CONFIG_INITIALIZED = "Configuration written to {path}"

    # Result states
    DRY_RUN_COMPLETED = "Dry run completed"
    PUSH_COMPLETED = "Push completed successfully"
    EMPTY_CANCELLED = "Emptying canceled by user"
    EMPTY_COMPLETED = "Bucket emptied"


def error_msg(message: str) -> str:
    """Format error message with consistent styling."""
    return f"{Colors.RED}{message}{Colors.RESET}"


def success_msg(message: str) -> str:
    """Format success message with consistent styling."""
    return f"{Colors.GREEN}{message}{Colors.GREEN_RESET}"


def format_file_count(file_count: int, action: str) -> str:
    """Format file count message with consistent styling."""
    return f"\n{action} {file_count} file(s)"


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"cdn-sync {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """Push static assets to an S3 bucket and build their public URLs."""


def _resolve_config_path(config_path: Optional[Path]) -> Path:
    return config_path if config_path else get_config_path()


def _load_and_configure(
    config_path: Optional[Path],
    profile: Optional[str] = None,
    bucket: Optional[str] = None,
    source_root: Optional[Path] = None,
    verbose: Optional[bool] = None,
) -> Config:
    """Load the config file, apply environment and command line overrides."""
    path = _resolve_config_path(config_path)
    try:
        data = load_config(path)
        config = Config.from_env(Config.from_dict(data))
    except (yaml.YAMLError, ConfigurationError, TypeError, ValueError) as e:
        console.print(error_msg(Messages.CONFIG_LOAD_ERROR.format(error=e)))
        raise typer.Exit(1)

    return config.with_overrides(
        profile=profile,
        bucket=bucket,
        source_root=source_root,
        verbose=verbose,
    )


def _validate_configuration(config: Config) -> Config:
    """Validate required configuration settings."""
    try:
        return config.validate()
    except ConfigurationError as e:
        console.print(error_msg(Messages.CONFIG_INVALID.format(error=e)))
        raise typer.Exit(1)


def _display_plan(config: Config, planned: List[LocalAsset]) -> None:
    """Show the files a push would upload."""
    table = Table(title="Files to upload")
    table.add_column("Path")
    table.add_column("Size", justify="right")
    table.add_column("Compressed")

    for asset in planned:
        table.add_row(
            escape(asset.relative_path),
            f"{asset.size:,}",
            "yes" if needs_compression(asset, config.compression) else "",
        )
    console.print(table)


def _display_results(config: Config, result: SyncResult) -> None:
    """Display push results."""
    if not result.succeeded:
        console.print(error_msg(Messages.PUSH_FAILED.format(error=result.error)))
        console.print(format_file_count(result.files_uploaded, "Uploaded"))
        raise typer.Exit(1)

    if result.dry_run:
        if result.planned:
            _display_plan(config, result.planned)
        console.print(format_file_count(len(result.planned), "Would upload"))
        console.print(success_msg(Messages.DRY_RUN_COMPLETED))
    else:
        console.print(format_file_count(result.files_uploaded, "Uploaded"))
        console.print(success_msg(Messages.PUSH_COMPLETED))
    console.print()


@app.command()
def push(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to the YAML config file"),
    profile: Optional[str] = typer.Option(None, help="AWS profile"),
    bucket: Optional[str] = typer.Option(None, help="Bucket name (overrides the config file)"),
    source_root: Optional[Path] = typer.Option(None, help="Directory holding the assets"),
    dry_run: bool = typer.Option(False, help="Show what would be uploaded without uploading"),
    verbose: bool = typer.Option(False, help="Explain the decision for every file"),
) -> None:
    """Upload new and changed assets to the bucket."""
    config = _load_and_configure(config_path, profile, bucket, source_root, verbose or None)
    config = _validate_configuration(config)

    sync_engine = CdnSync(config, console=console)
    result = sync_engine.push(dry_run=dry_run)
    _display_results(config, result)


@app.command()
def empty(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to the YAML config file"),
    profile: Optional[str] = typer.Option(None, help="AWS profile"),
    bucket: Optional[str] = typer.Option(None, help="Bucket name (overrides the config file)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete every object in the bucket."""
    config = _load_and_configure(config_path, profile, bucket)
    config = _validate_configuration(config)

    if not yes and not Confirm.ask(f"Delete every object in bucket '{config.bucket}'?"):
        console.print(success_msg(Messages.EMPTY_CANCELLED))
        return

    result = CdnSync(config, console=console).empty_bucket()
    if not result.succeeded:
        console.print(error_msg(Messages.EMPTY_FAILED.format(error=result.error)))
        raise typer.Exit(1)

    console.print(format_file_count(result.deleted, "Deleted"))
    console.print(success_msg(Messages.EMPTY_COMPLETED))


@app.command()
def url(
    path: str = typer.Argument(help="Asset path relative to the source root"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to the YAML config file"),
) -> None:
    """Print the public URL of an asset."""
    config = _load_and_configure(config_path)
    try:
        resolved = CdnSync(config, console=console).url(path)
    except ConfigurationError as e:
        console.print(error_msg(Messages.CONFIG_INVALID.format(error=e)))
        raise typer.Exit(1)
    typer.echo(resolved)


@app.command()
def init(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Where to write the config file"),
    force: bool = typer.Option(False, help="Overwrite an existing config file"),
) -> None:
    """Write a starter configuration file."""
    path = _resolve_config_path(config_path)
    if path.exists() and not force:
        console.print(error_msg(Messages.CONFIG_EXISTS.format(path=path)))
        raise typer.Exit(1)

    save_config(path, DEFAULT_CONFIG)
    console.print(success_msg(Messages.CONFIG_INITIALIZED.format(path=path)))


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
