"""CLI interface for blobmirror."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import AzureBlobClient
from .config import MirrorConfig, load_config, load_root_folder
from .exceptions import BlobMirrorError, ConfigError
from .output import OutputFormatter
from .paths import PathCodec, resolve_path, resolve_root
from .sync.engine import SyncEngine, run

logger = logging.getLogger(__name__)


def _load_config(ctx: Any) -> MirrorConfig:
    """Load the configuration, exiting with status 2 when it is invalid."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        return load_config(ctx.obj["config_file"], **ctx.obj["overrides"])
    except ConfigError as e:
        out.error(str(e))
        ctx.exit(2)


def _make_client(config: MirrorConfig) -> AzureBlobClient:
    return AzureBlobClient(
        account_name=config.storage_account,
        account_key=config.account_key,
        container_name=config.container_name,
        endpoint=config.endpoint,
    )


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="JSON config file (default: ~/.config/blobmirror/config.json)",
)
@click.option("--root", "-r", help="Local folder to mirror")
@click.option("--account", "-a", help="Storage account name")
@click.option("--account-key", "-k", help="Storage account key")
@click.option("--container", "-c", help="Target container name")
@click.option("--endpoint", help="Blob service URL override")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="blobmirror")
@click.pass_context
def main(
    ctx: Any,
    config_file: Optional[Path],
    root: Optional[str],
    account: Optional[str],
    account_key: Optional[str],
    container: Optional[str],
    endpoint: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """blobmirror - Mirror a local folder into an Azure blob container."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["overrides"] = {
        "root_folder": root,
        "storage_account": account,
        "account_key": account_key,
        "container_name": container,
        "endpoint": endpoint,
    }
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("blobmirror").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--debounce",
    "-d",
    type=float,
    default=None,
    help="Seconds to wait for changes to a path to settle (default: 10)",
)
@click.pass_context
def watch(ctx: Any, debounce: Optional[float]) -> None:
    """Watch the root folder and mirror every change until interrupted."""
    out: OutputFormatter = ctx.obj["out"]
    if debounce is not None:
        ctx.obj["overrides"]["debounce_seconds"] = debounce
    config = _load_config(ctx)

    if not ctx.obj["verbose"]:
        logging.getLogger("blobmirror").setLevel(logging.INFO)

    out.info(
        f"Mirroring {config.root_folder} -> "
        f"{config.storage_account}/{config.container_name}"
    )
    out.info("Press Ctrl+C to stop")

    try:
        stats = run(config)
    except ConfigError as e:
        out.error(str(e))
        ctx.exit(2)
    except BlobMirrorError as e:
        out.error(str(e))
        ctx.exit(1)

    out.print_summary(
        "Watch summary",
        {
            "Events": stats.events,
            "Dispatched": stats.dispatched,
            "Ignored": stats.ignored,
            "Failures": stats.failures,
        },
    )


@main.command()
@click.argument("event", type=click.Choice(["create", "remove", "update"]))
@click.argument("path")
@click.pass_context
def dispatch(ctx: Any, event: str, path: str) -> None:
    """Run the EVENT handler once for PATH.

    PATH does not need to exist for the remove handler.
    """
    out: OutputFormatter = ctx.obj["out"]
    config = _load_config(ctx)
    absolute = resolve_path(path)

    try:
        with _make_client(config) as client:
            engine = SyncEngine(client, PathCodec(resolve_root(config.root_folder)))
            engine.dispatch(event, absolute)
    except BlobMirrorError as e:
        out.error(str(e))
        ctx.exit(1)

    out.success(f"{event} {absolute}")


@main.command()
@click.argument("prefix", default="")
@click.pass_context
def ls(ctx: Any, prefix: str) -> None:
    """List remote blob names starting with PREFIX."""
    out: OutputFormatter = ctx.obj["out"]
    config = _load_config(ctx)
    codec = PathCodec(config.root_folder)

    try:
        with _make_client(config) as client:
            names = sorted(client.list(codec.encode(prefix)))
    except BlobMirrorError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json(names)
        return
    for name in names:
        out.print(name)
    out.info(f"{len(names)} blob(s)")


@main.command()
@click.argument("path")
@click.pass_context
def key(ctx: Any, path: str) -> None:
    """Print the blob key PATH is stored under."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        root = load_root_folder(
            ctx.obj["config_file"], root_folder=ctx.obj["overrides"]["root_folder"]
        )
    except ConfigError as e:
        out.error(str(e))
        ctx.exit(2)

    codec = PathCodec(resolve_root(root))
    try:
        blob_key = codec.blob_key_for(resolve_path(path))
    except BlobMirrorError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json({"path": path, "key": blob_key})
    else:
        out.print(blob_key)


if __name__ == "__main__":
    main()
