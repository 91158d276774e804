"""CLI interface for pyrmbackup."""

import asyncio
import logging
from typing import Any, Optional

import click
from rich.text import Text
from rich.tree import Tree

from .api import RemarkableClient
from .config import HOST_KEY, config
from .exceptions import ConfigError, DeviceUnavailableError, RemarkableError
from .models import FolderNode, Hierarchy
from .output import OutputFormatter
from .sync import BackupEngine, FailurePolicy
from .utils import DEFAULT_HOST

logger = logging.getLogger(__name__)


@click.group()
@click.option(
    "--udp-mode",
    is_flag=True,
    help="Keep going when a download or a copy fails, and report failures at the end",
)
@click.option(
    "--override-mode",
    is_flag=True,
    help="Overwrite files already present in the output path instead of failing",
)
@click.option(
    "--async-mode",
    is_flag=True,
    help=(
        "Send download requests concurrently. Faster, but the tablet does not "
        "handle concurrent requests well and file integrity is not guaranteed"
    ),
)
@click.option(
    "--concurrent-request",
    type=click.IntRange(min=1),
    default=None,
    help="Number of concurrent requests in async mode (default: 2)",
)
@click.option("--host", envvar="RMBACKUP_HOST", help="Base URL of the tablet")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pyrmbackup")
@click.pass_context
def main(
    ctx: Any,
    udp_mode: bool,
    override_mode: bool,
    async_mode: bool,
    concurrent_request: Optional[int],
    host: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pyrmbackup - Partial to full backup of your reMarkable documents."""
    ctx.ensure_object(dict)
    # JSON output implies quiet
    out = OutputFormatter(json_output=json, quiet=quiet or json)
    ctx.obj["out"] = out
    ctx.obj["host"] = host
    ctx.obj["policy"] = FailurePolicy.from_flag(udp_mode)
    ctx.obj["override"] = override_mode

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pyrmbackup").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    if not async_mode:
        ctx.obj["concurrency"] = 1
        return

    try:
        ctx.obj["concurrency"] = concurrent_request or config.concurrency
    except ConfigError as e:
        out.error(f"[FATAL]: {e}")
        ctx.exit(1)


async def _connect(client: RemarkableClient, out: OutputFormatter) -> None:
    """Probe the tablet before doing anything else.

    Raises:
        DeviceUnavailableError: If the tablet does not answer
    """
    if not out.quiet:
        out.info("Connecting to remarkable via USB...")
    if not await client.is_up():
        raise DeviceUnavailableError(
            "Web USB port is not enabled, or your remarkable is not plugged in"
        )
    if not out.quiet:
        out.success("Connected to remarkable")
        out.info("Do not unplug your remarkable during transfers!")


def _make_engine(ctx: Any, client: RemarkableClient) -> BackupEngine:
    return BackupEngine(
        client,
        output=ctx.obj["out"],
        policy=ctx.obj["policy"],
        override=ctx.obj["override"],
        concurrency=ctx.obj["concurrency"],
    )


def _run(ctx: Any, coro: Any) -> Any:
    """Run ``coro`` and turn failures into a fatal message and exit code."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        out.warning("\nCancelled by user")
        ctx.exit(130)  # Standard exit code for SIGINT
    except RemarkableError as e:
        logger.debug("Fatal error", exc_info=True)
        out.error(f"[FATAL]: {e}")
        ctx.exit(1)


@main.command()
@click.option(
    "--host",
    "host_url",
    prompt="Base URL of the tablet",
    default=DEFAULT_HOST,
    help="Base URL of the tablet web interface",
)
@click.pass_context
def init(ctx: Any, host_url: str) -> None:
    """Save the tablet address in the configuration file.

    Stores the host in ~/.config/pyrmbackup/config for future use.
    """
    out: OutputFormatter = ctx.obj["out"]
    out.info("Checking the tablet...")

    async def probe() -> bool:
        async with RemarkableClient(host=host_url) as client:
            return await client.is_up()

    if _run(ctx, probe()):
        out.success("Tablet is reachable")
    else:
        out.warning(f"No answer from {host_url}")
        if not click.confirm("Save host anyway?", default=False):
            out.warning("Configuration cancelled.")
            ctx.exit(1)

    try:
        config.save_value(HOST_KEY, host_url.rstrip("/"))
    except OSError as e:
        out.error(f"[FATAL]: Failed to save configuration: {e}")
        ctx.exit(1)
    out.success(f"Configuration saved to {config.get_config_path()}")


@main.command()
@click.option(
    "--output-path",
    "-o",
    required=True,
    type=click.Path(file_okay=False),
    help="Folder location to save the downloaded files",
)
@click.option(
    "--allow-creation/--no-allow-creation",
    "-a",
    default=True,
    help="Create the output path if it does not exist yet",
)
@click.option(
    "--smart/--full",
    default=False,
    help="Only download documents modified since the last backup",
)
@click.pass_context
def backup(ctx: Any, output_path: str, allow_creation: bool, smart: bool) -> None:
    """Download all the files and folders from the tablet (full backup).

    Examples:
        pyrmbackup backup -o ./backup                 # Full backup
        pyrmbackup backup -o ./backup --smart         # Only changed documents
        pyrmbackup --udp-mode backup -o ./backup      # Keep going on errors
    """
    out: OutputFormatter = ctx.obj["out"]

    async def run() -> dict:
        async with RemarkableClient(host=ctx.obj["host"]) as client:
            await _connect(client, out)
            engine = _make_engine(ctx, client)
            return await engine.backup(
                output_path, smart=smart, allow_creation=allow_creation
            )

    stats = _run(ctx, run())
    out.output_json(stats)
    if not stats or not ctx.obj["policy"].is_permissive or out.quiet:
        return
    if stats["failures"] or stats["write_failures"] or stats["skipped_dirs"]:
        out.warning("Some documents were skipped, see the report above")


@main.command()
@click.option(
    "--id",
    "doc_ids",
    multiple=True,
    required=True,
    help="ID of a document to download (can be repeated)",
)
@click.option(
    "--output-path",
    "-o",
    required=True,
    type=click.Path(file_okay=False),
    help="Folder location to save the downloaded files",
)
@click.option(
    "--allow-creation/--no-allow-creation",
    "-a",
    default=True,
    help="Create the output path if it does not exist yet",
)
@click.pass_context
def download(
    ctx: Any, doc_ids: tuple[str, ...], output_path: str, allow_creation: bool
) -> None:
    """Download specific documents from the tablet by ID.

    Examples:
        pyrmbackup download --id 0a1b2c -o ./out
        pyrmbackup download --id 0a1b2c --id 3d4e5f -o ./out
    """
    out: OutputFormatter = ctx.obj["out"]

    async def run() -> dict:
        async with RemarkableClient(host=ctx.obj["host"]) as client:
            await _connect(client, out)
            engine = _make_engine(ctx, client)
            return await engine.download_ids(
                list(doc_ids), output_path, allow_creation=allow_creation
            )

    stats = _run(ctx, run())
    out.output_json(stats)
    if stats and stats["not_found"]:
        ctx.exit(1)


def _build_tree(node: FolderNode, hierarchy: Hierarchy, tree: Tree) -> None:
    names = sorted(
        doc.visible_name
        for doc in hierarchy.iter_documents()
        if doc.id in node.file_ids
    )
    for child in node.children:
        branch = tree.add(Text(f"{child.name}/", style="bold blue"))
        _build_tree(child, hierarchy, branch)
    for name in names:
        tree.add(Text(name))


def _tree_to_dict(node: FolderNode, hierarchy: Hierarchy) -> dict:
    return {
        "name": node.name,
        "id": node.id,
        "documents": [
            {"id": doc.id, "name": doc.visible_name}
            for doc in hierarchy.iter_documents()
            if doc.id in node.file_ids
        ],
        "folders": [_tree_to_dict(child, hierarchy) for child in node.children],
    }


@main.command()
@click.pass_context
def ls(ctx: Any) -> None:
    """Show the folder tree of the tablet."""
    out: OutputFormatter = ctx.obj["out"]

    async def run() -> Hierarchy:
        async with RemarkableClient(host=ctx.obj["host"]) as client:
            await _connect(client, out)
            return await _make_engine(ctx, client).fetch_hierarchy()

    hierarchy = _run(ctx, run())
    if out.json_output:
        out.output_json(_tree_to_dict(hierarchy.root, hierarchy))
        return

    tree = Tree(Text(f"{hierarchy.root.name}/", style="bold blue"))
    _build_tree(hierarchy.root, hierarchy, tree)
    out.print(tree)
    folders = sum(1 for _ in hierarchy.root.walk()) - 1
    documents = sum(1 for _ in hierarchy.iter_documents())
    out.print(f"{folders} folder(s), {documents} document(s)")


if __name__ == "__main__":
    main()
