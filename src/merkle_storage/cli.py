#!/usr/bin/env python3
"""
Merkle Storage CLI

Command-line interface for the merkle storage service. Uploads files while
cross-checking the service's merkle root, lists stored files, and downloads
files only after verifying their inclusion proofs against the persisted root.
"""

import json
import logging
from typing import List, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .api.storage_client import StorageAPIError, StorageClient, StorageNotFoundError
from .config import get_server_host, get_server_port, get_server_url, get_state_file
from .main import (
    ClientProtocolError,
    ProofReport,
    RootMismatchError,
    VerificationError,
    check_status,
    download_file,
    inspect_proof,
    upload_files,
)
from .merkle import get_tree_depth
from .state import StateFileError
from .utils import bytes_to_hex

# Configure rich console
console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def _client(ctx) -> StorageClient:
    try:
        return StorageClient(ctx.obj["server_url"])
    except ValueError as e:
        _fail("Invalid configuration", e)


def _fail(message: str, exc: Exception):
    logger.error(f"{message}: {exc}")
    raise click.ClickException(f"{message}: {exc}")


def print_proof_report(report: ProofReport, format_output: str = "table"):
    """Print a proof check in various formats."""
    if format_output == "json":
        output = {
            "id": report.file_id,
            "name": report.name,
            "leaf": bytes_to_hex(report.leaf),
            "leaf_count": report.leaf_count,
            "proof": [{"hash": bytes_to_hex(step.sibling), "side": step.side.value} for step in report.proof],
            "computed_root": bytes_to_hex(report.computed_root) if report.computed_root else None,
            "trusted_root": bytes_to_hex(report.trusted_root) if report.trusted_root else None,
            "verified": report.verified,
            "error": report.error,
        }
        console.print_json(json.dumps(output, indent=2))
        return

    # Table format (default)
    table = Table(title=f"Proof for file {report.file_id}")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Name", report.name)
    table.add_row("Size", f"{len(report.content)} bytes")
    table.add_row("Leaf", bytes_to_hex(report.leaf))
    table.add_row("Leaf Count", str(report.leaf_count))
    table.add_row("Tree Depth", str(get_tree_depth(report.leaf_count)))
    table.add_row("Proof Steps", str(len(report.proof)))
    table.add_row("Computed Root", bytes_to_hex(report.computed_root) if report.computed_root else "-")
    table.add_row("Trusted Root", bytes_to_hex(report.trusted_root) if report.trusted_root else "(none)")
    table.add_row("Verified", "✅ yes" if report.verified else "❌ no")
    if report.error:
        table.add_row("Error", report.error)
    console.print(table)

    console.print("\n[bold cyan]Proof Steps:[/bold cyan]")
    for i, step in enumerate(report.proof):
        console.print(f"  {i:2d}: {step.side.value:<5} {step.sibling.hex()}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--server-url",
    envvar="MERKLE_STORAGE_URL",
    default=get_server_url,
    show_default=True,
    help="Storage service URL",
)
@click.option(
    "--state-file",
    "-s",
    envvar="MERKLE_STORAGE_STATE_FILE",
    default=get_state_file,
    show_default=True,
    help="Where the trusted root and file names are kept",
)
@click.pass_context
def cli(ctx, verbose: bool, server_url: str, state_file: str):
    """
    Merkle Storage CLI - store files and verify them on download.

    Uploading stores the service's merkle root locally after recomputing it
    independently. Downloads are only saved when their proof leads back to
    that root.
    """
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["server_url"] = server_url.rstrip("/")
    ctx.obj["state_file"] = state_file


@cli.command()
@click.argument("files", nargs=-1, type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def upload(ctx, files: List[str]):
    """
    Upload one or more files and persist the verified merkle root.

    FILES are uploaded in the order given. The root returned by the service
    is compared with a locally built tree; on mismatch nothing is saved.
    """
    try:
        result = upload_files(_client(ctx), list(files), ctx.obj["state_file"])
    except RootMismatchError as e:
        console.print(f"[red]Local root:  {bytes_to_hex(e.local_root)}[/red]")
        console.print(f"[red]Remote root: {bytes_to_hex(e.remote_root)}[/red]")
        _fail("Upload not verified, state not saved", e)
    except (ClientProtocolError, StorageAPIError, StateFileError) as e:
        _fail("Upload failed", e)

    if not result.uploaded:
        console.print("[yellow]Nothing to upload[/yellow]")
        return

    table = Table(title="Uploaded Files")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="green")
    for file_id, name in sorted(result.files.items()):
        table.add_row(str(file_id), name)
    console.print(table)

    console.print(f"Local  root: {bytes_to_hex(result.local_root)}")
    console.print(f"Remote root: {bytes_to_hex(result.remote_root)}")
    console.print(f"[green]Roots match, saved to {ctx.obj['state_file']}[/green]")


@cli.command(name="list")
@click.pass_context
def list_files(ctx):
    """List all files stored on the server."""
    try:
        files = _client(ctx).list_files()
    except StorageAPIError as e:
        _fail("Listing failed", e)

    if not files:
        console.print("[yellow]No files stored[/yellow]")
        return

    table = Table(title="Stored Files")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="green")
    for entry in files:
        table.add_row(str(entry.id), entry.name)
    console.print(table)


@cli.command()
@click.argument("file_id", type=int)
@click.option("--save-as", type=str, help="File name to save under (defaults to the uploaded name)")
@click.option(
    "--output-dir",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Directory to save into",
)
@click.pass_context
def download(ctx, file_id: int, save_as: Optional[str], output_dir: str):
    """
    Download a file, verifying it against the persisted root first.

    FILE_ID: Id of the file to download
    """
    try:
        result = download_file(_client(ctx), file_id, ctx.obj["state_file"], save_as, output_dir)
    except StorageNotFoundError:
        raise click.ClickException(f"File {file_id} not found")
    except VerificationError as e:
        _fail("Download rejected, no file written", e)
    except (ClientProtocolError, StorageAPIError, StateFileError) as e:
        _fail("Download failed", e)

    console.print("[green]File contents verified[/green]")
    console.print(f"File {result.file_id} saved as {result.path} ({result.size} bytes)")


@cli.command()
@click.argument("file_id", type=int)
@click.option(
    "--format",
    "format_output",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def proof(ctx, file_id: int, format_output: str):
    """
    Show the inclusion proof of a file and check it without saving.

    FILE_ID: Id of the file to prove
    """
    try:
        report = inspect_proof(_client(ctx), file_id, ctx.obj["state_file"])
    except StorageNotFoundError:
        raise click.ClickException(f"File {file_id} not found")
    except (StorageAPIError, StateFileError) as e:
        _fail("Proof retrieval failed", e)

    print_proof_report(report, format_output)
    if not report.verified:
        raise click.ClickException(f"Proof for file {file_id} does not verify against the trusted root")


@cli.command()
@click.pass_context
def status(ctx):
    """Compare the persisted root with the server's current root."""
    try:
        report = check_status(_client(ctx), ctx.obj["state_file"])
    except (StorageAPIError, StateFileError) as e:
        _fail("Status check failed", e)

    table = Table(title="Root Status")
    table.add_column("Source", style="cyan")
    table.add_column("Root", style="green")
    table.add_column("Files")
    table.add_row(
        "Local",
        bytes_to_hex(report.trusted_root) if report.trusted_root else "(none)",
        str(report.local_leaves),
    )
    table.add_row("Server", bytes_to_hex(report.remote_root), str(report.remote_leaves))
    console.print(table)

    if report.trusted_root is None:
        console.print("[yellow]No trusted root yet, upload files to establish one[/yellow]")
    elif report.in_sync:
        console.print("[green]In sync: downloads will verify[/green]")
    else:
        console.print(
            "[yellow]Server root changed since the last upload: "
            "downloads will fail verification[/yellow]"
        )


@cli.command()
@click.option("--host", default=None, help="Host to bind to (default: MERKLE_STORAGE_HOST or 127.0.0.1)")
@click.option("--port", default=None, type=int, help="Port to bind to (default: MERKLE_STORAGE_PORT or 8080)")
@click.option("--dev", is_flag=True, help="Enable development mode with auto-reload")
@click.pass_context
def serve(ctx, host: Optional[str], port: Optional[int], dev: bool):
    """Start the storage API server."""
    from .api.rest_api import run_server

    try:
        host = host or get_server_host()
        port = port if port is not None else get_server_port()
    except ValueError as e:
        _fail("Invalid configuration", e)

    try:
        console.print(
            Panel(
                f"Starting Merkle Storage API Server\n\n"
                f"🚀 Server: http://{host}:{port}\n"
                f"📖 Docs: http://{host}:{port}/docs\n"
                f"❤️ Health: http://{host}:{port}/health\n\n"
                f"Press Ctrl+C to stop",
                title="API Server",
                border_style="green",
            )
        )

        run_server(host=host, port=port, dev=dev)

    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped by user[/yellow]")
    except Exception as e:
        if ctx.obj.get("verbose"):
            console.print_exception()
        raise click.ClickException(f"Server error: {e}")


@cli.command()
@click.pass_context
def health(ctx):
    """Check the health of the storage service."""
    console.print("[cyan]Checking system health...[/cyan]")

    client = _client(ctx)
    api_status = client.health_check()

    table = Table(title="System Health Check")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")
    table.add_row(
        "Storage API", "✅ Healthy" if api_status else "❌ Unhealthy", client.base_url
    )
    console.print(table)

    if not api_status:
        raise click.ClickException(f"Storage service at {client.base_url} is not reachable")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
