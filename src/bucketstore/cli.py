"""Command-line interface for bucketstore.

Commands:
    - put: Upload a local file
    - get: Download an object to a file or directory
    - cat: Write an object's bytes to stdout
    - ls: List objects under a prefix
    - exists: Check whether an object exists
    - stat: Show object metadata
    - rm: Delete an object

Connection options can be given on the command line or through the
BUCKETSTORE_ENDPOINT, BUCKETSTORE_ACCESS_KEY, BUCKETSTORE_SECRET_KEY and
BUCKETSTORE_BUCKET environment variables.
"""

import os
from dataclasses import dataclass
from typing import Annotated, List, Optional

import typer

from . import __version__
from .deadline import Deadline
from .schemas import ObjectFound, ObjectNotFound, TransferOptions
from .store_client import StoreClient, new_client_with_bucket

app = typer.Typer(
    name="bucketstore",
    help="Move objects to and from a single S3-compatible bucket.",
    no_args_is_help=True,
)


@dataclass
class ConnectionParams:
    endpoint: Optional[str]
    access_key: Optional[str]
    secret_key: Optional[str]
    bucket: Optional[str]
    region_name: Optional[str]


def version_callback(value: bool) -> None:
    """Display version information."""
    if value:
        typer.echo(f"bucketstore {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    endpoint: Annotated[
        Optional[str],
        typer.Option(
            "--endpoint", envvar="BUCKETSTORE_ENDPOINT", help="Backend host[:port]"
        ),
    ] = None,
    access_key: Annotated[
        Optional[str],
        typer.Option(
            "--access-key", envvar="BUCKETSTORE_ACCESS_KEY", help="Access key"
        ),
    ] = None,
    secret_key: Annotated[
        Optional[str],
        typer.Option(
            "--secret-key", envvar="BUCKETSTORE_SECRET_KEY", help="Secret key"
        ),
    ] = None,
    bucket: Annotated[
        Optional[str],
        typer.Option("--bucket", "-b", envvar="BUCKETSTORE_BUCKET", help="Bucket"),
    ] = None,
    region_name: Annotated[
        Optional[str],
        typer.Option("--region", envvar="BUCKETSTORE_REGION", help="Signing region"),
    ] = None,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, help="Show version."),
    ] = None,
) -> None:
    """
    bucketstore: upload, download and list objects in one bucket.
    """
    ctx.obj = ConnectionParams(
        endpoint=endpoint,
        access_key=access_key,
        secret_key=secret_key,
        bucket=bucket,
        region_name=region_name,
    )


TimeoutOption = Annotated[
    Optional[float],
    typer.Option("--timeout", help="Give up after this many seconds"),
]


def _open_client(ctx: typer.Context) -> StoreClient:
    """Build a client from the connection options."""
    params: ConnectionParams = ctx.obj
    missing = [
        flag
        for flag, value in (
            ("--endpoint", params.endpoint),
            ("--access-key", params.access_key),
            ("--secret-key", params.secret_key),
            ("--bucket", params.bucket),
        )
        if not value
    ]
    if missing:
        raise ValueError(f"Missing connection options: {', '.join(missing)}")

    assert params.endpoint is not None
    assert params.access_key is not None
    assert params.secret_key is not None
    assert params.bucket is not None

    return new_client_with_bucket(
        params.endpoint,
        params.access_key,
        params.secret_key,
        params.bucket,
        region_name=params.region_name,
    )


def _deadline(timeout: Optional[float]) -> Optional[Deadline]:
    return None if timeout is None else Deadline.after(timeout)


def _parse_metadata(pairs: Optional[List[str]]) -> dict:
    metadata = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise ValueError(f"Metadata must be KEY=VALUE, got: {pair}")
        metadata[name] = value
    return metadata


def _human_size(size: int) -> str:
    if size >= 1024**3:
        return f"{size / (1024**3):.2f} GB"
    elif size >= 1024**2:
        return f"{size / (1024**2):.2f} MB"
    elif size >= 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size} bytes"


@app.command("put")
def put_cmd(
    ctx: typer.Context,
    path: Annotated[str, typer.Argument(help="Local file to upload")],
    key: Annotated[str, typer.Argument(help="Destination object key")],
    content_type: Annotated[
        Optional[str], typer.Option("--content-type", help="Content-Type to store")
    ] = None,
    metadata: Annotated[
        Optional[List[str]],
        typer.Option("--meta", "-m", help="User metadata as KEY=VALUE, repeatable"),
    ] = None,
    timeout: TimeoutOption = None,
) -> None:
    """
    Upload a local file.

    Example:
        bucketstore put ./run1.parquet runs/2024/run1.parquet \
            --content-type application/vnd.apache.parquet -m owner=lab
    """
    try:
        fields: dict = {"user_metadata": _parse_metadata(metadata)}
        if content_type:
            fields["content_type"] = content_type
        options = TransferOptions(**fields)
        with _open_client(ctx) as client:
            client.put_file(path, key, options=options, deadline=_deadline(timeout))
        typer.echo(f"Uploaded {path} to {key}")

    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("get")
def get_cmd(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Object key to download")],
    dest: Annotated[
        str, typer.Argument(help="Output file, or directory ending in '/'")
    ],
    timeout: TimeoutOption = None,
) -> None:
    """
    Download an object.

    When DEST is an existing directory or ends with '/', the object is
    saved there under the last component of its key, creating the
    directory if needed.

    Examples:
        bucketstore get runs/2024/run1.parquet ./run1.parquet
        bucketstore get runs/2024/run1.parquet ./downloads/2024/
    """
    try:
        deadline = _deadline(timeout)
        with _open_client(ctx) as client:
            if dest.endswith("/") or os.path.isdir(dest):
                filename = key.rstrip("/").rsplit("/", 1)[-1]
                target = client.download(key, dest, filename, deadline=deadline)
                typer.echo(f"Downloaded {key} to {target}")
            else:
                size = client.download_obj(key, dest, deadline=deadline)
                typer.echo(f"Downloaded {key} to {dest} ({_human_size(size)})")

    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("cat")
def cat_cmd(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Object key to print")],
    timeout: TimeoutOption = None,
) -> None:
    """
    Write an object's content to stdout.
    """
    try:
        with _open_client(ctx) as client:
            data = client.get_object_bytes(key, deadline=_deadline(timeout))
        typer.echo(data, nl=False)

    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("ls")
def list_cmd(
    ctx: typer.Context,
    prefix: Annotated[str, typer.Argument(help="Key prefix to list")] = "",
    max_items: Annotated[
        Optional[int],
        typer.Option("--max-items", help="Maximum number of objects to return"),
    ] = None,
    timeout: TimeoutOption = None,
) -> None:
    """
    List objects whose keys start with PREFIX, recursively.

    Example:
        bucketstore ls runs/2024/ --max-items 100
    """
    try:
        failures = 0
        found = 0
        with _open_client(ctx) as client:
            for info in client.list_objects(
                prefix, max_items=max_items, deadline=_deadline(timeout)
            ):
                if info.error:
                    failures += 1
                    typer.echo(f"Error: {info.error}", err=True)
                    continue
                found += 1
                modified = info.last_modified.isoformat() if info.last_modified else "-"
                typer.echo(f"{modified}  {info.size:>12,}  {info.key}")

        if not found and not failures:
            typer.echo("No objects found.")
        if failures:
            raise typer.Exit(1)

    except typer.Exit:
        raise
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("exists")
def exists_cmd(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Object key to check")],
    timeout: TimeoutOption = None,
) -> None:
    """
    Check whether an object exists. Exits 1 when it does not.
    """
    try:
        with _open_client(ctx) as client:
            exists = client.object_exists(key, deadline=_deadline(timeout))

    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if exists:
        typer.echo(f"✓ Object exists: {key}")
    else:
        typer.echo(f"✗ Object not found: {key}", err=True)
        raise typer.Exit(1)


@app.command("stat")
def stat_cmd(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Object key to describe")],
    timeout: TimeoutOption = None,
) -> None:
    """
    Show object metadata.
    """
    try:
        with _open_client(ctx) as client:
            result = client.stat_object(key, deadline=_deadline(timeout))
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if isinstance(result, ObjectNotFound):
        typer.echo(f"✗ Object not found: {key}", err=True)
        raise typer.Exit(1)
    if not isinstance(result, ObjectFound):
        typer.echo(f"Error: {result.error}", err=True)
        raise typer.Exit(1)

    info = result.info
    typer.echo(f"Key: {info.key}")
    typer.echo(f"Size: {info.size:,} bytes ({_human_size(info.size)})")
    typer.echo(f"Last modified: {info.last_modified}")
    typer.echo(f"ETag: {info.etag}")
    typer.echo(f"Content-Type: {info.content_type}")
    for name, value in sorted(info.user_metadata.items()):
        typer.echo(f"Metadata {name}: {value}")


@app.command("rm")
def remove_cmd(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Object key to delete")],
    timeout: TimeoutOption = None,
) -> None:
    """
    Delete an object.
    """
    try:
        with _open_client(ctx) as client:
            client.remove_object(key, deadline=_deadline(timeout))
        typer.echo(f"Removed {key}")

    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
