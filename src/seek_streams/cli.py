"""Command line interface: read a window of bytes from a remote resource."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import httpx
import typer

from .http_utils import ProtocolError
from .log_utils import set_up_logging
from .stream import RangeStream

app = typer.Typer(
    add_completion=False,
    help="Read bytes from a URL by HTTP range requests, starting at any offset.",
)


def make_client(timeout_s: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout=timeout_s))


async def read_window(
    url: str, offset: int, length: Optional[int], timeout_s: float
) -> tuple[bytes, RangeStream]:
    """Open the stream, seek to ``offset`` and read ``length`` bytes (or to the end)."""
    async with make_client(timeout_s) as client:
        async with RangeStream(url=url, client=client) as stream:
            await stream.open()
            await stream.seek(offset)
            data = await stream.read(length)
    return data, stream


@app.command()
def main(
    url: str = typer.Argument(..., help="URL of a resource served with range support"),
    offset: int = typer.Option(0, "--offset", "-s", min=0, help="First byte to read"),
    length: Optional[int] = typer.Option(
        None, "--length", "-n", min=0, help="Number of bytes (default: to the end)"
    ),
    output: Optional[Path] = typer.Option(
        None, "-o", "--output", help="Write to PATH instead of stdout"
    ),
    timeout: float = typer.Option(5.0, "--timeout", help="Timeout in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests"),
):
    """Read a byte window from URL, seeking without downloading what precedes it."""
    set_up_logging(quiet=not verbose)
    try:
        data, stream = asyncio.run(read_window(url, offset, length, timeout))
    except (ProtocolError, httpx.HTTPError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    if output:
        output.write_bytes(data)
    else:
        sink = typer.get_binary_stream("stdout")
        sink.write(data)
        sink.flush()
    content_type = stream.content_type or "unknown type"
    typer.echo(
        f"Read {len(data):,} bytes at {offset:,} of {stream.size:,} ({content_type})",
        err=True,
    )


if __name__ == "__main__":
    app()
