"""Command-line interface for frametrace.

Provides commands for:
- Recording a trace from a JSON-lines event log
- Dumping a recorded trace
- Listing supported architectures
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from frametrace.utils.logging import setup_logging

app = typer.Typer(
    name="frametrace",
    help="Instruction-level execution trace frame writer",
    add_completion=False,
)

console = Console()


@app.command()
def record(
    output: str = typer.Argument(..., help="Output trace file"),
    events: str = typer.Argument(..., help="JSON-lines event log to replay"),
    target: Optional[list[str]] = typer.Argument(None, help="-- target program and its arguments"),
    config: Optional[str] = typer.Option(None, help="YAML config file"),
    log_level: str = typer.Option("INFO", help="Logging level"),
    log_file: Optional[Path] = typer.Option(None, help="Also write logs to this file"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Write logs as JSON lines, to stderr and --log-file"),
):
    """Replay an event log into a trace file.

    The target program follows ``--`` and is used only for the session
    metadata (path resolution, hash, file stats).
    """
    from frametrace.config import TracerConfig
    from frametrace.errors import FrameTraceError
    from frametrace.events import read_events
    from frametrace.writer import FrameWriter

    setup_logging(level=log_level, log_file=log_file, json_output=json_logs)

    if not target:
        console.print("[red]No target program given after '--'[/red]")
        raise typer.Exit(code=2)

    try:
        cfg = TracerConfig.from_yaml(config) if config else TracerConfig()
        writer = FrameWriter.open(output, sys.argv, os.environ, cfg)
    except FrameTraceError as e:
        console.print(f"[red]Cannot start session:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"Recording {events} -> {output}")
    try:
        with writer:
            count = writer.write_all(read_events(events))
    except (FrameTraceError, ValueError, OSError) as e:
        console.print(f"[red]Recording failed:[/red] {e}")
        raise typer.Exit(code=1)

    if writer.teardown_error is not None:
        console.print(f"[red]Trace may be incomplete:[/red] {writer.teardown_error}")
        raise typer.Exit(code=1)

    console.print(f"Processed {count} events into {writer.sink.frame_count} frames")
    if writer.skipped:
        skipped = ", ".join(f"{k}={v}" for k, v in sorted(writer.skipped.items()))
        console.print(f"Skipped events: {skipped}")


@app.command()
def dump(
    trace: str = typer.Argument(..., help="Trace file"),
    limit: int = typer.Option(50, help="Maximum number of frames to show"),
    as_json: bool = typer.Option(False, "--json", help="Print frames as JSON lines"),
):
    """Show the metadata and frames of a trace file."""
    from frametrace.sink.parquet import read_trace

    if not Path(trace).exists():
        console.print(f"[red]{trace} not found[/red]")
        raise typer.Exit(code=1)

    tf = read_trace(trace)

    if as_json:
        for entry in tf.frames[:limit]:
            typer.echo(json.dumps(entry))
        return

    meta = tf.metadata
    console.print(f"Tracer: {meta['tracer']['name']} {meta['tracer']['version']}")
    console.print(f"Target: {meta['target']['path']} ({meta['target']['content_hash']})")
    console.print(f"Arguments: {' '.join(meta['target']['args'])}")
    console.print(f"Host: {meta['user']}@{meta['host']}  Machine: {tf.machine}")
    console.print(f"Frames: {len(tf.frames)}")

    table = Table(title="Frames")
    table.add_column("Index", justify="right")
    table.add_column("Kind")
    table.add_column("Summary")

    for entry in tf.frames[:limit]:
        table.add_row(str(entry["index"]), entry["kind"], _summarize(entry["kind"], entry["frame"]))

    console.print(table)


def _summarize(kind: str, frame: dict) -> str:
    if kind == "std_frame":
        return (
            f"{frame['address']:#x} tid={frame['thread_id']} "
            f"pre={len(frame['operand_pre_list'])} post={len(frame['operand_post_list'])}"
        )
    if kind == "modload_frame":
        return f"{frame['module_name']} [{frame['low_address']:#x}, {frame['high_address']:#x}]"
    if kind == "syscall_frame":
        args = ", ".join(f"{a:#x}" for a in frame["argument_list"])
        return f"{frame['address']:#x} tid={frame['thread_id']} syscall {frame['number']}({args})"
    return ""


@app.command()
def info():
    """Show frametrace version and supported machines."""
    from frametrace import __version__
    from frametrace.utils.types import supported_arches

    console.print(f"frametrace v{__version__}")
    console.print()
    console.print("Supported machines:")
    for arch in supported_arches():
        console.print(f"  {arch.machine.value} ({arch.architecture.value}, {arch.machine.word_size}-bit)")


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
