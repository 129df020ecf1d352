"""
Command-Line Interface for ssmlcaster.

Usage:
    ssmlcaster run                         # Convert texts/*.xml into audio/
    ssmlcaster run --report report.json    # Also write a failure report
    ssmlcaster status                      # Show what a run would do
    ssmlcaster snapshots chapter1          # List snapshots of one document
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    from ssmlcaster import __version__

    parser = argparse.ArgumentParser(
        prog="ssmlcaster",
        description="Convert SSML documents to audio, re-synthesizing only what changed",
    )
    parser.add_argument("--version", action="version", version=f"ssmlcaster {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def add_dir_options(p: argparse.ArgumentParser) -> None:
        p.add_argument("--texts", default="texts", help="Directory of SSML documents (default: texts)")
        p.add_argument("--audio", default="audio", help="Directory for audio output (default: audio)")
        p.add_argument("--snapshots", default="snapshots", help="Snapshot directory (default: snapshots)")
        p.add_argument("--config", default="config.json", help="Config file (default: config.json)")

    # --- run ---
    run_parser = subparsers.add_parser("run", help="Convert changed documents to audio")
    add_dir_options(run_parser)
    run_parser.add_argument("--report", metavar="PATH", help="Write a JSON failure report if any document fails")
    run_parser.add_argument("--no-cloud-log", action="store_true", help="Do not forward logs to Cloud Logging")

    # --- status ---
    status_parser = subparsers.add_parser("status", help="Show the decision for each document without converting")
    add_dir_options(status_parser)

    # --- snapshots ---
    snapshots_parser = subparsers.add_parser("snapshots", help="List snapshots of a document")
    snapshots_parser.add_argument("document", help="Document name (file name without extension)")
    snapshots_parser.add_argument("--snapshots", default="snapshots", help="Snapshot directory (default: snapshots)")
    snapshots_parser.add_argument("--ext", default=".xml", help="Document extension (default: .xml)")

    return parser


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    # Cloud forwarding may lower the package logger to INFO; keep the console quiet.
    for handler in root.handlers:
        handler.setLevel(level)


def _load_config(path: str):
    from ssmlcaster.config import load_config

    loaded = load_config(Path(path))
    for warning in loaded.warnings:
        print(f"Warning: {warning}")
    return loaded.config


def cmd_run(args) -> int:
    """Convert every changed document."""
    from ssmlcaster.cloud_log import install_cloud_logging, uninstall_cloud_logging
    from ssmlcaster.renderer.engine import process_all
    from ssmlcaster.renderer.failure_report import ConversionFailureReport

    texts = Path(args.texts)
    audio = Path(args.audio)

    print(
        "Welcome.\n"
        f"The program will read all the files under `{texts.name}/` and \n"
        f"convert to audio files and place under `{audio.name}/`.\n"
    )

    handler = None if args.no_cloud_log else install_cloud_logging()
    try:
        config = _load_config(args.config)

        def progress(current, total, result):
            print(result.describe())
            for warning in result.warnings:
                print(f"  Warning: {warning}")

        report = process_all(
            texts,
            audio,
            Path(args.snapshots),
            config,
            progress_callback=progress,
        )
    finally:
        uninstall_cloud_logging(handler)

    if report.fatal_error is not None:
        print(f"Error: {report.fatal_message}")
        return 1

    print(
        f"\nSummary: {report.regenerated} converted, {report.skipped} unchanged, "
        f"{report.snapshotted} snapshots, {report.failed} failed (of {report.total} total)"
    )

    if not report.ok and args.report:
        path = ConversionFailureReport.from_report(report, config).save(Path(args.report))
        print(f"Failure report: {path}")

    print("Finished processing all files.")
    return 0 if report.ok else 1


def cmd_status(args) -> int:
    """Show what a run would do, without writing anything."""
    from ssmlcaster.renderer.engine import process_all

    config = _load_config(args.config)
    report = process_all(
        Path(args.texts),
        Path(args.audio),
        Path(args.snapshots),
        config,
        dry_run=True,
    )

    if report.fatal_error is not None:
        print(f"Error: {report.fatal_message}")
        return 1

    if not report.documents:
        print("No documents found.")
        return 0

    for result in report.documents:
        if result.ok:
            print(f"  {result.source}: {result.decision.value}")
        else:
            print(f"  {result.source}: error ({result.error_message})")

    return 0 if report.ok else 1


def cmd_snapshots(args) -> int:
    """List snapshots of one document."""
    from ssmlcaster.renderer.snapshot_store import format_timestamp, scan_snapshots

    scan = scan_snapshots(args.document, args.ext, Path(args.snapshots))

    if not scan.snapshots and not scan.malformed:
        print(f"No snapshots for {args.document!r}.")
        return 0

    print(f"Snapshots of {args.document}:\n")
    latest = scan.latest
    for snap in scan.snapshots:
        marker = " [latest]" if snap == latest else ""
        print(f"  {format_timestamp(snap.timestamp)}  {snap.path.name}{marker}")

    for name in scan.malformed:
        print(f"  (skipped, unparsable timestamp)  {name}")

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if args.command is None:
        args = parser.parse_args([*(argv if argv is not None else sys.argv[1:]), "run"])

    commands = {
        "run": cmd_run,
        "status": cmd_status,
        "snapshots": cmd_snapshots,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
