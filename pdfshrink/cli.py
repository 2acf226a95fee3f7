"""Command-line interface for pdfshrink."""

import argparse
import asyncio
import sys
import webbrowser
from pathlib import Path
from typing import List

from pdfshrink.core.errors import PDFShrinkError
from pdfshrink.core.ghostscript import GhostscriptCompressor
from pdfshrink.core.options import COMPATIBILITY_LEVELS, PRESETS, CompressionOptions
from pdfshrink.core.settings import Settings
from pdfshrink.core.utils import format_size
from pdfshrink.logging_config import setup_logging


def compress_file(
    input_path: Path,
    output_path: Path,
    compressor: GhostscriptCompressor,
    verbose: bool = True,
) -> bool:
    """Compress a single PDF file."""
    if verbose:
        print(f"\nProcessing: {input_path.name} (preset /{compressor.options.preset})")

    original_size = input_path.stat().st_size

    try:
        asyncio.run(compressor.compress(input_path, output_path))
    except PDFShrinkError as e:
        if verbose:
            print(f"  Error: {e.message}")
        return False

    if not output_path.exists() or output_path.stat().st_size == 0:
        if verbose:
            print("  Error: Compression failed: no output produced")
        return False

    new_size = output_path.stat().st_size
    reduction = ((original_size - new_size) / original_size) * 100 if original_size else 0.0

    if verbose:
        print(f"  {format_size(original_size)} → {format_size(new_size)} ({reduction:+.1f}%)")
        print(f"  Saved to: {output_path}")

    return True


def get_output_path(input_path: Path, output_file: Path | None) -> Path:
    """Determine the output path for a file."""
    if output_file:
        return output_file
    return input_path.parent / f"compressed_{input_path.name}"


def main(args: List[str] | None = None):
    """Main entry point for the CLI."""
    settings = Settings()

    parser = argparse.ArgumentParser(
        prog="pdfshrink",
        description="Compress PDF files with Ghostscript, locally or as a web service.",
    )

    parser.add_argument(
        "file",
        nargs="?",
        type=Path,
        help="PDF file to compress",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Output file path (default: compressed_<name> next to the input)",
    )

    # Ghostscript options
    parser.add_argument(
        "--preset",
        choices=PRESETS,
        default=settings.pdf_preset,
        help=f"Ghostscript PDFSETTINGS preset (default: {settings.pdf_preset})",
    )
    parser.add_argument(
        "--compatibility-level",
        choices=COMPATIBILITY_LEVELS,
        default=settings.compatibility_level,
        help=f"PDF compatibility level (default: {settings.compatibility_level})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.timeout_seconds,
        help=f"Seconds before Ghostscript is killed (default: {settings.timeout_seconds:g})",
    )
    parser.add_argument(
        "--ghostscript",
        default=settings.ghostscript,
        help=f"Ghostscript executable (default: {settings.ghostscript})",
    )

    # Web server
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Start the web interface",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"Web server port (default: {settings.port})",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help=f"Host to bind to (default: {settings.host})",
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Don't open browser automatically",
    )

    # Other options
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log Ghostscript invocations",
    )

    parsed_args = parser.parse_args(args)

    settings.pdf_preset = parsed_args.preset
    settings.compatibility_level = parsed_args.compatibility_level
    settings.timeout_seconds = parsed_args.timeout
    settings.ghostscript = parsed_args.ghostscript
    if parsed_args.verbose:
        settings.log_level = "DEBUG"

    # Start web server if requested
    if parsed_args.serve:
        from pdfshrink.web.app import run_server

        url = f"http://localhost:{parsed_args.port}"
        print(f"Starting pdfshrink web interface at {url}")

        if not parsed_args.no_browser:
            webbrowser.open(url)

        run_server(settings, host=parsed_args.host, port=parsed_args.port)
        return 0

    if not parsed_args.file:
        parser.print_help()
        print("\nError: No input file specified. Use --serve to start the web interface.")
        return 1

    if parsed_args.verbose:
        setup_logging(settings.log_level)

    input_path = parsed_args.file
    verbose = not parsed_args.quiet

    if not input_path.exists():
        if verbose:
            print(f"Error: File not found: {input_path}")
        return 1

    if input_path.suffix.lower() != ".pdf":
        if verbose:
            print(f"Error: Not a PDF file: {input_path}")
        return 1

    try:
        options = CompressionOptions(
            preset=parsed_args.preset,
            compatibility_level=parsed_args.compatibility_level,
            timeout=parsed_args.timeout,
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    compressor = GhostscriptCompressor(parsed_args.ghostscript, options)
    output_path = get_output_path(input_path, parsed_args.output)

    return 0 if compress_file(input_path, output_path, compressor, verbose) else 1


if __name__ == "__main__":
    sys.exit(main())
