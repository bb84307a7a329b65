"""Command-line interface for SpeakIt.

WHY: Extraction, summaries and the playback model are useful without a
browser: to check what a page or PDF turns into, to get a quick summary
in a terminal, to preview how the word highlight tracks a read-along,
and to start the HTTP API.

HOW: argparse subcommands. Sources are URLs (http/https) or local PDF
paths; both go through the same extractors the server uses. The read
subcommand drives a PlaybackSynchronizer with the silent
PacedSpeechEngine and an AsyncioScheduler, redrawing one status line on
stderr after every change until playback ends. Async work runs under
asyncio.run().

RULES:
- Subcommands: extract, summarize, read, serve
- Status output goes to stderr; extracted text and summaries go to stdout
- Any source that does not start with http:// or https:// is a PDF path
- Errors print "Error: ..." to stderr and exit with status 1
- Ctrl-C during read stops playback and exits with status 130
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import math
import sys
from pathlib import Path
from typing import List, Optional, Tuple, Union

from speakit.api.client import SummaryAPIError, SummaryClient
from speakit.config import BASE_WORDS_PER_MINUTE, DEFAULT_RATE, SUPPORTED_RATES
from speakit.core.document import format_clock
from speakit.core.playback import PlaybackSnapshot, PlaybackState, PlaybackSynchronizer
from speakit.extract import (
    ExtractedContent,
    ExtractionError,
    FetchError,
    PdfContent,
    extract_from_pdf,
    extract_from_url,
)
from speakit.speech import AsyncioScheduler, PacedSpeechEngine

_PROGRESS_WIDTH = 30

_SOURCE_ERRORS = (ValueError, FetchError, ExtractionError, OSError)


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


def is_url(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


async def load_source(source: str) -> Union[ExtractedContent, PdfContent]:
    """Extract readable content from a URL or a local PDF file.

    Raises:
        ValueError: invalid URL or a non-PDF file path.
        FetchError: the page could not be downloaded.
        ExtractionError: too little readable text, or an unreadable PDF.
        OSError: the file could not be read.
    """
    if is_url(source):
        _status("Fetching {}...".format(source))
        return await extract_from_url(source)

    path = Path(source)
    if path.suffix.lower() != ".pdf":
        raise ValueError("Only PDF files and http(s) URLs are supported: {}".format(source))
    _status("Reading {}...".format(path.name))
    data = path.read_bytes()
    return await asyncio.to_thread(extract_from_pdf, data)


async def _summarize_text(content: str) -> str:
    _status("Summarizing...")
    async with SummaryClient() as client:
        return await client.summarize(content)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


async def _run_extract(args: argparse.Namespace) -> None:
    try:
        extracted = await load_source(args.source)
    except _SOURCE_ERRORS as exc:
        _fail(str(exc))
        return

    _status("  {} words".format(extracted.word_count))
    if args.json:
        print(json.dumps(extracted.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(extracted.title)
        print()
        print(extracted.content)


async def _run_summarize(args: argparse.Namespace) -> None:
    try:
        extracted = await load_source(args.source)
        summary = await _summarize_text(extracted.content)
    except _SOURCE_ERRORS as exc:
        _fail(str(exc))
        return
    except SummaryAPIError as exc:
        _fail("Failed to generate summary: {}".format(exc.message))
        return

    print(summary)


def render_progress(snapshot: PlaybackSnapshot) -> str:
    """Format one read-along status line: state, clock, bar, current word."""
    filled = int(round(snapshot.progress * _PROGRESS_WIDTH))
    bar = "#" * filled + "-" * (_PROGRESS_WIDTH - filled)
    return "[{:<7}] {} / {} [{}] {}".format(
        snapshot.state.value,
        format_clock(snapshot.elapsed_s),
        format_clock(snapshot.duration_s),
        bar,
        snapshot.word,
    )


async def _read_along(
    title: str,
    content: str,
    rate: float,
    engine_wpm: float,
) -> Tuple[PlaybackState, Optional[str]]:
    """Play content through the paced engine until it ends or errors."""
    loop = asyncio.get_running_loop()
    finished = asyncio.Event()
    engine = PacedSpeechEngine(words_per_minute=engine_wpm, loop=loop)
    scheduler = AsyncioScheduler(loop)

    def on_change(snapshot: PlaybackSnapshot) -> None:
        line = render_progress(snapshot)
        sys.stderr.write("\r{:<100}".format(line[:100]))
        sys.stderr.flush()
        if snapshot.state in (PlaybackState.ENDED, PlaybackState.ERRORED):
            finished.set()

    with PlaybackSynchronizer(engine, scheduler, rate=rate) as player:
        player.subscribe(on_change)
        document = player.load(content, title)
        _status("Reading \"{}\": {} words, about {} at {}x".format(
            document.title,
            document.word_count,
            format_clock(player.estimated_duration),
            rate,
        ))
        if not player.play():
            return player.state, "Nothing to read"
        try:
            await finished.wait()
        finally:
            sys.stderr.write("\n")
            sys.stderr.flush()
        return player.state, player.last_error


async def _run_read(args: argparse.Namespace) -> None:
    if not (args.wpm > 0 and math.isfinite(args.wpm)):
        _fail("--wpm must be a finite number greater than 0")
        return

    try:
        extracted = await load_source(args.source)
        text = extracted.content
        if args.summary:
            text = await _summarize_text(extracted.content)
    except _SOURCE_ERRORS as exc:
        _fail(str(exc))
        return
    except SummaryAPIError as exc:
        _fail("Failed to generate summary: {}".format(exc.message))
        return

    state, error = await _read_along(extracted.title, text, args.rate, args.wpm)
    if state != PlaybackState.ENDED:
        _fail(error or "Playback stopped in state {}".format(state.value))
        return
    _status("Done.")


def _run_serve(args: argparse.Namespace) -> None:
    from speakit.server.app import run_api

    run_api(host=args.host, port=args.port)


# ---------------------------------------------------------------------------
# Parser and entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    RULES:
    - A subcommand is required
    - --verbose applies to every subcommand and enables INFO logging
    """
    parser = argparse.ArgumentParser(
        prog="speakit",
        description="Extract, summarize and read along with web articles and PDFs.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v for INFO, -vv for DEBUG).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    extract = subparsers.add_parser("extract", help="Print the readable text of a URL or PDF.")
    extract.add_argument("source", help="http(s) URL or path to a PDF file.")
    extract.add_argument(
        "--json",
        action="store_true",
        help="Print the extraction result as JSON.",
    )

    summarize = subparsers.add_parser("summarize", help="Print a 3-5 sentence summary.")
    summarize.add_argument("source", help="http(s) URL or path to a PDF file.")

    read = subparsers.add_parser(
        "read",
        help="Preview a read-along with the estimated word highlight.",
    )
    read.add_argument("source", help="http(s) URL or path to a PDF file.")
    read.add_argument(
        "--rate",
        type=float,
        choices=SUPPORTED_RATES,
        default=DEFAULT_RATE,
        help="Speech rate multiplier (default: %(default)s).",
    )
    read.add_argument(
        "--wpm",
        type=float,
        default=float(BASE_WORDS_PER_MINUTE),
        help="True speaking speed of the simulated voice at rate 1.0 "
             "(default: %(default)s).",
    )
    read.add_argument(
        "--summary",
        action="store_true",
        help="Read the generated summary instead of the full text.",
    )

    serve = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: %(default)s).")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if args.command == "serve":
        _run_serve(args)
        return

    runners = {
        "extract": _run_extract,
        "summarize": _run_summarize,
        "read": _run_read,
    }
    try:
        asyncio.run(runners[args.command](args))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)


if __name__ == "__main__":
    main()
