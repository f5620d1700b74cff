"""
Application entry point — wires dependencies and runs one pass build.

Composition root: creates concrete adapters and injects them into the
pipeline. This is the ONLY place (with the ASGI lifespan, which reuses
`_create_adapters`) where concrete classes are instantiated.

Responsibilities:
  1. Parse CLI arguments
  2. Load and validate configuration from environment
  3. Configure structlog
  4. Create adapters and wire the pipeline (partial application)
  5. Run the build with caller-owned retry, write the archive

Exit codes:
  0  archive written
  1  configuration error
  2  input or certificate problem (capture, decode, expired)
  3  collaborator failure (value sets, signer) or internal error
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable, Sequence
from functools import partial
from pathlib import Path
from typing import Any

import structlog
from railway import (
    CAPTURE_ERRORS,
    DECODE_ERRORS,
    ErrorCode,
    FailureDescription,
    LoggingExecutionContext,
)
from railway.result import Result
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from covidpass.adapters.dcc_decoder import DccCertificateDecoder
from covidpass.adapters.http_client import HttpPassSigner, HttpValueSetSource
from covidpass.adapters.qr_extractor import QrPayloadExtractor
from covidpass.archive import PassArchiveAssembler, PassAssets
from covidpass.config import AppSettings
from covidpass.domain.colors import ColorSelection
from covidpass.domain.models import PKPASS_FILENAME, PassBuild, RawCertificateText
from covidpass.domain.ports import SymbolDecoder, SystemClock
from covidpass.pipeline import build_pass
from covidpass.value_sets import ValueSetResolver

EXIT_OK = 0
EXIT_CONFIGURATION = 1
EXIT_INPUT = 2
EXIT_COLLABORATOR = 3

_INPUT_ERRORS = CAPTURE_ERRORS | DECODE_ERRORS | {ErrorCode.EXPIRED, ErrorCode.VALIDATION_ERROR}

type PipelineFn = Callable[[RawCertificateText, ColorSelection], Awaitable[Result[PassBuild]]]


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for structured logging.

    Colored, human-readable console output with ISO timestamps; the
    level filter is applied before any event is rendered.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


type _Adapters = tuple[QrPayloadExtractor, PipelineFn]


def _create_adapters(
    settings: AppSettings,
    symbol_decoder: SymbolDecoder | None = None,
) -> _Adapters:
    """
    Instantiate all concrete adapters from application settings.

    Returns the payload extractor and the pipeline function with every
    collaborator bound. The resolver inside lives as long as the returned
    function, so catalogs are fetched once per process.
    """
    if symbol_decoder is None:
        # Loads the native zbar library.
        from covidpass.adapters.zbar import ZbarSymbolDecoder

        symbol_decoder = ZbarSymbolDecoder()

    extractor = QrPayloadExtractor(
        symbol_decoder,
        render_scale=settings.capture.render_scale,
        max_upload_bytes=settings.capture.max_upload_bytes,
        max_pixels=settings.capture.max_image_pixels,
    )
    resolver = ValueSetResolver(
        HttpValueSetSource(
            base_url=settings.value_sets.base_url,
            timeout=settings.http_timeout_seconds,
        )
    )
    assembler = PassArchiveAssembler(
        signer=HttpPassSigner(
            signer_url=settings.signer.url,
            timeout=settings.signer.timeout_seconds,
        ),
        assets=PassAssets.packaged(),
    )
    pipeline_fn = partial(
        build_pass,
        decoder=DccCertificateDecoder(max_payload_bytes=settings.decoder.max_payload_bytes),
        resolver=resolver,
        assembler=assembler,
        identity=settings.pass_identity.to_identity(),
        clock=SystemClock(),
        expiry_policy=settings.decoder.expiry_policy,
    )
    return extractor, pipeline_fn


# ─────────────────────── Caller-owned retry ───────────────────────


def _is_retryable(result: Result[Any]) -> bool:
    return result.is_failure() and result.error().is_retryable


def _log_retry(state: RetryCallState) -> None:
    result = state.outcome.result() if state.outcome else None
    code = result.error().code.value if isinstance(result, Result) and result.is_failure() else None
    structlog.get_logger().warning(
        "cli.retrying", attempt=state.attempt_number, error_code=code
    )


async def build_with_retry(
    pipeline_fn: PipelineFn,
    raw: RawCertificateText,
    color: ColorSelection,
    attempts: int,
    wait: wait_base | None = None,
) -> Result[PassBuild]:
    """
    Run the pipeline up to `attempts` times while it fails with a
    retryable code (FETCH_ERROR, SIGNATURE_REQUEST_FAILED).

    The last result is returned as-is once attempts run out.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait or wait_exponential(multiplier=0.5, max=8),
        retry=retry_if_result(_is_retryable),
        retry_error_callback=lambda state: state.outcome.result(),
        before_sleep=_log_retry,
        reraise=True,
    )
    context = LoggingExecutionContext(operation="BuildPass")
    return await retrying(lambda: context.execute(lambda: pipeline_fn(raw, color)))


def exit_code_for(failure: FailureDescription) -> int:
    if failure.code in _INPUT_ERRORS:
        return EXIT_INPUT
    if failure.code is ErrorCode.CONFIGURATION_ERROR:
        return EXIT_CONFIGURATION
    return EXIT_COLLABORATOR


# ─────────────────────── CLI ───────────────────────


def _color(value: str) -> ColorSelection:
    try:
        return ColorSelection[value.strip().upper()]
    except KeyError:
        choices = ", ".join(c.name.lower() for c in ColorSelection)
        raise argparse.ArgumentTypeError(f"unknown color {value!r} (choose from {choices})") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="covidpass",
        description="Turn an EU Digital COVID Certificate QR code into a signed wallet pass.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", help="Scanned QR text, starting with HC1:")
    source.add_argument("--file", type=Path, help="Image or PDF holding the QR code")
    parser.add_argument(
        "--color",
        type=_color,
        default=ColorSelection.WHITE,
        help="Pass background color (default: white)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path(PKPASS_FILENAME),
        help=f"Where to write the archive (default: {PKPASS_FILENAME})",
    )
    return parser


async def run(
    args: argparse.Namespace,
    settings: AppSettings,
    symbol_decoder: SymbolDecoder | None = None,
) -> int:
    """Build one pass from parsed arguments; return the process exit code."""
    log = structlog.get_logger()
    extractor, pipeline_fn = _create_adapters(settings, symbol_decoder)

    if args.file is not None:
        try:
            with args.file.open("rb") as f:
                data = f.read(extractor.max_upload_bytes + 1)
        except OSError as e:
            log.error("cli.unreadable_file", path=str(args.file), error=str(e))
            print(f"ERROR: cannot read {args.file}: {e}", file=sys.stderr)  # noqa: T201
            return EXIT_INPUT
        raw = await extractor.from_file(data)
    else:
        raw = extractor.from_text(args.text)

    result = await raw.flat_map_async(
        lambda text: build_with_retry(pipeline_fn, text, args.color, settings.retry_attempts)
    )

    if result.is_failure():
        failure = result.error()
        log.error("cli.failed", error_code=failure.code.value, reason=failure.message)
        print(f"ERROR: {failure}", file=sys.stderr)  # noqa: T201
        return exit_code_for(failure)

    build = result.value()
    for advisory in build.advisories:
        print(f"WARNING: {advisory}", file=sys.stderr)  # noqa: T201
    args.output.write_bytes(build.archive.content)
    log.info(
        "cli.written",
        path=str(args.output),
        size_bytes=len(build.archive.content),
        serial_number=build.archive.serial_number,
    )
    print(f"Wrote {args.output}")  # noqa: T201
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> None:
    """Parse arguments, load configuration, build the pass, exit."""
    args = build_parser().parse_args(argv)

    try:
        settings = AppSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(EXIT_CONFIGURATION)

    configure_structlog(settings.log_level)
    structlog.get_logger().info(
        "app.starting",
        version="0.1.0",
        log_level=settings.log_level,
        expiry_policy=settings.decoder.expiry_policy.value,
        retry_attempts=settings.retry_attempts,
    )

    try:
        code = asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        structlog.get_logger().info("app.shutdown", reason="signal received")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
