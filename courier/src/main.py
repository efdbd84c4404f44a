"""
Command-line flusher: deliver newline-delimited JSON records from stdin.

Reads one JSON record per line, groups records into batches of
``COURIER_BATCH_SIZE`` and hands each batch to ``Transport.send_batch``.
Configuration comes entirely from ``COURIER_*`` environment variables.

Runs two threads:
1. **Reader thread**: reads raw lines from stdin, decodes them and puts
   records on a queue. Lines that are not UTF-8 or not JSON are logged
   and skipped. A sentinel marks end of input.
2. **Main thread**: takes records off the queue with a short timeout,
   so it keeps noticing ``shutdown_event`` even while stdin is open
   but idle, and sends full batches.

Handles SIGTERM and SIGINT for graceful shutdown:
- Sets ``shutdown_event``; the main thread stops taking input.
- Records already grouped into the current batch are still sent.
- Closes the transport connection.

Exit codes: 0 when every batch was accepted, 1 when any batch failed,
2 on a configuration error.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-009)
- 2026-10-18: Read stdin on a daemon thread so signals stop an idle
              flusher; skip non-UTF-8 lines (STORY-010)

TODO:
- None
"""

import json
import logging
import queue
import signal
import sys
import threading
from collections.abc import Iterable, Iterator
from types import FrameType
from typing import Any, BinaryIO

from pydantic import ValidationError

from courier.src.config import TransportSettings
from courier.src.errors import ConfigurationError
from courier.src.logging_config import setup_logging
from courier.src.transport import Transport

logger = logging.getLogger(__name__)

# Module-level shutdown event shared between signal handlers and the loop.
shutdown_event = threading.Event()

# Put on the record queue by the reader thread when input ends.
END_OF_INPUT = object()

# Seconds the main thread waits for a record before rechecking shutdown.
_QUEUE_POLL_S = 0.2

EXIT_OK = 0
EXIT_DELIVERY_FAILED = 1
EXIT_CONFIG_ERROR = 2


def read_records(stream: BinaryIO) -> Iterator[Any]:
    """Yield decoded JSON records from the binary *stream*, one per line.

    Blank lines are ignored. Lines that are not valid UTF-8 or not valid
    JSON are logged and skipped.
    """
    for lineno, raw in enumerate(stream, start=1):
        try:
            line = raw.decode("utf-8").strip()
        except UnicodeDecodeError as exc:
            logger.warning("Skipping line %d, not valid UTF-8: %s", lineno, exc)
            continue
        if not line:
            continue
        try:
            yield json.loads(line)
        except json.JSONDecodeError as exc:
            logger.warning("Skipping line %d, not valid JSON: %s", lineno, exc)


def _reader_loop(stream: BinaryIO, records: queue.Queue) -> None:
    """Feed records from *stream* into *records*, then END_OF_INPUT."""
    try:
        for record in read_records(stream):
            records.put(record)
    except Exception:
        logger.exception("Unexpected error reading input")
    finally:
        records.put(END_OF_INPUT)


def drain(records: queue.Queue) -> Iterator[Any]:
    """Yield queued records until END_OF_INPUT or ``shutdown_event``.

    Polls with a timeout so a set ``shutdown_event`` is seen within
    ``_QUEUE_POLL_S`` even when no input is arriving.
    """
    while not shutdown_event.is_set():
        try:
            record = records.get(timeout=_QUEUE_POLL_S)
        except queue.Empty:
            continue
        if record is END_OF_INPUT:
            return
        yield record
    logger.info("Shutdown requested, no longer reading input")


def iter_batches(records: Iterable[Any], batch_size: int) -> Iterator[list[Any]]:
    """Group *records* into lists of at most *batch_size* items."""
    batch: list[Any] = []
    for record in records:
        batch.append(record)
        if len(batch) >= batch_size:
            yield batch
            batch = []
    if batch:
        yield batch


def flush(transport: Transport, batches: Iterable[list[Any]]) -> bool:
    """Send every batch produced by *batches*.

    Returns:
        ``True`` if every batch sent was accepted by the collector.
    """
    all_ok = True
    sent = 0
    for batch in batches:
        size = len(batch)
        response = transport.send_batch(batch)
        sent += 1
        if response.succeeded:
            logger.info("Delivered batch of %d records", size)
        else:
            all_ok = False
            logger.error(
                "Batch of %d records not delivered: status=%d, error=%s",
                size,
                response.status,
                response.error,
            )
    logger.info("Sent %d batch(es)", sent)
    return all_ok


def _signal_handler(
    signum: int,
    _frame: FrameType | None,
) -> None:
    """Handle SIGTERM/SIGINT by signalling shutdown."""
    sig_name = signal.Signals(signum).name
    logger.info("Received %s, finishing current batch", sig_name)
    shutdown_event.set()


def main(stdin: BinaryIO | None = None) -> int:
    """Flusher entry point.

    Loads configuration from environment variables, builds the
    transport, registers signal handlers, starts the stdin reader
    thread and delivers records in batches. The transport is shut down
    before returning.

    Returns:
        Process exit code.
    """
    try:
        settings = TransportSettings()
    except ValidationError as exc:
        setup_logging()
        logger.error("Invalid configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    setup_logging(settings.log_level)

    try:
        transport = Transport(settings)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)

    logger.info(
        "Courier starting -- delivering to %s, batch size %d, retries %d",
        settings.url,
        settings.batch_size,
        settings.retries,
    )

    records: queue.Queue = queue.Queue()
    reader_thread = threading.Thread(
        target=_reader_loop,
        args=(stdin if stdin is not None else sys.stdin.buffer, records),
        daemon=True,
        name="stdin-reader",
    )
    reader_thread.start()

    with transport:
        ok = flush(transport, iter_batches(drain(records), settings.batch_size))

    logger.info("Courier shut down cleanly")
    return EXIT_OK if ok else EXIT_DELIVERY_FAILED


if __name__ == "__main__":
    sys.exit(main())
