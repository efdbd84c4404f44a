"""
HTTP transport that delivers event batches with bounded retries.

``Transport`` owns a single persistent ``httpx.Client`` and POSTs each
batch as a JSON array to the configured collector URL. Transient
failures (5xx, 429, any exception during the attempt) are retried up to
the configured budget, sleeping between attempts for whatever the
backoff policy says. Client errors (other 4xx) end the call at once.

Guarantees of ``send_batch``:
- Exactly one ``Response`` is returned; exceptions never escape.
- The caller's batch is cleared on return, whatever the outcome.
- The backoff policy is reset on return, so batches are independent.

Retry exhaustion is reported asymmetrically: repeated HTTP errors
return the last HTTP status with no error message, while repeated
exceptions return status -1 and the exception message.

The transport does no locking. Callers must not run concurrent
``send_batch`` calls on one instance.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-005)
- 2026-10-18: Lazy connection start, idempotent shutdown (STORY-006)

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import os
import platform
import socket
import sys
import threading
import time
from collections.abc import Callable, MutableSequence
from typing import Any

import httpx
from pydantic import ValidationError

from courier.src.backoff import Backoff, BackoffPolicy
from courier.src.config import TransportSettings
from courier.src.errors import ConfigurationError
from courier.src.response import TRANSPORT_FAILURE_STATUS, Response
from courier.src.version import VERSION

logger = logging.getLogger(__name__)

# One attempt: returns the result and whether it should be retried.
_Attempt = Callable[[], tuple[Response, bool]]


def should_retry(
    status_code: int,
    body: str = "",
    log: logging.Logger = logger,
) -> bool:
    """Decide whether an HTTP status is worth another attempt.

    - ``>= 500``: server error, retry.
    - ``429``: rate limited, retry after backing off.
    - other ``4xx``: client error, retrying will not help.
    - anything else: success, nothing to retry.

    Args:
        status_code: HTTP status of the response.
        body: Response body, used for logging only.
        log: Logger receiving the classification message.

    Returns:
        ``True`` if the request should be retried.
    """
    if status_code >= 500:
        log.info("Server error: status=%d, body=%s", status_code, body)
        return True
    if status_code == 429:
        log.info("Rate limit error: body=%s", body)
        return True
    if status_code >= 400:
        log.error("Client error: status=%d, body=%s", status_code, body)
        return False
    return False


def build_headers(extra: dict[str, str] | None = None) -> httpx.Headers:
    """Build request headers: client identification defaults plus *extra*.

    *extra* is merged over the defaults in order; on a (case-insensitive)
    name collision the caller's value wins.
    """
    headers = httpx.Headers(
        {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": f"courier/{VERSION}",
            "Client-Language": "python",
            "Client-Language-Version": platform.python_version(),
            "Client-Platform": sys.platform,
            "Client-Engine": platform.python_implementation(),
            "Client-Hostname": socket.gethostname(),
            "Client-Pid": str(os.getpid()),
            "Client-Thread": str(threading.get_ident()),
        }
    )
    if extra:
        headers.update(extra)
    return headers


class Transport:
    """Delivers batches to one collector endpoint over a reused connection.

    Options resolve as: keyword argument, then ``COURIER_*`` environment
    variable, then hardcoded default. A prepared ``TransportSettings``
    may be passed instead; keyword arguments still override it.

    Args:
        settings: Pre-built configuration. Read from the environment
            when omitted.
        url: Collector endpoint (http or https).
        headers: Extra request headers.
        retries: Total attempt budget per ``send_batch`` call.
        read_timeout: Seconds to wait for response data.
        open_timeout: Seconds to wait for the connection to open.
        write_timeout: Seconds to wait while sending the body.
        logger: Logger for delivery events. Defaults to this module's.
        backoff_policy: Wait-time generator between attempts. Defaults
            to a ``BackoffPolicy`` built from *settings*.

    Raises:
        ConfigurationError: If no URL is resolvable, the URL is not
            http(s), or any numeric option is out of range.
    """

    def __init__(
        self,
        settings: TransportSettings | None = None,
        *,
        url: str | None = None,
        headers: dict[str, str] | None = None,
        retries: int | None = None,
        read_timeout: float | None = None,
        open_timeout: float | None = None,
        write_timeout: float | None = None,
        logger: logging.Logger | None = None,
        backoff_policy: Backoff | None = None,
    ) -> None:
        overrides = {
            key: value
            for key, value in {
                "url": url,
                "headers": headers,
                "retries": retries,
                "read_timeout": read_timeout,
                "open_timeout": open_timeout,
                "write_timeout": write_timeout,
            }.items()
            if value is not None
        }
        settings = _resolve_settings(settings, overrides)

        if settings.url is None:
            raise ConfigurationError(
                "url is required (pass url= or set COURIER_URL) "
                "so we know where to send batches"
            )

        # httpx normalizes an empty path to "/".
        self._url = httpx.URL(settings.url)
        self._headers = dict(settings.headers)
        self._retries = settings.retries
        self._timeout = httpx.Timeout(
            settings.open_timeout,
            connect=settings.open_timeout,
            read=settings.read_timeout,
            write=settings.write_timeout,
        )
        self._logger = logger or logging.getLogger(__name__)
        if backoff_policy is None:
            try:
                backoff_policy = BackoffPolicy.from_settings(settings)
            except ValueError as exc:
                raise ConfigurationError(str(exc)) from exc
        self._backoff_policy = backoff_policy

        # Started lazily on the first send_batch().
        self._client: httpx.Client | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def url(self) -> httpx.URL:
        """Endpoint every attempt is POSTed to."""
        return self._url

    @property
    def headers(self) -> dict[str, str]:
        """Caller-supplied headers (without the defaults)."""
        return dict(self._headers)

    @property
    def retries(self) -> int:
        return self._retries

    @property
    def backoff_policy(self) -> Backoff:
        return self._backoff_policy

    @property
    def started(self) -> bool:
        """Whether the persistent connection is currently open."""
        return self._client is not None

    def send_batch(self, batch: MutableSequence[Any]) -> Response:
        """Deliver *batch* to the collector, retrying transient failures.

        The batch is serialized to a JSON array on every attempt. On
        return the batch is emptied and the backoff policy reset, even
        if delivery failed.

        Args:
            batch: JSON-serializable records. Empty batches are sent
                as ``[]``.

        Returns:
            The HTTP status of the final exchange, or status -1 with the
            error message if the last attempt raised.
        """
        try:
            self._logger.debug("Sending request for %d items", len(batch))

            def attempt() -> tuple[Response, bool]:
                response = self._send_request(batch)
                self._logger.debug(
                    "Response: status=%d, body=%s",
                    response.status_code,
                    response.text,
                )
                return (
                    Response(response.status_code),
                    should_retry(
                        response.status_code, response.text, self._logger
                    ),
                )

            last_response, exception = self._retry_with_backoff(attempt)

            if exception is not None:
                self._logger.error(
                    "Delivery failed after %d attempt(s): %s",
                    max(self._retries, 1),
                    exception,
                    exc_info=exception,
                )
                return Response(
                    TRANSPORT_FAILURE_STATUS,
                    str(exception) or type(exception).__name__,
                )
            assert last_response is not None
            return last_response
        finally:
            self._backoff_policy.reset()
            batch.clear()

    def shutdown(self) -> None:
        """Close the persistent connection if one is open.

        Safe to call repeatedly or on a transport that never sent.
        """
        self._logger.info("Transport shutting down")
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _retry_with_backoff(
        self, attempt: _Attempt
    ) -> tuple[Response | None, Exception | None]:
        """Run *attempt* until it needs no retry or the budget runs out.

        Any exception raised by *attempt* counts as retryable. Sleeps
        ``backoff_policy.next_interval()`` milliseconds between tries.

        Returns:
            ``(last_result, None)`` when an attempt completed, or
            ``(None, exception)`` when the final attempt raised.
        """
        retries_remaining = self._retries
        while True:
            result: Response | None = None
            caught: Exception | None = None
            try:
                result, retry = attempt()
                if not retry:
                    return result, None
            except Exception as exc:
                self._logger.debug("Request error: %s", exc)
                caught = exc

            if retries_remaining <= 1:
                return result, caught

            self._logger.debug(
                "Retrying request, %d retries left", retries_remaining
            )
            time.sleep(self._backoff_policy.next_interval() / 1000)
            retries_remaining -= 1

    def _connection(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def _send_request(self, batch: MutableSequence[Any]) -> httpx.Response:
        body = json.dumps(list(batch)).encode("utf-8")
        return self._connection().post(
            self._url,
            content=body,
            headers=build_headers(self._headers),
        )


def _resolve_settings(
    settings: TransportSettings | None,
    overrides: dict[str, Any],
) -> TransportSettings:
    try:
        if settings is None:
            return TransportSettings(**overrides)
        if overrides:
            return TransportSettings(**{**settings.model_dump(), **overrides})
        return settings
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc

