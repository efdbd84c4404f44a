"""
Exceptions raised by the courier delivery client.

Only configuration problems are raised to callers. Delivery failures
never escape ``Transport.send_batch``; they are reported through the
returned ``Response`` instead.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-002)

TODO:
- None
"""


class ConfigurationError(ValueError):
    """Raised at construction time when the transport cannot be configured.

    Covers a missing or unparseable endpoint URL, a non-http(s) scheme,
    a negative retry budget, negative timeouts and invalid backoff
    parameters. Never retried.
    """
