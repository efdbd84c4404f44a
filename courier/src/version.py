"""Package version, reported to the collector in the ``User-Agent`` header."""

VERSION = "0.1.0"
