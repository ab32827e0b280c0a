from __future__ import annotations

import logging
import sys

_PLAIN_FORMAT = "Faultline: %(message)s"
_DEBUG_FORMAT = "Faultline [%(levelname)s] %(name)s: %(message)s"


def configure_logging(*, verbose: bool, quiet: bool) -> None:
    """
    Set up stderr logging for one CLI invocation.

    INFO by default (per-adapter ingest counts and the run summary), DEBUG with
    `--verbose` (every dropped finding and merged duplicate), WARNING with
    `--quiet` (only resource limits and adapter failures). stdout stays free
    for JSON and city payloads.
    """

    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format=_DEBUG_FORMAT if verbose else _PLAIN_FORMAT,
        stream=sys.stderr,
        force=True,
    )
