from __future__ import annotations
import json
import logging
import os
import sys
from typing import Any, IO, Optional, Tuple

log = logging.getLogger(__name__)

STDIN_NAME = "<stdin>"


def parse_document(data: bytes | str) -> Any:
    """Parse a whole JSON document; the result is treated as immutable."""
    if isinstance(data, bytes):
        data = data.decode("utf-8-sig")
    if not data.strip():
        raise ValueError("empty input")
    try:
        return json.loads(data)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON: {exc}") from exc


def load_document(path: Optional[str], stdin: Optional[IO[bytes]] = None) -> Tuple[Any, str]:
    """
    Load from `path`, or from piped stdin when no path is given.
    Returns (document, display name).
    """
    if path is None:
        stream = stdin if stdin is not None else sys.stdin.buffer
        if stream.isatty():
            raise ValueError("no input: pass a JSON file or pipe one on stdin")
        log.info("Reading document from stdin")
        return parse_document(stream.read()), STDIN_NAME

    if not os.path.exists(path):
        raise FileNotFoundError(path)
    log.info("Reading document from %s", path)
    with open(path, "rb") as f:
        return parse_document(f.read()), os.path.basename(path)
