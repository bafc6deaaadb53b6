"""
Error taxonomy and structured event reports for the media migration.

Fatal conditions are raised as subclasses of :class:`MigrationError` and abort
the run.  Everything else (a failed download, a thumbnail that points nowhere,
a missing element during a rewrite) is recorded and the run continues.  Those
per-asset events are appended to JSON Lines files so they can be reviewed or
parsed after a run.

Two public functions are provided:

``report_error``
    Record a failed event for a URL or item.  An optional exception can be
    supplied and will be serialized to the log.

``report_ok``
    Record a successful event.  Additional key/value information can be
    attached to the entry via the ``extra`` parameter.

The ``ERRORS`` dictionary maps event codes to human readable messages.  Codes
not present in the dictionary fall back to the code itself.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional


class MigrationError(Exception):
    """Base class for errors that abort a migration run."""


class MalformedInputError(MigrationError):
    """The input document is not a well-formed WordPress export."""


class ConfigurationError(MigrationError):
    """The supplied settings cannot be used (e.g. a new base without scheme)."""


# Mapping of event codes used throughout the migration to descriptive messages.
ERRORS: Dict[str, str] = {
    "DOWNLOAD_FAILED": "Failed to download asset after retries",
    "DOWNLOADED": "Asset downloaded",
    "REUSED": "Asset already present in download directory",
    "SKIPPED_DIRECTORY": "Directory-like URL skipped",
    "THUMBNAIL_UNRESOLVED": "Thumbnail attachment not found",
    "REWRITE_WARNING": "Element could not be rewritten",
    "REMAINING_OLD_HOST": "Old host still referenced in output",
}

_REPORT_DIR = os.path.join("build", "logs")


def set_report_dir(path: str) -> None:
    """Direct subsequent reports to ``path``."""
    global _REPORT_DIR
    _REPORT_DIR = path


def _write_jsonl(name: str, data: Dict[str, Any]) -> None:
    """Append ``data`` as a JSON object followed by a newline to ``name``."""
    os.makedirs(_REPORT_DIR, exist_ok=True)
    with open(os.path.join(_REPORT_DIR, name), "a", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False)
        f.write("\n")


def report_error(code: str, subject: str, exc: Optional[Any] = None) -> None:
    """Log a failed event for ``subject``.

    Parameters
    ----------
    code:
        A key identifying the type of error.  If ``code`` is present in
        :data:`ERRORS` its value will be used as the message.
    subject:
        The URL or item id the event is about.
    exc:
        Optional exception (or message) that triggered the error.  Its
        string representation is included in the log entry.
    """
    message = ERRORS.get(code, code)
    entry: Dict[str, Any] = {"code": code, "message": message, "subject": subject}
    if exc is not None:
        entry["error"] = str(exc)
    _write_jsonl("errors.jsonl", entry)


def report_ok(code: str, subject: str, extra: Optional[Dict[str, Any]] = None) -> None:
    """Log a successful event for ``subject``.

    Parameters
    ----------
    code:
        A key identifying the type of event.
    subject:
        The URL or item id the event is about.
    extra:
        Optional dictionary of additional fields to merge into the log entry.
    """
    message = ERRORS.get(code, code)
    entry: Dict[str, Any] = {"code": code, "message": message, "subject": subject}
    if extra:
        entry.update(extra)
    _write_jsonl("success.jsonl", entry)
