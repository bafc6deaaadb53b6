"""
Writers for the durable logs of a run.

:func:`write_mapping_log` writes the tab-separated audit of every asset that
was mapped and fetched (``old_url``, ``new_url``, ``local_path``; no header
row).  The remaining helpers write one value per line: failed URLs, the URL
lists that were considered and the referenced attachment ids.
"""

from __future__ import annotations

import csv
import os
from typing import Iterable

from .url_map import MappingEntry


def write_mapping_log(entries: Iterable[MappingEntry], out_path: str) -> str:
    """Write ``entries`` as TSV to ``out_path`` and return the path.

    The parent directory is created automatically.
    """
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, delimiter="\t", lineterminator="\n", quoting=csv.QUOTE_NONE, escapechar="\\")
        for entry in entries:
            writer.writerow([entry.old_url, entry.new_url, entry.local_path])
    return out_path


def write_lines(values: Iterable[str], out_path: str) -> str:
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        for value in values:
            f.write(f"{value}\n")
    return out_path
