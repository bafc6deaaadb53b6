"""
The single old URL → new URL mapping of a migration run.

:func:`build_url_mapping` is called exactly once per run with the attachment
URLs and the validated resized variants.  The resulting :class:`UrlMapping`
is read by both the downloader and the document rewriter and is not changed
afterwards.
"""

from __future__ import annotations

import os
import posixpath
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping
from urllib.parse import urlsplit

from .errors import ConfigurationError

UNKNOWN_PATH_PREFIX = "_unknown_path"

_ANY_HOST_RE = re.compile(r"^https?://[^/]+/")


@dataclass(frozen=True)
class MappingEntry:
    old_url: str
    new_url: str
    local_path: str


def normalize_old_host(value: str) -> str:
    """``https://old.example/`` → ``old.example``."""
    host = (value or "").strip()
    for scheme in ("http://", "https://"):
        if host.startswith(scheme):
            host = host[len(scheme):]
    return host.rstrip("/")


def normalize_new_base(value: str) -> str:
    """
    Validate and normalize the base URL assets are relocated under.

    Trailing slashes and dots are removed and runs of slashes in the path
    portion collapse to one; the ``scheme://`` separator is left alone.

    :raises ConfigurationError: if ``value`` is not an http(s) URL with a host.
    """
    base = (value or "").strip()
    parts = urlsplit(base)
    if parts.scheme not in ("http", "https") or not parts.netloc or "://" not in base:
        raise ConfigurationError(
            f"New base must be an http(s) URL with a host (e.g. https://cdn.example.com or "
            f"https://cdn.example.com/prefix), got {value!r}"
        )
    path = re.sub(r"/+", "/", parts.path).rstrip("/.")
    return f"{parts.scheme}://{parts.netloc.rstrip('.')}{path}"


def join_url(base: str, relative: str) -> str:
    """Join with exactly one ``/`` between ``base`` and ``relative``."""
    return f"{base.rstrip('/')}/{relative.lstrip('/')}"


def relative_path(url: str, old_host: str) -> str:
    """Path of ``url`` below its host, used for both new URL and local file.

    Falls back to stripping whatever host the URL has, and finally to an
    ``_unknown_path/<basename>`` bucket.
    """
    marker = f"://{old_host}/"
    idx = url.find(marker)
    if old_host and idx != -1:
        rel = url[idx + len(marker):]
    else:
        rel = _ANY_HOST_RE.sub("", url, count=1)
    if not rel or rel == url:
        rel = f"{UNKNOWN_PATH_PREFIX}/{posixpath.basename(url.rstrip('/')) or 'asset'}"
    return rel


def _safe_segments(rel: str) -> List[str]:
    # Keeps downloads inside the download directory.
    return [s for s in rel.split("/") if s not in ("", ".", "..")] or [UNKNOWN_PATH_PREFIX]


class UrlMapping(Mapping[str, MappingEntry]):
    """Ordered, read-only mapping of old URL to :class:`MappingEntry`."""

    def __init__(self, entries: Dict[str, MappingEntry], *, old_host: str, new_base: str, download_dir: str) -> None:
        self._entries = MappingProxyType(dict(entries))
        self.old_host = old_host
        self.new_base = new_base
        self.download_dir = download_dir

    def __getitem__(self, key: str) -> MappingEntry:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> List[MappingEntry]:
        return list(self._entries.values())

    def relocate(self, url: str) -> str:
        """New URL for any ``url`` under the same relative-path rule."""
        return join_url(self.new_base, relative_path(url, self.old_host))

    def is_relocated(self, url: str) -> bool:
        """``url`` already lives under the new base (which may share the old host)."""
        return url == self.new_base or url.startswith(self.new_base + "/")


def build_url_mapping(urls: Iterable[str], *, old_host: str, new_base: str, download_dir: str) -> UrlMapping:
    """Build the mapping for ``urls`` (attachment URLs and resized variants).

    Repeated URLs are registered once, in first-seen order.
    """
    host = normalize_old_host(old_host)
    base = normalize_new_base(new_base)
    entries: Dict[str, MappingEntry] = {}
    for url in urls:
        url = (url or "").strip()
        if not url or url in entries:
            continue
        rel = relative_path(url, host)
        entries[url] = MappingEntry(
            old_url=url,
            new_url=join_url(base, rel),
            local_path=os.path.join(download_dir, *_safe_segments(rel)),
        )
    return UrlMapping(entries, old_host=host, new_base=base, download_dir=download_dir)
