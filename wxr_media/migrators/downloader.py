"""
Fetching of mapped assets into the download directory.

Every :class:`~wxr_media.utils.url_map.MappingEntry` is fetched to its
``local_path`` so the downloaded tree mirrors the original upload layout.
Files that already exist are reused without any network I/O, which makes a
second run against a populated download directory free.  Fetches go through
a :class:`RetryPolicy` (three attempts with a fixed two second delay by
default) and a single failed asset never aborts the run: failures are
collected in the returned :class:`DownloadReport`.

Each local path is fetched once, even when several URLs map to it; with
``workers > 1`` the distinct paths are fetched by a bounded thread pool.
The report always lists entries in mapping order regardless of completion
order.

Usage example::

    mapping = build_url_mapping(urls, old_host="old.example",
                                new_base="https://cdn.example.com",
                                download_dir="assets")
    report = Downloader(workers=4).download_all(mapping)
    for url, error in report.failed:
        print(url, error)
"""

from __future__ import annotations

import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from wxr_media.utils.url_map import MappingEntry, UrlMapping

RETRYABLE_STATUS = (408, 429, 500, 502, 503, 504)


def is_retryable(exc: Exception) -> bool:
    """Connection errors, timeouts and transient HTTP statuses are retried."""
    if isinstance(exc, requests.HTTPError):
        response = exc.response
        return response is not None and response.status_code in RETRYABLE_STATUS
    return isinstance(exc, (requests.ConnectionError, requests.Timeout))


@dataclass
class RetryPolicy:
    """
    How often and how patiently a fetch is attempted.

    ``backoff`` receives the number of the attempt that just failed (starting
    at 1) and returns the delay before the next one.
    """

    max_attempts: int = 3
    backoff: Callable[[int], float] = lambda attempt: 2.0
    retryable: Callable[[Exception], bool] = is_retryable

    @classmethod
    def fixed(cls, max_attempts: int = 3, delay: float = 2.0) -> "RetryPolicy":
        return cls(max_attempts=max(1, max_attempts), backoff=lambda attempt: delay)

    def call(self, fn: Callable[[], Any], *, sleep_fn: Callable[[float], None] = time.sleep) -> Any:
        """Run ``fn`` until it succeeds, a non-retryable error occurs or
        attempts run out.  The last exception is re-raised."""
        attempt = 1
        while True:
            try:
                return fn()
            except Exception as e:
                if attempt >= self.max_attempts or not self.retryable(e):
                    raise
                sleep_fn(self.backoff(attempt))
                attempt += 1


@dataclass
class DownloadReport:
    mapped: List[MappingEntry] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    skipped_directories: List[str] = field(default_factory=list)
    reused: List[str] = field(default_factory=list)
    downloaded: List[str] = field(default_factory=list)


class Downloader:
    """Fetch mapping entries with ``requests``.

    :param session: Object with a ``requests.Session``-compatible ``get``.
        A new session is created when omitted.
    :param retry: Retry policy applied to each fetch.
    :param timeout: Per-request timeout in seconds.
    :param workers: Size of the thread pool; ``1`` fetches sequentially.
    :param log: Optional ``(message, level)`` callback for progress lines.
    """

    def __init__(
        self,
        *,
        session: Optional[Any] = None,
        retry: Optional[RetryPolicy] = None,
        timeout: float = 30.0,
        workers: int = 1,
        user_agent: Optional[str] = None,
        log: Optional[Callable[..., None]] = None,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session if session is not None else requests.Session()
        if user_agent and hasattr(self.session, "headers"):
            self.session.headers["User-Agent"] = user_agent
        self.retry = retry or RetryPolicy.fixed()
        self.timeout = timeout
        self.workers = max(1, workers)
        self.log = log or (lambda message, level="INFO": None)
        self.sleep_fn = sleep_fn

    def fetch(self, url: str, dest: str) -> None:
        """Stream ``url`` to ``dest`` through a ``.part`` file.

        Redirects are followed.  ``dest`` only appears once the body has been
        written completely, so an interrupted run never leaves a truncated
        file that a later run would take for a finished download.
        """
        os.makedirs(os.path.dirname(dest) or ".", exist_ok=True)
        tmp = dest + ".part"

        def do_request() -> None:
            resp = self.session.get(url, stream=True, timeout=self.timeout, allow_redirects=True)
            try:
                resp.raise_for_status()
                with open(tmp, "wb") as f:
                    for chunk in resp.iter_content(chunk_size=64 * 1024):
                        if chunk:
                            f.write(chunk)
            finally:
                resp.close()

        try:
            self.retry.call(do_request, sleep_fn=self.sleep_fn)
        except Exception:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
        os.replace(tmp, dest)

    def _process(self, entry: MappingEntry) -> Tuple[str, Optional[str]]:
        if os.path.isfile(entry.local_path):
            self.log(f"SKIP (exists): {entry.local_path}", "DEBUG")
            return "reused", None
        try:
            self.fetch(entry.old_url, entry.local_path)
        except (requests.RequestException, OSError) as e:
            self.log(f"FAILED: {entry.old_url}: {e}", "ERROR")
            return "failed", str(e)
        self.log(f"Downloaded: {entry.old_url} -> {entry.local_path}")
        return "downloaded", None

    def download_all(self, mapping: UrlMapping) -> DownloadReport:
        entries = mapping.entries()
        # Different URLs (http/https, stripped "..") can share a local path;
        # only the first entry per path is fetched.
        owners: Dict[str, MappingEntry] = {}
        for entry in entries:
            if not entry.old_url.endswith("/"):
                owners.setdefault(entry.local_path, entry)
        unique = list(owners.values())
        if self.workers > 1 and len(unique) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                outcomes = list(pool.map(self._process, unique))
        else:
            outcomes = [self._process(entry) for entry in unique]
        by_path = {entry.local_path: outcome for entry, outcome in zip(unique, outcomes)}

        report = DownloadReport()
        for entry in entries:
            if entry.old_url.endswith("/"):
                self.log(f"SKIP (directory URL): {entry.old_url}", "WARNING")
                report.skipped_directories.append(entry.old_url)
                continue
            status, error = by_path[entry.local_path]
            if status == "failed":
                report.failed.append((entry.old_url, error or ""))
                continue
            if status == "reused" or owners[entry.local_path] is not entry:
                report.reused.append(entry.old_url)
            else:
                report.downloaded.append(entry.old_url)
            report.mapped.append(entry)
        return report
