import os
import sys
import time

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
import requests

from wxr_media.migrators.downloader import Downloader, RetryPolicy, is_retryable
from wxr_media.utils.url_map import build_url_mapping


class FakeResponse:
    def __init__(self, status_code=200, body=b"data"):
        self.status_code = status_code
        self.body = body
        self.headers = {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def iter_content(self, chunk_size=1):
        yield self.body

    def close(self):
        pass


class FakeSession:
    """Returns queued responses (or raises queued exceptions) per URL."""

    def __init__(self, script=None):
        self.script = script or {}
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        queue = self.script.get(url)
        outcome = queue.pop(0) if queue else FakeResponse(body=url.encode())
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_mapping(tmp_path, *urls):
    return build_url_mapping(
        urls, old_host="old.example", new_base="https://cdn.example.com", download_dir=str(tmp_path / "media")
    )


def test_download_preserves_relative_layout(tmp_path):
    url = "https://old.example/wp-content/uploads/2020/x.jpg"
    session = FakeSession()
    report = Downloader(session=session).download_all(make_mapping(tmp_path, url))
    dest = tmp_path / "media" / "wp-content" / "uploads" / "2020" / "x.jpg"
    assert dest.read_bytes() == url.encode()
    assert report.downloaded == [url]
    assert [e.old_url for e in report.mapped] == [url]
    assert session.calls[0][1]["allow_redirects"] is True
    assert not os.path.exists(str(dest) + ".part")


def test_existing_file_is_reused_without_network(tmp_path):
    url = "https://old.example/a.jpg"
    dest = tmp_path / "media" / "a.jpg"
    dest.parent.mkdir(parents=True)
    dest.write_bytes(b"old")
    session = FakeSession()
    report = Downloader(session=session).download_all(make_mapping(tmp_path, url))
    assert session.calls == []
    assert report.reused == [url]
    assert [e.old_url for e in report.mapped] == [url]
    assert dest.read_bytes() == b"old"


def test_directory_like_urls_are_skipped(tmp_path):
    url = "https://old.example/wp-content/uploads/"
    session = FakeSession()
    report = Downloader(session=session).download_all(make_mapping(tmp_path, url))
    assert session.calls == []
    assert report.skipped_directories == [url]
    assert report.mapped == []


def test_transient_errors_are_retried_with_fixed_backoff(tmp_path):
    url = "https://old.example/a.jpg"
    session = FakeSession({url: [FakeResponse(503), requests.ConnectionError("reset"), FakeResponse(body=b"ok")]})
    sleeps = []
    downloader = Downloader(session=session, retry=RetryPolicy.fixed(3, 2.0), sleep_fn=sleeps.append)
    report = downloader.download_all(make_mapping(tmp_path, url))
    assert len(session.calls) == 3
    assert sleeps == [2.0, 2.0]
    assert report.downloaded == [url]
    assert (tmp_path / "media" / "a.jpg").read_bytes() == b"ok"


def test_exhausted_retries_are_reported_and_run_continues(tmp_path):
    bad = "https://old.example/bad.jpg"
    good = "https://old.example/good.jpg"
    session = FakeSession({bad: [FakeResponse(500), FakeResponse(502), FakeResponse(503)]})
    report = Downloader(session=session, sleep_fn=lambda s: None).download_all(make_mapping(tmp_path, bad, good))
    assert [url for url, _ in report.failed] == [bad]
    assert [e.old_url for e in report.mapped] == [good]
    assert not (tmp_path / "media" / "bad.jpg").exists()
    assert not (tmp_path / "media" / "bad.jpg.part").exists()


def test_not_found_is_not_retried(tmp_path):
    url = "https://old.example/missing.jpg"
    session = FakeSession({url: [FakeResponse(404)]})
    report = Downloader(session=session, sleep_fn=lambda s: pytest.fail("should not sleep")).download_all(
        make_mapping(tmp_path, url)
    )
    assert len(session.calls) == 1
    assert report.failed[0][0] == url


def test_worker_pool_keeps_mapping_order(tmp_path):
    urls = [f"https://old.example/img/{i}.jpg" for i in range(12)]
    report = Downloader(session=FakeSession(), workers=4).download_all(make_mapping(tmp_path, *urls))
    assert [e.old_url for e in report.mapped] == urls
    assert all((tmp_path / "media" / "img" / f"{i}.jpg").exists() for i in range(12))


def test_is_retryable():
    assert is_retryable(requests.Timeout())
    assert is_retryable(requests.HTTPError(response=FakeResponse(429)))
    assert not is_retryable(requests.HTTPError(response=FakeResponse(403)))
    assert not is_retryable(ValueError("x"))


class SlowSession(FakeSession):
    def get(self, url, **kwargs):
        time.sleep(0.05)
        return super().get(url, **kwargs)


def test_urls_sharing_a_local_path_are_fetched_once(tmp_path):
    https_url = "https://old.example/wp-content/uploads/a.jpg"
    http_url = "http://old.example/wp-content/uploads/a.jpg"
    mapping = make_mapping(tmp_path, https_url, http_url)
    assert mapping[https_url].local_path == mapping[http_url].local_path

    session = SlowSession()
    report = Downloader(session=session, workers=4).download_all(mapping)
    assert [url for url, _ in session.calls] == [https_url]
    assert report.failed == []
    assert report.downloaded == [https_url]
    assert report.reused == [http_url]
    assert [e.old_url for e in report.mapped] == [https_url, http_url]
    assert (tmp_path / "media" / "wp-content" / "uploads" / "a.jpg").read_bytes() == https_url.encode()


def test_shared_local_path_failure_is_reported_for_every_url(tmp_path):
    https_url = "https://old.example/gone.jpg"
    http_url = "http://old.example/gone.jpg"
    session = FakeSession({https_url: [FakeResponse(404)]})
    report = Downloader(session=session, workers=4).download_all(make_mapping(tmp_path, https_url, http_url))
    assert len(session.calls) == 1
    assert [url for url, _ in report.failed] == [https_url, http_url]
    assert report.mapped == []
