from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Set

from .asset_catalog import AssetCatalog

_RESIZED_NAME_RE = re.compile(r"^(.+)-([0-9]+)x([0-9]+)\.([a-zA-Z0-9]+)$")


@dataclass
class ResizedValidation:
    accepted: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)


def old_host_url_pattern(old_host: str) -> "re.Pattern[str]":
    # Same terminators as the sanity check: quotes, angle brackets, whitespace.
    return re.compile(rf"https?://{re.escape(old_host)}[^\"'<>\s]*")


def extract_content_urls(catalog: AssetCatalog, old_host: str) -> List[str]:
    """Every URL on ``old_host`` found in the content of any item, sorted."""
    pattern = old_host_url_pattern(old_host)
    urls: Set[str] = set()
    for _, content in catalog.contents():
        urls.update(pattern.findall(content))
    return sorted(urls)


def original_url_for(url: str) -> str:
    """Return the un-resized URL for ``url``, or ``""`` if it is not resized.

    ``https://h/2020/x-150x150.jpg`` becomes ``https://h/2020/x.jpg``.
    """
    directory, _, filename = url.rpartition("/")
    m = _RESIZED_NAME_RE.match(filename)
    if not directory or not m:
        return ""
    return f"{directory}/{m.group(1)}.{m.group(4)}"


def validate_resized_variants(candidates: Iterable[str], attachment_urls: Iterable[str]) -> ResizedValidation:
    """Keep the resized candidates whose original is an attachment URL.

    The original must equal an attachment URL verbatim, so resized copies of
    images that were never uploaded as attachments are rejected.  Candidates
    that do not look resized at all are neither accepted nor reported.
    """
    known = set(attachment_urls)
    result = ResizedValidation()
    for url in sorted(set(candidates)):
        original = original_url_for(url)
        if not original:
            continue
        if original in known:
            result.accepted.append(url)
        else:
            result.rejected.append(url)
    return result
