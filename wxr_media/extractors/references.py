"""
Discovery of attachment ids that must survive pruning.

Two kinds of reference keep an attachment alive even when no post body links
to it:

* a post's ``_thumbnail_id`` postmeta (its featured image), resolved by
  :func:`resolve_thumbnails`;
* the ``imageID`` carried by inline-image block directives such as
  ``<!-- wp:wpbbe/svg-inline {"imageID":123} /-->``, found by
  :func:`scan_inline_image_ids`.

:func:`collect_referenced_ids` merges both into the set handed to the
document rewriter.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Set

from .asset_catalog import AssetCatalog

THUMBNAIL_META_KEY = "_thumbnail_id"
INLINE_DIRECTIVE = "wpbbe/svg-inline"

_IMAGE_ID_RE = re.compile(r'"imageID"\s*:\s*([0-9]+)')


@dataclass
class ThumbnailResolution:
    urls: Set[str] = field(default_factory=set)
    ids: Set[str] = field(default_factory=set)
    warnings: List[str] = field(default_factory=list)


@dataclass
class InlineScan:
    ids: Set[str] = field(default_factory=set)
    used_fallback: bool = False


def resolve_thumbnails(catalog: AssetCatalog, *, meta_key: str = THUMBNAIL_META_KEY) -> ThumbnailResolution:
    """Map every ``_thumbnail_id`` of a non-attachment item to its attachment.

    Candidate ids are trimmed and deduplicated.  An id that names no
    attachment item produces a warning and is dropped.  An attachment item
    without an ``attachment_url`` is still referenced (it must survive
    pruning) but contributes no URL.
    """
    result = ThumbnailResolution()
    candidates = {value.strip() for _, key, value in catalog.postmeta() if key == meta_key and value.strip()}
    for thumb_id in sorted(candidates):
        if not catalog.has_attachment_item(thumb_id):
            result.warnings.append(f"Thumbnail attachment not found for ID: {thumb_id}")
            continue
        result.ids.add(thumb_id)
        record = catalog.attachment_by_id(thumb_id)
        if record is None:
            result.warnings.append(f"Thumbnail attachment has no attachment_url for ID: {thumb_id}")
            continue
        result.urls.add(record.attachment_url)
    return result


def directive_pattern(directive: str = INLINE_DIRECTIVE) -> "re.Pattern[str]":
    return re.compile(rf"<!--\s*wp:{re.escape(directive)}\b(.*?)/-->", re.S)


def find_image_ids(text: str, pattern: "re.Pattern[str]") -> Set[str]:
    """Return the first ``imageID`` of every directive block in ``text``."""
    ids = set()
    for block in pattern.finditer(text):
        m = _IMAGE_ID_RE.search(block.group(1))
        if m:
            ids.add(m.group(1))
    return ids


def scan_inline_image_ids(
    catalog: AssetCatalog, raw_text: str, *, directive: str = INLINE_DIRECTIVE
) -> InlineScan:
    """Collect inline-image ids, content first, then the whole raw document.

    Directive blocks are expected inside the content of non-attachment
    items.  Some exports carry them elsewhere, and finding none would make
    every inline-referenced attachment eligible for deletion, so when the
    content scan yields nothing the raw text of the whole document is
    scanned with the same pattern.
    """
    pattern = directive_pattern(directive)
    scan = InlineScan()
    for item in catalog.non_attachment_items():
        content = item.content
        if content:
            scan.ids |= find_image_ids(content, pattern)
    if not scan.ids:
        scan.used_fallback = True
        scan.ids = find_image_ids(raw_text, pattern)
    return scan


def collect_referenced_ids(*id_sets: Iterable[str]) -> Set[str]:
    referenced: Set[str] = set()
    for ids in id_sets:
        referenced.update(ids)
    return referenced
