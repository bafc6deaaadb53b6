"""
Rewriting of a :class:`~wxr_media.extractors.wxr_document.WxrDocument`
against a :class:`~wxr_media.utils.url_map.UrlMapping`.

The passes run strictly in this order, because each one relies on the state
the previous one left behind:

1. ``wp:attachment_url`` elements whose text equals a mapped URL;
2. ``guid`` of referenced attachment items that still point at the old host;
3. mapped URLs inside ``content:encoded`` payloads;
4. pruning of unreferenced attachment items (unless attachments are kept);
5. the full mapping plus an old-host fallback over the text of every
   attachment item that is still present.

URLs already under the new base are never rewritten again, even when the
new base lives on the old host.

Problems with single elements are collected as warnings in the returned
:class:`RewriteReport`; they never abort the run.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set
from urllib.parse import urlsplit

from wxr_media.extractors.wxr_document import WxrDocument
from wxr_media.utils.url_map import UrlMapping


@dataclass
class RewriteReport:
    attachment_urls: int = 0
    guids: int = 0
    content_items: int = 0
    kept_attachments: int = 0
    removed_ids: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class DocumentRewriter:
    def __init__(self, document: WxrDocument, mapping: UrlMapping) -> None:
        self.document = document
        self.mapping = mapping
        self.report = RewriteReport()
        self._lookup: Dict[str, str] = {}
        for old_url, entry in mapping.items():
            if not old_url or not entry.new_url:
                self.report.warnings.append(f"Skipping malformed mapping entry: {old_url!r} -> {entry.new_url!r}")
                continue
            self._lookup[old_url] = entry.new_url
        self._url_re = self._compile(self._lookup)
        self._fallback_re = re.compile(rf"https?://{re.escape(mapping.old_host)}/([^\"<>\s]+)")

    @staticmethod
    def _compile(lookup: Dict[str, str]) -> Optional["re.Pattern[str]"]:
        if not lookup:
            return None
        # Longest first, so a URL that is a prefix of another never matches
        # inside it; sorted() is stable, so equal lengths keep mapping order.
        ordered = sorted(lookup, key=len, reverse=True)
        return re.compile("|".join(re.escape(url) for url in ordered))

    def substitute(self, text: str) -> str:
        """Replace every mapped old URL in ``text`` in a single pass."""
        if self._url_re is None:
            return text
        return self._url_re.sub(lambda m: self._lookup[m.group(0)], text)

    def _fallback(self, text: str) -> str:
        def repl(m: "re.Match[str]") -> str:
            if self.mapping.is_relocated(m.group(0)):
                return m.group(0)
            rel = re.sub(r"/+", "/", m.group(1))
            return f"{self.mapping.new_base}/{rel.lstrip('/')}"

        return self._fallback_re.sub(repl, text)

    def rewrite_attachment_urls(self) -> int:
        count = 0
        for item in self.document.attachments():
            old_url = item.attachment_url
            new_url = self._lookup.get(old_url)
            if not new_url:
                continue
            if item.set_element_text(item.attachment_url_tag, new_url):
                count += 1
            else:
                self.report.warnings.append(f"attachment_url element missing for post_id={item.post_id}: {old_url}")
        self.report.attachment_urls = count
        return count

    def rewrite_guids(self, referenced_ids: Set[str]) -> int:
        count = 0
        old_host = self.mapping.old_host.lower()
        for item in self.document.attachments():
            if item.post_id not in referenced_ids:
                continue
            guid = item.guid
            if not guid:
                if not item.has_element("guid"):
                    self.report.warnings.append(f"guid element missing for post_id={item.post_id}")
                continue
            parts = urlsplit(guid)
            if parts.scheme not in ("http", "https") or parts.netloc.lower() != old_host:
                continue
            if self.mapping.is_relocated(guid):
                continue
            new_guid = self.mapping.relocate(guid)
            if new_guid != guid and item.set_element_text("guid", new_guid):
                count += 1
        self.report.guids = count
        return count

    def rewrite_content(self) -> int:
        count = 0
        for item in self.document.items:
            if item.map_element_text(item.content_tag, self.substitute):
                count += 1
        self.report.content_items = count
        return count

    def prune_attachments(self, referenced_ids: Set[str]) -> List[str]:
        removed = []
        for item in self.document.attachments():
            if item.post_id not in referenced_ids:
                self.document.remove_item(item)
                removed.append(item.post_id)
        self.report.removed_ids = removed
        return removed

    def normalize_kept_attachments(self) -> int:
        count = 0
        for item in self.document.attachments():
            if item.map_text(lambda text: self._fallback(self.substitute(text))):
                count += 1
        self.report.kept_attachments = count
        return count

    def run(self, referenced_ids: Set[str], *, remove_attachments: bool = True) -> RewriteReport:
        self.rewrite_attachment_urls()
        self.rewrite_guids(referenced_ids)
        self.rewrite_content()
        if remove_attachments:
            self.prune_attachments(referenced_ids)
        self.normalize_kept_attachments()
        return self.report
