from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple

from .wxr_document import Item, WxrDocument


@dataclass(frozen=True)
class AttachmentRecord:
    post_id: str
    attachment_url: str


class AssetCatalog:
    """
    Read-only queries over the items of a :class:`WxrDocument`.

    Attachments are recognised by the item's own ``wp:post_type`` field.
    Attachment items with an empty ``wp:attachment_url`` are tolerated but
    left out of :attr:`attachments`; :meth:`has_attachment_item` still knows
    about them.
    """

    def __init__(self, document: WxrDocument) -> None:
        self.document = document
        self.attachments: List[AttachmentRecord] = []
        self._by_id: Dict[str, AttachmentRecord] = {}
        self._attachment_ids: Set[str] = set()
        for item in document.attachments():
            self._attachment_ids.add(item.post_id)
            url = item.attachment_url
            if not url:
                continue
            record = AttachmentRecord(item.post_id, url)
            self.attachments.append(record)
            self._by_id.setdefault(item.post_id, record)

    @property
    def attachment_urls(self) -> List[str]:
        """Attachment URLs in document order, without duplicates."""
        seen = set()
        urls = []
        for record in self.attachments:
            if record.attachment_url not in seen:
                seen.add(record.attachment_url)
                urls.append(record.attachment_url)
        return urls

    def attachment_by_id(self, post_id: str) -> Optional[AttachmentRecord]:
        return self._by_id.get(post_id)

    def has_attachment_item(self, post_id: str) -> bool:
        return post_id in self._attachment_ids

    def non_attachment_items(self) -> List[Item]:
        return [item for item in self.document.items if not item.is_attachment]

    def postmeta(self) -> Iterator[Tuple[str, str, str]]:
        """Yield ``(post_id, meta_key, meta_value)`` for non-attachment items."""
        for item in self.non_attachment_items():
            for key, value in item.postmeta:
                yield item.post_id, key, value

    def contents(self, *, include_attachments: bool = True) -> Iterator[Tuple[str, str]]:
        """Yield ``(post_id, content markup)`` for items with non-empty content."""
        for item in self.document.items:
            if item.is_attachment and not include_attachments:
                continue
            content = item.content
            if content:
                yield item.post_id, content
