"""
Structural view of a WordPress export (WXR) document.

The document is parsed once with :mod:`xml.etree.ElementTree`.  The tree is
used to reject malformed input, to discover the namespace prefixes the export
declares and to read the identity fields of every ``<item>`` (post id, post
type and postmeta pairs).

Rewrites, however, must leave every byte they do not touch exactly as it was
in the input, which a round-trip through ElementTree cannot do (it drops
CDATA sections and renames namespace prefixes).  So alongside the tree the
document keeps the serialized text of each item as an :class:`Item` block,
plus the text between items.  Each item exposes scoped accessors for its leaf
elements; string substitution only ever happens inside the text or CDATA
payload of one element (or, for :meth:`Item.map_text`, inside the text
regions of one item), never across element boundaries.
"""

from __future__ import annotations

import html
import io
import re
import xml.etree.ElementTree as ET
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union
from xml.sax.saxutils import escape

from wxr_media.utils.errors import MalformedInputError

WP_NAMESPACE_PREFIX = "http://wordpress.org/export/"
CONTENT_NAMESPACE = "http://purl.org/rss/1.0/modules/content/"

# Matches export/1.2/ but not export/1.2/excerpt/.
_WP_NAMESPACE_RE = re.compile(r"^http://wordpress\.org/export/[0-9.]+/$")
_DECLARATION_RE = re.compile(rb"^(?:\xef\xbb\xbf)?\s*<\?xml[^>]*encoding=[\"']([A-Za-z0-9._-]+)[\"']")
_ITEM_TOKEN_RE = re.compile(r"<!\[CDATA\[.*?\]\]>|<!--.*?-->|<item(?:\s[^>]*)?>|</item\s*>", re.S)
_TEXT_PART_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>|([^<]+)", re.S)
_BLOCK_TOKEN_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>|<!--.*?-->|<[^>]*>|([^<]+)", re.S)

_element_patterns: Dict[str, "re.Pattern[str]"] = {}

TextMapper = Callable[[str], str]


def _element_re(tag: str) -> "re.Pattern[str]":
    # CDATA sections and comments are matched first so a tag that appears
    # inside another element's payload is never taken for the element itself.
    pattern = _element_patterns.get(tag)
    if pattern is None:
        t = re.escape(tag)
        pattern = re.compile(
            r"<!\[CDATA\[.*?\]\]>|<!--.*?-->"
            rf"|(?P<open><{t}(?:\s[^>]*)?>)(?P<body>(?:<!\[CDATA\[.*?\]\]>|[^<])*)(?P<close></{t}\s*>)",
            re.S,
        )
        _element_patterns[tag] = pattern
    return pattern


def _qualified(prefix: str, local: str) -> str:
    return f"{prefix}:{local}" if prefix else local


def decode_text(body: str) -> str:
    """Return the character data of an element body, CDATA unwrapped."""
    out: List[str] = []
    for m in _TEXT_PART_RE.finditer(body):
        if m.group(1) is not None:
            out.append(m.group(1))
        else:
            out.append(html.unescape(m.group(2)))
    return "".join(out)


def _map_text_part(m: "re.Match[str]", fn: TextMapper) -> str:
    if m.group(1) is not None:
        return "<![CDATA[" + fn(m.group(1)) + "]]>"
    raw = m.group(2)
    if raw is None:
        # Tag or comment: markup is never rewritten.
        return m.group(0)
    decoded = html.unescape(raw)
    mapped = fn(decoded)
    if mapped == decoded:
        return raw
    return escape(mapped)


class Item:
    """One ``<item>`` of the export: a post, a page or an attachment.

    ``post_id``, ``post_type`` and ``postmeta`` are read from the parsed tree
    and never change.  ``guid``, ``attachment_url`` and ``content`` are read
    from the current serialized block, so they reflect earlier rewrites.
    """

    def __init__(
        self,
        raw: str,
        *,
        post_id: str,
        post_type: str,
        postmeta: List[Tuple[str, str]],
        attachment_url_tag: str,
        content_tag: str,
    ) -> None:
        self.raw = raw
        self.post_id = post_id
        self.post_type = post_type
        self.postmeta = postmeta
        self.attachment_url_tag = attachment_url_tag
        self.content_tag = content_tag

    def __repr__(self) -> str:
        return f"Item(post_id={self.post_id!r}, post_type={self.post_type!r})"

    @property
    def is_attachment(self) -> bool:
        return self.post_type == "attachment"

    @property
    def guid(self) -> str:
        return (self.element_text("guid") or "").strip()

    @property
    def attachment_url(self) -> str:
        return (self.element_text(self.attachment_url_tag) or "").strip()

    @property
    def content(self) -> str:
        return self.element_text(self.content_tag) or ""

    def meta_values(self, key: str) -> List[str]:
        return [value for k, value in self.postmeta if k == key]

    def _find(self, tag: str) -> Optional["re.Match[str]"]:
        for m in _element_re(tag).finditer(self.raw):
            if m.group("open"):
                return m
        return None

    def has_element(self, tag: str) -> bool:
        return self._find(tag) is not None

    def element_text(self, tag: str) -> Optional[str]:
        """Decoded text of the first ``tag`` element, or ``None`` if absent."""
        m = self._find(tag)
        if m is None:
            return None
        return decode_text(m.group("body"))

    def set_element_text(self, tag: str, value: str) -> bool:
        """Replace the text of ``tag`` with ``value``.

        Surrounding whitespace is kept, and a CDATA wrapper is kept if the
        element had one.  Returns ``False`` when the element is missing.
        """
        m = self._find(tag)
        if m is None:
            return False
        body = m.group("body")
        stripped = body.strip()
        lead = body[: len(body) - len(body.lstrip())]
        trail = body[len(body.rstrip()):] if stripped else ""
        if stripped.startswith("<![CDATA["):
            inner = "<![CDATA[" + value + "]]>"
        else:
            inner = escape(value)
        self.raw = self.raw[: m.start("body")] + lead + inner + trail + self.raw[m.end("body"):]
        return True

    def map_element_text(self, tag: str, fn: TextMapper) -> bool:
        """Apply ``fn`` to every text and CDATA payload of ``tag``.

        Returns ``True`` when the element content changed.
        """
        m = self._find(tag)
        if m is None:
            return False
        body = m.group("body")
        new_body = _TEXT_PART_RE.sub(lambda part: _map_text_part(part, fn), body)
        if new_body == body:
            return False
        self.raw = self.raw[: m.start("body")] + new_body + self.raw[m.end("body"):]
        return True

    def map_text(self, fn: TextMapper) -> bool:
        """Apply ``fn`` to every text region of the item, leaving tags alone."""
        new_raw = _BLOCK_TOKEN_RE.sub(lambda part: _map_text_part(part, fn), self.raw)
        if new_raw == self.raw:
            return False
        self.raw = new_raw
        return True


class WxrDocument:
    """A parsed WXR export, serializable back to text."""

    def __init__(
        self,
        source: str,
        parts: List[Union[str, Item]],
        *,
        encoding: str = "utf-8",
        wp_namespace: str = WP_NAMESPACE_PREFIX + "1.2/",
    ) -> None:
        self.source = source
        self.encoding = encoding
        self.wp_namespace = wp_namespace
        self._parts = parts

    @classmethod
    def from_file(cls, path: str) -> "WxrDocument":
        with open(path, "rb") as f:
            return cls.from_bytes(f.read())

    @classmethod
    def from_string(cls, text: str) -> "WxrDocument":
        return cls.from_bytes(text.encode("utf-8"))

    @classmethod
    def from_bytes(cls, data: bytes) -> "WxrDocument":
        """Parse ``data`` into a document.

        :raises MalformedInputError: if ``data`` is not well-formed XML, has
            no WordPress export namespace, or its item blocks cannot be matched
            with the parsed items.
        """
        namespaces: Dict[str, str] = {}
        root = None
        try:
            for event, payload in ET.iterparse(io.BytesIO(data), events=("start-ns", "end")):
                if event == "start-ns":
                    prefix, uri = payload
                    namespaces.setdefault(uri, prefix)
                else:
                    root = payload
        except ET.ParseError as e:
            raise MalformedInputError(f"Input is not well-formed XML: {e}") from e
        if root is None:
            raise MalformedInputError("Input document is empty.")

        wp_uri = next((uri for uri in namespaces if _WP_NAMESPACE_RE.match(uri)), None)
        if wp_uri is None:
            raise MalformedInputError("Input is not a WordPress export (no wp: namespace declared).")
        wp_prefix = namespaces[wp_uri]
        content_prefix = namespaces.get(CONTENT_NAMESPACE, "content")

        m = _DECLARATION_RE.match(data)
        encoding = m.group(1).decode("ascii") if m else "utf-8"
        try:
            text = data.decode(encoding)
        except (LookupError, UnicodeDecodeError) as e:
            raise MalformedInputError(f"Cannot decode input as {encoding}: {e}") from e

        ns = {"wp": wp_uri}
        parsed = list(root.iter("item"))
        spans = list(_item_spans(text))
        if len(parsed) != len(spans):
            raise MalformedInputError(
                f"Found {len(spans)} <item> blocks in the text but {len(parsed)} parsed items."
            )

        parts: List[Union[str, Item]] = []
        pos = 0
        for element, (start, end) in zip(parsed, spans):
            postmeta = [
                (
                    (meta.findtext("wp:meta_key", default="", namespaces=ns) or "").strip(),
                    meta.findtext("wp:meta_value", default="", namespaces=ns) or "",
                )
                for meta in element.findall("wp:postmeta", ns)
            ]
            parts.append(text[pos:start])
            parts.append(
                Item(
                    text[start:end],
                    post_id=(element.findtext("wp:post_id", default="", namespaces=ns) or "").strip(),
                    post_type=(element.findtext("wp:post_type", default="", namespaces=ns) or "").strip(),
                    postmeta=postmeta,
                    attachment_url_tag=_qualified(wp_prefix, "attachment_url"),
                    content_tag=_qualified(content_prefix, "encoded"),
                )
            )
            pos = end
        parts.append(text[pos:])
        return cls(text, parts, encoding=encoding, wp_namespace=wp_uri)

    @property
    def items(self) -> List[Item]:
        return [p for p in self._parts if isinstance(p, Item)]

    def attachments(self) -> List[Item]:
        return [item for item in self.items if item.is_attachment]

    def remove_item(self, item: Item) -> None:
        """Drop ``item`` together with the indentation that preceded it."""
        idx = next(i for i, p in enumerate(self._parts) if p is item)
        prev = self._parts[idx - 1]
        if isinstance(prev, str):
            trimmed = prev.rstrip(" \t")
            if trimmed.endswith("\r\n"):
                trimmed = trimmed[:-2]
            elif trimmed.endswith("\n"):
                trimmed = trimmed[:-1]
            self._parts[idx - 1] = trimmed
        del self._parts[idx]

    def to_string(self) -> str:
        return "".join(p if isinstance(p, str) else p.raw for p in self._parts)

    def write(self, path: str) -> None:
        with open(path, "wb") as f:
            f.write(self.to_string().encode(self.encoding))


def _item_spans(text: str) -> Iterator[Tuple[int, int]]:
    start: Optional[int] = None
    for m in _ITEM_TOKEN_RE.finditer(text):
        token = m.group(0)
        if token.startswith("<!"):
            continue
        if token.startswith("</"):
            if start is None:
                raise MalformedInputError(f"Unbalanced </item> at offset {m.start()}.")
            yield start, m.end()
            start = None
        else:
            if start is not None:
                raise MalformedInputError(f"Nested <item> at offset {m.start()}.")
            start = m.start()
    if start is not None:
        raise MalformedInputError("Unterminated <item> block.")
