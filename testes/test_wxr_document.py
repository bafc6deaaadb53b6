import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from sample_wxr import UPLOADS, attachment, post, wxr
from wxr_media.extractors.wxr_document import WxrDocument
from wxr_media.utils.errors import MalformedInputError


def test_round_trip_is_byte_identical():
    text = wxr(post(1, '<p>Hi &amp; <img src="x"/></p>'), attachment(5, f"{UPLOADS}/2020/x.jpg"))
    doc = WxrDocument.from_string(text)
    assert doc.to_string() == text


def test_identity_fields_and_postmeta():
    text = wxr(post(1, "body", thumbnail_id=5), attachment(5, f"{UPLOADS}/2020/x.jpg"))
    doc = WxrDocument.from_string(text)
    first, second = doc.items
    assert (first.post_id, first.post_type) == ("1", "post")
    assert first.meta_values("_thumbnail_id") == ["5"]
    assert first.content == "body"
    assert second.is_attachment
    assert second.attachment_url == f"{UPLOADS}/2020/x.jpg"
    assert second.guid == f"{UPLOADS}/2020/x.jpg"


def test_malformed_xml_is_fatal():
    with pytest.raises(MalformedInputError):
        WxrDocument.from_string("<rss><channel><item></channel></rss>")


def test_export_without_wp_namespace_is_rejected():
    with pytest.raises(MalformedInputError):
        WxrDocument.from_string("<rss><channel><item><title>x</title></item></channel></rss>")


def test_item_markup_inside_cdata_does_not_split_items():
    content = "<pre>&lt;item&gt; looks like </item> but is text <item></pre>"
    text = wxr(post(1, content), attachment(5, f"{UPLOADS}/a.png"))
    doc = WxrDocument.from_string(text)
    assert [i.post_id for i in doc.items] == ["1", "5"]
    assert doc.items[0].content == content


def test_set_element_text_keeps_cdata_wrapper():
    text = wxr(attachment(5, f"{UPLOADS}/a.png", cdata_url=True))
    doc = WxrDocument.from_string(text)
    item = doc.items[0]
    assert item.set_element_text(item.attachment_url_tag, "https://cdn.example.com/a.png")
    assert "<wp:attachment_url><![CDATA[https://cdn.example.com/a.png]]></wp:attachment_url>" in doc.to_string()
    assert item.attachment_url == "https://cdn.example.com/a.png"


def test_set_element_text_escapes_plain_text():
    doc = WxrDocument.from_string(wxr(attachment(5, f"{UPLOADS}/a.png")))
    item = doc.items[0]
    item.set_element_text("guid", "https://cdn.example.com/?a=1&b=2")
    assert '<guid isPermaLink="false">https://cdn.example.com/?a=1&amp;b=2</guid>' in item.raw
    assert item.guid == "https://cdn.example.com/?a=1&b=2"


def test_missing_element_is_reported():
    doc = WxrDocument.from_string(wxr(post(1, "x")))
    item = doc.items[0]
    assert item.element_text(item.attachment_url_tag) is None
    assert item.set_element_text(item.attachment_url_tag, "y") is False


def test_map_element_text_only_touches_the_element():
    text = wxr(post(1, "see https://a.test/x"))
    text = text.replace("<title><![CDATA[Post 1]]>", "<title><![CDATA[https://a.test/x]]>")
    doc = WxrDocument.from_string(text)
    item = doc.items[0]
    assert item.map_element_text(item.content_tag, lambda s: s.replace("a.test", "b.test"))
    out = doc.to_string()
    assert "<content:encoded><![CDATA[see https://b.test/x]]></content:encoded>" in out
    assert "<title><![CDATA[https://a.test/x]]></title>" in out


def test_map_text_leaves_tags_alone():
    doc = WxrDocument.from_string(wxr(attachment(5, "https://guid.test/guid.png")))
    item = doc.items[0]
    item.map_text(lambda s: s.replace("guid", "GUID"))
    assert "<guid isPermaLink=\"false\">https://GUID.test/GUID.png</guid>" in item.raw


def test_remove_item_drops_block_and_indentation():
    keep = post(1, "a")
    doc = WxrDocument.from_string(wxr(keep, attachment(5, f"{UPLOADS}/a.png")))
    doc.remove_item(doc.items[1])
    assert doc.to_string() == wxr(keep)
    assert [i.post_id for i in doc.items] == ["1"]


def test_write_uses_declared_encoding(tmp_path):
    text = wxr(post(1, "café"))
    src = tmp_path / "in.xml"
    src.write_bytes(text.encode("utf-8"))
    doc = WxrDocument.from_file(str(src))
    out = tmp_path / "out.xml"
    doc.write(str(out))
    assert out.read_bytes() == src.read_bytes()
