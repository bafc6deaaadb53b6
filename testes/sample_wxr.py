"""Builders for small WXR documents used across the tests."""

import csv

from wxr_media.utils.url_map import MappingEntry

OLD_HOST = "old.example"
SITE_HOST = "blog.example"
NEW_BASE = "https://cdn.example.com/siteA"
UPLOADS = f"https://{OLD_HOST}/wp-content/uploads"

HEADER = """<?xml version="1.0" encoding="UTF-8" ?>
<rss version="2.0"
\txmlns:excerpt="http://wordpress.org/export/1.2/excerpt/"
\txmlns:content="http://purl.org/rss/1.0/modules/content/"
\txmlns:wfw="http://wellformedweb.org/CommentAPI/"
\txmlns:dc="http://purl.org/dc/elements/1.1/"
\txmlns:wp="http://wordpress.org/export/1.2/"
>

<channel>
\t<title>Old Site</title>
\t<link>https://blog.example</link>
\t<wp:wxr_version>1.2</wp:wxr_version>
"""

FOOTER = """
</channel>
</rss>
"""


def attachment(post_id, url, *, guid=None, cdata_url=False, extra=""):
    guid = url if guid is None else guid
    url_text = f"<![CDATA[{url}]]>" if cdata_url else url
    return f"""
\t<item>
\t\t<title><![CDATA[asset {post_id}]]></title>
\t\t<guid isPermaLink="false">{guid}</guid>
\t\t<content:encoded><![CDATA[]]></content:encoded>
\t\t<wp:post_id>{post_id}</wp:post_id>
\t\t<wp:post_type><![CDATA[attachment]]></wp:post_type>
\t\t<wp:attachment_url>{url_text}</wp:attachment_url>
\t\t<wp:postmeta>
\t\t\t<wp:meta_key><![CDATA[_wp_attached_file]]></wp:meta_key>
\t\t\t<wp:meta_value><![CDATA[{url.split('/uploads/')[-1]}]]></wp:meta_value>
\t\t</wp:postmeta>{extra}
\t</item>"""


def post(post_id, content, *, thumbnail_id=None, post_type="post"):
    meta = ""
    if thumbnail_id is not None:
        meta = f"""
\t\t<wp:postmeta>
\t\t\t<wp:meta_key><![CDATA[_thumbnail_id]]></wp:meta_key>
\t\t\t<wp:meta_value><![CDATA[{thumbnail_id}]]></wp:meta_value>
\t\t</wp:postmeta>"""
    return f"""
\t<item>
\t\t<title><![CDATA[Post {post_id}]]></title>
\t\t<guid isPermaLink="false">https://{SITE_HOST}/?p={post_id}</guid>
\t\t<content:encoded><![CDATA[{content}]]></content:encoded>
\t\t<wp:post_id>{post_id}</wp:post_id>
\t\t<wp:post_type><![CDATA[{post_type}]]></wp:post_type>{meta}
\t</item>"""


def wxr(*items):
    return HEADER + "".join(items) + FOOTER


def svg_inline(image_id):
    return f'<!-- wp:wpbbe/svg-inline {{"imageID":{image_id},"align":"center"}} /-->'


def read_mapping_log(path):
    """Parse a TSV mapping log back into ``MappingEntry`` rows."""
    entries = []
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.reader(f, delimiter="\t", quoting=csv.QUOTE_NONE, escapechar="\\"):
            if len(row) >= 3 and row[0] and row[1]:
                entries.append(MappingEntry(row[0], row[1], row[2]))
    return entries
