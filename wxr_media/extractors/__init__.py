"""
Extractors for WordPress export files.

This subpackage parses a WXR export once into a :class:`WxrDocument` and
answers the questions the migration asks of it: which attachments exist,
which of them posts reference through thumbnails or inline-image blocks, and
which resized copies found in post content belong to a known attachment.
"""
