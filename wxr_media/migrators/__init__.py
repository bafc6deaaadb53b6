"""
Media migrators.

This subpackage downloads mapped assets (with retries and an optional
worker pool) and rewrites the export document so attachment URLs, guids,
post content and kept attachment items point at the new location.
"""
