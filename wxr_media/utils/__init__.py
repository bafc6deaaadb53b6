"""
Utility helpers used by the migration tool.

This subpackage exposes the URL mapping, structured event reports and the
writers for the mapping and error logs.
"""

from .errors import ERRORS, report_error, report_ok
from .mapping_log import write_mapping_log
from .url_map import build_url_mapping, join_url

__all__ = ["ERRORS", "report_error", "report_ok", "write_mapping_log", "build_url_mapping", "join_url"]
