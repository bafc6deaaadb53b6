"""
High-level orchestration of a WXR media relocation.

This module defines a :class:`MediaMigrationTool` class that ties together
the extractors, the URL mapping, the downloader and the document rewriter
into a complete pipeline:

1. back up the input and parse it once into a :class:`WxrDocument`;
2. catalog attachments, resolve thumbnails and inline-image ids;
3. validate resized variants found in post content;
4. build the URL mapping and download every mapped asset;
5. rewrite the document, prune unreferenced attachments and write it out;
6. check the output for leftover references to the old host.

Configuration is supplied via a JSON file path or directly as a dictionary
(see :class:`wxr_media.models.migration_config.MigrationConfig`).  The
``media`` section must include ``old_host`` and ``new_base``.
"""

from __future__ import annotations

import copy
import json
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from wxr_media.extractors.asset_catalog import AssetCatalog
from wxr_media.extractors.references import collect_referenced_ids, resolve_thumbnails, scan_inline_image_ids
from wxr_media.extractors.resized_variants import (
    extract_content_urls,
    old_host_url_pattern,
    validate_resized_variants,
)
from wxr_media.extractors.wxr_document import WxrDocument
from wxr_media.migrators.document_rewriter import DocumentRewriter
from wxr_media.migrators.downloader import Downloader, RetryPolicy
from wxr_media.models.migration_config import MigrationConfig
from wxr_media.utils.errors import report_error, report_ok, set_report_dir
from wxr_media.utils.mapping_log import write_lines, write_mapping_log
from wxr_media.utils.pre_flight_checks import run_pre_flight_checks
from wxr_media.utils.url_map import build_url_mapping


@dataclass
class MigrationSummary:
    output_path: str = ""
    backup_path: str = ""
    mapping_log: str = ""
    error_log: str = ""
    attachments: int = 0
    resized: int = 0
    thumbnail_ids: int = 0
    referenced_ids: int = 0
    inline_fallback: bool = False
    mapped: int = 0
    downloaded: int = 0
    reused: int = 0
    failed: List[str] = field(default_factory=list)
    skipped_directories: int = 0
    removed_attachments: int = 0
    rewrite_warnings: List[str] = field(default_factory=list)
    remaining_references: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.remaining_references


def find_remaining_references(text: str, old_host: str, new_base: str = "") -> List[str]:
    """Every ``scheme://old_host...`` occurrence left in ``text``.

    URLs under ``new_base`` are relocated ones, even when it shares the old host.
    """
    found = old_host_url_pattern(old_host).findall(text)
    if not new_base:
        return found
    return [url for url in found if url != new_base and not url.startswith(new_base + "/")]


class MediaMigrationTool:
    """
    Encapsulates all state and behavior required to relocate the media of
    a WordPress export.  Progress is printed and appended to
    ``migration.log``; per-asset events are recorded with the
    :mod:`wxr_media.utils.errors` reports.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        config_file: Optional[str] = None,
        overrides: Optional[Dict[str, Dict[str, Any]]] = None,
        session: Optional[Any] = None,
        verbose: bool = False,
    ) -> None:
        if config_file and os.path.exists(config_file):
            with open(config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
        elif config is None:
            config = {}
        else:
            config = copy.deepcopy(config)

        config.setdefault("media", {})
        config.setdefault("download", {})
        config.setdefault("paths", {})
        for section, values in (overrides or {}).items():
            config.setdefault(section, {})
            config[section].update({k: v for k, v in values.items() if v is not None})

        self.config = MigrationConfig.from_dict(config)
        self.session = session
        self.verbose = verbose
        self.timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        set_report_dir(self.config.paths.logs_dir)

    def log_message(self, message: str, level: str = "INFO") -> None:
        if level != "DEBUG" or self.verbose:
            print(f"[{level}] {message}")
        os.makedirs(self.config.paths.logs_dir, exist_ok=True)
        with open(os.path.join(self.config.paths.logs_dir, "migration.log"), "a", encoding="utf-8") as f:
            f.write(f"{level}: {message}\n")

    def _log_path(self, name: str, ext: str) -> str:
        return os.path.join(self.config.paths.logs_dir, f"{name}_{self.timestamp}.{ext}")

    def backup(self, input_path: str) -> str:
        backup_path = os.path.join(
            self.config.paths.tmp_dir, f"{os.path.basename(input_path)}.backup.{self.timestamp}"
        )
        shutil.copy2(input_path, backup_path)
        self.log_message(f"Backup created: {backup_path}")
        return backup_path

    def run(self, input_path: str, output_path: str) -> MigrationSummary:
        """
        Relocate the media of ``input_path`` and write the rewritten export to
        ``output_path``.

        :raises MalformedInputError: if the input is not a WordPress export.
        :raises PreFlightCheckError: if the input or a directory is unusable.
        :return: A :class:`MigrationSummary` of the run.
        """
        media = self.config.media
        summary = MigrationSummary(output_path=output_path)

        run_pre_flight_checks(input_path, output_path, self.config)
        summary.backup_path = self.backup(input_path)
        document = WxrDocument.from_file(input_path)
        catalog = AssetCatalog(document)

        self.log_message("1) Extracting <wp:attachment_url> values...")
        attachment_urls = catalog.attachment_urls
        summary.attachments = len(attachment_urls)
        write_lines(attachment_urls, self._log_path("attachment_urls", "txt"))

        self.log_message("1.5) Processing thumbnail attachments from _thumbnail_id metadata...")
        thumbs = resolve_thumbnails(catalog, meta_key=media.thumbnail_meta_key)
        for warning in thumbs.warnings:
            self.log_message(warning, "WARNING")
            report_error("THUMBNAIL_UNRESOLVED", warning)
        summary.thumbnail_ids = len(thumbs.ids)
        self.log_message(f"Resolved {len(thumbs.urls)} thumbnail URL(s)")

        self.log_message("2) Scanning for referenced inline imageIDs...")
        inline = scan_inline_image_ids(catalog, document.source, directive=media.inline_directive)
        if inline.used_fallback:
            self.log_message("No IDs found in post content; fallback scanning whole file...", "WARNING")
        summary.inline_fallback = inline.used_fallback
        referenced_ids = collect_referenced_ids(thumbs.ids, inline.ids)
        summary.referenced_ids = len(referenced_ids)
        write_lines(sorted(referenced_ids, key=_id_sort_key), self._log_path("referenced_image_ids", "txt"))
        self.log_message(f"Found {len(referenced_ids)} referenced attachment ID(s) (including thumbnails).")

        self.log_message(f"2.5) Identifying resized images on {media.old_host}...")
        content_urls = extract_content_urls(catalog, media.old_host)
        resized = validate_resized_variants(content_urls, attachment_urls)
        for url in resized.accepted:
            self.log_message(f"Valid resized: {url} (original present)", "DEBUG")
        for url in resized.rejected:
            self.log_message(f"Skip resized (original not an attachment): {url}", "DEBUG")
        summary.resized = len(resized.accepted)
        write_lines(resized.accepted, self._log_path("resized_urls", "txt"))

        mapping = build_url_mapping(
            attachment_urls + resized.accepted,
            old_host=media.old_host,
            new_base=media.new_base,
            download_dir=media.download_dir,
        )
        write_lines(list(mapping), self._log_path("urls_to_download", "txt"))
        self.log_message(
            f"Prepared {len(mapping)} URL(s) to download "
            f"({summary.attachments} attachments + {summary.resized} resized)."
        )

        self.log_message(f"3) Downloading files to {media.download_dir} ...")
        settings = self.config.download
        downloader = Downloader(
            session=self.session,
            retry=RetryPolicy.fixed(settings.max_attempts, settings.retry_delay),
            timeout=settings.timeout,
            workers=settings.workers,
            user_agent=settings.user_agent,
            log=self.log_message,
        )
        downloads = downloader.download_all(mapping)
        for url in downloads.downloaded:
            report_ok("DOWNLOADED", url, {"local_path": mapping[url].local_path})
        for url in downloads.reused:
            report_ok("REUSED", url, {"local_path": mapping[url].local_path})
        for url in downloads.skipped_directories:
            report_error("SKIPPED_DIRECTORY", url)
        for url, error in downloads.failed:
            report_error("DOWNLOAD_FAILED", url, error)
        summary.mapped = len(downloads.mapped)
        summary.downloaded = len(downloads.downloaded)
        summary.reused = len(downloads.reused)
        summary.skipped_directories = len(downloads.skipped_directories)
        summary.failed = [url for url, _ in downloads.failed]
        summary.mapping_log = write_mapping_log(downloads.mapped, self._log_path("download_mapping", "tsv"))
        summary.error_log = write_lines(summary.failed, self._log_path("download_errors", "log"))
        if summary.failed:
            self.log_message(f"Some downloads failed; see {summary.error_log}", "WARNING")
        else:
            self.log_message("Downloads finished without errors.")

        self.log_message(f"4) Rewriting references to point to {media.new_base} ...")
        rewriter = DocumentRewriter(document, mapping)
        rewrite = rewriter.run(referenced_ids, remove_attachments=not media.keep_attachments)
        for warning in rewrite.warnings:
            self.log_message(warning, "WARNING")
            report_error("REWRITE_WARNING", warning)
        summary.removed_attachments = len(rewrite.removed_ids)
        summary.rewrite_warnings = list(rewrite.warnings)
        self.log_message(
            f"Rewrote {rewrite.attachment_urls} attachment_url(s), {rewrite.guids} guid(s), "
            f"content of {rewrite.content_items} item(s); removed {summary.removed_attachments} "
            f"attachment item(s); normalized {rewrite.kept_attachments} kept attachment item(s)."
        )

        document.write(output_path)
        self.log_message(f"Rewritten WXR written to: {output_path}")

        summary.remaining_references = find_remaining_references(document.to_string(), media.old_host, media.new_base)
        for url in summary.remaining_references:
            report_error("REMAINING_OLD_HOST", url)
        self.print_summary(summary)
        return summary

    def print_summary(self, summary: MigrationSummary) -> None:
        media = self.config.media
        self.log_message("=== Summary ===")
        self.log_message(f"Original WXR backup: {summary.backup_path}")
        self.log_message(f"Rewritten WXR   : {summary.output_path}")
        self.log_message(f"Downloaded media : {media.download_dir}")
        self.log_message(f"Mapping log      : {summary.mapping_log}")
        self.log_message(f"Download errors  : {summary.error_log} ({len(summary.failed)} failed)")
        self.log_message(f"Attachments      : {summary.attachments}")
        self.log_message(f"Resized images   : {summary.resized} (only those with original attachment)")
        self.log_message(f"Thumbnail attachments: {summary.thumbnail_ids} (from _thumbnail_id metadata)")
        self.log_message(f"Referenced imageIDs: {summary.referenced_ids} (these attachment items will be kept)")
        self.log_message(f"Downloaded: {summary.downloaded} | Reused: {summary.reused} | Failed: {len(summary.failed)}")

        remaining = summary.remaining_references
        if not remaining:
            self.log_message(f"Sanity check: no remaining occurrences of {media.old_host} found in {summary.output_path}.")
        else:
            self.log_message(
                f"Found {len(remaining)} remaining occurrence(s) of {media.old_host} in {summary.output_path}:",
                "WARNING",
            )
            for url in remaining[:40]:
                self.log_message(f"  {url}", "WARNING")


def _id_sort_key(value: str):
    return (0, int(value), "") if value.isdigit() else (1, 0, value)
