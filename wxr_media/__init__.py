"""
Top-level package for the WordPress export media relocation utility.

This package bundles all components required to find the media a WordPress
export (WXR) references, download it while preserving its upload paths, and
rewrite the export so every reference points at a new base URL.  Modules are
split into subpackages:

* :mod:`wxr_media.extractors` – document parsing, asset catalog and reference discovery
* :mod:`wxr_media.migrators` – downloading and document rewriting
* :mod:`wxr_media.models` – configuration models
* :mod:`wxr_media.utils` – URL mapping, logs, error reporting and pre-flight checks

Orchestration is handled in :mod:`wxr_media.migration_tool`.
"""
