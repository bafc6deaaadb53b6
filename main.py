"""
Entry point for the WXR media relocation tool.

Example::

    python main.py -i export.xml -o downloaded_media -b old.example.com \\
        -n https://cdn.example.com/siteA -w export-rewritten.xml

Add ``-K`` to keep attachment items in the output (by default every
attachment item that is not referenced by a thumbnail or an inline-image
block is removed).
"""

import argparse
import sys

from wxr_media.migration_tool import MediaMigrationTool
from wxr_media.utils.errors import ConfigurationError, MalformedInputError
from wxr_media.utils.pre_flight_checks import PreFlightCheckError

CONFIG_FILE = "config/migration_config.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Download the media referenced by a WordPress export (WXR), preserving "
            "their paths, and rewrite the export to point at a new base URL."
        )
    )
    parser.add_argument("-i", "--input", required=True, help="Input WXR file (e.g. export.xml)")
    parser.add_argument("-w", "--output", required=True, help="Output rewritten WXR file")
    parser.add_argument("-o", "--download-dir", help="Directory to save downloaded media (default: ./assets)")
    parser.add_argument("-b", "--old-host", help="Old host to replace, host only (e.g. old.example.com)")
    parser.add_argument(
        "-n",
        "--new-base",
        help="New base URL including protocol, optionally with a path prefix (e.g. https://cdn.example.com/siteA)",
    )
    parser.add_argument(
        "-K",
        "--keep-attachments",
        action="store_true",
        default=None,
        help="Keep attachment items in the output XML (disable automatic removal)",
    )
    parser.add_argument("-c", "--config", default=CONFIG_FILE, help=f"JSON configuration file (default: {CONFIG_FILE})")
    parser.add_argument("--workers", type=int, help="Number of parallel downloads")
    parser.add_argument("-v", "--verbose", action="store_true", help="Print debug messages")
    return parser


def main(argv=None) -> int:
    """
    Main function to run the WXR media relocation tool.
    """
    args = build_parser().parse_args(argv)
    overrides = {
        "media": {
            "old_host": args.old_host,
            "new_base": args.new_base,
            "download_dir": args.download_dir,
            "keep_attachments": args.keep_attachments,
        },
        "download": {"workers": args.workers},
    }

    try:
        tool = MediaMigrationTool(config_file=args.config, overrides=overrides, verbose=args.verbose)
    except ConfigurationError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2

    try:
        summary = tool.run(args.input, args.output)
    except MalformedInputError as e:
        tool.log_message(str(e), level="ERROR")
        return 1
    except (ConfigurationError, PreFlightCheckError) as e:
        tool.log_message(str(e), level="ERROR")
        return 2

    return 0 if summary.ok else 3


if __name__ == "__main__":
    sys.exit(main())
