import os

from .errors import MigrationError


class PreFlightCheckError(MigrationError):
    """Custom exception for pre-flight check failures."""
    pass


def _ensure_writable_dir(path: str, label: str) -> None:
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise PreFlightCheckError(f"Cannot create {label} directory '{path}': {e}")
    if not os.access(path, os.W_OK):
        raise PreFlightCheckError(f"{label.capitalize()} directory '{path}' is not writable.")


def run_pre_flight_checks(input_path: str, output_path: str, config) -> None:
    """
    Verifies that the run can start: the export exists and every directory
    the run writes to can be created.

    Args:
        input_path: The WXR file to migrate.
        output_path: Where the rewritten WXR will be written.
        config: The validated :class:`MigrationConfig`.

    Raises:
        PreFlightCheckError: If any check fails.
    """
    print("[INFO] Running pre-flight checks...")

    if not os.path.isfile(input_path):
        raise PreFlightCheckError(f"Input WXR not found: {input_path}")
    if not os.access(input_path, os.R_OK):
        raise PreFlightCheckError(f"Input WXR is not readable: {input_path}")
    if os.path.abspath(input_path) == os.path.abspath(output_path):
        raise PreFlightCheckError("Output WXR must differ from the input file.")

    _ensure_writable_dir(config.media.download_dir, "download")
    _ensure_writable_dir(config.paths.logs_dir, "logs")
    _ensure_writable_dir(config.paths.tmp_dir, "temporary")
    _ensure_writable_dir(os.path.dirname(os.path.abspath(output_path)), "output")

    print("[INFO] Pre-flight checks passed successfully.")
