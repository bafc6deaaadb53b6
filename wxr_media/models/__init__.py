from .migration_config import DownloadSettings, MediaSettings, MigrationConfig, PathSettings

__all__ = ["DownloadSettings", "MediaSettings", "MigrationConfig", "PathSettings"]
