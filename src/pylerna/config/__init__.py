"""pylerna configuration."""

from pylerna.config.loader import CONFIG_FILENAME, find_config, load_config, load_config_dict
from pylerna.config.logging import configure_logging
from pylerna.config.schema import (
    ChangelogConfig,
    ChangelogSection,
    CommandDefaults,
    CommitFormat,
    GitConfig,
    GraduatePrecedence,
    PublishConfig,
    PyLernaConfig,
    ScriptConfig,
    VersioningConfig,
    VersioningMode,
    WatchConfig,
)

__all__ = [
    "CONFIG_FILENAME",
    "ChangelogConfig",
    "ChangelogSection",
    "CommandDefaults",
    "CommitFormat",
    "GitConfig",
    "GraduatePrecedence",
    "PublishConfig",
    "PyLernaConfig",
    "ScriptConfig",
    "VersioningConfig",
    "VersioningMode",
    "WatchConfig",
    "configure_logging",
    "find_config",
    "load_config",
    "load_config_dict",
]
