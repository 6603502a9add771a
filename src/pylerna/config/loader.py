"""Discovery and loading of pylerna.yaml.

The loader is the only place that knows about legacy key names. Old keys are
rewritten to their canonical form before validation, and each rewrite logs a
deprecation warning.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError as PydanticValidationError

from pylerna.config.schema import PyLernaConfig
from pylerna.errors import ConfigurationError, WorkspaceNotFoundError

logger = structlog.get_logger(__name__)

CONFIG_FILENAME = "pylerna.yaml"


def _same(value: Any) -> Any:
    return value


def _invert(value: Any) -> Any:
    return not value if isinstance(value, bool) else value


# (section path, legacy key, canonical key path, value transform)
LEGACY_KEYS: list[tuple[tuple[str, ...], str, tuple[str, ...], Callable[[Any], Any]]] = [
    (("command_defaults",), "fail_fast", ("bail",), _same),
    (("command_defaults",), "no_bail", ("bail",), _invert),
    (("command_defaults",), "cmd_dry_run", ("dry_run",), _same),
    (("versioning",), "git_dry_run", ("dry_run",), _same),
    (("versioning",), "no_push", ("git", "push"), _invert),
    (
        ("versioning",),
        "changelog_include_commit_author_fullname",
        ("changelog", "include_author"),
        _same,
    ),
    (("versioning",), "ignore", ("ignore_changes",), _same),
]


def find_config(start: Path | None = None) -> Path:
    """Walk up from `start` looking for pylerna.yaml.

    Args:
        start: Directory to start from. Defaults to the current directory.

    Returns:
        Path to the config file.

    Raises:
        WorkspaceNotFoundError: If no config file exists up to the filesystem root.
    """
    current = (start or Path.cwd()).resolve()
    origin = current
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        if current.parent == current:
            raise WorkspaceNotFoundError(str(origin))
        current = current.parent


def _section(data: dict[str, Any], path: tuple[str, ...]) -> dict[str, Any] | None:
    node: Any = data
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node if isinstance(node, dict) else None


def _assign(target: dict[str, Any], path: tuple[str, ...], value: Any) -> bool:
    """Set a nested key. Returns False when the key already exists."""
    node = target
    for key in path[:-1]:
        node = node.setdefault(key, {})
    if path[-1] in node:
        return False
    node[path[-1]] = value
    return True


def _rewrite(
    section: dict[str, Any],
    where: str,
    legacy: str,
    canonical: tuple[str, ...],
    transform: Callable[[Any], Any],
    source: Path | None,
) -> None:
    value = section.pop(legacy)
    target = ".".join(canonical)
    if not _assign(section, canonical, transform(value)):
        raise ConfigurationError(
            f"'{where}{legacy}' and '{where}{target}' are both set",
            str(source) if source else None,
        )
    logger.warning(
        "deprecated config key",
        key=f"{where}{legacy}",
        replacement=f"{where}{target}",
    )


def normalize_legacy_keys(data: dict[str, Any], source: Path | None = None) -> dict[str, Any]:
    """Rewrite deprecated keys in raw config data in place.

    Args:
        data: Parsed YAML mapping.
        source: Config file path, used in error messages.

    Returns:
        The same mapping with canonical keys only.
    """
    for section_path, legacy, canonical, transform in LEGACY_KEYS:
        section = _section(data, section_path)
        if section is not None and legacy in section:
            where = ".".join(section_path) + "."
            _rewrite(section, where, legacy, canonical, transform, source)

    scripts = data.get("scripts")
    if isinstance(scripts, dict):
        for name, script in scripts.items():
            if isinstance(script, dict) and "fail_fast" in script:
                _rewrite(script, f"scripts.{name}.", "fail_fast", ("bail",), _same, source)

    return data


def load_config_dict(data: dict[str, Any], source: Path | None = None) -> PyLernaConfig:
    """Validate an already parsed config mapping."""
    normalize_legacy_keys(data, source)
    try:
        return PyLernaConfig.model_validate(data)
    except PydanticValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(errors, str(source) if source else None) from e


def load_config(path: Path | None = None) -> tuple[PyLernaConfig, Path]:
    """Load and validate pylerna.yaml.

    Args:
        path: Config file, or a directory to start discovery from.

    Returns:
        Tuple of (config, config file path).

    Raises:
        WorkspaceNotFoundError: If discovery finds no config file.
        ConfigurationError: If the file is not valid YAML or fails validation.
    """
    if path is None or path.is_dir():
        path = find_config(path)

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML: {e}", str(path)) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config: {e}", str(path)) from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError("Top level must be a mapping", str(path))

    logger.debug("loaded config", path=str(path))
    return load_config_dict(raw, path), path
