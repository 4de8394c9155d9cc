"""
ConfigManager: dot-notation access to tunable balance configuration.

Purpose
-------
- Provide hierarchical, dot-notation access to game balance values.
- Back configuration with packaged YAML defaults plus optional YAML
  overrides from a deployment directory.
- Allow runtime overrides (tests, live tuning) without touching files.

Responsibilities
----------------
- Load and deep-merge YAML files from the packaged `defaults/` directory.
- Overlay YAML files from an optional override directory.
- Serve reads with a caller-supplied default when a key is absent.
- Apply in-memory overrides via `set()`.

Key Design Decisions
--------------------
- Instance-based: every service receives the ConfigManager it should read
  from, so tests can build isolated instances with their own overrides.
- YAML is the single source for defaults; overrides never mutate defaults.
- Loading problems are logged and skipped; reads fall back to the
  caller's default.

Dependencies
------------
- PyYAML for file parsing.
- `ascendant.core.logging.logger.get_logger` for structured logging.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Optional, Union

import yaml

from ascendant.core.logging.logger import get_logger

logger = get_logger(__name__)

DEFAULTS_DIR = Path(__file__).resolve().parent / "defaults"

__all__ = ["ConfigManager", "DEFAULTS_DIR"]


class ConfigManager:
    """
    Balance configuration store with YAML defaults and runtime overrides.

    Examples
    --------
    >>> config = ConfigManager()
    >>> config.get("upgrade.min_streak")
    5
    >>> config.set("upgrade.min_streak", 3)
    >>> config.get("upgrade.min_streak")
    3
    """

    def __init__(
        self,
        overrides_dir: Optional[Union[str, Path]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        *,
        load_defaults: bool = True,
    ) -> None:
        self._defaults: Dict[str, Any] = {}
        self._cache: Dict[str, Any] = {}

        if load_defaults:
            self._load_yaml_dir(DEFAULTS_DIR, self._defaults)

        if overrides_dir:
            self._load_yaml_dir(Path(overrides_dir), self._defaults)

        self._cache = copy.deepcopy(self._defaults)

        for key, value in (overrides or {}).items():
            self.set(key, value)

    # =========================================================================
    # YAML LOADING
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: Mapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)  # type: ignore[arg-type]
            else:
                target[key] = copy.deepcopy(value)

    def _load_yaml_dir(self, config_dir: Path, target: MutableMapping[str, Any]) -> None:
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; skipping",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(
            list(config_dir.rglob("*.yaml")) + list(config_dir.rglob("*.yml"))
        )
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                continue

            if isinstance(data, dict):
                self._deep_merge_dict(target, data)
                loaded_count += 1
                logger.debug("Loaded YAML config", extra={"file": str(yaml_file)})
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={"file": str(yaml_file), "root_type": type(data).__name__},
                )

        logger.debug(
            "YAML configs loaded",
            extra={"config_dir": str(config_dir), "yaml_file_count": loaded_count},
        )

    # =========================================================================
    # ACCESS
    # =========================================================================

    @staticmethod
    def _resolve(source: Mapping[str, Any], parts: Iterable[str]) -> Any:
        value: Any = source
        for part in parts:
            if not isinstance(value, Mapping) or part not in value:
                return None
            value = value[part]
        return value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Returns a deep copy for container values so callers cannot mutate
        the cache by accident.
        """
        value = self._resolve(self._cache, key.split("."))
        if value is None:
            return default
        if isinstance(value, (dict, list)):
            return copy.deepcopy(value)
        return value

    def set(self, key: str, value: Any) -> None:
        """Apply an in-memory override at a dot-notation path."""
        parts = key.split(".")
        node: MutableMapping[str, Any] = self._cache
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = copy.deepcopy(value)
        logger.debug("Configuration override applied", extra={"config_key": key})

    def reset(self) -> None:
        """Drop `set()` overrides; YAML defaults and the override directory stay."""
        self._cache = copy.deepcopy(self._defaults)

    def get_all_keys(self) -> List[str]:
        return sorted(self._cache.keys())
