"""
Ascendant configuration.

- `Config` (config.py): static settings from the environment.
- `ConfigManager` (manager.py): balance tunables from YAML, imported from
  its module directly because it depends on the logging subsystem.
"""

from ascendant.core.config.config import Config, Environment

__all__ = ["Config", "Environment"]
