"""Configuration and logging helpers."""

from .config import OrgTreeConfig, load_config, configure_logging

__all__ = [
    "OrgTreeConfig",
    "load_config",
    "configure_logging",
]
