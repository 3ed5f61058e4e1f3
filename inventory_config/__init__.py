"""
inventory_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain configuration.  It
    loads a YAML configuration set (default: ``sets/default.yaml``),
    validates it into frozen ``InventorySettings``, and emits an
    ``INVENTORY_CONFIG_TRACE`` log record.

Architecture position:
    Configuration -- sits above ``inventory_kernel`` and below
    ``inventory_services``.  The kernel MUST NEVER import from here.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- invalid values or unknown capabilities.
    - ``KeyError`` -- required keys (config_id, version) missing.
"""

from __future__ import annotations

from pathlib import Path

from inventory_config.loader import load_settings
from inventory_config.schema import (
    DatabaseSettings,
    InventorySettings,
    RequestDefaults,
    RoleGrant,
    TransactionSettings,
)
from inventory_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DatabaseSettings",
    "InventorySettings",
    "RequestDefaults",
    "RoleGrant",
    "TransactionSettings",
    "get_active_config",
]


def get_active_config(config_path: Path | str | None = None) -> InventorySettings:
    """Load, validate and trace the active configuration set.

    Args:
        config_path: YAML file to load.  Defaults to sets/default.yaml.

    Returns:
        Frozen InventorySettings.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    settings = load_settings(path)

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "config_set_id": settings.config_id,
            "config_set_version": settings.version,
            "checksum": settings.checksum,
            "config_path": str(path),
            "role_count": len(settings.roles),
            "max_attempts": settings.transactions.max_attempts,
        },
    )
    return settings
