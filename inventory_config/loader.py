"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen dataclasses
of ``inventory_config.schema``.  Callers use
``inventory_config.get_active_config()``; this module is its machinery.

Invariants enforced
-------------------
* Every capability named in the role matrix is a known kernel Capability;
  ``"*"`` expands to all of them.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  YAML content for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown capability or invalid value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    DatabaseSettings,
    InventorySettings,
    RequestDefaults,
    RoleGrant,
    TransactionSettings,
)
from inventory_kernel.domain.authority import Capability
from inventory_kernel.domain.values import Urgency

WILDCARD = "*"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    return DatabaseSettings(
        url=data.get("url", DatabaseSettings.url),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
        sqlite_busy_timeout_seconds=float(data.get("sqlite_busy_timeout_seconds", 30.0)),
    )


def parse_transactions(data: dict[str, Any]) -> TransactionSettings:
    return TransactionSettings(
        max_attempts=int(data.get("max_attempts", 5)),
        backoff_seconds=float(data.get("backoff_seconds", 0.05)),
    )


def parse_requests(data: dict[str, Any]) -> RequestDefaults:
    urgency = str(data.get("default_urgency", Urgency.NORMAL.value)).upper()
    # Raises ValueError for anything outside the Urgency enum.
    Urgency(urgency)
    return RequestDefaults(default_urgency=urgency)


def parse_role(role: str, capabilities: list[str] | None) -> RoleGrant:
    known = {c.value for c in Capability}
    names = list(capabilities or [])
    if WILDCARD in names:
        return RoleGrant(role=role, capabilities=frozenset(known))
    unknown = sorted(set(names) - known)
    if unknown:
        raise ValueError(f"Role '{role}' grants unknown capabilities: {', '.join(unknown)}")
    return RoleGrant(role=role, capabilities=frozenset(names))


def parse_settings(data: dict[str, Any]) -> InventorySettings:
    roles_data = data.get("roles") or {}
    if not isinstance(roles_data, dict):
        raise ValueError("roles must be a mapping of role name to capability list")
    return InventorySettings(
        config_id=data["config_id"],
        version=int(data["version"]),
        database=parse_database(data.get("database") or {}),
        transactions=parse_transactions(data.get("transactions") or {}),
        requests=parse_requests(data.get("requests") or {}),
        roles=tuple(parse_role(role, caps) for role, caps in sorted(roles_data.items())),
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> InventorySettings:
    return parse_settings(load_yaml_file(path))
