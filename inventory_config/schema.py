"""
InventorySettings schema.

Typed, frozen view of a YAML configuration set.  The loader parses YAML
into these types; everything else reads configuration only through them.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///inventory.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    sqlite_busy_timeout_seconds: float = 30.0

    def __post_init__(self):
        if not self.url:
            raise ValueError("database.url is required")
        if self.pool_size < 1:
            raise ValueError("database.pool_size must be at least 1")
        if self.max_overflow < 0:
            raise ValueError("database.max_overflow cannot be negative")
        if self.sqlite_busy_timeout_seconds <= 0:
            raise ValueError("database.sqlite_busy_timeout_seconds must be positive")

    def engine_options(self) -> dict:
        """Keyword arguments for inventory_kernel.db.engine.build_engine()."""
        return {
            "echo": self.echo,
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "sqlite_busy_timeout": self.sqlite_busy_timeout_seconds,
        }


@dataclass(frozen=True)
class TransactionSettings:
    """Conflict retry policy for UnitOfWork.run()."""

    max_attempts: int = 5
    backoff_seconds: float = 0.05

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("transactions.max_attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("transactions.backoff_seconds cannot be negative")


@dataclass(frozen=True)
class RequestDefaults:
    default_urgency: str = "NORMAL"


@dataclass(frozen=True)
class RoleGrant:
    """Capabilities granted to one role."""

    role: str
    capabilities: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class InventorySettings:
    """A complete, validated configuration set."""

    config_id: str
    version: int
    database: DatabaseSettings
    transactions: TransactionSettings
    requests: RequestDefaults
    roles: tuple[RoleGrant, ...] = ()
    checksum: str = ""

    def capabilities_for(self, role: str) -> frozenset[str]:
        for grant in self.roles:
            if grant.role == role:
                return grant.capabilities
        return frozenset()

    @property
    def role_names(self) -> tuple[str, ...]:
        return tuple(grant.role for grant in self.roles)
