"""Central entity type definitions - single source of truth.

This module provides the registry of every entity type Profile Bridge can
synchronize. All other modules (orchestrator, adapters, CLI, config
validation) read ordering, correlation rules, dependencies and throttling
defaults from here rather than defining their own lists.
"""

from dataclasses import dataclass
from enum import Enum


class EntityType(str, Enum):
    """Closed set of synchronizable entity types."""

    DEVICES = "devices"
    ANALYSIS = "analysis"
    DASHBOARDS = "dashboards"
    ACCESS = "access"
    ACTIONS = "actions"
    NETWORKS = "networks"
    CONNECTORS = "connectors"
    DICTIONARIES = "dictionaries"
    RUN_USERS = "run_users"
    RUN = "run"
    SECRETS = "secrets"
    FILES = "files"
    PROFILE = "profile"

    def __str__(self) -> str:
        return self.value


class CorrelationKind(str, Enum):
    """How a source entity is matched to its target counterpart."""

    TAG = "tag"  # equal value of the configured export tag
    NATURAL_KEY = "natural_key"  # equal value of one payload field
    SINGLETON = "singleton"  # one object per account
    NONE = "none"  # never matched, always created


@dataclass(frozen=True)
class Correlation:
    """Correlation rule: a kind plus the field it reads (natural keys only)."""

    kind: CorrelationKind
    field: str | None = None


TAG = Correlation(CorrelationKind.TAG)
SINGLETON = Correlation(CorrelationKind.SINGLETON)
NO_CORRELATION = Correlation(CorrelationKind.NONE)
BY_ID = Correlation(CorrelationKind.NATURAL_KEY, "id")


@dataclass(frozen=True)
class ResourceTypeInfo:
    """Metadata for an entity type."""

    entity_type: EntityType
    description: str
    restore_order: int  # Lower = earlier (dependency order)
    archive_file: str | None  # JSON file name inside a backup archive
    restore_correlation: Correlation
    export_order: int | None = None  # None = not exportable between live accounts
    export_correlation: Correlation | None = None
    name_field: str = "name"
    references: tuple[EntityType, ...] = ()
    restore_references: tuple[EntityType, ...] | None = None  # None = same as references
    concurrency: int = 1
    delay_ms: int = 0

    @property
    def exportable(self) -> bool:
        return self.export_order is not None

    def dependencies(self, mode: str) -> tuple[EntityType, ...]:
        """Entity types whose identity maps this type's payloads embed."""
        if mode == "restore" and self.restore_references is not None:
            return self.restore_references
        return self.references


RESOURCE_REGISTRY: dict[EntityType, ResourceTypeInfo] = {
    EntityType.NETWORKS: ResourceTypeInfo(
        entity_type=EntityType.NETWORKS,
        description="Integration networks",
        restore_order=10,
        archive_file="networks.json",
        restore_correlation=BY_ID,
        concurrency=5,
        delay_ms=150,
    ),
    EntityType.CONNECTORS: ResourceTypeInfo(
        entity_type=EntityType.CONNECTORS,
        description="Integration connectors",
        restore_order=20,
        archive_file="connectors.json",
        restore_correlation=BY_ID,
        concurrency=5,
        delay_ms=150,
    ),
    EntityType.DEVICES: ResourceTypeInfo(
        entity_type=EntityType.DEVICES,
        description="Devices",
        restore_order=30,
        archive_file="devices.json",
        restore_correlation=BY_ID,
        export_order=10,
        export_correlation=TAG,
        restore_references=(EntityType.NETWORKS, EntityType.CONNECTORS),
        concurrency=3,
        delay_ms=150,
    ),
    EntityType.ANALYSIS: ResourceTypeInfo(
        entity_type=EntityType.ANALYSIS,
        description="Analysis scripts",
        restore_order=40,
        archive_file="analysis.json",
        restore_correlation=BY_ID,
        export_order=20,
        export_correlation=TAG,
        references=(EntityType.DEVICES,),
        delay_ms=150,
    ),
    EntityType.DASHBOARDS: ResourceTypeInfo(
        entity_type=EntityType.DASHBOARDS,
        description="Dashboards and widgets",
        restore_order=50,
        archive_file="dashboards.json",
        restore_correlation=BY_ID,
        export_order=30,
        export_correlation=TAG,
        name_field="label",
        references=(EntityType.DEVICES, EntityType.ANALYSIS),
        delay_ms=500,
    ),
    EntityType.ACCESS: ResourceTypeInfo(
        entity_type=EntityType.ACCESS,
        description="Access management policies",
        restore_order=60,
        archive_file="access_management.json",
        restore_correlation=BY_ID,
        export_order=40,
        export_correlation=TAG,
        references=(EntityType.DEVICES, EntityType.DASHBOARDS, EntityType.ANALYSIS),
        concurrency=3,
        delay_ms=300,
    ),
    EntityType.RUN: ResourceTypeInfo(
        entity_type=EntityType.RUN,
        description="Run (end-user application) settings",
        restore_order=100,
        archive_file="run.json",
        restore_correlation=SINGLETON,
        export_order=50,
        export_correlation=SINGLETON,
        references=(EntityType.DASHBOARDS,),
    ),
    EntityType.ACTIONS: ResourceTypeInfo(
        entity_type=EntityType.ACTIONS,
        description="Actions",
        restore_order=70,
        archive_file="actions.json",
        restore_correlation=BY_ID,
        export_order=60,
        export_correlation=TAG,
        references=(EntityType.DEVICES, EntityType.ANALYSIS),
        concurrency=10,
        delay_ms=100,
    ),
    EntityType.DICTIONARIES: ResourceTypeInfo(
        entity_type=EntityType.DICTIONARIES,
        description="Dictionaries and languages",
        restore_order=80,
        archive_file="dictionaries.json",
        restore_correlation=Correlation(CorrelationKind.NATURAL_KEY, "slug"),
        export_order=70,
        export_correlation=Correlation(CorrelationKind.NATURAL_KEY, "slug"),
        concurrency=3,
        delay_ms=300,
    ),
    EntityType.RUN_USERS: ResourceTypeInfo(
        entity_type=EntityType.RUN_USERS,
        description="Run users",
        restore_order=90,
        archive_file="run_users.json",
        restore_correlation=Correlation(CorrelationKind.NATURAL_KEY, "email"),
        concurrency=10,
        delay_ms=100,
    ),
    EntityType.SECRETS: ResourceTypeInfo(
        entity_type=EntityType.SECRETS,
        description="Secrets",
        restore_order=110,
        archive_file="secrets.json",
        restore_correlation=Correlation(CorrelationKind.NATURAL_KEY, "key"),
        name_field="key",
        delay_ms=600,
    ),
    EntityType.FILES: ResourceTypeInfo(
        entity_type=EntityType.FILES,
        description="Uploaded files",
        restore_order=120,
        archive_file=None,
        restore_correlation=NO_CORRELATION,
        concurrency=2,
        delay_ms=300,
    ),
    EntityType.PROFILE: ResourceTypeInfo(
        entity_type=EntityType.PROFILE,
        description="Profile settings",
        restore_order=130,
        archive_file="profile.json",
        restore_correlation=SINGLETON,
    ),
}

# Spellings accepted on the command line and in config files
_ALIASES: dict[str, EntityType] = {
    "device": EntityType.DEVICES,
    "analyses": EntityType.ANALYSIS,
    "dashboard": EntityType.DASHBOARDS,
    "access_management": EntityType.ACCESS,
    "am": EntityType.ACCESS,
    "action": EntityType.ACTIONS,
    "network": EntityType.NETWORKS,
    "connector": EntityType.CONNECTORS,
    "dictionary": EntityType.DICTIONARIES,
    "run-users": EntityType.RUN_USERS,
    "users": EntityType.RUN_USERS,
    "secret": EntityType.SECRETS,
    "file": EntityType.FILES,
}


def get_info(entity_type: EntityType | str) -> ResourceTypeInfo:
    """Get full metadata for an entity type.

    Args:
        entity_type: Entity type or any accepted spelling of it

    Returns:
        ResourceTypeInfo for the type

    Raises:
        ValueError: If the name is not a known entity type
    """
    return RESOURCE_REGISTRY[normalize_entity_type(entity_type)]


def normalize_entity_type(name: EntityType | str) -> EntityType:
    """Resolve a user-supplied name to an EntityType.

    Example:
        >>> normalize_entity_type("access_management")
        <EntityType.ACCESS: 'access'>
    """
    if isinstance(name, EntityType):
        return name
    key = name.strip().lower()
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return EntityType(key)
    except ValueError:
        valid = ", ".join(t.value for t in EntityType)
        raise ValueError(f"Unknown entity type '{name}'. Valid types: {valid}") from None


def get_export_order() -> list[EntityType]:
    """Get exportable entity types in dependency order."""
    exportable = [info for info in RESOURCE_REGISTRY.values() if info.exportable]
    return [info.entity_type for info in sorted(exportable, key=lambda i: i.export_order)]


def get_restore_order() -> list[EntityType]:
    """Get every entity type in restore dependency order."""
    return [
        info.entity_type
        for info in sorted(RESOURCE_REGISTRY.values(), key=lambda i: i.restore_order)
    ]


def get_description(entity_type: EntityType | str) -> str:
    return get_info(entity_type).description


# ============================================
# Convenience Constants (derived from registry)
# ============================================

EXPORT_ORDER = get_export_order()

RESTORE_ORDER = get_restore_order()
