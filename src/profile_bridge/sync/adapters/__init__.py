"""Per entity type resource adapters."""

from profile_bridge.resources import EntityType
from profile_bridge.sync.adapters.access import AccessAdapter
from profile_bridge.sync.adapters.actions import ActionsAdapter
from profile_bridge.sync.adapters.analysis import AnalysisAdapter
from profile_bridge.sync.adapters.base import ResourceAdapter, SyncContext, SyncMode
from profile_bridge.sync.adapters.dashboards import DashboardsAdapter
from profile_bridge.sync.adapters.devices import DevicesAdapter
from profile_bridge.sync.adapters.dictionaries import DictionariesAdapter
from profile_bridge.sync.adapters.files import FilesAdapter
from profile_bridge.sync.adapters.integrations import ConnectorsAdapter, NetworksAdapter
from profile_bridge.sync.adapters.profile import ProfileAdapter
from profile_bridge.sync.adapters.run import RunAdapter, RunUsersAdapter
from profile_bridge.sync.adapters.secrets import SecretsAdapter

ADAPTERS: dict[EntityType, type[ResourceAdapter]] = {
    EntityType.DEVICES: DevicesAdapter,
    EntityType.ANALYSIS: AnalysisAdapter,
    EntityType.DASHBOARDS: DashboardsAdapter,
    EntityType.ACCESS: AccessAdapter,
    EntityType.ACTIONS: ActionsAdapter,
    EntityType.NETWORKS: NetworksAdapter,
    EntityType.CONNECTORS: ConnectorsAdapter,
    EntityType.DICTIONARIES: DictionariesAdapter,
    EntityType.RUN_USERS: RunUsersAdapter,
    EntityType.RUN: RunAdapter,
    EntityType.SECRETS: SecretsAdapter,
    EntityType.FILES: FilesAdapter,
    EntityType.PROFILE: ProfileAdapter,
}


def create_adapter(entity_type: EntityType, context: SyncContext) -> ResourceAdapter:
    """Create the adapter for an entity type.

    Args:
        entity_type: Entity type to adapt
        context: Shared run context (mode, clients, identity map, config)

    Returns:
        Adapter instance bound to the context

    Raises:
        NotImplementedError: If no adapter is registered for the entity type
    """
    adapter_class = ADAPTERS.get(entity_type)
    if not adapter_class:
        raise NotImplementedError(
            f"No adapter implemented for entity type: {entity_type}. "
            f"Available adapters: {', '.join(sorted(t.value for t in ADAPTERS))}"
        )
    return adapter_class(context)


__all__ = [
    "ADAPTERS",
    "ResourceAdapter",
    "SyncContext",
    "SyncMode",
    "create_adapter",
]
