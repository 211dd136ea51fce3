"""Refresh recorded state from the provider before planning."""

from typing import Dict
from ..providers.base import ProviderRegistry
from ..state.models import StateRecord
from ..state.store import StateStore
from ..utils.errors import ResourceNotFoundError
from ..utils.logging import get_logger

logger = get_logger("planner.refresh")


def refresh_state(store: StateStore, registry: ProviderRegistry) -> Dict[str, StateRecord]:
    """
    Read every recorded resource back from its provider.

    Records whose resource no longer exists are removed, so the next plan
    recreates them. Drifted attributes are written back so the next plan
    converges them.

    Args:
        store: State store to refresh
        registry: Provider capability table

    Returns:
        Refreshed records, address -> StateRecord

    Raises:
        ProviderError: If a read fails for any reason other than NotFound
    """
    records = store.load()
    registry.validate_types({r.type for r in records.values()})

    refreshed = {}
    for address, record in sorted(records.items()):
        provider = registry.provider_for(record.type)
        try:
            current = provider.read(record.type, record.id)
        except ResourceNotFoundError:
            logger.warning(f"{address}: {record.id} no longer exists, dropping from state")
            store.remove(address)
            continue

        if current != record.attributes:
            drifted = sorted(k for k in set(current) | set(record.attributes)
                             if current.get(k) != record.attributes.get(k))
            logger.info(f"{address}: drift detected in {', '.join(drifted)}")
            record = record.model_copy(update={"attributes": current})
            store.save(record)
        refreshed[address] = record

    logger.info(f"Refreshed {len(refreshed)} of {len(records)} state records")
    return refreshed
