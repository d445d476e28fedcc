"""
Migration Policy - one-time copy of local-only data into the remote store.

Runs at startup once the remote store answered. Collections are matched by
name against what the remote already holds so a retried migration does not
duplicate them; cards are not de-duplicated.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from ..exceptions import RemoteStoreError
from ..models import Card, Collection
from .remote import RemoteStore

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """Outcome of one migration run. Partial success is an accepted result."""

    collections_created: int = 0
    collections_reused: int = 0
    cards_migrated: int = 0
    cards_skipped: int = 0
    failures: List[str] = field(default_factory=list)
    collection_id_map: Dict[str, str] = field(default_factory=dict)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def is_partial(self) -> bool:
        return bool(self.failures)

    def summary(self) -> str:
        return (
            f"{self.collections_created} collections created, "
            f"{self.collections_reused} reused, "
            f"{self.cards_migrated} cards migrated, "
            f"{self.cards_skipped} skipped, "
            f"{self.failed} failed"
        )


def needs_migration(remote_cards: Sequence[Card], local_cards: Sequence[Card]) -> bool:
    """Remote holds no cards while local storage does."""
    return len(remote_cards) == 0 and len(local_cards) > 0


async def migrate_local_to_remote(
    remote: RemoteStore,
    local_collections: Iterable[Collection],
    local_cards: Iterable[Card],
    existing_collections: Iterable[Collection] = (),
) -> MigrationReport:
    """
    Copy local collections and cards into the remote store.

    Args:
        remote: Authenticated remote store
        local_collections: Collections from durable local storage
        local_cards: Cards from durable local storage
        existing_collections: Collections already present remotely

    Returns:
        Report with per-item counts and failures
    """
    report = MigrationReport()
    existing_by_name = {c.name: c.id for c in existing_collections}

    for collection in local_collections:
        existing_id = existing_by_name.get(collection.name)
        if existing_id:
            report.collection_id_map[collection.id] = existing_id
            report.collections_reused += 1
            continue

        try:
            created = await remote.add_collection(collection)
        except (RemoteStoreError, ValueError) as e:
            logger.error("Failed to migrate collection %r: %s", collection.name, e)
            report.failures.append(f"collection {collection.id}: {e}")
            continue

        if created.id:
            report.collection_id_map[collection.id] = created.id
            report.collections_created += 1

    for card in local_cards:
        # Unmapped ids fall back to the card's own collection id
        target_id = report.collection_id_map.get(card.collection_id) or card.collection_id
        if not target_id:
            report.cards_skipped += 1
            continue

        try:
            await remote.add_card(dataclasses.replace(card, collection_id=target_id))
        except (RemoteStoreError, ValueError) as e:
            logger.error("Failed to migrate card %s: %s", card.id, e)
            report.failures.append(f"card {card.id}: {e}")
            continue
        report.cards_migrated += 1

    logger.info("Local data migration finished: %s", report.summary())
    return report
