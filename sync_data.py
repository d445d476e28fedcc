"""
LinguaFlow: Data Sync
---------------------

Opens the data store (running the one-time migration of local data into the
remote store when needed) and prints a study summary.
"""

import asyncio
import sys

from linguaflow.config import Config
from linguaflow.exceptions import LinguaFlowError
from linguaflow.factory import create_data_store
from linguaflow.utils import setup_logger

logger = setup_logger("linguaflow", Config.LOG_LEVEL)


async def main():
    """Main entry point."""
    store = await create_data_store()
    try:
        mode = "cloud" if store.is_cloud_enabled() else "local"
        print(f"Storage: {Config.STORAGE_BACKEND} ({mode})")

        if store.last_migration is not None:
            print(f"Migration: {store.last_migration.summary()}")
            for failure in store.last_migration.failures:
                print(f"  - {failure}")

        stats = store.get_stats()
        print(f"Collections: {stats.total_collections}")
        print(f"Cards: {stats.total_cards} ({stats.total_mastered} mastered, {stats.mastery_percent}%)")
        print(f"Due now: {stats.total_due}")
        print(f"Streak: {stats.streak} days")

        for collection in store.get_collections():
            print(f"  {collection.emoji} {collection.name}: {collection.card_count} cards, {collection.due_cards} due")
        return True
    finally:
        await store.close()


if __name__ == "__main__":
    try:
        success = asyncio.run(main())
        sys.exit(0 if success else 1)
    except LinguaFlowError as e:
        logger.error("Sync failed: %s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n[!] Aborted by user.")
        sys.exit(1)
