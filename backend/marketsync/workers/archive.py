import logging

from marketsync.services.archive_service import ArchiveService
from marketsync.store import DocumentStore
from marketsync.workers._state import set_synced

logger = logging.getLogger("marketsync.workers.archive")

WORKER_ID = "archive"


async def archive_old_records(service: ArchiveService, store: DocumentStore) -> None:
    """Daily move of aged Final contests and Closed speculations to cold storage."""
    try:
        moved = await service.run()
    except Exception:
        logger.exception("Archive run failed")
        return
    await set_synced(store, WORKER_ID, moved)
