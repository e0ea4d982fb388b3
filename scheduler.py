"""APScheduler wrapper for periodic sync, enrichment and selection."""

import logging
import signal
import sys

from apscheduler.schedulers.blocking import BlockingScheduler

from config import SELECT_HOUR, SYNC_INTERVAL_MINUTES, PipelineConfig
from db import CatalogStore

logger = logging.getLogger(__name__)


def _sync_job(config: PipelineConfig):
    """Sync all shops, then work through part of the enrichment backlog."""
    from scout import enrich_pending, sync_shops
    logger.info("=== Scheduled sync starting ===")
    store = CatalogStore.open(config.db_path)
    try:
        sync_shops(store)
        enrich_pending(store, config)
    except Exception as e:
        logger.error(f"Scheduled sync/enrich failed: {e}")
    finally:
        store.close()


def _select_job(config: PipelineConfig):
    from scout import select_and_publish
    logger.info("=== Scheduled selection starting ===")
    store = CatalogStore.open(config.db_path)
    try:
        select_and_publish(store, config)
    except Exception as e:
        logger.error(f"Scheduled selection failed: {e}")
    finally:
        store.close()


def run_scheduler(config: PipelineConfig):
    """Start the blocking scheduler."""
    # Fail before scheduling anything if credentials are missing
    config.require_credentials(needs_llm=True)

    scheduler = BlockingScheduler()
    scheduler.add_job(
        _sync_job,
        "interval",
        minutes=SYNC_INTERVAL_MINUTES,
        args=[config],
        id="bean_sync",
        name="Bean Sync + Enrich",
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        _select_job,
        "cron",
        hour=SELECT_HOUR,
        args=[config],
        id="bean_select",
        name="Bean Selection",
        max_instances=1,
        coalesce=True,
    )

    def shutdown(signum, frame):
        logger.info("Shutting down scheduler...")
        scheduler.shutdown(wait=False)
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    logger.info(
        f"Scheduler started. Syncing every {SYNC_INTERVAL_MINUTES} minutes, "
        f"selecting daily at {SELECT_HOUR:02d}:00. Press Ctrl+C to stop."
    )
    # Run immediately on start, then schedule
    _sync_job(config)
    scheduler.start()
