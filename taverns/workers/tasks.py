"""Celery tasks for the scheduled catalog refresh.

Items are refreshed one at a time through the same BGG source chain an
interactive import uses; BGG throttles parallel traffic from one IP.
"""

from __future__ import annotations

import asyncio
import logging

import httpx
from celery import shared_task
from sqlalchemy.exc import SQLAlchemyError

from taverns.config import get_settings
from taverns.core.registry import get_provider_registry
from taverns.models.database import get_async_session
from taverns.services.catalog.catalog_store import list_stale_catalog_ids
from taverns.services.catalog.importer import refresh_catalog_entry
from taverns.services.catalog.records import GameImportError

logger = logging.getLogger(__name__)


async def _refresh_catalog(limit: int) -> dict:
    """Refresh the ``limit`` least recently updated catalog rows."""
    settings = get_settings()
    llm = get_provider_registry().get_llm()
    refreshed = 0
    failed = 0

    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        async for db in get_async_session():
            bgg_ids = await list_stale_catalog_ids(db, limit)
            for bgg_id in bgg_ids:
                try:
                    catalog_id = await refresh_catalog_entry(db, bgg_id, client, llm, settings)
                except (GameImportError, SQLAlchemyError, httpx.HTTPError) as exc:
                    await db.rollback()
                    logger.warning("Catalog refresh failed bgg_id=%s: %s", bgg_id, exc)
                    failed += 1
                    continue
                if catalog_id is None:
                    failed += 1
                else:
                    refreshed += 1

    logger.info("Catalog refresh complete: refreshed=%d failed=%d", refreshed, failed)
    return {"refreshed": refreshed, "failed": failed, "requested": limit}


@shared_task(bind=True, max_retries=0)
def refresh_stale_catalog(self, limit: int | None = None) -> dict:
    """Wrap the async refresh in a synchronous Celery task."""
    batch = limit or get_settings().catalog_refresh_batch_size
    return asyncio.run(_refresh_catalog(batch))
