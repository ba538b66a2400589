"""
Celery Tasks
Background reconciliation of orders whose payment outcome never reached us.
"""

import asyncio
import logging
import time
from datetime import datetime

from app.celery_worker import celery_app
from app.core.config import get_settings
from app.services.callback import get_callback_handler

logger = logging.getLogger(__name__)


async def _reconcile(older_than_minutes: int) -> list[dict]:
    results = await get_callback_handler().reconcile_stale(older_than_minutes)
    return [
        {
            "order_id": r.order_id,
            "status": r.status.value,
            "changed": r.changed,
            "code": r.code,
        }
        for r in results
    ]


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def reconcile_pending_orders(self, older_than_minutes: int = None) -> dict:
    """
    Ask the gateway about orders still pending after the configured delay.

    Args:
        older_than_minutes: Override for RECONCILE_AFTER_MINUTES

    Returns:
        dict: Summary of the orders checked
    """
    task_id = self.request.id
    minutes = older_than_minutes or get_settings().reconcile_after_minutes

    logger.info(f"Task {task_id}: Reconciling orders pending > {minutes} min")
    start_time = time.time()

    results = asyncio.run(_reconcile(minutes))

    elapsed = round(time.time() - start_time, 3)
    changed = sum(1 for r in results if r["changed"])
    logger.info(
        f"Task {task_id}: Checked {len(results)} orders, "
        f"{changed} updated in {elapsed}s"
    )

    return {
        'task_id': task_id,
        'checked': len(results),
        'changed': changed,
        'orders': results,
        'processing_time_seconds': elapsed,
    }


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now().isoformat()
    }
