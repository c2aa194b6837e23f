import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from arq import cron

from storefront.core.cache import get_cache
from storefront.core.database import SessionLocal
from storefront.core.exceptions import NotFoundError
from storefront.services.order_service import OrderService
from storefront.services.promotion_event_service import PromotionEventService
from storefront.tasks import redis_settings

logger = logging.getLogger(__name__)


async def expire_ended_events_task(ctx: dict[str, Any]) -> int:
    """Background task: move events past their end date to Expired.

    Runs every 5 minutes. Pricing already ignores ended events; this keeps
    the stored status in step.
    """
    db = SessionLocal()
    try:
        service = PromotionEventService(db, get_cache())
        return service.expire_ended_events(datetime.now(UTC))
    finally:
        db.close()


async def reconcile_partial_usage_task(ctx: dict[str, Any]) -> int:
    """Background task: finish recording usage for partially confirmed orders."""
    db = SessionLocal()
    try:
        service = OrderService(db, get_cache())
        count = service.reconcile_partial_orders()
        if count > 0:
            logger.info("Reconciled usage for %d order(s)", count)
        return count
    finally:
        db.close()


async def reverse_order_usage_task(ctx: dict[str, Any], order_id: str) -> bool:
    """Background task: retry the usage reversal of one cancelled order."""
    db = SessionLocal()
    try:
        service = OrderService(db, get_cache())
        try:
            return service.retry_reversal(UUID(order_id))
        except NotFoundError:
            logger.warning("Order %s no longer exists; skipping usage reversal", order_id)
            return False
    finally:
        db.close()


async def retry_pending_reversals_task(ctx: dict[str, Any]) -> int:
    """Background task: retry every reversal still pending.

    Catches cancellations whose retry job was never enqueued.
    """
    db = SessionLocal()
    try:
        service = OrderService(db, get_cache())
        count = service.retry_pending_reversals()
        if count > 0:
            logger.info("Reversed usage for %d cancelled order(s)", count)
        return count
    finally:
        db.close()


class WorkerSettings:
    functions = [
        expire_ended_events_task,
        reconcile_partial_usage_task,
        reverse_order_usage_task,
        retry_pending_reversals_task,
    ]
    cron_jobs = [
        cron(expire_ended_events_task, minute={0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55}),
        cron(reconcile_partial_usage_task, minute={0, 15, 30, 45}),
        cron(retry_pending_reversals_task, minute={0, 15, 30, 45}),
    ]
    redis_settings = redis_settings
