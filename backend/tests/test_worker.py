"""Tests for worker background tasks and cron job registration."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from storefront.core import database as db_module
from storefront.models.promotion_event import EventStatus
from storefront.worker import (
    WorkerSettings,
    expire_ended_events_task,
    reconcile_partial_usage_task,
    retry_pending_reversals_task,
    reverse_order_usage_task,
)


class TestExpireEndedEventsTask:
    @pytest.mark.asyncio
    async def test_expires_ended_events(self, db_session, make_event):
        now = datetime.now(UTC)
        event = make_event(start=now - timedelta(days=3), end=now - timedelta(hours=1))
        make_event(start=now - timedelta(days=1), end=now + timedelta(days=1))

        with patch("storefront.worker.SessionLocal", db_module.SessionLocal):
            result = await expire_ended_events_task({})

        assert result == 1
        db_session.refresh(event)
        assert event.status == EventStatus.EXPIRED.value

    @pytest.mark.asyncio
    async def test_nothing_to_expire(self):
        with patch("storefront.worker.SessionLocal", db_module.SessionLocal):
            result = await expire_ended_events_task({})

        assert result == 0


class TestReconcilePartialUsageTask:
    @pytest.mark.asyncio
    async def test_reconciles_orders(self):
        mock_service = MagicMock()
        mock_service.reconcile_partial_orders.return_value = 2

        with patch("storefront.worker.OrderService", return_value=mock_service):
            result = await reconcile_partial_usage_task({})

        assert result == 2
        mock_service.reconcile_partial_orders.assert_called_once()

    @pytest.mark.asyncio
    async def test_returns_zero_when_nothing_partial(self):
        mock_service = MagicMock()
        mock_service.reconcile_partial_orders.return_value = 0

        with patch("storefront.worker.OrderService", return_value=mock_service):
            result = await reconcile_partial_usage_task({})

        assert result == 0


class TestReverseOrderUsageTask:
    @pytest.mark.asyncio
    async def test_retries_one_order(self):
        order_id = uuid4()
        mock_service = MagicMock()
        mock_service.retry_reversal.return_value = True

        with patch("storefront.worker.OrderService", return_value=mock_service):
            result = await reverse_order_usage_task({}, str(order_id))

        assert result is True
        mock_service.retry_reversal.assert_called_once_with(order_id)

    @pytest.mark.asyncio
    async def test_unknown_order_is_not_reversed(self):
        with patch("storefront.worker.SessionLocal", db_module.SessionLocal):
            result = await reverse_order_usage_task({}, str(uuid4()))

        assert result is False


class TestRetryPendingReversalsTask:
    @pytest.mark.asyncio
    async def test_retries_pending_reversals(self):
        mock_service = MagicMock()
        mock_service.retry_pending_reversals.return_value = 3

        with patch("storefront.worker.OrderService", return_value=mock_service):
            result = await retry_pending_reversals_task({})

        assert result == 3
        mock_service.retry_pending_reversals.assert_called_once()


class TestWorkerSettings:
    def test_functions_registered(self):
        assert expire_ended_events_task in WorkerSettings.functions
        assert reconcile_partial_usage_task in WorkerSettings.functions
        assert reverse_order_usage_task in WorkerSettings.functions
        assert retry_pending_reversals_task in WorkerSettings.functions

    def test_cron_jobs(self):
        assert len(WorkerSettings.cron_jobs) == 3
        minutes = {job.coroutine.__name__: job.minute for job in WorkerSettings.cron_jobs}
        assert minutes["expire_ended_events_task"] == set(range(0, 60, 5))
        assert minutes["reconcile_partial_usage_task"] == {0, 15, 30, 45}
        assert minutes["retry_pending_reversals_task"] == {0, 15, 30, 45}
