"""Tests for the promotion event lifecycle."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from storefront.core.cache import Cache
from storefront.core.exceptions import NotFoundError, PromotionValidationError
from storefront.models.promotion_event import EventStatus, RuleTargetType
from storefront.schemas.promotion_event import (
    EventProductCreate,
    EventRuleCreate,
    PromotionEventCreate,
)
from storefront.services.event_eligibility import ACTIVE_EVENTS_CACHE_KEY
from storefront.services.promotion_event_service import PromotionEventService
from tests.conftest import NOW


@pytest.fixture
def service(db_session, null_cache):
    return PromotionEventService(db_session, null_cache)


def event_data(**overrides) -> PromotionEventCreate:
    values = {
        "name": "Dashain Dhamaka",
        "promotion_type": "percentage",
        "discount_value": Decimal("15"),
        "start_date": "2026-01-07T00:00:00",
        "end_date": "2026-01-14T23:59:59",
    }
    values.update(overrides)
    return PromotionEventCreate(**values)


class TestCreateEvent:
    def test_creates_draft_with_utc_dates(self, service):
        event = service.create_event(event_data())
        assert event.status == EventStatus.DRAFT.value
        assert event.is_active is False
        assert event.start_date.replace(tzinfo=UTC) == datetime(2026, 1, 6, 18, 15, tzinfo=UTC)
        assert event.end_date.replace(tzinfo=UTC) == datetime(2026, 1, 14, 18, 14, 59, tzinfo=UTC)

    def test_creates_rules_and_links(self, service, make_product):
        product = make_product()
        category_id = uuid4()
        event = service.create_event(
            event_data(
                rules=[
                    EventRuleCreate(
                        target_type=RuleTargetType.CATEGORY, target_value=str(category_id)
                    )
                ],
                products=[
                    EventProductCreate(product_id=product.id, specific_discount=Decimal("20"))
                ],
            )
        )
        detail = service.get_detail(event.id, NOW)
        assert detail.rules[0].target_value == str(category_id)
        assert detail.products[0].product_id == product.id
        assert detail.products[0].specific_discount == Decimal("20")

    def test_end_before_start(self, service):
        with pytest.raises(PromotionValidationError, match="after start"):
            service.create_event(event_data(end_date="2026-01-06T00:00:00"))

    def test_malformed_date(self, service):
        with pytest.raises(PromotionValidationError):
            service.create_event(event_data(start_date="Dashain"))

    def test_bad_rule_target(self, service):
        with pytest.raises(PromotionValidationError, match="Invalid rule target"):
            service.create_event(
                event_data(
                    rules=[EventRuleCreate(target_type=RuleTargetType.PRODUCT, target_value="abc")]
                )
            )

    def test_unknown_product(self, service):
        with pytest.raises(PromotionValidationError, match="Unknown product"):
            service.create_event(event_data(products=[EventProductCreate(product_id=uuid4())]))

    def test_duplicate_product_link(self, service, make_product):
        product = make_product()
        link = EventProductCreate(product_id=product.id)
        with pytest.raises(PromotionValidationError, match="only be linked"):
            service.create_event(event_data(products=[link, link]))

    def test_percentage_above_hundred(self):
        with pytest.raises(ValueError):
            event_data(discount_value=Decimal("120"))

    def test_half_set_time_slot(self):
        with pytest.raises(ValueError):
            event_data(active_slot_start="22:00:00")

    def test_non_global_rule_needs_target(self):
        with pytest.raises(ValueError):
            EventRuleCreate(target_type=RuleTargetType.CATEGORY)


class TestLifecycle:
    def test_activate_draft(self, service, make_event):
        event = make_event(activate=False)
        event = service.activate(event.id, NOW)
        assert event.status == EventStatus.ACTIVE.value
        assert event.is_active is True

    def test_activate_ended_event(self, service, make_event):
        event = make_event(
            activate=False, start=NOW - timedelta(days=3), end=NOW - timedelta(days=1)
        )
        with pytest.raises(PromotionValidationError, match="already ended"):
            service.activate(event.id, NOW)

    def test_activate_twice(self, service, make_event):
        event = make_event()
        with pytest.raises(PromotionValidationError, match="status 'active'"):
            service.activate(event.id, NOW)

    def test_pause_and_reactivate(self, service, make_event):
        event = make_event()
        event = service.pause(event.id)
        assert event.status == EventStatus.PAUSED.value
        assert event.is_active is False
        assert service.activate(event.id, NOW).status == EventStatus.ACTIVE.value

    def test_pause_draft(self, service, make_event):
        event = make_event(activate=False)
        with pytest.raises(PromotionValidationError):
            service.pause(event.id)

    def test_expired_event_cannot_be_activated(self, service, make_event):
        event = make_event(start=NOW - timedelta(days=3), end=NOW - timedelta(days=1))
        service.expire_ended_events(NOW)
        with pytest.raises(PromotionValidationError, match="status 'expired'"):
            service.activate(event.id, NOW)

    def test_delete_and_restore(self, service, make_event):
        event = make_event()
        service.delete(event.id, NOW)

        with pytest.raises(NotFoundError):
            service.get_event(event.id)
        assert service.list_events() == []

        restored = service.restore(event.id)
        assert restored.status == EventStatus.PAUSED.value
        assert restored.is_active is False
        assert [e.id for e in service.list_events()] == [event.id]

    def test_restore_event_that_is_not_deleted(self, service, make_event):
        event = make_event()
        with pytest.raises(PromotionValidationError, match="not deleted"):
            service.restore(event.id)

    def test_restore_unknown(self, service):
        with pytest.raises(NotFoundError):
            service.restore(uuid4())

    def test_changes_invalidate_active_event_cache(self, db_session, make_event):
        client = MagicMock()
        service = PromotionEventService(db_session, Cache(client))
        event = make_event()

        service.pause(event.id)

        client.delete.assert_called_with(ACTIVE_EVENTS_CACHE_KEY)


class TestQueries:
    def test_list_filters_by_status(self, service, make_event):
        active = make_event()
        make_event(activate=False)
        assert [e.id for e in service.list_events(status=EventStatus.ACTIVE)] == [active.id]
        assert len(service.list_events()) == 2

    def test_list_orders_by_priority(self, service, make_event):
        low = make_event(priority=1)
        high = make_event(priority=9)
        assert [e.id for e in service.list_events()] == [high.id, low.id]

    def test_detail_window_status(self, service, make_event):
        event = make_event(end=NOW + timedelta(hours=3, minutes=5))
        detail = service.get_detail(event.id, NOW)
        assert detail.window_status == "Active - Ends in 3h 5m"
        assert detail.end_date_npt == "2026-01-07T14:50:00"

    def test_detail_unknown(self, service):
        with pytest.raises(NotFoundError):
            service.get_detail(uuid4(), NOW)


class TestExpireEndedEvents:
    def test_expires_only_ended_events(self, service, make_event):
        ended = make_event(start=NOW - timedelta(days=3), end=NOW - timedelta(seconds=1))
        running = make_event()
        draft_ended = make_event(
            activate=False, start=NOW - timedelta(days=3), end=NOW - timedelta(days=2)
        )

        assert service.expire_ended_events(NOW) == 2

        assert service.get_event(ended.id).status == EventStatus.EXPIRED.value
        assert service.get_event(draft_ended.id).status == EventStatus.EXPIRED.value
        assert service.get_event(running.id).status == EventStatus.ACTIVE.value

    def test_event_ending_now_is_not_expired(self, service, make_event):
        make_event(end=NOW)
        assert service.expire_ended_events(NOW) == 0

    def test_second_run_is_a_no_op(self, service, make_event):
        make_event(start=NOW - timedelta(days=3), end=NOW - timedelta(days=1))
        service.expire_ended_events(NOW)
        assert service.expire_ended_events(NOW) == 0
