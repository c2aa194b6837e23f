"""Tests for usage recording and reversal."""

from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from storefront.core.exceptions import ConcurrencyConflictError, NotFoundError
from storefront.models.usage import EventUsage, PromoCodeUsage, PromotionUserUsage
from storefront.repositories.usage_repository import UsageRepository
from storefront.services.usage_accountant import (
    PromotionKind,
    PromotionRef,
    UsageAccountant,
)
from tests.conftest import NOW, OTHER_USER_ID, USER_ID


@pytest.fixture
def accountant(db_session):
    return UsageAccountant(db_session)


class TestRecordUsage:
    def test_records_event_usage(self, accountant, db_session, make_event):
        event = make_event()
        order_id = uuid4()

        result = accountant.record_event_usage(event.id, USER_ID, order_id, Decimal("99.999"))

        assert result.recorded
        assert result.usage.order_id == order_id
        assert result.usage.discount_amount == Decimal("100.00")
        db_session.refresh(event)
        assert event.current_usage_count == 1

    def test_records_promo_code_usage(self, accountant, db_session, make_promo_code):
        promo = make_promo_code()
        result = accountant.record_promo_code_usage(promo.id, USER_ID, uuid4(), Decimal("50"))
        assert result.recorded
        db_session.refresh(promo)
        assert promo.current_usage_count == 1

    def test_repeat_for_same_order_is_a_no_op(self, accountant, db_session, make_event):
        event = make_event(max_usage_count=1)
        order_id = uuid4()
        first = accountant.record_event_usage(event.id, USER_ID, order_id, Decimal("10"))

        second = accountant.record_event_usage(event.id, USER_ID, order_id, Decimal("10"))

        assert not second.recorded
        assert second.usage.id == first.usage.id
        db_session.refresh(event)
        assert event.current_usage_count == 1
        assert db_session.query(EventUsage).count() == 1

    def test_generic_entry_point(self, accountant, make_promo_code):
        promo = make_promo_code()
        ref = PromotionRef(PromotionKind.PROMO_CODE, promo.id)
        assert accountant.record_usage(ref, USER_ID, uuid4(), Decimal("5")).recorded

    def test_global_limit_conflict(self, accountant, db_session, make_event):
        event = make_event(max_usage_count=1)
        accountant.record_event_usage(event.id, USER_ID, uuid4(), Decimal("10"))

        with pytest.raises(ConcurrencyConflictError):
            accountant.record_event_usage(event.id, OTHER_USER_ID, uuid4(), Decimal("10"))

        db_session.refresh(event)
        assert event.current_usage_count == 1
        assert db_session.query(EventUsage).count() == 1

    def test_per_user_limit_conflict(self, accountant, db_session, make_promo_code):
        promo = make_promo_code(max_usage_per_user=1)
        accountant.record_promo_code_usage(promo.id, USER_ID, uuid4(), Decimal("10"))

        with pytest.raises(ConcurrencyConflictError, match="maximum number of times"):
            accountant.record_promo_code_usage(promo.id, USER_ID, uuid4(), Decimal("10"))

        assert accountant.record_promo_code_usage(
            promo.id, OTHER_USER_ID, uuid4(), Decimal("10")
        ).recorded
        db_session.refresh(promo)
        assert promo.current_usage_count == 2

    def test_unknown_promotion(self, accountant):
        with pytest.raises(NotFoundError):
            accountant.record_event_usage(uuid4(), USER_ID, uuid4(), Decimal("10"))
        with pytest.raises(NotFoundError):
            accountant.record_promo_code_usage(uuid4(), USER_ID, uuid4(), Decimal("10"))

    def test_conflict_across_sessions(self, session_factory, make_promo_code):
        promo = make_promo_code(max_total_usage=1)
        first_session = session_factory()
        second_session = session_factory()
        try:
            UsageAccountant(first_session).record_promo_code_usage(
                promo.id, USER_ID, uuid4(), Decimal("10")
            )
            with pytest.raises(ConcurrencyConflictError):
                UsageAccountant(second_session).record_promo_code_usage(
                    promo.id, OTHER_USER_ID, uuid4(), Decimal("10")
                )
        finally:
            first_session.close()
            second_session.close()

    def test_per_user_limit_holds_when_confirmations_interleave(
        self, session_factory, make_promo_code
    ):
        promo = make_promo_code(max_usage_per_user=1)
        first_session = session_factory()
        second_session = session_factory()
        try:
            first = UsageAccountant(first_session)
            second = UsageAccountant(second_session)
            read_limit = second._user_limit

            def limit_then_first_confirms(promotion):
                limit = read_limit(promotion)
                first.record_promo_code_usage(promo.id, USER_ID, uuid4(), Decimal("10"))
                return limit

            with (
                patch.object(second, "_user_limit", side_effect=limit_then_first_confirms),
                pytest.raises(ConcurrencyConflictError, match="maximum number of times"),
            ):
                second.record_promo_code_usage(promo.id, USER_ID, uuid4(), Decimal("10"))

            live = (
                first_session.query(PromoCodeUsage)
                .filter(PromoCodeUsage.user_id == USER_ID, PromoCodeUsage.is_voided.is_(False))
                .count()
            )
            assert live == 1
            assert first_session.query(PromotionUserUsage.use_count).scalar() == 1
        finally:
            first_session.close()
            second_session.close()

    def test_global_limit_holds_when_confirmations_interleave(
        self, session_factory, db_session, make_event
    ):
        event = make_event(max_usage_count=1)
        first_session = session_factory()
        second_session = session_factory()
        try:
            first = UsageAccountant(first_session)
            second = UsageAccountant(second_session)
            read_limit = second._user_limit

            def limit_then_first_confirms(promotion):
                limit = read_limit(promotion)
                first.record_event_usage(event.id, USER_ID, uuid4(), Decimal("10"))
                return limit

            with (
                patch.object(second, "_user_limit", side_effect=limit_then_first_confirms),
                pytest.raises(ConcurrencyConflictError),
            ):
                second.record_event_usage(event.id, OTHER_USER_ID, uuid4(), Decimal("10"))

            db_session.refresh(event)
            assert event.current_usage_count == 1
            assert db_session.query(EventUsage).count() == 1
            # The losing user's counter increment was rolled back with the rest.
            losing_counter = (
                db_session.query(PromotionUserUsage.use_count)
                .filter(PromotionUserUsage.user_id == OTHER_USER_ID)
                .scalar()
            )
            assert not losing_counter
        finally:
            first_session.close()
            second_session.close()

    def test_retries_when_user_counter_created_concurrently(
        self, accountant, db_session, make_promo_code
    ):
        promo = make_promo_code(max_usage_per_user=1)
        create_race = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with patch.object(
            accountant.usage_repo,
            "try_increment_user_usage",
            side_effect=[create_race, True],
        ) as mock_increment:
            result = accountant.record_promo_code_usage(promo.id, USER_ID, uuid4(), Decimal("10"))

        assert result.recorded
        assert mock_increment.call_count == 2
        db_session.refresh(promo)
        assert promo.current_usage_count == 1

    def test_gives_up_after_second_integrity_error(self, accountant, make_promo_code):
        promo = make_promo_code()
        create_race = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with (
            patch.object(
                accountant.usage_repo, "try_increment_user_usage", side_effect=create_race
            ),
            pytest.raises(IntegrityError),
        ):
            accountant.record_promo_code_usage(promo.id, USER_ID, uuid4(), Decimal("10"))


class TestReverseUsage:
    def test_reverses_every_promotion_of_the_order(
        self, accountant, db_session, make_event, make_promo_code
    ):
        event = make_event()
        promo = make_promo_code()
        order_id = uuid4()
        accountant.record_event_usage(event.id, USER_ID, order_id, Decimal("100"))
        accountant.record_promo_code_usage(promo.id, USER_ID, order_id, Decimal("50"))

        result = accountant.reverse_usage(order_id, NOW)

        assert result.events_reversed == 1
        assert result.promo_codes_reversed == 1
        assert result.total_reversed == 2
        db_session.refresh(event)
        db_session.refresh(promo)
        assert event.current_usage_count == 0
        assert promo.current_usage_count == 0
        usage = db_session.query(PromoCodeUsage).one()
        assert usage.is_voided
        assert usage.voided_at is not None

    def test_leaves_other_orders_alone(self, accountant, db_session, make_event):
        event = make_event()
        kept_order, reversed_order = uuid4(), uuid4()
        accountant.record_event_usage(event.id, USER_ID, kept_order, Decimal("10"))
        accountant.record_event_usage(event.id, OTHER_USER_ID, reversed_order, Decimal("10"))

        accountant.reverse_usage(reversed_order, NOW)

        db_session.refresh(event)
        assert event.current_usage_count == 1

    def test_order_without_usage_is_a_no_op(self, accountant):
        result = accountant.reverse_usage(uuid4(), NOW)
        assert result.total_reversed == 0

    def test_repeated_reversal_decrements_once(self, accountant, db_session, make_event):
        event = make_event()
        order_id = uuid4()
        accountant.record_event_usage(event.id, USER_ID, order_id, Decimal("10"))

        accountant.reverse_usage(order_id, NOW)
        again = accountant.reverse_usage(order_id, NOW)

        assert again.total_reversed == 0
        db_session.refresh(event)
        assert event.current_usage_count == 0

    def test_reversal_frees_a_use(self, accountant, make_event):
        event = make_event(max_usage_count=1)
        order_id = uuid4()
        accountant.record_event_usage(event.id, USER_ID, order_id, Decimal("10"))
        accountant.reverse_usage(order_id, NOW)

        assert accountant.record_event_usage(event.id, OTHER_USER_ID, uuid4(), Decimal("10")).recorded

    def test_record_after_reversal_stays_a_no_op(self, accountant, db_session, make_event):
        event = make_event()
        order_id = uuid4()
        accountant.record_event_usage(event.id, USER_ID, order_id, Decimal("10"))
        accountant.reverse_usage(order_id, NOW)

        result = accountant.record_event_usage(event.id, USER_ID, order_id, Decimal("10"))

        assert not result.recorded
        db_session.refresh(event)
        assert event.current_usage_count == 0

    def test_reversal_gives_back_the_users_use(self, accountant, db_session, make_promo_code):
        promo = make_promo_code(max_usage_per_user=1)
        order_id = uuid4()
        accountant.record_promo_code_usage(promo.id, USER_ID, order_id, Decimal("10"))

        accountant.reverse_usage(order_id, NOW)
        accountant.reverse_usage(order_id, NOW)

        assert db_session.query(PromotionUserUsage.use_count).scalar() == 0
        assert accountant.record_promo_code_usage(
            promo.id, USER_ID, uuid4(), Decimal("10")
        ).recorded


class TestUserUsageCounter:
    def test_increment_respects_limit(self, db_session):
        repo = UsageRepository(db_session)
        promotion_id = uuid4()

        assert repo.try_increment_user_usage("event", promotion_id, USER_ID, 2)
        assert repo.try_increment_user_usage("event", promotion_id, USER_ID, 2)
        assert not repo.try_increment_user_usage("event", promotion_id, USER_ID, 2)
        assert repo.try_increment_user_usage("event", promotion_id, USER_ID, None)

        assert db_session.query(PromotionUserUsage.use_count).scalar() == 3

    def test_counters_are_per_kind_and_user(self, db_session):
        repo = UsageRepository(db_session)
        promotion_id = uuid4()

        assert repo.try_increment_user_usage("event", promotion_id, USER_ID, 1)
        assert repo.try_increment_user_usage("promo_code", promotion_id, USER_ID, 1)
        assert repo.try_increment_user_usage("event", promotion_id, OTHER_USER_ID, 1)

        assert db_session.query(PromotionUserUsage).count() == 3

    def test_decrement_stops_at_zero(self, db_session):
        repo = UsageRepository(db_session)
        promotion_id = uuid4()
        repo.try_increment_user_usage("promo_code", promotion_id, USER_ID, None)

        assert repo.decrement_user_usage("promo_code", promotion_id, USER_ID)
        assert not repo.decrement_user_usage("promo_code", promotion_id, USER_ID)
        assert not repo.decrement_user_usage("promo_code", uuid4(), USER_ID)
