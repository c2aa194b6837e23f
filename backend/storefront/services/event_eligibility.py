"""Event eligibility resolution.

Given a product and an instant, pick at most one promotion event. Candidate
events come from a cached snapshot of activated events; counters are checked
against the database by the caller and passed in as ``excluded_event_ids``.
Resolution fails closed: any data error yields "no event".
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import IntEnum
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.core.cache import Cache
from storefront.core.config import settings
from storefront.core.exceptions import UpstreamUnavailableError
from storefront.models.promotion_event import RuleTargetType
from storefront.models.shared import ensure_utc
from storefront.repositories.promotion_event_repository import PromotionEventRepository
from storefront.schemas.promotion_event import (
    ActiveEventSnapshot,
    ActiveEventsSnapshot,
    EventProductSnapshot,
    EventRuleSnapshot,
)
from storefront.services.nepal_time import civil_time_of_day, is_within_slot, is_within_window

logger = logging.getLogger(__name__)

ACTIVE_EVENTS_CACHE_KEY = "promotions:active_events"

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class MatchKind(IntEnum):
    """How an event reached a product. Higher is more specific."""

    GLOBAL = 0
    CATEGORY = 1
    SUBCATEGORY = 2
    PRODUCT_RULE = 3
    DIRECT_PRODUCT = 4


_RULE_MATCH_KIND = {
    RuleTargetType.PRODUCT.value: MatchKind.PRODUCT_RULE,
    RuleTargetType.SUBCATEGORY.value: MatchKind.SUBCATEGORY,
    RuleTargetType.CATEGORY.value: MatchKind.CATEGORY,
    RuleTargetType.GLOBAL.value: MatchKind.GLOBAL,
}


@dataclass(frozen=True)
class ProductRef:
    """The identifiers of a product that rules can target."""

    product_id: UUID
    category_id: UUID | None = None
    subcategory_id: UUID | None = None


@dataclass
class EventMatch:
    """The selected event and what matched it."""

    event: ActiveEventSnapshot
    kind: MatchKind
    rule: EventRuleSnapshot | None = None
    event_product: EventProductSnapshot | None = None


def parse_target_ids(target_value: str | None) -> set[UUID]:
    """Parse a comma-separated id list.

    Raises:
        ValueError: If any entry is not a UUID.
    """
    if not target_value:
        return set()
    return {UUID(part.strip()) for part in target_value.split(",") if part.strip()}


def _rule_matches(rule: EventRuleSnapshot, product: ProductRef) -> bool:
    if rule.target_type == RuleTargetType.GLOBAL.value:
        return True

    ids = parse_target_ids(rule.target_value)
    if rule.target_type == RuleTargetType.PRODUCT.value:
        return product.product_id in ids
    if rule.target_type == RuleTargetType.CATEGORY.value:
        return product.category_id is not None and product.category_id in ids
    if rule.target_type == RuleTargetType.SUBCATEGORY.value:
        return product.subcategory_id is not None and product.subcategory_id in ids
    raise ValueError(f"Unknown rule target type: {rule.target_type}")


def _best_match(event: ActiveEventSnapshot, product: ProductRef) -> EventMatch | None:
    """Find the most specific way an event reaches a product."""
    for link in event.products:
        if link.product_id == product.product_id:
            return EventMatch(event=event, kind=MatchKind.DIRECT_PRODUCT, event_product=link)

    if not event.rules and not event.products:
        return EventMatch(event=event, kind=MatchKind.GLOBAL)

    best: EventMatch | None = None
    for rule in event.rules:
        try:
            matched = _rule_matches(rule, product)
        except ValueError:
            logger.warning(
                "Skipping rule %s of event %s: unparseable target %r",
                rule.id,
                event.id,
                rule.target_value,
            )
            continue
        if not matched:
            continue
        kind = _RULE_MATCH_KIND[rule.target_type]
        # Rules arrive highest priority first, so the first of a kind wins.
        if best is None or kind > best.kind:
            best = EventMatch(event=event, kind=kind, rule=rule)
    return best


def is_event_live(event: ActiveEventSnapshot, now: datetime) -> bool:
    """Check the inclusive date window and the civil daily time slot."""
    if not is_within_window(now, event.start_date, event.end_date):
        return False
    return is_within_slot(civil_time_of_day(now), event.active_slot_start, event.active_slot_end)


def _selection_key(match: EventMatch) -> tuple:
    created_at = ensure_utc(match.event.created_at) if match.event.created_at else _EPOCH
    return (-match.event.priority, -int(match.kind), created_at, str(match.event.id))


def resolve_event(
    events: Sequence[ActiveEventSnapshot],
    product: ProductRef,
    now: datetime,
    excluded_event_ids: Iterable[UUID] = (),
) -> EventMatch | None:
    """Select the single applicable event for a product at ``now``.

    Highest priority wins, then the most specific match
    (direct product > product rule > subcategory > category > global),
    then the earliest created event. Returns None when nothing applies or
    when the event data cannot be evaluated.
    """
    excluded = set(excluded_event_ids)
    try:
        candidates = []
        for event in events:
            if event.id in excluded or not is_event_live(event, now):
                continue
            match = _best_match(event, product)
            if match is not None:
                candidates.append(match)

        if not candidates:
            return None

        candidates.sort(key=_selection_key)
        chosen = candidates[0]
        logger.debug(
            "Product %s resolved to event %s (priority=%s, match=%s)",
            product.product_id,
            chosen.event.id,
            chosen.event.priority,
            chosen.kind.name,
        )
        return chosen
    except Exception:
        logger.exception("Event resolution failed for product %s", product.product_id)
        return None


class EventEligibilityResolver:
    """Loads activated events (through the cache) and resolves them per product."""

    def __init__(self, db: Session, cache: Cache):
        self.db = db
        self.cache = cache
        self.event_repo = PromotionEventRepository(db)

    def load_active_events(self, now: datetime | None = None) -> list[ActiveEventSnapshot]:
        """Return activated, not-yet-ended events, from cache when possible.

        Raises:
            UpstreamUnavailableError: If the cache misses and the store fails.
        """
        now = now or datetime.now(UTC)

        cached = self.cache.get(ACTIVE_EVENTS_CACHE_KEY)
        if cached is not None:
            try:
                return ActiveEventsSnapshot.model_validate_json(cached).events
            except ValueError:
                logger.warning("Discarding unreadable active events cache entry")

        try:
            events = self._load_from_store(now)
        except SQLAlchemyError as exc:
            raise UpstreamUnavailableError("Promotion store is unavailable") from exc

        snapshot = ActiveEventsSnapshot(events=events, loaded_at=now)
        self.cache.set(
            ACTIVE_EVENTS_CACHE_KEY,
            snapshot.model_dump_json(),
            settings.ACTIVE_EVENTS_CACHE_TTL_SECONDS,
        )
        return events

    def _load_from_store(self, now: datetime) -> list[ActiveEventSnapshot]:
        rows = self.event_repo.get_activated(now)
        event_ids = [row.id for row in rows]
        rules = self.event_repo.get_rules_for_events(event_ids)  # type: ignore[arg-type]
        links = self.event_repo.get_products_for_events(event_ids)  # type: ignore[arg-type]

        events = []
        for row in rows:
            snapshot = ActiveEventSnapshot.model_validate(row)
            snapshot.rules = [EventRuleSnapshot.model_validate(r) for r in rules.get(row.id, [])]  # type: ignore[call-overload]
            snapshot.products = [
                EventProductSnapshot.model_validate(link) for link in links.get(row.id, [])  # type: ignore[call-overload]
            ]
            events.append(snapshot)
        return events

    def excluded_event_ids(
        self, events: Sequence[ActiveEventSnapshot], user_id: UUID | None = None
    ) -> set[UUID]:
        """IDs of events exhausted globally or for this user, read from the database."""
        return self.event_repo.get_exhausted_ids([event.id for event in events], user_id)

    def resolve(
        self,
        product: ProductRef,
        now: datetime | None = None,
        user_id: UUID | None = None,
    ) -> EventMatch | None:
        """Resolve the event for one product. Never raises."""
        now = now or datetime.now(UTC)
        try:
            events = self.load_active_events(now)
            excluded = self.excluded_event_ids(events, user_id)
        except (UpstreamUnavailableError, SQLAlchemyError):
            logger.warning("Promotion store unavailable; resolving %s without events", product.product_id)
            return None
        return resolve_event(events, product, now, excluded)
