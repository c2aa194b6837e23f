"""Shipping cost calculation and shipping configuration management."""

import logging
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.core.cache import Cache
from storefront.core.config import settings
from storefront.core.exceptions import NotFoundError, PromotionValidationError, UpstreamUnavailableError
from storefront.models.shared import ensure_utc
from storefront.models.shipping_configuration import ShippingConfiguration
from storefront.repositories.shipping_configuration_repository import (
    ShippingConfigurationRepository,
)
from storefront.schemas.shipping import (
    Coordinates,
    ShippingConfigSnapshot,
    ShippingConfigurationCreate,
)
from storefront.services.discounts import ZERO, format_rupees, quantize_money
from storefront.services.nepal_time import civil_date, civil_to_utc

logger = logging.getLogger(__name__)

SHIPPING_CONFIG_CACHE_KEY = "shipping_config_active"
EARTH_RADIUS_KM = 6371.0

WEEKEND_DAYS = {5, 6}  # Saturday, Sunday


@dataclass
class AppliedSurcharge:
    label: str
    amount: Decimal


@dataclass
class ShippingResult:
    is_available: bool
    shipping_cost: Decimal = ZERO
    base_cost: Decimal = ZERO
    is_free_shipping: bool = False
    surcharges: list[AppliedSurcharge] = field(default_factory=list)
    applied_promotions: list[str] = field(default_factory=list)
    estimated_delivery_days: int | None = None
    delivery_estimate: str | None = None
    shipping_reason: str | None = None
    customer_message: str | None = None
    configuration_id: UUID | None = None
    distance_km: float | None = None


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def is_free_shipping_promotion_active(config: ShippingConfigSnapshot, now: datetime) -> bool:
    """Check the time-bound free-shipping promotion. Missing bounds are open."""
    if not config.is_free_shipping_active:
        return False
    if config.free_shipping_start_date and ensure_utc(now) < ensure_utc(
        config.free_shipping_start_date
    ):
        return False
    if config.free_shipping_end_date and ensure_utc(now) > ensure_utc(
        config.free_shipping_end_date
    ):
        return False
    return True


def delivery_estimate_text(days: int) -> str:
    if days <= 1:
        return "Next day delivery"
    return f"Delivery in {days} days"


def calculate_shipping_cost(
    config: ShippingConfigSnapshot | None,
    subtotal: Decimal,
    now: datetime,
    coordinates: Coordinates | None = None,
    rush_requested: bool = False,
    holidays: set[tuple[int, int]] | None = None,
    origin: tuple[float, float] | None = None,
) -> ShippingResult:
    """Derive the shipping cost for an order.

    Base cost is zero during an active free-shipping promotion or at the
    free-shipping threshold, otherwise the low or high tier. Weekend, holiday
    and rush surcharges are added on top and are never waived.
    """
    if config is None:
        return ShippingResult(
            is_available=False, shipping_reason="Shipping is currently unavailable"
        )

    subtotal = quantize_money(subtotal)
    holidays = settings.shipping_holidays if holidays is None else holidays
    origin = origin or (settings.STORE_LATITUDE, settings.STORE_LONGITUDE)

    distance_km = None
    if coordinates is not None:
        distance_km = round(
            haversine_km(origin[0], origin[1], coordinates.latitude, coordinates.longitude), 2
        )
    if (
        config.require_location_validation
        and distance_km is not None
        and config.max_delivery_distance_km > 0
        and Decimal(str(distance_km)) > config.max_delivery_distance_km
    ):
        return ShippingResult(
            is_available=False,
            shipping_reason="Delivery not available in your area",
            configuration_id=config.id,
            distance_km=distance_km,
        )

    if config.min_order_amount_for_shipping > 0 and subtotal < config.min_order_amount_for_shipping:
        return ShippingResult(
            is_available=False,
            shipping_reason=(
                f"Minimum order amount of {format_rupees(config.min_order_amount_for_shipping)} "
                "required for delivery"
            ),
            configuration_id=config.id,
            distance_km=distance_km,
        )
    if config.max_order_amount_for_shipping > 0 and subtotal > config.max_order_amount_for_shipping:
        return ShippingResult(
            is_available=False,
            shipping_reason=(
                f"Orders above {format_rupees(config.max_order_amount_for_shipping)} "
                "cannot be shipped"
            ),
            configuration_id=config.id,
            distance_km=distance_km,
        )

    applied_promotions: list[str] = []
    if is_free_shipping_promotion_active(config, now):
        base_cost = ZERO
        is_free = True
        reason = config.free_shipping_description or "Free shipping promotion"
        applied_promotions.append(reason)
    elif config.free_shipping_threshold > 0 and subtotal >= config.free_shipping_threshold:
        base_cost = ZERO
        is_free = True
        reason = f"Free shipping on orders above {format_rupees(config.free_shipping_threshold)}"
    elif subtotal < config.low_order_threshold:
        base_cost = quantize_money(config.low_order_shipping_cost)
        is_free = False
        reason = f"Standard shipping for orders below {format_rupees(config.low_order_threshold)}"
    else:
        base_cost = quantize_money(config.high_order_shipping_cost)
        is_free = False
        reason = "Standard shipping"

    today = civil_date(now)
    surcharges: list[AppliedSurcharge] = []
    if today.weekday() in WEEKEND_DAYS and config.weekend_surcharge > 0:
        surcharges.append(AppliedSurcharge("Weekend delivery", quantize_money(config.weekend_surcharge)))
    if (today.month, today.day) in holidays and config.holiday_surcharge > 0:
        surcharges.append(AppliedSurcharge("Holiday delivery", quantize_money(config.holiday_surcharge)))
    if rush_requested and config.rush_delivery_surcharge > 0:
        surcharges.append(AppliedSurcharge("Rush delivery", quantize_money(config.rush_delivery_surcharge)))

    days = config.estimated_delivery_days
    if rush_requested:
        days = max(1, days - 1)

    return ShippingResult(
        is_available=True,
        shipping_cost=base_cost + sum((s.amount for s in surcharges), ZERO),
        base_cost=base_cost,
        is_free_shipping=is_free,
        surcharges=surcharges,
        applied_promotions=applied_promotions,
        estimated_delivery_days=days,
        delivery_estimate=delivery_estimate_text(days),
        shipping_reason=reason,
        customer_message=config.customer_message,
        configuration_id=config.id,
        distance_km=distance_km,
    )


class ShippingService:
    """Service for shipping quotes and shipping configuration administration."""

    def __init__(self, db: Session, cache: Cache):
        self.db = db
        self.cache = cache
        self.config_repo = ShippingConfigurationRepository(db)

    def get_active_configuration(self) -> ShippingConfigSnapshot | None:
        """Return the active configuration, from cache when possible.

        Raises:
            UpstreamUnavailableError: If the cache misses and the store fails.
        """
        cached = self.cache.get(SHIPPING_CONFIG_CACHE_KEY)
        if cached is not None:
            try:
                return ShippingConfigSnapshot.model_validate_json(cached)
            except ValueError:
                logger.warning("Discarding unreadable shipping configuration cache entry")

        try:
            config = self.config_repo.get_active()
        except SQLAlchemyError as exc:
            raise UpstreamUnavailableError("Shipping store is unavailable") from exc
        if config is None:
            return None

        snapshot = ShippingConfigSnapshot.model_validate(config)
        self.cache.set(
            SHIPPING_CONFIG_CACHE_KEY,
            snapshot.model_dump_json(),
            settings.SHIPPING_CONFIG_CACHE_TTL_SECONDS,
        )
        return snapshot

    def calculate_shipping(
        self,
        subtotal: Decimal,
        coordinates: Coordinates | None = None,
        rush_requested: bool = False,
        now: datetime | None = None,
    ) -> ShippingResult:
        """Quote shipping for an order subtotal using the active configuration."""
        now = now or datetime.now(UTC)
        config = self.get_active_configuration()
        result = calculate_shipping_cost(config, subtotal, now, coordinates, rush_requested)
        logger.debug(
            "Shipping for subtotal %s: available=%s cost=%s",
            subtotal,
            result.is_available,
            result.shipping_cost,
        )
        return result

    def create_configuration(self, data: ShippingConfigurationCreate) -> ShippingConfiguration:
        """Create a configuration, converting civil free-shipping dates to UTC."""
        start = civil_to_utc(data.free_shipping_start_date) if data.free_shipping_start_date else None
        end = civil_to_utc(data.free_shipping_end_date) if data.free_shipping_end_date else None
        if start and end and end <= start:
            raise PromotionValidationError("Free shipping end date must be after the start date")

        config = self.config_repo.create(data, start, end)
        self.cache.invalidate(SHIPPING_CONFIG_CACHE_KEY)
        logger.info("Created shipping configuration %s (default=%s)", config.id, config.is_default)
        return config

    def set_default(self, config_id: UUID) -> ShippingConfiguration:
        config = self.config_repo.get_by_id(config_id)
        if not config:
            raise NotFoundError(f"Shipping configuration {config_id} not found")
        config = self.config_repo.set_default(config)
        self.cache.invalidate(SHIPPING_CONFIG_CACHE_KEY)
        logger.info("Shipping configuration %s is now the default", config_id)
        return config

    def delete_configuration(self, config_id: UUID) -> None:
        config = self.config_repo.get_by_id(config_id)
        if not config:
            raise NotFoundError(f"Shipping configuration {config_id} not found")
        self.config_repo.soft_delete(config)
        self.cache.invalidate(SHIPPING_CONFIG_CACHE_KEY)
