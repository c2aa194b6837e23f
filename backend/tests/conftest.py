"""Shared test fixtures for all test modules."""

import contextlib
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.core import cache as cache_module
from storefront.core import database as db_module
from storefront.core.cache import Cache
from storefront.core.database import Base, get_db
from storefront.models.cart_item import CartItem
from storefront.models.product import Product
from storefront.models.promo_code import PromoCode, PromoCodeType
from storefront.models.promotion_event import EventStatus, PromotionEvent
from storefront.models.shipping_configuration import ShippingConfiguration
from storefront.repositories.product_repository import ProductRepository
from storefront.repositories.promo_code_repository import PromoCodeRepository
from storefront.repositories.promotion_event_repository import PromotionEventRepository
from storefront.repositories.shipping_configuration_repository import (
    ShippingConfigurationRepository,
)
from storefront.schemas.product import ProductCreate
from storefront.schemas.promo_code import PromoCodeCreate
from storefront.schemas.promotion_event import PromotionEventCreate
from storefront.schemas.shipping import ShippingConfigurationCreate

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

# Wednesday 2026-01-07 11:45 in Nepal: not a weekend, not a holiday.
NOW = datetime(2026, 1, 7, 6, 0, tzinfo=UTC)
USER_ID = UUID("00000000-0000-0000-0000-0000000000a1")
OTHER_USER_ID = UUID("00000000-0000-0000-0000-0000000000b2")

# API requests price against the real clock; fixtures for them use this window.
OPEN_START = datetime(2020, 1, 1, tzinfo=UTC)
OPEN_END = datetime(2099, 12, 31, tzinfo=UTC)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database, and swaps the Redis cache for a null
    cache so no test needs a running Redis.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    original_cache = cache_module._cache
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal
    cache_module._cache = Cache(None)

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session
    cache_module._cache = original_cache


@pytest.fixture
def session_factory():
    """The sessionmaker bound to the test database, for multi-session tests."""
    return _TestSessionLocal


@pytest.fixture
def db_session():
    """Create a database session for direct repository testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def null_cache():
    return Cache(None)


@pytest.fixture
def make_product(db_session):
    """Factory for catalog products."""

    def _make(
        market_price: str = "1000",
        discount_price: str | None = None,
        category_id: UUID | None = None,
        subcategory_id: UUID | None = None,
        stock_quantity: int = 50,
        name: str | None = None,
    ) -> Product:
        return ProductRepository(db_session).create(
            ProductCreate(
                name=name or f"Product {uuid4().hex[:6]}",
                market_price=Decimal(market_price),
                discount_price=Decimal(discount_price) if discount_price else None,
                category_id=category_id,
                subcategory_id=subcategory_id,
                stock_quantity=stock_quantity,
            )
        )

    return _make


@pytest.fixture
def make_event(db_session):
    """Factory for promotion events, activated unless told otherwise.

    ``start``/``end`` are UTC instants; they default to a window around NOW.
    """

    def _make(
        discount_value: str = "10",
        promotion_type: str = "percentage",
        start: datetime | None = None,
        end: datetime | None = None,
        activate: bool = True,
        **fields,
    ) -> PromotionEvent:
        data = PromotionEventCreate(
            name=fields.pop("name", f"Event {uuid4().hex[:6]}"),
            promotion_type=promotion_type,
            discount_value=Decimal(discount_value),
            start_date="2000-01-01T00:00:00",
            end_date="2000-01-02T00:00:00",
            **fields,
        )
        repo = PromotionEventRepository(db_session)
        event = repo.create(
            data,
            start or NOW - timedelta(days=1),
            end or NOW + timedelta(days=1),
        )
        if activate:
            event = repo.set_status(event, EventStatus.ACTIVE)
        return event

    return _make


@pytest.fixture
def make_promo_code(db_session):
    """Factory for promo codes valid around NOW."""

    def _make(
        code: str = "SAVE10",
        promo_type: PromoCodeType = PromoCodeType.PERCENTAGE,
        discount_value: str = "10",
        start: datetime | None = None,
        end: datetime | None = None,
        **fields,
    ) -> PromoCode:
        data = PromoCodeCreate(
            code=code,
            promo_type=promo_type,
            discount_value=Decimal(discount_value),
            start_date="2000-01-01T00:00:00",
            end_date="2000-01-02T00:00:00",
            **fields,
        )
        return PromoCodeRepository(db_session).create(
            data,
            start or NOW - timedelta(days=1),
            end or NOW + timedelta(days=1),
        )

    return _make


@pytest.fixture
def make_shipping_config(db_session):
    """Factory for shipping configurations (default and active)."""

    def _make(**fields) -> ShippingConfiguration:
        values = {
            "name": "Standard",
            "is_default": True,
            "low_order_threshold": Decimal("1000"),
            "low_order_shipping_cost": Decimal("150"),
            "high_order_shipping_cost": Decimal("100"),
            "free_shipping_threshold": Decimal("5000"),
        }
        values.update(fields)
        return ShippingConfigurationRepository(db_session).create(
            ShippingConfigurationCreate(**values), None, None
        )

    return _make


@pytest.fixture
def add_to_cart(db_session):
    """Factory for cart lines with an open reservation at NOW."""

    def _add(
        product: Product,
        quantity: int = 1,
        user_id: UUID = USER_ID,
        priced_at: datetime = NOW,
        ttl: timedelta = timedelta(minutes=30),
    ) -> CartItem:
        item = CartItem(
            user_id=user_id,
            product_id=product.id,
            quantity=quantity,
            priced_at=priced_at,
            expires_at=priced_at + ttl,
        )
        db_session.add(item)
        db_session.commit()
        db_session.refresh(item)
        return item

    return _add
