"""Shipping configuration repository for data access."""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from storefront.models.shipping_configuration import ShippingConfiguration
from storefront.schemas.shipping import ShippingConfigurationCreate


class ShippingConfigurationRepository:
    """Repository for ShippingConfiguration model."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(self, skip: int = 0, limit: int = 100) -> list[ShippingConfiguration]:
        return (
            self.db.query(ShippingConfiguration)
            .filter(ShippingConfiguration.is_deleted.is_(False))
            .order_by(ShippingConfiguration.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_by_id(self, config_id: UUID) -> ShippingConfiguration | None:
        return (
            self.db.query(ShippingConfiguration)
            .filter(
                ShippingConfiguration.id == config_id,
                ShippingConfiguration.is_deleted.is_(False),
            )
            .first()
        )

    def get_active(self) -> ShippingConfiguration | None:
        """Get the active default configuration, else the most recent active one."""
        base = self.db.query(ShippingConfiguration).filter(
            ShippingConfiguration.is_active.is_(True),
            ShippingConfiguration.is_deleted.is_(False),
        )
        default = base.filter(ShippingConfiguration.is_default.is_(True)).first()
        if default:
            return default
        return base.order_by(ShippingConfiguration.created_at.desc()).first()

    def create(
        self,
        data: ShippingConfigurationCreate,
        free_shipping_start_date: datetime | None,
        free_shipping_end_date: datetime | None,
    ) -> ShippingConfiguration:
        """Create a configuration; a new default replaces the previous one."""
        if data.is_default:
            self._clear_default()

        config = ShippingConfiguration(
            **data.model_dump(exclude={"free_shipping_start_date", "free_shipping_end_date"}),
            free_shipping_start_date=free_shipping_start_date,
            free_shipping_end_date=free_shipping_end_date,
        )
        self.db.add(config)
        self.db.commit()
        self.db.refresh(config)
        return config

    def set_default(self, config: ShippingConfiguration) -> ShippingConfiguration:
        self._clear_default()
        config.is_default = True  # type: ignore[assignment]
        config.is_active = True  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(config)
        return config

    def soft_delete(self, config: ShippingConfiguration) -> ShippingConfiguration:
        config.is_deleted = True  # type: ignore[assignment]
        config.is_active = False  # type: ignore[assignment]
        config.is_default = False  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(config)
        return config

    def _clear_default(self) -> None:
        self.db.query(ShippingConfiguration).filter(
            ShippingConfiguration.is_default.is_(True)
        ).update({ShippingConfiguration.is_default: False}, synchronize_session=False)
