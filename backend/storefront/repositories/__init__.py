from storefront.repositories.cart_item_repository import CartItemRepository
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.repositories.promo_code_repository import PromoCodeRepository
from storefront.repositories.promotion_event_repository import PromotionEventRepository
from storefront.repositories.shipping_configuration_repository import (
    ShippingConfigurationRepository,
)
from storefront.repositories.usage_repository import UsageRepository

__all__ = [
    "CartItemRepository",
    "OrderRepository",
    "ProductRepository",
    "PromoCodeRepository",
    "PromotionEventRepository",
    "ShippingConfigurationRepository",
    "UsageRepository",
]
