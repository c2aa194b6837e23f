from storefront.models.cart_item import CartItem
from storefront.models.order import Order, OrderItem, OrderStatus, UsageStatus
from storefront.models.product import Product
from storefront.models.promo_code import PromoCode, PromoCodeType
from storefront.models.promotion_event import (
    EventProduct,
    EventRule,
    EventStatus,
    PromotionEvent,
    PromotionType,
    RuleTargetType,
)
from storefront.models.shipping_configuration import ShippingConfiguration
from storefront.models.usage import EventUsage, PromoCodeUsage, PromotionUserUsage

__all__ = [
    "CartItem",
    "EventProduct",
    "EventRule",
    "EventStatus",
    "EventUsage",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Product",
    "PromoCode",
    "PromoCodeType",
    "PromoCodeUsage",
    "PromotionEvent",
    "PromotionType",
    "PromotionUserUsage",
    "RuleTargetType",
    "ShippingConfiguration",
    "UsageStatus",
]
