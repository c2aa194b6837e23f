from storefront.schemas.cart import (
    ApplyCartPromoRequest,
    CartItemCreate,
    CartItemResponse,
    CartItemUpdate,
)
from storefront.schemas.order import (
    CancellationResponse,
    OrderDetailResponse,
    OrderItemResponse,
    OrderResponse,
    PlaceOrderRequest,
    UsageConfirmationResponse,
)
from storefront.schemas.pricing import (
    CartLineResponse,
    CartPreviewRequest,
    CartPricingResponse,
    PriceBreakdownResponse,
)
from storefront.schemas.product import ProductCreate, ProductResponse
from storefront.schemas.promo_code import (
    PromoApplicationResponse,
    PromoCodeCreate,
    PromoCodeResponse,
    PromoCodeUsageResponse,
    PromoCodeUsageSummary,
    ValidatePromoCodeRequest,
)
from storefront.schemas.promotion_event import (
    ActiveEventSnapshot,
    ActiveEventsSnapshot,
    EventProductCreate,
    EventRuleCreate,
    PromotionEventCreate,
    PromotionEventDetailResponse,
    PromotionEventResponse,
)
from storefront.schemas.shipping import (
    Coordinates,
    ShippingConfigSnapshot,
    ShippingConfigurationCreate,
    ShippingConfigurationResponse,
    ShippingQuoteRequest,
    ShippingQuoteResponse,
)

__all__ = [
    "ActiveEventSnapshot",
    "ActiveEventsSnapshot",
    "ApplyCartPromoRequest",
    "CancellationResponse",
    "CartItemCreate",
    "CartItemResponse",
    "CartItemUpdate",
    "CartLineResponse",
    "CartPreviewRequest",
    "CartPricingResponse",
    "Coordinates",
    "EventProductCreate",
    "EventRuleCreate",
    "OrderDetailResponse",
    "OrderItemResponse",
    "OrderResponse",
    "PlaceOrderRequest",
    "PriceBreakdownResponse",
    "ProductCreate",
    "ProductResponse",
    "PromoApplicationResponse",
    "PromoCodeCreate",
    "PromoCodeResponse",
    "PromoCodeUsageResponse",
    "PromoCodeUsageSummary",
    "PromotionEventCreate",
    "PromotionEventDetailResponse",
    "PromotionEventResponse",
    "ShippingConfigSnapshot",
    "ShippingConfigurationCreate",
    "ShippingConfigurationResponse",
    "ShippingQuoteRequest",
    "ShippingQuoteResponse",
    "UsageConfirmationResponse",
    "ValidatePromoCodeRequest",
]
