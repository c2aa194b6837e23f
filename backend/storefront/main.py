from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response

from storefront.core.config import settings
from storefront.routers import (
    cart,
    orders,
    products,
    promo_codes,
    promotion_events,
    shipping,
)

OPENAPI_TAGS = [
    {"name": "Products", "description": "Catalog products and single-product pricing."},
    {"name": "Promotion Events", "description": "Time-boxed promotion events and their rules."},
    {"name": "Promo Codes", "description": "Create, validate and track promo codes."},
    {"name": "Shipping", "description": "Shipping configurations and shipping quotes."},
    {"name": "Cart", "description": "Cart lines, reserved prices and price previews."},
    {"name": "Orders", "description": "Place orders and account promotion usage."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Promotion and pricing resolution API. "
        "Resolves event discounts, promo codes and shipping costs into "
        "line-level price breakdowns, and accounts promotion usage per order."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def options_handler(request: Request, call_next):  # type: ignore[no-untyped-def]
    if request.method == "OPTIONS":
        origin = request.headers.get("origin", "*")
        return Response(
            status_code=200,
            headers={
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Methods": "*",
                "Access-Control-Allow-Headers": "*",
                "Access-Control-Allow-Credentials": "true",
                "Access-Control-Max-Age": "86400",
            },
        )
    return await call_next(request)


app.include_router(products.router, prefix="/v1/products", tags=["Products"])
app.include_router(
    promotion_events.router,
    prefix="/v1/promotion_events",
    tags=["Promotion Events"],
)
app.include_router(promo_codes.router, prefix="/v1/promo_codes", tags=["Promo Codes"])
app.include_router(shipping.router, prefix="/v1/shipping", tags=["Shipping"])
app.include_router(cart.router, prefix="/v1/cart", tags=["Cart"])
app.include_router(orders.router, prefix="/v1/orders", tags=["Orders"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }
