"""Error kinds raised by the pricing engine.

"Not eligible" outcomes (an expired promo code, an unmet minimum order) are
not exceptions. They are reported as reason strings on result objects.
"""


class PricingError(Exception):
    """Base class for pricing engine errors."""


class PromotionValidationError(PricingError):
    """Input has the wrong shape: a missing code, a malformed civil date string."""


class NotFoundError(PricingError):
    """A referenced event, promo code, order or configuration does not exist."""


class ConcurrencyConflictError(PricingError):
    """A usage counter could not be incremented because the limit was reached.

    Raised when a concurrent confirmation consumed the last remaining use.
    Callers should tell the user the promotion was exhausted rather than retry.
    """

    def __init__(self, message: str = "Promotion was exhausted moments ago"):
        super().__init__(message)


class UpstreamUnavailableError(PricingError):
    """The promotion or shipping store could not be reached."""


class CheckoutError(PricingError):
    """An order cannot be placed. ``reasons`` are suitable for direct display."""

    def __init__(self, reasons: list[str]):
        super().__init__("; ".join(reasons))
        self.reasons = reasons
