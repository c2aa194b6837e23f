"""Product repository for data access."""

from uuid import UUID

from sqlalchemy.orm import Session

from storefront.models.product import Product
from storefront.schemas.product import ProductCreate


class ProductRepository:
    """Repository for Product model."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, product_id: UUID) -> Product | None:
        """Get a product by ID, ignoring soft-deleted products."""
        return (
            self.db.query(Product)
            .filter(Product.id == product_id, Product.is_deleted.is_(False))
            .first()
        )

    def get_by_ids(self, product_ids: list[UUID]) -> dict[UUID, Product]:
        """Get products keyed by ID."""
        if not product_ids:
            return {}
        products = (
            self.db.query(Product)
            .filter(Product.id.in_(product_ids), Product.is_deleted.is_(False))
            .all()
        )
        return {product.id: product for product in products}  # type: ignore[misc]

    def create(self, data: ProductCreate) -> Product:
        """Create a new product."""
        product = Product(
            name=data.name,
            market_price=data.market_price,
            discount_price=data.discount_price,
            category_id=data.category_id,
            subcategory_id=data.subcategory_id,
            stock_quantity=data.stock_quantity,
        )
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def decrement_stock(self, product_id: UUID, quantity: int) -> bool:
        """Take ``quantity`` units out of stock if enough remain.

        Does not commit; the caller owns the transaction.
        """
        updated = (
            self.db.query(Product)
            .filter(Product.id == product_id, Product.stock_quantity >= quantity)
            .update(
                {Product.stock_quantity: Product.stock_quantity - quantity},
                synchronize_session=False,
            )
        )
        return bool(updated)

    def increment_stock(self, product_id: UUID, quantity: int) -> None:
        """Return ``quantity`` units to stock. Does not commit."""
        self.db.query(Product).filter(Product.id == product_id).update(
            {Product.stock_quantity: Product.stock_quantity + quantity},
            synchronize_session=False,
        )
