# data models: read-only catalog projections (dataclasses) and persisted/wire shapes (pydantic)

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from utils.money import format_price, parse_price

PLACEHOLDER_NAME = "Unnamed product"
PLACEHOLDER_IMAGE = "/placeholder.svg?height=200&width=200"
UNCATEGORIZED = "uncategorized"

StockStatus = Literal["instock", "outofstock"]
ProductId = Union[int, str]


@dataclass(frozen=True)
class Product:
    id: ProductId
    name: str
    price: str
    regular_price: str
    sale_price: Optional[str]
    stock_status: StockStatus
    image: str
    category: str
    slug: str
    description: List[str] = field(default_factory=list)  # plain-text paragraphs

    @property
    def on_sale(self) -> bool:
        return self.sale_price is not None

    @property
    def in_stock(self) -> bool:
        return self.stock_status == "instock"

    @property
    def effective_price(self) -> str:
        """Display price charged for the product: sale price when present."""
        return self.sale_price if self.sale_price is not None else self.price

    @property
    def unit_price(self) -> Decimal:
        return parse_price(self.effective_price)

    @property
    def price_label(self) -> str:
        return format_price(self.unit_price)

    @property
    def regular_price_label(self) -> str:
        return format_price(parse_price(self.regular_price))


@dataclass(frozen=True)
class CategoryFacet:
    name: str
    count: int


class CartItem(BaseModel):
    """One cart line. Mutated in place by the cart store; persisted as JSON."""

    id: ProductId
    name: str
    price: str = Field(description="Display price copied from the product")
    image: str = PLACEHOLDER_IMAGE
    category: str = UNCATEGORIZED
    quantity: int = Field(default=1, ge=1)

    @property
    def unit_price(self) -> Decimal:
        return parse_price(self.price)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @classmethod
    def from_product(cls, product: Product) -> "CartItem":
        return cls(
            id=product.id,
            name=product.name,
            price=product.effective_price,
            image=product.image,
            category=product.category,
            quantity=1,
        )


class CheckoutLine(BaseModel):
    id: ProductId
    name: str
    price: float
    quantity: int
    image: str
    category: str


class CheckoutRequest(BaseModel):
    """Body of ``POST /checkout``."""

    token: Optional[str] = None
    items: List[CheckoutLine]
    total: float
    currency: str
    timestamp: str


class CheckoutMarker(BaseModel):
    """Snapshot kept while the user is away at the payment gateway."""

    cart: List[CartItem]
    timestamp: str
    url: Optional[str] = None
