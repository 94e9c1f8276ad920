"""Product, cart and order dataclasses for the ecommerce store."""

from __future__ import annotations

from dataclasses import dataclass, asdict


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    price: float
    description: str | None = None
    category: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        """Build a product from the store API payload."""
        return cls(
            id=int(data["id"]),
            name=str(data.get("name") or data.get("title") or ""),
            price=float(data.get("price", 0)),
            description=data.get("description"),
            category=data.get("category"),
        )

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class CartItem:
    productId: int
    quantity: int

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        return cls(productId=int(data["productId"]), quantity=int(data["quantity"]))

    def to_dict(self) -> dict:
        return {"productId": self.productId, "quantity": self.quantity}


@dataclass
class Order:
    id: str
    items: list[CartItem]
    total: float
    customerEmail: str | None = None
    status: str = "pending"

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "status": self.status,
        }
        if self.customerEmail:
            data["customerEmail"] = self.customerEmail
        return data


# Served whenever the store API cannot be reached.
MOCK_PRODUCTS: tuple[Product, ...] = (
    Product(id=1, name="Blue Shirt", price=29.99, category="clothing"),
    Product(id=2, name="Red Pants", price=49.99, category="clothing"),
    Product(id=3, name="Black Shoes", price=79.99, category="footwear"),
    Product(id=4, name="White Hat", price=19.99, category="accessories"),
    Product(id=5, name="Green Jacket", price=99.99, category="clothing"),
)
