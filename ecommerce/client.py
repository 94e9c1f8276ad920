"""EcommerceClient - async REST client for the demo store, with a mock fallback."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import aiohttp

from ecommerce.models import MOCK_PRODUCTS, CartItem, Order, Product

logger = logging.getLogger(__name__)


class StoreAPIError(Exception):
    """Raised when the store API answers with a non-OK status."""
    pass


class EcommerceClient:
    """
    Client for the store's product and order endpoints.

    Product listing degrades to MOCK_PRODUCTS and order creation degrades to a
    locally computed pending order, so neither ever fails the caller on a
    transport error.
    """

    def __init__(self, base_url: str, se_param: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.se_param = se_param
        self.timeout = timeout

    async def get_products(self) -> list[Product]:
        """Get list of available products. GET /api/products"""
        try:
            data = await self._get_json("/api/products")
            if not isinstance(data, list):
                raise StoreAPIError(f"Unexpected products payload: {type(data).__name__}")
            return [Product.from_dict(p) for p in data]
        except (aiohttp.ClientError, asyncio.TimeoutError, StoreAPIError, KeyError, ValueError) as e:
            logger.warning("Error fetching products, using mock catalog: %s", e)
            return list(MOCK_PRODUCTS)

    async def search_products(self, query: str) -> list[Product]:
        """Case-insensitive substring search on product name or category."""
        products = await self.get_products()
        needle = query.lower()
        return [
            p for p in products
            if needle in p.name.lower() or (p.category and needle in p.category.lower())
        ]

    async def get_product_by_id(self, product_id: int) -> Product | None:
        products = await self.get_products()
        for product in products:
            if product.id == product_id:
                return product
        return None

    async def create_order(
        self,
        items: list[CartItem],
        customer_email: str | None = None,
    ) -> Order:
        """Create an order. POST /api/orders"""
        products = await self.get_products()
        order = Order(
            id=f"ORDER-{int(time.time() * 1000)}",
            items=list(items),
            total=self.order_total(items, products),
            customerEmail=customer_email,
            status="pending",
        )

        try:
            data = await self._post_json("/api/orders", order.to_dict())
        except (aiohttp.ClientError, asyncio.TimeoutError, StoreAPIError, ValueError) as e:
            logger.warning("Error creating order %s, returning local order: %s", order.id, e)
            return order

        if isinstance(data, dict):
            return self._merge_order(order, data)
        return order

    @staticmethod
    def order_total(items: list[CartItem], products: list[Product]) -> float:
        """Sum price x quantity over items found in the catalog; unknown ids add nothing."""
        prices = {p.id: p.price for p in products}
        total = sum(prices.get(item.productId, 0.0) * item.quantity for item in items)
        return round(total, 2)

    @staticmethod
    def _merge_order(order: Order, data: dict) -> Order:
        """Overlay fields from the store's response onto the local order."""
        merged = order.to_dict()
        merged.update({k: v for k, v in data.items() if v is not None})
        items = order.items
        if isinstance(data.get("items"), list):
            try:
                items = [CartItem.from_dict(i) for i in data["items"]]
            except (KeyError, TypeError, ValueError):
                items = order.items
        try:
            total = float(merged.get("total", order.total))
        except (TypeError, ValueError):
            total = order.total
        return Order(
            id=str(merged.get("id", order.id)),
            items=items,
            total=total,
            customerEmail=merged.get("customerEmail"),
            status=str(merged.get("status", order.status)),
        )

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _params(self) -> dict[str, str]:
        return {"se": self.se_param}

    async def _get_json(self, path: str) -> Any:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(self._url(path), params=self._params()) as resp:
                if resp.status != 200:
                    raise StoreAPIError(f"HTTP error! status: {resp.status}")
                return await resp.json(content_type=None)

    async def _post_json(self, path: str, payload: dict) -> Any:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(
                self._url(path),
                params=self._params(),
                json=payload,
            ) as resp:
                if resp.status >= 400:
                    raise StoreAPIError(f"HTTP error! status: {resp.status}")
                return await resp.json(content_type=None)
