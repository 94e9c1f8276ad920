"""Catalog tools: list, search and look up products."""

from tools.base_tool import Tool


class GetProductsTool(Tool):
    name = "get_products"
    description = "Get a list of all available products in the store"
    parameters = {
        "type": "object",
        "properties": {},
        "required": [],
    }

    async def execute(self, **kwargs) -> list[dict]:
        products = await self.client.get_products()
        return [p.to_dict() for p in products]


class SearchProductsTool(Tool):
    name = "search_products"
    description = "Search for products by name or category"
    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "The search query (product name or category)",
            },
        },
        "required": ["query"],
    }

    async def execute(self, **kwargs) -> list[dict]:
        query = str(kwargs["query"])
        products = await self.client.search_products(query)
        return [p.to_dict() for p in products]


class GetProductDetailsTool(Tool):
    name = "get_product_details"
    description = "Get detailed information about a specific product by its ID"
    parameters = {
        "type": "object",
        "properties": {
            "productId": {
                "type": "number",
                "description": "The ID of the product",
            },
        },
        "required": ["productId"],
    }

    async def execute(self, **kwargs) -> dict | None:
        # Models often send numbers as strings or floats ("3", 3.0).
        product_id = int(float(kwargs["productId"]))
        product = await self.client.get_product_by_id(product_id)
        return product.to_dict() if product else None
