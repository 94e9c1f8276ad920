"""Order placement tool."""

from ecommerce.models import CartItem
from tools.base_tool import Tool


class PlaceOrderTool(Tool):
    name = "place_order"
    description = (
        "Place an order with the specified items. "
        "Each item should have a productId and quantity."
    )
    parameters = {
        "type": "object",
        "properties": {
            "items": {
                "type": "array",
                "description": "Array of items to order",
                "items": {
                    "type": "object",
                    "properties": {
                        "productId": {
                            "type": "number",
                            "description": "The ID of the product",
                        },
                        "quantity": {
                            "type": "number",
                            "description": "The quantity to order",
                        },
                    },
                    "required": ["productId", "quantity"],
                },
            },
            "customerEmail": {
                "type": "string",
                "description": "Customer email address (optional)",
            },
        },
        "required": ["items"],
    }
    list_args = ("items",)

    async def execute(self, **kwargs) -> dict:
        items = [
            CartItem(productId=int(float(i["productId"])), quantity=int(float(i["quantity"])))
            for i in kwargs["items"]
        ]
        order = await self.client.create_order(items, kwargs.get("customerEmail") or None)
        return order.to_dict()
