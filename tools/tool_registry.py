"""Static registry of the store tools offered to the model."""

from tools.base_tool import Tool
from tools.orders import PlaceOrderTool
from tools.products import GetProductDetailsTool, GetProductsTool, SearchProductsTool

ECOMMERCE_TOOLS: tuple[type[Tool], ...] = (
    GetProductsTool,
    SearchProductsTool,
    GetProductDetailsTool,
    PlaceOrderTool,
)


class ToolRegistry:
    """
    Ordered, read-only set of tool classes.

    The schema list is built once and the same object is handed to the model
    on every exchange.
    """

    def __init__(self, tool_classes: tuple[type[Tool], ...] = ECOMMERCE_TOOLS):
        self._tool_classes: dict[str, type[Tool]] = {}
        for cls in tool_classes:
            if not cls.name:
                raise ValueError(f"Tool {cls.__name__} has no name")
            if cls.name in self._tool_classes:
                raise ValueError(f"Duplicate tool name: {cls.name}")
            self._tool_classes[cls.name] = cls
        self._schemas: list[dict] = [cls.schema() for cls in self._tool_classes.values()]

    def get_tool_class(self, name: str) -> type[Tool] | None:
        return self._tool_classes.get(name)

    @property
    def tool_names(self) -> list[str]:
        """Registered tool names, in registration order."""
        return list(self._tool_classes)

    @property
    def tool_schemas(self) -> list[dict]:
        return self._schemas

    def __len__(self) -> int:
        return len(self._tool_classes)

    def __contains__(self, name: str) -> bool:
        return name in self._tool_classes

    def get_tool_descriptions(self) -> str:
        """Markdown listing of all tools for the system prompt."""
        return "\n".join(
            f"- {cls.name}: {cls.description}" for cls in self._tool_classes.values()
        )
