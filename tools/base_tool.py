"""Abstract base class for all tools."""

from abc import ABC, abstractmethod
from typing import Any

from ecommerce.client import EcommerceClient


class Tool(ABC):
    """Base class for store tools. Each subclass wraps exactly one backend operation."""

    name: str = ""
    description: str = ""
    parameters: dict = {"type": "object", "properties": {}, "required": []}
    # Arguments declared as arrays; a malformed JSON string for one of these
    # decodes to an empty list instead of failing the call.
    list_args: tuple[str, ...] = ()

    def __init__(self, client: EcommerceClient):
        self.client = client

    @classmethod
    def required_args(cls) -> list[str]:
        return list(cls.parameters.get("required", []))

    @classmethod
    def schema(cls) -> dict:
        """Function descriptor in the shape Ollama expects under ``tools``."""
        return {
            "type": "function",
            "function": {
                "name": cls.name,
                "description": cls.description,
                "parameters": cls.parameters,
            },
        }

    @abstractmethod
    async def execute(self, **kwargs) -> Any:
        """Run the backend operation and return a JSON-serializable result."""
        ...
