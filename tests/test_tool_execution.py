import json
import tempfile
import unittest

import aiohttp

from agent.config import TelemetryConfig
from agent.exceptions import (
    ArgumentDecodeError,
    BackendError,
    ToolExecutionError,
    UnknownToolError,
)
from agent.response import RawArguments
from agent.telemetry import STATUS_ERROR, STATUS_OK, Telemetry
from ecommerce.client import EcommerceClient
from tools.executor import ToolExecutor, normalize_arguments
from tools.orders import PlaceOrderTool
from tools.products import SearchProductsTool
from tools.tool_registry import ToolRegistry


class RecordingClient(EcommerceClient):
    """Offline store client that records every backend operation."""

    def __init__(self):
        super().__init__("http://store.invalid", "test")
        self.calls: list[str] = []

    async def _get_json(self, path):
        self.calls.append(f"GET {path}")
        raise aiohttp.ClientConnectionError("offline")

    async def _post_json(self, path, payload):
        self.calls.append(f"POST {path}")
        raise aiohttp.ClientConnectionError("offline")


class BrokenLookupClient(RecordingClient):
    async def get_product_by_id(self, product_id):
        raise RuntimeError("catalog exploded")


class TestToolExecution(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.telemetry = Telemetry(
            TelemetryConfig(enabled=False, log_dir=self._tmpdir.name), "sess"
        )
        self.client = RecordingClient()
        self.executor = ToolExecutor(ToolRegistry(), self.client, self.telemetry)

    def tearDown(self):
        self._tmpdir.cleanup()

    async def test_get_products_returns_mock_items(self):
        result = await self.executor.execute("get_products", {})
        self.assertEqual(len(result), 5)
        self.assertEqual(result[0], {"id": 1, "name": "Blue Shirt", "price": 29.99, "category": "clothing"})

        span = self.telemetry.spans[-1]
        self.assertEqual(span.name, "execute_tool get_products")
        self.assertEqual(span.status, STATUS_OK)
        self.assertEqual(span.attributes["gen_ai.tool.name"], "get_products")
        self.assertEqual(json.loads(span.attributes["gen_ai.tool.output"]), result)

    async def test_unknown_tool_never_reaches_backend(self):
        with self.assertRaises(UnknownToolError):
            await self.executor.execute("teleport", {"to": "mars"})

        self.assertEqual(self.client.calls, [])
        span = self.telemetry.spans[-1]
        self.assertEqual(span.status, STATUS_ERROR)
        self.assertEqual(span.status_message, "tool_execution_failed")
        self.assertEqual(span.attributes["gen_ai.tool.error"], "Unknown tool: teleport")
        self.assertIn("gen_ai.tool.error_stack", span.attributes)

        captured = self.telemetry.exceptions[-1]
        self.assertEqual(captured.tags["component"], "tool_execution")
        self.assertEqual(captured.tags["tool_name"], "teleport")
        self.assertEqual(captured.contexts["tool_context"]["failure_reason"], "Unknown tool: teleport")

    async def test_raw_string_arguments_are_decoded(self):
        result = await self.executor.execute("search_products", RawArguments('{"query": "hat"}'))
        self.assertEqual([p["name"] for p in result], ["White Hat"])

    async def test_undecodable_arguments_are_fatal(self):
        with self.assertRaises(ArgumentDecodeError):
            await self.executor.execute("search_products", RawArguments("{query: hat"))
        self.assertEqual(self.client.calls, [])

    async def test_items_string_is_decoded(self):
        order = await self.executor.execute(
            "place_order",
            {"items": '[{"productId": 1, "quantity": 2}, {"productId": 2, "quantity": 1}]',
             "customerEmail": "x@y.com"},
        )
        self.assertAlmostEqual(order["total"], 109.97, places=2)
        self.assertEqual(order["customerEmail"], "x@y.com")
        self.assertEqual(order["status"], "pending")

    async def test_malformed_items_degrade_to_empty_list(self):
        order = await self.executor.execute("place_order", {"items": "one blue shirt please"})
        self.assertEqual(order["items"], [])
        self.assertEqual(order["total"], 0)

    async def test_missing_required_argument(self):
        with self.assertRaises(ToolExecutionError):
            await self.executor.execute("search_products", {})
        self.assertEqual(self.client.calls, [])

    async def test_backend_failure_is_wrapped(self):
        executor = ToolExecutor(ToolRegistry(), BrokenLookupClient(), self.telemetry)
        with self.assertRaises(BackendError) as ctx:
            await executor.execute("get_product_details", {"productId": 3})

        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)
        self.assertEqual(self.telemetry.spans[-1].status, STATUS_ERROR)

    async def test_product_id_as_string(self):
        result = await self.executor.execute("get_product_details", {"productId": "3"})
        self.assertEqual(result["name"], "Black Shoes")

        missing = await self.executor.execute("get_product_details", {"productId": 404})
        self.assertIsNone(missing)


class TestNormalizeArguments(unittest.TestCase):
    def test_dict_passes_through_as_copy(self):
        args = {"query": "shirt"}
        normalized = normalize_arguments(SearchProductsTool, args)
        self.assertEqual(normalized, args)
        self.assertIsNot(normalized, args)

    def test_empty_raw_string_is_empty_object(self):
        self.assertEqual(normalize_arguments(SearchProductsTool, RawArguments("  ")), {})

    def test_non_object_json_is_fatal(self):
        with self.assertRaises(ArgumentDecodeError):
            normalize_arguments(SearchProductsTool, RawArguments('["shirt"]'))

    def test_list_argument_that_is_not_a_list(self):
        args = normalize_arguments(PlaceOrderTool, {"items": '{"productId": 1}'})
        self.assertEqual(args["items"], [])
