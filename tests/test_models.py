import unittest
from unittest import mock

import aiohttp
from aiohttp import web
from aiohttp.test_utils import TestServer

from agent.exceptions import OllamaConnectionError, OllamaModelError
from agent.models import OllamaClient


class TestOllamaClient(unittest.IsolatedAsyncioTestCase):
    async def test_with_retry_succeeds_after_failures(self):
        client = OllamaClient(max_retries=3)
        attempts = 0

        async def operation():
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise aiohttp.ClientError("boom")
            return "ok"

        with mock.patch("agent.models.asyncio.sleep", new=mock.AsyncMock()) as sleep_mock:
            result = await client._with_retry("test", operation)

        self.assertEqual(result, "ok")
        self.assertEqual(attempts, 3)
        self.assertEqual(sleep_mock.call_count, 2)

    async def test_with_retry_raises_after_exhausted(self):
        client = OllamaClient(max_retries=2)

        async def operation():
            raise aiohttp.ClientError("boom")

        with mock.patch("agent.models.asyncio.sleep", new=mock.AsyncMock()):
            with self.assertRaises(OllamaConnectionError):
                await client._with_retry("test", operation)

    def test_filter_missing_models_prefix_match(self):
        available = ["llama3.2:latest", "phi3:mini"]
        missing = OllamaClient.filter_missing_models(["llama3.2", "codellama"], available)
        self.assertEqual(missing, ["codellama"])


class TestOllamaChat(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.requests: list[dict] = []
        self.status = 200

        async def handle_chat(request: web.Request) -> web.Response:
            self.requests.append(await request.json())
            if self.status != 200:
                return web.json_response({"error": "model not found"}, status=self.status)
            return web.json_response({
                "message": {"role": "assistant", "content": "hello"},
                "prompt_eval_count": 12,
                "eval_count": 3,
            })

        app = web.Application()
        app.router.add_post("/api/chat", handle_chat)
        self.server = TestServer(app)
        await self.server.start_server()
        self.client = OllamaClient(base_url=str(self.server.make_url("/")))

    async def asyncTearDown(self):
        await self.server.close()

    async def test_chat_sends_tools_without_streaming(self):
        tools = [{"type": "function", "function": {"name": "get_products"}}]
        data = await self.client.chat(
            model="llama3.2",
            messages=[{"role": "user", "content": "hi"}],
            tools=tools,
        )

        self.assertEqual(data["message"]["content"], "hello")
        self.assertEqual(data["prompt_eval_count"], 12)
        payload = self.requests[0]
        self.assertFalse(payload["stream"])
        self.assertEqual(payload["tools"], tools)
        self.assertEqual(payload["options"]["temperature"], 0.7)

    async def test_chat_missing_model_raises(self):
        self.status = 404
        with self.assertRaises(OllamaModelError):
            await self.client.chat(model="nope", messages=[])
        self.assertEqual(len(self.requests), 1)

    async def test_chat_server_error_raises_connection_error(self):
        self.status = 500
        with self.assertRaises(OllamaConnectionError):
            await self.client.chat(model="llama3.2", messages=[])
