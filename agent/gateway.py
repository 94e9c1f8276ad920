"""Model gateway: one instrumented exchange with the Ollama chat endpoint."""

from __future__ import annotations

import json
import logging

from agent.config import ModelConfig
from agent.conversation import Message
from agent.cost import estimate_cost
from agent.models import OllamaClient
from agent.response import ModelReply, RawArguments, TextReply, ToolCall, ToolCallReply, Usage
from agent.telemetry import Telemetry, format_stack
from tools.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


class ModelGateway:
    """
    Sends the full history plus the tool schema to the model and resolves the
    reply into either a TextReply or a ToolCallReply. Never retries.
    """

    def __init__(
        self,
        client: OllamaClient,
        model: ModelConfig,
        registry: ToolRegistry,
        telemetry: Telemetry,
        agent_name: str = "Ecommerce Agent",
        enable_cost_tracking: bool = False,
    ):
        self.client = client
        self.model = model
        self.registry = registry
        self.telemetry = telemetry
        self.agent_name = agent_name
        self.enable_cost_tracking = enable_cost_tracking

    async def request(self, history: tuple[Message, ...] | list[Message]) -> ModelReply:
        messages = [m.to_dict() for m in history]
        tools = self.registry.tool_schemas
        model_name = self.model.model_name

        with self.telemetry.start_operation(
            "gen_ai.request",
            f"request {model_name}",
            {
                "gen_ai.request.model": model_name,
                "gen_ai.request.messages": json.dumps(messages, default=str),
                "gen_ai.agent.name": self.agent_name,
            },
        ) as span:
            try:
                raw = await self.client.chat(
                    model=model_name,
                    messages=messages,
                    tools=tools,
                    temperature=self.model.temperature,
                    options=self.model.options,
                )
                reply = parse_reply(raw)

                if reply.text:
                    span.set_attribute("gen_ai.response.text", json.dumps([reply.text]))

                usage = reply.usage
                if usage.input_tokens > 0:
                    span.set_attribute("gen_ai.usage.input_tokens", usage.input_tokens)
                if usage.output_tokens > 0:
                    span.set_attribute("gen_ai.usage.output_tokens", usage.output_tokens)
                if usage.total_tokens > 0:
                    span.set_attribute("gen_ai.usage.total_tokens", usage.total_tokens)

                if self.enable_cost_tracking and usage.total_tokens > 0:
                    request_cost = estimate_cost(
                        usage.input_tokens, usage.output_tokens, self.enable_cost_tracking
                    )
                    span.set_attribute("gen_ai.usage.cost_usd", request_cost)
                    span.set_attribute("conversation.cost_estimate_usd", request_cost)

                if isinstance(reply, ToolCallReply):
                    span.set_attribute(
                        "gen_ai.response.tool_calls",
                        json.dumps([tc.to_dict() for tc in reply.tool_calls], default=str),
                    )
                return reply
            except Exception as e:
                span.set_attribute("gen_ai.request.error", str(e))
                span.set_attribute("gen_ai.request.error_stack", format_stack(e))
                self.telemetry.capture_exception(
                    e,
                    tags={
                        "component": "ollama_request",
                        "model": model_name,
                    },
                    contexts={
                        "llm_context": {
                            "model": model_name,
                            "message_count": len(messages),
                            "tools_provided": len(tools),
                        },
                    },
                )
                logger.error("LLM request error: %s", e)
                raise


def parse_reply(raw: dict) -> ModelReply:
    """Resolve an Ollama /api/chat body into a tagged reply."""
    message = raw.get("message") or {}
    text = message.get("content") or ""
    usage = Usage(
        input_tokens=int(raw.get("prompt_eval_count") or 0),
        output_tokens=int(raw.get("eval_count") or 0),
    )

    raw_calls = message.get("tool_calls") or []
    if not raw_calls:
        return TextReply(text=text, usage=usage)

    tool_calls = []
    for raw_call in raw_calls:
        function = raw_call.get("function") or {}
        arguments = function.get("arguments")
        if isinstance(arguments, str):
            arguments = RawArguments(arguments)
        elif arguments is None:
            arguments = {}
        fields = {"name": str(function.get("name", "")), "arguments": arguments}
        if raw_call.get("id"):
            fields["id"] = str(raw_call["id"])
        tool_calls.append(ToolCall(**fields))
    return ToolCallReply(tool_calls=tuple(tool_calls), text=text, usage=usage)
