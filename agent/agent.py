"""EcommerceAgent: the bounded request / tool-execute / continue loop."""

from __future__ import annotations

import json
import logging
import os
import uuid
from typing import Callable

from agent.config import AgentConfig
from agent.conversation import Conversation, Message
from agent.cost import estimate_cost
from agent.exceptions import ArgumentDecodeError, PromptTemplateError, ToolError
from agent.gateway import ModelGateway
from agent.models import OllamaClient
from agent.response import ToolCall, ToolCallReply, Usage
from agent.telemetry import Telemetry, format_stack
from ecommerce.client import EcommerceClient
from prompts.template_engine import PromptTemplateEngine
from tools.executor import ToolExecutor
from tools.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

# Model exchanges per chat() call. Hitting the bound ends the turn silently.
MAX_ITERATIONS = 10

PROMPTS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "prompts")


class EcommerceAgent:
    """
    Shopping assistant owning exactly one Conversation.

    chat() is not safe to run concurrently on the same instance; callers
    serialize turns (one in-flight message per session).
    """

    def __init__(
        self,
        config: AgentConfig,
        ecommerce_client: EcommerceClient | None = None,
        ollama_client: OllamaClient | None = None,
        telemetry: Telemetry | None = None,
        registry: ToolRegistry | None = None,
        session_id: str | None = None,
    ):
        self.config = config
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.name = config.agent_name
        self.model = config.chat_model.model_name
        self.enable_cost_tracking = config.enable_cost_tracking
        self.telemetry = telemetry or Telemetry(config.telemetry, self.session_id)
        self.registry = registry or ToolRegistry()

        self.ecommerce_client = ecommerce_client or EcommerceClient(
            base_url=config.ecommerce.base_url,
            se_param=config.ecommerce.se_param,
            timeout=config.ecommerce.timeout,
        )
        ollama_client = ollama_client or OllamaClient(
            base_url=config.chat_model.base_url,
            connect_timeout=config.ollama.connect_timeout,
            read_timeout=config.ollama.read_timeout,
            max_retries=config.ollama.max_retries,
        )

        self.gateway = ModelGateway(
            client=ollama_client,
            model=config.chat_model,
            registry=self.registry,
            telemetry=self.telemetry,
            agent_name=self.name,
            enable_cost_tracking=self.enable_cost_tracking,
        )
        self.executor = ToolExecutor(
            registry=self.registry,
            client=self.ecommerce_client,
            telemetry=self.telemetry,
            agent_name=self.name,
        )

        # Called after every tool dispatch with (tool_call, result_content, failed)
        self.on_tool_result: Callable[[ToolCall, str, bool], None] | None = None
        self.last_turn_usage = Usage()
        self.last_turn_cost = 0.0

        self._conversation = Conversation(self._build_system_prompt())

    # ── Agent loop ───────────────────────────────────────────────────

    async def chat(self, user_message: str) -> str:
        """Process one user message and return the assistant's final answer."""
        with self.telemetry.start_operation(
            "gen_ai.invoke_agent",
            f"invoke_agent {self.name}",
            {
                "gen_ai.request.model": self.model,
                "gen_ai.agent.name": self.name,
                "gen_ai.operation.name": "chat",
            },
        ) as span:
            iteration = 0
            try:
                self._conversation.append(Message(role="user", content=user_message))

                usage = Usage()
                final_response = ""
                last_text = ""
                answered = False

                while iteration < MAX_ITERATIONS:
                    iteration += 1

                    reply = await self.gateway.request(self._conversation.messages)
                    usage = usage + reply.usage
                    if reply.text:
                        last_text = reply.text

                    if isinstance(reply, ToolCallReply):
                        self._conversation.append(
                            Message(role="assistant", content=reply.text, tool_calls=reply.tool_calls)
                        )
                        for tool_call in reply.tool_calls:
                            await self._dispatch(tool_call)
                        continue

                    final_response = reply.text
                    self._conversation.append(Message(role="assistant", content=final_response))
                    answered = True
                    break

                if not answered:
                    final_response = last_text
                    span.set_attribute("gen_ai.agent.iteration_limit_reached", True)
                    logger.warning(
                        "%s stopped after %d iterations without a final answer",
                        self.name,
                        MAX_ITERATIONS,
                    )

                self.last_turn_usage = usage
                span.set_attribute("gen_ai.agent.iterations", iteration)
                span.set_attribute("gen_ai.response.text", json.dumps([final_response]))
                span.set_attribute("gen_ai.usage.input_tokens", usage.input_tokens)
                span.set_attribute("gen_ai.usage.output_tokens", usage.output_tokens)
                span.set_attribute("gen_ai.usage.total_tokens", usage.total_tokens)

                self.last_turn_cost = 0.0
                if self.enable_cost_tracking and usage.total_tokens > 0:
                    self.last_turn_cost = estimate_cost(
                        usage.input_tokens, usage.output_tokens, self.enable_cost_tracking
                    )
                    self._conversation.add_cost(self.last_turn_cost)
                    span.set_attribute("gen_ai.usage.cost_usd", self.last_turn_cost)
                    span.set_attribute(
                        "conversation.cost_estimate_usd", self._conversation.total_cost
                    )
                    logger.info(
                        "Turn cost $%.6f, conversation total $%.6f",
                        self.last_turn_cost,
                        self._conversation.total_cost,
                    )

                return final_response
            except Exception as e:
                span.set_attribute("gen_ai.agent.error", str(e))
                span.set_attribute("gen_ai.agent.error_stack", format_stack(e))
                self.telemetry.capture_exception(
                    e,
                    tags={
                        "component": "agent_chat",
                        "agent": self.name,
                        "model": self.model,
                    },
                    contexts={
                        "agent_context": {
                            "agent_name": self.name,
                            "model": self.model,
                            "conversation_length": len(self._conversation),
                            "user_message": user_message,
                            "iteration_count": iteration,
                        },
                    },
                )
                raise

    async def _dispatch(self, tool_call: ToolCall) -> None:
        """Execute one tool call and append its result (or failure record) as a tool turn."""
        logger.info("Executing tool %s", tool_call.name)
        failed = False
        try:
            result = await self.executor.execute(tool_call.name, tool_call.arguments)
            content = json.dumps(result, default=str)
        except ArgumentDecodeError:
            raise
        except ToolError as e:
            # Report the failure back to the model so it can recover in conversation.
            failed = True
            logger.warning("Tool %s failed: %s", tool_call.name, e)
            content = json.dumps({
                "error": str(e),
                "tool": tool_call.name,
                "status": "failed",
            })

        self._conversation.append(Message(role="tool", content=content, tool_name=tool_call.name))
        if self.on_tool_result:
            self.on_tool_result(tool_call, content, failed)

    # ── System prompt ────────────────────────────────────────────────

    def _build_system_prompt(self) -> str:
        variables = {
            "agent_name": self.name,
            "tool_descriptions": self.registry.get_tool_descriptions(),
        }
        try:
            engine = PromptTemplateEngine(PROMPTS_DIR, self.config.prompt_profile)
            return engine.render("agent.system.main.md", variables)
        except PromptTemplateError as e:
            logger.warning("Falling back to built-in system prompt: %s", e)
            return (
                "You are a helpful ecommerce shopping assistant.\n"
                f"Available tools:\n{variables['tool_descriptions']}\n"
                "Always be helpful, accurate, and confirm order details before placing them."
            )

    # ── History management ───────────────────────────────────────────

    def reset(self) -> None:
        """Drop everything but the system prompt and zero the cost estimate."""
        self._conversation.reset()
        self.last_turn_usage = Usage()
        self.last_turn_cost = 0.0

    def get_history(self) -> tuple[Message, ...]:
        return self._conversation.messages

    @property
    def total_cost(self) -> float:
        return self._conversation.total_cost

    def get_total_cost(self) -> float:
        return self._conversation.total_cost
