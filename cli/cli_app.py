"""Interactive CLI and scripted demo for the ecommerce agent."""

import asyncio
import json

from agent.agent import EcommerceAgent
from agent.config import AgentConfig
from agent.models import OllamaClient
from agent.response import ToolCall


# ANSI color codes
RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
CYAN = "\033[36m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[31m"

DEMO_QUERIES = [
    "Hi! Can you show me what products are available?",
    "I'm interested in clothing items. Can you search for those?",
    "I'd like to buy a Blue Shirt and Red Pants. Can you place an order for 1 of each?",
]


class CLIApp:
    """Interactive REPL over a single agent session."""

    def __init__(self, config: AgentConfig, agent: EcommerceAgent | None = None):
        self.config = config
        self.agent = agent or EcommerceAgent(config)
        self.agent.on_tool_result = self._tool_handler

    async def run(self):
        """Main REPL loop."""
        self._print_banner()

        if not await self._preflight_ollama():
            return

        print(f"{DIM}Type your message and press Enter. /help for commands.{RESET}\n")

        while True:
            try:
                user_input = input(f"{BOLD}You:{RESET} ").strip()
            except (EOFError, KeyboardInterrupt):
                print(f"\n{DIM}Goodbye!{RESET}")
                break

            if not user_input:
                continue

            command = user_input.lower()
            if command in ("exit", "quit", "/exit", "/quit"):
                print(f"{DIM}Goodbye!{RESET}")
                break
            if command in ("reset", "/reset"):
                self.agent.reset()
                print(f"{DIM}[Conversation history reset]{RESET}")
                continue
            if command in ("history", "/history"):
                self._print_history()
                continue
            if command in ("help", "/help"):
                self._print_help()
                continue

            await self._ask(user_input)

    async def run_demo(self, pause: float = 2.0):
        """Run the predefined shopping conversation."""
        self._print_banner()

        if not await self._preflight_ollama():
            return

        print(f"{BOLD}Demo mode: running predefined conversation{RESET}")
        for query in DEMO_QUERIES:
            print(f"\n{'=' * 80}")
            print(f"{BOLD}You:{RESET} {query}")
            print("=" * 80)
            await self._ask(query)
            await asyncio.sleep(pause)

        print(f"\n{GREEN}Demo completed!{RESET}")
        if self.config.telemetry.otel_enabled and self.config.telemetry.otel_endpoint:
            print(f"{DIM}Traces were exported to {self.config.telemetry.otel_endpoint}{RESET}")

    async def _ask(self, message: str):
        print(f"\n{DIM}Agent is thinking...{RESET}")
        try:
            result = await self.agent.chat(message)
        except Exception as e:
            print(f"\n{RED}[Error: {e}]{RESET}\n")
            return

        print(f"\n{BOLD}{GREEN}Agent:{RESET} {result}\n")
        if self.config.enable_cost_tracking:
            print(
                f"{DIM}Cost for this turn: ${self.agent.last_turn_cost:.6f} | "
                f"Total conversation cost: ${self.agent.total_cost:.6f}{RESET}\n"
            )

    def _tool_handler(self, tool_call: ToolCall, content: str, failed: bool):
        """Tool callback: print each tool call and a preview of its result."""
        print(f"{CYAN}  Executing tool: {tool_call.name}{RESET}")
        if failed:
            print(f"{RED}  Tool execution failed: {content}{RESET}")
        else:
            preview = content[:200] + ("..." if len(content) > 200 else "")
            print(f"{DIM}  Result: {preview}{RESET}")

    def _print_history(self):
        history = [m.to_dict() for m in self.agent.get_history()]
        print(f"\n{BOLD}Conversation History:{RESET}")
        print(json.dumps(history, indent=2))
        print()

    def _print_banner(self):
        cost = "Enabled" if self.config.enable_cost_tracking else "Disabled (Ollama is free!)"
        print(f"""
{BOLD}{CYAN}Ollama Ecommerce Agent{RESET}
{DIM}Model: {self.config.chat_model.model_name}
Ollama: {self.config.chat_model.base_url}
Store: {self.config.ecommerce.base_url}?se={self.config.ecommerce.se_param}
Cost tracking: {cost}{RESET}
""")

    def _print_help(self):
        print(f"""
{BOLD}Commands:{RESET}
  {CYAN}/reset{RESET}    Clear conversation history
  {CYAN}/history{RESET}  Show conversation history
  {CYAN}/help{RESET}     Show this help
  {CYAN}/exit{RESET}     Quit
""")

    async def _preflight_ollama(self) -> bool:
        """Check Ollama connectivity and model availability before starting."""
        base_url = self.config.chat_model.base_url
        client = OllamaClient(
            base_url=base_url,
            connect_timeout=self.config.ollama.connect_timeout,
            read_timeout=self.config.ollama.read_timeout,
            max_retries=self.config.ollama.max_retries,
        )

        if self.config.ollama.health_check_on_start:
            healthy = await client.health_check()
            if not healthy:
                print(f"{RED}[Error] Cannot connect to Ollama at {base_url}{RESET}")
                print(f"{DIM}Make sure Ollama is running: ollama serve{RESET}")
                return False

        try:
            models = await client.list_models()
        except Exception as e:
            print(f"{RED}[Error] {e}{RESET}")
            return False

        model_names = [m.get("name", "?") for m in models]
        print(f"{DIM}Available models: {', '.join(model_names) if model_names else 'none'}{RESET}")

        missing = OllamaClient.filter_missing_models([self.config.chat_model.model_name], model_names)
        if missing:
            print(f"{RED}[Error] Missing model: {', '.join(missing)}{RESET}")
            print(f"{DIM}Pull with: ollama pull {missing[0]}{RESET}")
            return False

        return True
