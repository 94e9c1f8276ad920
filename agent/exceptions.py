"""Custom exceptions for the Ollama ecommerce agent."""


class AgentError(Exception):
    """Base class for all agent errors."""
    pass


class OllamaConnectionError(AgentError):
    """Raised when unable to connect to the Ollama server."""
    pass


class OllamaModelError(AgentError):
    """Raised when the requested model is not available."""
    pass


class ConfigError(AgentError):
    """Raised when configuration is invalid or missing."""
    pass


class PromptTemplateError(AgentError):
    """Raised when a prompt template fails to render."""
    pass


class ToolError(AgentError):
    """Base class for failures while dispatching a tool call."""

    def __init__(self, message: str, tool_name: str = ""):
        super().__init__(message)
        self.tool_name = tool_name


class UnknownToolError(ToolError):
    """Raised when a requested tool does not exist in the registry."""

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}", tool_name)


class ArgumentDecodeError(ToolError):
    """Raised when tool-call arguments cannot be decoded into an object."""
    pass


class ToolExecutionError(ToolError):
    """Raised when a tool is called with invalid arguments."""
    pass


class BackendError(ToolError):
    """Raised when the backend operation behind a tool fails."""
    pass
