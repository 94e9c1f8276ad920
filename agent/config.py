"""Configuration loading and validation."""

import json
import os
from dataclasses import dataclass, field
from agent.exceptions import ConfigError


DEFAULT_ECOMMERCE_URL = "https://application-monitoring-react-dot-sales-engineering-sf.appspot.com"


@dataclass
class ModelConfig:
    """Configuration for the Ollama chat model."""
    model_name: str = "llama3.2"
    base_url: str = "http://localhost:11434"
    temperature: float = 0.7
    options: dict = field(default_factory=dict)


@dataclass
class OllamaSettings:
    """Configuration for Ollama connectivity."""
    connect_timeout: float = 5.0
    read_timeout: float = 120.0
    max_retries: int = 3
    health_check_on_start: bool = True


@dataclass
class EcommerceConfig:
    """Configuration for the ecommerce store backend."""
    base_url: str = DEFAULT_ECOMMERCE_URL
    se_param: str = "prithvi"
    timeout: float = 10.0


@dataclass
class TelemetryConfig:
    """Configuration for telemetry and metrics logging."""
    enabled: bool = False
    log_dir: str = "./data/metrics"
    otel_enabled: bool = False
    otel_endpoint: str | None = None
    otel_service_name: str = "ollama-ecommerce-agent"
    environment: str = "development"


@dataclass
class WebConfig:
    """Configuration for the web API."""
    host: str = "0.0.0.0"
    port: int = 5000
    debug: bool = False
    max_sessions: int = 100


@dataclass
class AgentConfig:
    """Complete agent configuration."""
    chat_model: ModelConfig = field(default_factory=ModelConfig)
    ollama: OllamaSettings = field(default_factory=OllamaSettings)
    ecommerce: EcommerceConfig = field(default_factory=EcommerceConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    web: WebConfig = field(default_factory=WebConfig)
    agent_name: str = "Ecommerce Agent"
    prompt_profile: str = "default"
    enable_cost_tracking: bool = False
    data_dir: str = "data"
    log_dir: str = "data/logs"


def load_config(config_path: str = "config.json") -> AgentConfig:
    """Load configuration from JSON file with defaults and env overrides."""
    if os.path.exists(config_path):
        try:
            with open(config_path, "r") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}")
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {config_path} must contain a JSON object")
    else:
        raw = {}

    data_dir = raw.get("data_dir", "data")

    chat_model = _load_model_settings(raw.get("chat_model", {}))
    ollama = _load_ollama_settings(raw.get("ollama", {}))
    ecommerce = _load_ecommerce_settings(raw.get("ecommerce", {}))
    telemetry = _load_telemetry_settings(raw.get("telemetry", {}), data_dir)
    web = _load_web_settings(raw.get("web", {}))

    enable_cost_tracking = raw.get("enable_cost_tracking", False)
    if not isinstance(enable_cost_tracking, bool):
        raise ConfigError("enable_cost_tracking must be a boolean")

    agent_name = raw.get("agent_name", "Ecommerce Agent")
    if not isinstance(agent_name, str) or not agent_name.strip():
        raise ConfigError("agent_name must be a non-empty string")

    config = AgentConfig(
        chat_model=chat_model,
        ollama=ollama,
        ecommerce=ecommerce,
        telemetry=telemetry,
        web=web,
        agent_name=agent_name.strip(),
        prompt_profile=raw.get("prompt_profile", "default"),
        enable_cost_tracking=enable_cost_tracking,
        data_dir=data_dir,
        log_dir=raw.get("log_dir", os.path.join(data_dir, "logs")),
    )
    _apply_env_overrides(config)

    for d in [config.data_dir, config.log_dir, config.telemetry.log_dir]:
        os.makedirs(d, exist_ok=True)

    return config


def _apply_env_overrides(config: AgentConfig) -> None:
    """Environment variables win over the config file."""
    base_url = os.getenv("OLLAMA_BASE_URL") or os.getenv("OLLAMA_HOST")
    if base_url:
        config.chat_model.base_url = base_url

    model_name = os.getenv("OLLAMA_MODEL")
    if model_name:
        config.chat_model.model_name = model_name

    store_url = os.getenv("ECOMMERCE_BASE_URL")
    if store_url:
        config.ecommerce.base_url = store_url

    se_param = os.getenv("ECOMMERCE_SE_PARAM")
    if se_param:
        config.ecommerce.se_param = se_param

    cost_tracking = os.getenv("ENABLE_COST_TRACKING")
    if cost_tracking is not None:
        config.enable_cost_tracking = cost_tracking.strip().lower() == "true"

    otel_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if otel_endpoint:
        config.telemetry.otel_enabled = True
        config.telemetry.otel_endpoint = otel_endpoint


def _load_model_settings(raw: dict) -> ModelConfig:
    """Parse and validate chat model settings."""
    model_name = raw.get("model_name", "llama3.2")
    if not isinstance(model_name, str) or not model_name.strip():
        raise ConfigError("chat_model.model_name must be a non-empty string")

    base_url = raw.get("base_url", "http://localhost:11434")
    if not isinstance(base_url, str) or not base_url.strip():
        raise ConfigError("chat_model.base_url must be a non-empty string")

    options = raw.get("options", {})
    if options is None:
        options = {}
    if not isinstance(options, dict):
        raise ConfigError("chat_model.options must be an object")

    return ModelConfig(
        model_name=model_name.strip(),
        base_url=base_url.strip(),
        temperature=_coerce_float(raw.get("temperature", 0.7), "chat_model.temperature", 0.0),
        options=options,
    )


def _load_ollama_settings(raw: dict) -> OllamaSettings:
    """Parse and validate Ollama settings from config."""
    connect_timeout = _coerce_float(raw.get("connect_timeout", 5.0), "ollama.connect_timeout", 0.1)
    read_timeout = _coerce_float(raw.get("read_timeout", 120.0), "ollama.read_timeout", 0.1)
    max_retries = _coerce_int(raw.get("max_retries", 3), "ollama.max_retries", 1)

    health_check_on_start = raw.get("health_check_on_start", True)
    if not isinstance(health_check_on_start, bool):
        raise ConfigError("ollama.health_check_on_start must be a boolean")

    return OllamaSettings(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        max_retries=max_retries,
        health_check_on_start=health_check_on_start,
    )


def _load_ecommerce_settings(raw: dict) -> EcommerceConfig:
    """Parse and validate ecommerce backend settings."""
    base_url = raw.get("base_url", DEFAULT_ECOMMERCE_URL)
    if not isinstance(base_url, str) or not base_url.strip():
        raise ConfigError("ecommerce.base_url must be a non-empty string")

    se_param = raw.get("se_param", "prithvi")
    if not isinstance(se_param, str):
        raise ConfigError("ecommerce.se_param must be a string")

    return EcommerceConfig(
        base_url=base_url.strip(),
        se_param=se_param.strip(),
        timeout=_coerce_float(raw.get("timeout", 10.0), "ecommerce.timeout", 0.1),
    )


def _load_telemetry_settings(raw: dict, data_dir: str) -> TelemetryConfig:
    """Parse and validate telemetry settings."""
    enabled = raw.get("enabled", False)
    if not isinstance(enabled, bool):
        raise ConfigError("telemetry.enabled must be a boolean")

    log_dir = raw.get("log_dir", os.path.join(data_dir, "metrics"))
    if not isinstance(log_dir, str) or not log_dir.strip():
        raise ConfigError("telemetry.log_dir must be a non-empty string")

    otel_enabled = raw.get("otel_enabled", False)
    if not isinstance(otel_enabled, bool):
        raise ConfigError("telemetry.otel_enabled must be a boolean")

    otel_endpoint = raw.get("otel_endpoint")
    if otel_endpoint is not None and (not isinstance(otel_endpoint, str) or not otel_endpoint.strip()):
        raise ConfigError("telemetry.otel_endpoint must be a non-empty string if provided")

    otel_service_name = raw.get("otel_service_name", "ollama-ecommerce-agent")
    if not isinstance(otel_service_name, str) or not otel_service_name.strip():
        raise ConfigError("telemetry.otel_service_name must be a non-empty string")

    environment = raw.get("environment", os.getenv("APP_ENV", "development"))
    if not isinstance(environment, str) or not environment.strip():
        raise ConfigError("telemetry.environment must be a non-empty string")

    return TelemetryConfig(
        enabled=enabled,
        log_dir=log_dir,
        otel_enabled=otel_enabled,
        otel_endpoint=otel_endpoint.strip() if isinstance(otel_endpoint, str) else None,
        otel_service_name=otel_service_name.strip(),
        environment=environment.strip(),
    )


def _load_web_settings(raw: dict) -> WebConfig:
    """Parse and validate web API settings."""
    host = raw.get("host", "0.0.0.0")
    if not isinstance(host, str) or not host.strip():
        raise ConfigError("web.host must be a non-empty string")

    debug = raw.get("debug", False)
    if not isinstance(debug, bool):
        raise ConfigError("web.debug must be a boolean")

    port = _coerce_int(raw.get("port", 5000), "web.port", 1)
    if port > 65535:
        raise ConfigError("web.port must be <= 65535")

    max_sessions = _coerce_int(raw.get("max_sessions", 100), "web.max_sessions", 1)

    return WebConfig(host=host.strip(), port=port, debug=debug, max_sessions=max_sessions)


def _coerce_float(value: object, name: str, min_value: float) -> float:
    """Coerce config value to float with basic validation."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number")

    if value < min_value:
        raise ConfigError(f"{name} must be >= {min_value}")
    return value


def _coerce_int(value: object, name: str, min_value: int) -> int:
    """Coerce config value to int with basic validation."""
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer")

    if value < min_value:
        raise ConfigError(f"{name} must be >= {min_value}")
    return value
