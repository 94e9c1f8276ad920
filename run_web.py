#!/usr/bin/env python3
"""Web API entry point for the Ollama ecommerce agent."""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from agent.config import load_config
from agent.telemetry import configure_logging
from web.app import create_app


def main():
    config_path = sys.argv[1] if len(sys.argv) > 1 else "config.json"
    config = load_config(config_path)
    configure_logging(config.log_dir)

    print(f"\n  Ollama Ecommerce Agent - Web API")
    print(f"  Chat model: {config.chat_model.model_name}")
    print(f"  Ollama: {config.chat_model.base_url}")
    print(f"  Listening on http://{config.web.host}:{config.web.port}\n")

    app = create_app(config)
    app.run(host=config.web.host, port=config.web.port, debug=config.web.debug, threaded=True)


if __name__ == "__main__":
    main()
