#!/usr/bin/env python3
"""CLI entry point for the Ollama ecommerce agent.

Usage: run_cli.py [config.json] [demo]
"""

import asyncio
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from agent.config import load_config
from agent.telemetry import configure_logging
from cli.cli_app import CLIApp


def main():
    args = sys.argv[1:]
    demo = "demo" in args
    paths = [a for a in args if a != "demo"]
    config_path = paths[0] if paths else "config.json"

    config = load_config(config_path)
    configure_logging(config.log_dir)
    app = CLIApp(config)
    asyncio.run(app.run_demo() if demo else app.run())


if __name__ == "__main__":
    main()
