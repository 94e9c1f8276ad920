"""Flask application factory for the ecommerce agent JSON API."""

import logging
import threading
import time
from typing import Callable

from flask import Flask, jsonify
from flask_cors import CORS

from agent.agent import EcommerceAgent
from agent.config import AgentConfig

logger = logging.getLogger(__name__)

AgentFactory = Callable[[AgentConfig, str], EcommerceAgent]


def _default_agent_factory(config: AgentConfig, session_id: str) -> EcommerceAgent:
    return EcommerceAgent(config, session_id=session_id)


def create_app(config: AgentConfig, agent_factory: AgentFactory | None = None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    CORS(app)

    # Shared state
    app.config["agent_config"] = config
    app.config["agent_factory"] = agent_factory or _default_agent_factory
    app.config["sessions"] = {}  # session_id -> SessionState
    app.config["sessions_lock"] = threading.Lock()

    from web.routes.chat import chat_bp

    app.register_blueprint(chat_bp, url_prefix="/api")

    @app.route("/api/health")
    def health():
        return jsonify({
            "status": "ok",
            "model": config.chat_model.model_name,
            "sessions": len(app.config["sessions"]),
        })

    return app


class SessionState:
    """One agent per chat session; at most one message in flight."""

    def __init__(self, agent: EcommerceAgent):
        self.agent = agent
        self.last_used = time.monotonic()
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        if not self._lock.acquire(blocking=False):
            return False
        self.last_used = time.monotonic()
        return True

    def release(self) -> None:
        self.last_used = time.monotonic()
        self._lock.release()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()


def make_room(sessions: dict[str, SessionState], max_sessions: int) -> bool:
    """
    Evict least recently used idle sessions until one more fits under
    max_sessions. Returns False when every remaining session is busy.
    """
    while len(sessions) >= max_sessions:
        idle = [(s.last_used, sid) for sid, s in sessions.items() if not s.is_running]
        if not idle:
            return False
        _, session_id = min(idle)
        del sessions[session_id]
        logger.info("Evicted idle session %s", session_id)
    return True
