import json
from pathlib import Path

import aiohttp

from agent.agent import EcommerceAgent
from agent.config import load_config
from agent.exceptions import OllamaConnectionError
from ecommerce.client import EcommerceClient
from web.app import create_app


class OfflineStore(EcommerceClient):
    def __init__(self):
        super().__init__("http://store.invalid", "test")

    async def _get_json(self, path):
        raise aiohttp.ClientConnectionError("offline")

    async def _post_json(self, path, payload):
        raise aiohttp.ClientConnectionError("offline")


class EchoOllama:
    def __init__(self, error=None):
        self.error = error

    async def chat(self, model, messages, tools=None, temperature=0.7, options=None):
        if self.error:
            raise self.error
        return {
            "message": {"role": "assistant", "content": f"echo: {messages[-1]['content']}"},
            "prompt_eval_count": 1000,
            "eval_count": 1000,
        }


def _make_app(tmp_path: Path, config_data: dict | None = None, ollama=None):
    data = {"data_dir": str(tmp_path / "data")}
    data.update(config_data or {})
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps(data))
    config = load_config(str(config_path))

    def factory(cfg, session_id):
        return EcommerceAgent(
            cfg,
            ecommerce_client=OfflineStore(),
            ollama_client=ollama or EchoOllama(),
            session_id=session_id,
        )

    app = create_app(config, agent_factory=factory)
    app.testing = True
    return app


def test_health(tmp_path):
    client = _make_app(tmp_path).test_client()
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "ok"
    assert resp.get_json()["sessions"] == 0


def test_send_requires_message(tmp_path):
    client = _make_app(tmp_path).test_client()
    resp = client.post("/api/chat/send", json={"message": "   "})
    assert resp.status_code == 400


def test_send_creates_session_and_reuses_it(tmp_path):
    client = _make_app(tmp_path).test_client()

    resp = client.post("/api/chat/send", json={"message": "hello"})
    assert resp.status_code == 200
    payload = resp.get_json()
    assert payload["response"] == "echo: hello"
    session_id = payload["session_id"]

    resp = client.post("/api/chat/send", json={"message": "again", "session_id": session_id})
    assert resp.status_code == 200
    assert resp.get_json()["session_id"] == session_id

    history = client.get(f"/api/chat/history/{session_id}").get_json()
    roles = [m["role"] for m in history["history"]]
    assert roles == ["system", "user", "assistant", "user", "assistant"]
    assert history["is_running"] is False


def test_send_reports_cost_when_tracking(tmp_path):
    client = _make_app(tmp_path, {"enable_cost_tracking": True}).test_client()
    payload = client.post("/api/chat/send", json={"message": "hi"}).get_json()
    assert abs(payload["total_cost"] - 0.00075) < 1e-12


def test_unknown_session(tmp_path):
    client = _make_app(tmp_path).test_client()
    resp = client.post("/api/chat/send", json={"message": "hi", "session_id": "nope"})
    assert resp.status_code == 404
    assert client.get("/api/chat/history/nope").status_code == 404
    assert client.post("/api/chat/reset/nope").status_code == 404
    assert client.delete("/api/chat/session/nope").status_code == 404


def test_busy_session_rejected(tmp_path):
    app = _make_app(tmp_path)
    client = app.test_client()
    session_id = client.post("/api/chat/send", json={"message": "hi"}).get_json()["session_id"]

    session = app.config["sessions"][session_id]
    assert session.try_acquire()
    try:
        resp = client.post("/api/chat/send", json={"message": "again", "session_id": session_id})
        assert resp.status_code == 409
        assert client.post(f"/api/chat/reset/{session_id}").status_code == 409
    finally:
        session.release()


def test_backend_failure_is_500(tmp_path):
    app = _make_app(tmp_path, ollama=EchoOllama(error=OllamaConnectionError("Ollama is down")))
    client = app.test_client()

    resp = client.post("/api/chat/send", json={"message": "hi"})
    assert resp.status_code == 500
    payload = resp.get_json()
    assert payload["error"] == "Ollama is down"

    # The lock is released after a failed turn.
    session = app.config["sessions"][payload["session_id"]]
    assert session.is_running is False


def test_reset_and_delete(tmp_path):
    app = _make_app(tmp_path)
    client = app.test_client()
    session_id = client.post("/api/chat/send", json={"message": "hi"}).get_json()["session_id"]

    assert client.post(f"/api/chat/reset/{session_id}").status_code == 200
    history = client.get(f"/api/chat/history/{session_id}").get_json()
    assert len(history["history"]) == 1
    assert history["total_cost"] == 0.0

    assert client.delete(f"/api/chat/session/{session_id}").status_code == 200
    assert session_id not in app.config["sessions"]


def test_least_recently_used_idle_session_is_evicted(tmp_path):
    app = _make_app(tmp_path, {"web": {"max_sessions": 2}})
    client = app.test_client()
    sessions = app.config["sessions"]

    first = client.post("/api/chat/send", json={"message": "one"}).get_json()["session_id"]
    second = client.post("/api/chat/send", json={"message": "two"}).get_json()["session_id"]
    sessions[first].last_used = 1.0
    sessions[second].last_used = 2.0

    third = client.post("/api/chat/send", json={"message": "three"}).get_json()["session_id"]

    assert set(sessions) == {second, third}
    assert client.get(f"/api/chat/history/{first}").status_code == 404


def test_busy_sessions_are_never_evicted(tmp_path):
    app = _make_app(tmp_path, {"web": {"max_sessions": 1}})
    client = app.test_client()
    session_id = client.post("/api/chat/send", json={"message": "hi"}).get_json()["session_id"]

    session = app.config["sessions"][session_id]
    assert session.try_acquire()
    try:
        resp = client.post("/api/chat/send", json={"message": "new visitor"})
        assert resp.status_code == 503
        assert list(app.config["sessions"]) == [session_id]
    finally:
        session.release()
