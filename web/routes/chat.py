"""Chat API routes: send messages, inspect and reset sessions."""

import asyncio
import logging
import uuid

from flask import Blueprint, request, jsonify, current_app

from web.app import SessionState, make_room

logger = logging.getLogger(__name__)

chat_bp = Blueprint("chat", __name__)


@chat_bp.route("/chat/send", methods=["POST"])
def send_message():
    """Run one agent turn and return the final answer."""
    data = request.get_json(silent=True) or {}
    message = (data.get("message") or "").strip()
    session_id = data.get("session_id")

    if not message:
        return jsonify({"error": "No message provided"}), 400

    sessions = current_app.config["sessions"]
    if session_id:
        session = sessions.get(session_id)
        if session is None:
            return jsonify({"error": "Session not found"}), 404
    else:
        config = current_app.config["agent_config"]
        with current_app.config["sessions_lock"]:
            if not make_room(sessions, config.web.max_sessions):
                return jsonify({"error": "Too many active sessions"}), 503
            session_id = uuid.uuid4().hex[:12]
            factory = current_app.config["agent_factory"]
            session = SessionState(factory(config, session_id))
            sessions[session_id] = session

    if not session.try_acquire():
        return jsonify({"error": "Agent is already processing"}), 409

    try:
        response = _run_async(session.agent.chat(message))
    except Exception as e:
        logger.error("Chat failed for session %s: %s", session_id, e)
        return jsonify({"session_id": session_id, "error": str(e)}), 500
    finally:
        session.release()

    return jsonify({
        "session_id": session_id,
        "response": response,
        "total_cost": session.agent.total_cost,
    })


@chat_bp.route("/chat/history/<session_id>")
def get_history(session_id):
    """Get conversation history for a session."""
    session = current_app.config["sessions"].get(session_id)
    if session is None:
        return jsonify({"error": "Session not found"}), 404

    return jsonify({
        "history": [m.to_dict() for m in session.agent.get_history()],
        "total_cost": session.agent.total_cost,
        "is_running": session.is_running,
    })


@chat_bp.route("/chat/reset/<session_id>", methods=["POST"])
def reset_session(session_id):
    """Clear a session back to its system prompt."""
    session = current_app.config["sessions"].get(session_id)
    if session is None:
        return jsonify({"error": "Session not found"}), 404

    if not session.try_acquire():
        return jsonify({"error": "Agent is already processing"}), 409
    try:
        session.agent.reset()
    finally:
        session.release()

    return jsonify({"status": "reset", "session_id": session_id})


@chat_bp.route("/chat/session/<session_id>", methods=["DELETE"])
def delete_session(session_id):
    """Delete a session."""
    with current_app.config["sessions_lock"]:
        removed = current_app.config["sessions"].pop(session_id, None)
    if removed is None:
        return jsonify({"error": "Session not found"}), 404
    return jsonify({"status": "deleted"})


def _run_async(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()
