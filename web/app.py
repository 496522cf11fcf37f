"""
Flask web server for Math Bud.

Routes
──────
GET    /api/health                    Liveness check (JSON)
POST   /api/solve                     Solve an uploaded image (multipart "image")
POST   /api/chat                      Ask the tutor a question ({"message": ...})
GET    /api/chat/history              Chat transcript (JSON)
DELETE /api/chat/history              Reset the transcript
GET    /api/history?q=&type=          Filtered solve history summaries (JSON)
GET    /api/history/<id>              Fetch a specific history item (JSON)
GET    /api/notes?q=                  Filtered topic notes + totals (JSON)
GET    /api/notes/<topic>             Fetch one topic's notes (JSON)
POST   /api/notes/<topic>/rename      Rename a topic ({"new_name": ...})
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from datetime import datetime, timezone

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

# Allow running as `python web/app.py` from the project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

load_dotenv()

from config.settings import Settings
from mathbud import history as hist
from mathbud import notes as nts
from mathbud.chat import APOLOGY_TEXT
from mathbud.errors import (
    ChatError,
    InvalidImageError,
    InvalidTopicError,
    SolveError,
    TopicConflictError,
)
from mathbud.session import StudySession
from mathbud.solver import MathSolver, validate_image

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

_SESSION_KEY = "mathbud_session"
_session_lock = threading.Lock()


def get_session() -> StudySession:
    """Return the app's study session, loading it from the store on first use."""
    with _session_lock:
        session = app.extensions.get(_SESSION_KEY)
        if session is None:
            session = StudySession.load()
            app.extensions[_SESSION_KEY] = session
        return session


@app.errorhandler(Exception)
def handle_unexpected_error(exc: Exception):
    """Answer unexpected failures with a JSON body instead of an HTML page."""
    if isinstance(exc, HTTPException):
        return jsonify({"error": exc.description}), exc.code
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({"error": "Internal server error"}), 500


# ── Health ─────────────────────────────────────────────────────────────────

@app.route("/api/health")
def health():
    return jsonify(
        {
            "status": "OK",
            "message": "Math Bud server is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


# ── Solve ──────────────────────────────────────────────────────────────────

@app.route("/api/solve", methods=["POST"])
def solve():
    """Solve a photographed math problem and fold it into notes + history.

    Form fields:
      image  (required) — the picture of the problem

    Returns the solution plus the detected ``topics`` and the ``history_id``
    of the new history item. Nothing is recorded when solving fails.
    """
    upload = request.files.get("image")
    if upload is None:
        return jsonify({"error": "No image file provided"}), 400

    settings = Settings()
    image = upload.read()
    try:
        validate_image(image, upload.mimetype, settings.max_image_bytes)
    except InvalidImageError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        settings.validate()
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 500

    try:
        solution = MathSolver(settings).solve(image, upload.mimetype)
    except SolveError as exc:
        return jsonify({"error": str(exc)}), 500

    item, topics = get_session().record_solution(solution)
    return jsonify(
        {
            **solution.model_dump(),
            "topics": topics,
            "history_id": item.id,
        }
    )


# ── Chat ───────────────────────────────────────────────────────────────────

@app.route("/api/chat", methods=["POST"])
def chat():
    """Relay a tutoring question; both sides are kept in the transcript."""
    data = request.get_json(silent=True) or {}
    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        return jsonify({"error": "Message is required and must be a string"}), 400

    settings = Settings()
    try:
        settings.validate()
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 500

    try:
        reply = get_session().send_chat(message, settings)
    except ChatError as exc:
        return jsonify({"error": str(exc), "response": APOLOGY_TEXT}), 500
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    return jsonify({"success": True, "response": reply.text})


@app.route("/api/chat/history")
def chat_history():
    return jsonify([m.model_dump(mode="json") for m in get_session().chat])


@app.route("/api/chat/history", methods=["DELETE"])
def clear_chat_history():
    messages = get_session().clear_chat()
    return jsonify([m.model_dump(mode="json") for m in messages])


# ── History API ────────────────────────────────────────────────────────────

@app.route("/api/history")
def list_history():
    """Return history summaries, newest first, filtered by ``q`` and ``type``."""
    log = get_session().history
    items = hist.filter_history(
        log,
        term=request.args.get("q", ""),
        problem_type=request.args.get("type", "all"),
    )
    return jsonify(
        {
            "items": [
                {
                    "id": item.id,
                    "timestamp": item.timestamp.isoformat(),
                    "problem_type": item.problem_type,
                    "explanation": item.solution.explanation,
                    "step_count": len(item.solution.steps),
                }
                for item in items
            ],
            "problem_types": hist.problem_types(log),
        }
    )


@app.route("/api/history/<item_id>")
def get_history_item(item_id: str):
    """Return a full history item including its solution."""
    item = hist.get_item(get_session().history, item_id)
    if item is None:
        return jsonify({"error": "Not found"}), 404
    return jsonify(item.model_dump(mode="json"))


# ── Notes API ──────────────────────────────────────────────────────────────

@app.route("/api/notes")
def list_notes():
    notes = get_session().notes
    matches = nts.search_notes(notes, request.args.get("q", ""))
    return jsonify(
        {
            "notes": [note.model_dump(mode="json") for note in matches],
            "stats": nts.notes_stats(notes),
        }
    )


@app.route("/api/notes/<path:topic>/rename", methods=["POST"])
def rename_note(topic: str):
    """Rename a topic.

    JSON body:
      new_name  (required) — the new topic label

    Responds 404 if the topic does not exist, 409 if the new name collides
    with another topic ignoring case, 400 if it is blank.
    """
    data = request.get_json(silent=True) or {}
    new_name = data.get("new_name")
    if not isinstance(new_name, str):
        return jsonify({"error": "new_name is required"}), 400

    try:
        note = get_session().rename_topic(topic, new_name)
    except TopicConflictError as exc:
        return jsonify({"error": str(exc)}), 409
    except InvalidTopicError as exc:
        return jsonify({"error": str(exc)}), 400

    if note is None:
        return jsonify({"error": "Not found"}), 404
    return jsonify(note.model_dump(mode="json"))


@app.route("/api/notes/<path:topic>")
def get_note(topic: str):
    note = nts.get_note(get_session().notes, topic)
    if note is None:
        return jsonify({"error": "Not found"}), 404
    return jsonify(note.model_dump(mode="json"))


# ── Entry point ────────────────────────────────────────────────────────────

if __name__ == "__main__":
    settings = Settings()
    app.run(debug=settings.debug, host="0.0.0.0", port=settings.port)
