#!/usr/bin/env python3
"""
Task Board Server
-----------------
Serves the board UI, a JSON API over the task store, and a live event
stream (Server-Sent Events) that pushes every task change to connected
viewers.

Usage:
    python board_server.py
    python board_server.py --host 0.0.0.0 --port 3000 --data data/tasks.json

API:
    GET    /api/tasks              → list (filters: status, priority, assignee, search)
    GET    /api/tasks/<id>         → one task
    POST   /api/tasks              → create
    PATCH  /api/tasks/<id>         → partial update
    DELETE /api/tasks/<id>         → delete
    POST   /api/tasks/<id>/move    → { status, order? }
    POST   /api/tasks/bulk         → { tasks: [...] }
    DELETE /api/tasks?status=done  → clear done column
    GET    /api/stats              → board statistics
    GET    /api/events             → text/event-stream of task events
    GET    /health                 → liveness
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from flask import Flask, Response, abort, g, jsonify, request, send_from_directory

from taskboard.config import BoardConfig
from taskboard.errors import (
    MalformedInputError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from taskboard.events import NotificationHub
from taskboard.persistence import JsonFilePersistence
from taskboard.query import TaskFilters
from taskboard.store import MISSING, TaskStore

logger = logging.getLogger("taskboard.server")


# ── Request helpers ──────────────────────────────────────────────────────────

def _json_body() -> dict:
    """Parsed JSON object body; an empty body counts as {}."""
    if not request.get_data():
        return {}
    data = request.get_json(force=True, silent=True)
    if data is None:
        raise MalformedInputError("Invalid JSON in request body")
    if not isinstance(data, dict):
        raise MalformedInputError("Request body must be a JSON object")
    return data


def _error(message: str, code: int):
    return jsonify({"error": message}), code


# ── Application factory ──────────────────────────────────────────────────────

def create_app(config: BoardConfig = None, store: TaskStore = None,
               hub: NotificationHub = None) -> Flask:
    """Build the Flask app. A store is created and loaded from config if not given."""
    config = config or BoardConfig()
    hub = hub or NotificationHub(max_queue=config.subscriber_queue_size)
    if store is None:
        store = TaskStore(JsonFilePersistence(config.data_file), emit=hub.publish)
        store.load()

    static_dir = Path(config.static_dir).resolve()
    app = Flask(__name__, static_folder=str(static_dir), static_url_path="")
    app.config["BOARD"] = config
    app.extensions["taskboard"] = {"store": store, "hub": hub}

    # ── Middleware ───────────────────────────────────────────────────────────

    @app.before_request
    def start_timer():
        g.start = time.monotonic()

    @app.after_request
    def log_and_cors(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        started = g.get("start")
        if started is not None:
            duration = int((time.monotonic() - started) * 1000)
            logger.info(f"{request.method} {request.path} {response.status_code} - {duration}ms")
        return response

    # ── Error mapping ────────────────────────────────────────────────────────

    @app.errorhandler(ValidationError)
    def on_validation_error(e):
        return _error(str(e), 400)

    @app.errorhandler(MalformedInputError)
    def on_malformed_input(e):
        return _error(str(e), 400)

    @app.errorhandler(NotFoundError)
    def on_not_found(e):
        return _error("Task not found", 404)

    @app.errorhandler(PersistenceError)
    def on_persistence_error(e):
        # In-memory state already changed; only the disk write failed.
        return _error("Internal server error", 500)

    @app.errorhandler(404)
    def on_unknown_route(e):
        return _error("Route not found", 404)

    @app.errorhandler(405)
    def on_bad_method(e):
        return _error("Method not allowed", 405)

    # ── Routes ───────────────────────────────────────────────────────────────

    @app.route("/")
    def index():
        if not (static_dir / "index.html").exists():
            abort(404)
        return send_from_directory(static_dir, "index.html")

    @app.route("/api/tasks", methods=["GET"])
    def api_list_tasks():
        filters = TaskFilters.from_args(request.args)
        return jsonify([t.to_dict() for t in store.list_tasks(filters)])

    @app.route("/api/tasks/<task_id>", methods=["GET"])
    def api_get_task(task_id):
        return jsonify(store.get(task_id).to_dict())

    @app.route("/api/tasks", methods=["POST"])
    def api_create_task():
        task = store.create(_json_body())
        return jsonify(task.to_dict()), 201

    @app.route("/api/tasks/<task_id>", methods=["PATCH"])
    def api_update_task(task_id):
        task = store.update(task_id, _json_body())
        return jsonify(task.to_dict())

    @app.route("/api/tasks/<task_id>", methods=["DELETE"])
    def api_delete_task(task_id):
        store.delete(task_id)
        return "", 204

    @app.route("/api/tasks/<task_id>/move", methods=["POST"])
    def api_move_task(task_id):
        data = _json_body()
        order = data["order"] if "order" in data else MISSING
        task = store.move(task_id, data.get("status"), order)
        return jsonify(task.to_dict())

    @app.route("/api/tasks/bulk", methods=["POST"])
    def api_bulk_create():
        data = _json_body()
        if not isinstance(data.get("tasks"), list):
            raise MalformedInputError('Body must contain a "tasks" array')
        result = store.bulk_create(data["tasks"])
        response = {"tasks": [t.to_dict() for t in result.tasks]}
        if result.errors:
            response["errors"] = result.errors
        return jsonify(response), 201

    @app.route("/api/tasks", methods=["DELETE"])
    def api_clear_done():
        if request.args.get("status") != "done":
            return _error("Only status=done is supported for bulk delete", 400)
        return jsonify({"deleted": store.clear_done()})

    @app.route("/api/stats")
    def api_stats():
        return jsonify(store.stats())

    @app.route("/api/events")
    def api_events():
        """Live task events. Each client gets every event from connect onwards."""
        sub = hub.subscribe()
        keepalive = config.keepalive_secs

        def stream():
            try:
                yield ": connected\n\n"
                while not sub.closed:
                    event = sub.get(timeout=keepalive)
                    if event is None:
                        yield ": keepalive\n\n"
                        continue
                    yield f"event: {event.type.value}\ndata: {event.to_json()}\n\n"
            finally:
                hub.unsubscribe(sub)

        return Response(
            stream(),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.route("/health")
    def health():
        return jsonify({
            "status": "ok",
            "tasks": len(store),
            "subscribers": hub.subscriber_count,
            "data_file": config.data_file,
        })

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description="Task Board Server")
    parser.add_argument("--host", default=None,
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--data", help="Path to tasks.json (overrides TASKBOARD_DATA)")
    parser.add_argument("--config", default=None, help="Path to taskboard.yaml")
    args = parser.parse_args(argv)

    cfg = BoardConfig.load(args.config)
    if args.host:
        cfg.host = args.host
    if args.port:
        cfg.port = args.port
    if args.data:
        cfg.data_file = args.data
    cfg.resolve_paths()

    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s [taskboard] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        app = create_app(cfg)
    except PersistenceError as e:
        logger.error(f"Failed to start server: {e}")
        sys.exit(1)

    print(f"""
╔═══════════════════════════════════════╗
║  Task Board Server                    ║
╠═══════════════════════════════════════╣
║  URL:  http://{cfg.host}:{cfg.port:<20}║
║  Data: {cfg.data_file:<31}║
╚═══════════════════════════════════════╝
""")

    app.run(host=cfg.host, port=cfg.port, debug=False, threaded=True)


if __name__ == "__main__":
    main()
