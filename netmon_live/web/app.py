from __future__ import annotations
from urllib.parse import urlsplit

from flask import Flask, Response, current_app, jsonify, request

from ..config import CFG
from ..engine.messages import DismissError, Key, ToggleSetting
from ..engine.model import SETTINGS
from ..output import dumps, frame_to_dict, snapshot_to_dict
from .ui import render_html

LOOPBACK_HOSTS = {"127.0.0.1", "localhost", "::1"}
WILDCARD_HOSTS = {"", "0.0.0.0", "::"}

def _json(obj, status: int = 200) -> Response:
    resp = Response(dumps(obj), status=status, mimetype="application/json")
    resp.headers["Cache-Control"] = "no-store"
    return resp

def _hostname(netloc: str) -> str:
    return (urlsplit(f"//{netloc}").hostname or "").lower()

def allowed_hosts(cfg: CFG):
    """Host names a state-changing request may address; None accepts any."""
    if cfg.web_host in WILDCARD_HOSTS:
        return None
    return LOOPBACK_HOSTS | {cfg.web_host.strip("[]").lower()}

def create_app(cfg: CFG, orchestrator) -> Flask:
    """Flask surface over a running Orchestrator: reads published frames, posts messages."""
    app = Flask(__name__)
    hosts = allowed_hosts(cfg)

    @app.before_request
    def guard_posts():
        # state-changing requests: same-origin JSON only
        if request.method != "POST":
            return None
        if hosts is not None and _hostname(request.host) not in hosts:
            current_app.logger.warning("refused POST %s for host %r", request.path, request.host)
            return jsonify({"ok": False, "error": "host not allowed"}), 403
        origin = request.headers.get("Origin")
        if origin is not None and urlsplit(origin).netloc.lower() != request.host.lower():
            current_app.logger.warning("refused cross-origin POST %s from %r", request.path, origin)
            return jsonify({"ok": False, "error": "cross-origin request refused"}), 403
        if not request.is_json:
            return jsonify({"ok": False, "error": "expected application/json"}), 415
        return None

    @app.get("/")
    def index():
        return Response(render_html(cfg.version), mimetype="text/html")

    @app.get("/api/view")
    def api_view():
        return _json(frame_to_dict(orchestrator.frame()))

    @app.get("/api/snapshot")
    def api_snapshot():
        frame = orchestrator.frame()
        if frame.snapshot is None:
            return _json({"error": "no snapshot collected yet"}, 503)
        return _json(snapshot_to_dict(frame.snapshot, frame.netio))

    @app.post("/api/key")
    def api_key():
        payload = request.get_json(silent=True)
        key = payload.get("key") if isinstance(payload, dict) else None
        if not key or not isinstance(key, str):
            return jsonify({"ok": False, "error": "missing key"}), 400
        orchestrator.post(Key(key))
        current_app.logger.debug("key %r posted", key)
        return jsonify({"ok": True})

    @app.post("/api/settings/<name>")
    def api_toggle(name: str):
        if name not in SETTINGS:
            return jsonify({"ok": False, "error": f"unknown setting: {name}"}), 404
        orchestrator.post(ToggleSetting(name))
        current_app.logger.info("setting %s toggled", name)
        return jsonify({"ok": True})

    @app.post("/api/dismiss")
    def api_dismiss():
        orchestrator.post(DismissError())
        return jsonify({"ok": True})

    return app
