"""
api.py - Flask REST API Server

Thin presentation layer over AuthenticationEngine. Templates travel as
base64 in JSON bodies; nothing returned ever includes a template.
"""

import os
import time
import logging

from flask import Flask, request, jsonify

from common.errors import BioAuthError, Conflict, InvalidArgument, NotFound
from common.models import AccessLevel, BiometricTemplate, BiometricType, User
from common.utils import b64decode_template, mask_sensitive
from server import config
from server.audit import AuditLog
from server.authenticator import AuthenticationEngine
from server.crypto_server import CryptoService
from server.database import UserStore
from server.matcher import MatcherFactory
from server.sessions import SessionManager

logger = logging.getLogger("bioauth_api")

DEMO_USERS = (
    ("USER-001", "João Silva", "Public Servant", AccessLevel.PUBLIC),
    ("DIR-001", "Maria Santos", "Division Director", AccessLevel.RESTRICTED),
    ("MIN-001", "Carlos Oliveira", "Minister of the Environment", AccessLevel.CONFIDENTIAL),
)


# ─── WIRING ───────────────────────────────────────────────────────────────────

def build_engine(audit_path: str = None, key: bytes = None) -> AuthenticationEngine:
    """Construct every collaborator once and hand them to the engine."""
    crypto = CryptoService(key if key is not None else config.load_template_key())
    matchers = MatcherFactory()
    return AuthenticationEngine(
        UserStore(crypto, matchers),
        SessionManager(config.SESSION_TOKEN_BYTES),
        AuditLog(audit_path or config.AUDIT_LOG_PATH),
        crypto,
        matchers,
    )


def seed_demo_users(engine: AuthenticationEngine, scanner=None) -> int:
    """Enroll the three demo identities from simulated captures."""
    from client.capture import FacialRecognitionScanner

    scanner = scanner or FacialRecognitionScanner()
    enrolled = 0
    for user_id, name, role, level in DEMO_USERS:
        user = User(user_id, name, role, level)
        if engine.enroll(user, scanner.capture(user_id)):
            enrolled += 1
    logger.info(f"Seeded {enrolled}/{len(DEMO_USERS)} demo users")
    return enrolled


# ─── HELPERS ──────────────────────────────────────────────────────────────────

def _json_body() -> dict:
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise InvalidArgument("JSON object body required")
    logger.debug(f"Request body: {mask_sensitive(data)}")
    return data


def _capture_from(data: dict) -> BiometricTemplate:
    try:
        quality = float(data.get("quality"))
    except (TypeError, ValueError):
        raise InvalidArgument("quality must be a number")
    return BiometricTemplate(
        b64decode_template(data.get("template", "")),
        BiometricType.parse(data.get("modality", BiometricType.FACIAL_RECOGNITION.value)),
        quality,
    )


def client_ip() -> str:
    return request.remote_addr or ""


# ─── APP FACTORY ──────────────────────────────────────────────────────────────

def create_app(engine: AuthenticationEngine = None) -> Flask:
    engine = engine or build_engine()
    app = Flask(__name__)
    app.config["ENGINE"] = engine

    @app.route("/api/health", methods=["GET"])
    def health():
        supported = [m.value for m in BiometricType if engine.matchers.supports(m)]
        return jsonify({"status": "ok", "timestamp": int(time.time()),
                        "modalities": supported}), 200

    @app.route("/api/enroll", methods=["POST"])
    def enroll():
        data = _json_body()
        user = User(
            user_id=str(data.get("user_id") or "").strip(),
            name=str(data.get("name") or "").strip(),
            role=str(data.get("role") or "").strip(),
            max_access_level=AccessLevel.parse(data.get("access_level", "PUBLIC")),
        )
        ok = engine.enroll(user, _capture_from(data))
        logger.info(f"[ENROLL] '{user.user_id}' from {client_ip()} → {ok}")
        return jsonify({"enrolled": ok, "user_id": user.user_id}), (201 if ok else 400)

    @app.route("/api/authenticate", methods=["POST"])
    def authenticate():
        data = _json_body()
        level = AccessLevel.parse(data.get("requested_level", "PUBLIC"))
        result = engine.authenticate(_capture_from(data), level)
        logger.info(f"[AUTH] {level.name} from {client_ip()} → {result.success}")
        return jsonify(result.to_dict()), (200 if result.success else 401)

    @app.route("/api/user/<user_id>/revoke", methods=["POST"])
    def revoke(user_id: str):
        ok = engine.revoke_access(user_id)
        return jsonify({"revoked": ok, "user_id": user_id}), (200 if ok else 404)

    @app.route("/api/session/<token>", methods=["GET"])
    def get_session(token: str):
        context = engine.sessions.get_session(token)
        if context is None:
            raise NotFound("Unknown session")
        return jsonify({"valid": True, **context.to_dict()}), 200

    @app.route("/api/session/<token>", methods=["DELETE"])
    def close_session(token: str):
        if not engine.sessions.invalidate_session(token):
            raise NotFound("Unknown session")
        return jsonify({"invalidated": True}), 200

    @app.route("/api/users", methods=["GET"])
    def list_users():
        users = [u.to_dict() for u in engine.store.all_users()]
        return jsonify({"users": users, "count": len(users)}), 200

    @app.route("/api/logs", methods=["GET"])
    def audit_logs():
        try:
            limit = int(request.args.get("limit", 50))
        except ValueError:
            raise InvalidArgument("limit must be an integer")
        logs = engine.audit.read_entries(limit)
        return jsonify({"logs": logs, "count": len(logs)}), 200

    # ─── ERROR HANDLERS ───────────────────────────────────────────────────────

    @app.errorhandler(BioAuthError)
    def domain_error(e: BioAuthError):
        status = 500
        if isinstance(e, InvalidArgument):
            status = 400
        elif isinstance(e, NotFound):
            status = 404
        elif isinstance(e, Conflict):
            status = 409
        if status == 500:
            logger.error(f"Unhandled {e.__class__.__name__}: {e.message}")
            return jsonify({"error": "Internal server error"}), 500
        return jsonify({"error": e.message}), status

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Endpoint not found"}), 404

    @app.errorhandler(500)
    def internal(e):
        logger.exception("Internal server error")
        return jsonify({"error": "Internal server error"}), 500

    return app


# ─── STARTUP ──────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    logging.basicConfig(
        level=logging.DEBUG if config.DEBUG else logging.INFO,
        format="[%(asctime)s] [%(levelname)s] %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    engine = build_engine()
    if config.SEED_DEMO_USERS:
        seed_demo_users(engine)

    logger.info(f"Audit trail: {os.path.abspath(engine.audit.path)}")
    logger.info(f"API health check: http://{config.SERVER_HOST}:{config.SERVER_PORT}/api/health")
    create_app(engine).run(host=config.SERVER_HOST, port=config.SERVER_PORT, debug=config.DEBUG)
