"""
client_app.py - Operator Client
Drives enrollment, authentication and revocation against the API server.

Usage:
  python -m client.client_app enroll  --user USER-001 --name "João Silva" --level PUBLIC
  python -m client.client_app auth    --user USER-001 --level PUBLIC
  python -m client.client_app revoke  --user USER-001
  python -m client.client_app users
  python -m client.client_app logs    --limit 20
"""

import os
import sys
import argparse
import logging

import requests

from client.capture import FacialRecognitionScanner
from common.models import BiometricTemplate
from common.utils import b64encode_template

logger = logging.getLogger(__name__)

SERVER_URL = os.environ.get("BIOAUTH_SERVER_URL", "http://127.0.0.1:5000")
TIMEOUT = 10


def capture_payload(capture: BiometricTemplate) -> dict:
    """JSON fields describing one capture."""
    return {
        "template": b64encode_template(capture.data),
        "modality": capture.modality.value,
        "quality": capture.quality,
    }


def _call(method: str, path: str, **kwargs) -> requests.Response:
    try:
        return requests.request(method, f"{SERVER_URL}{path}", timeout=TIMEOUT, **kwargs)
    except requests.exceptions.ConnectionError:
        logger.error("=" * 55)
        logger.error("CANNOT CONNECT TO SERVER at %s", SERVER_URL)
        logger.error("Make sure the server is running first:")
        logger.error("  python -m server.api")
        logger.error("=" * 55)
        sys.exit(1)


# ──────────────────────────────────────────────
# ENROLLMENT
# ──────────────────────────────────────────────
def enroll(user_id: str, name: str, role: str, level: str,
           scanner: FacialRecognitionScanner = None) -> bool:
    scanner = scanner or FacialRecognitionScanner()
    capture = scanner.capture(user_id)
    logger.info(f"✔ Template captured ({len(capture)} bytes, quality={capture.quality:.2f})")

    body = {"user_id": user_id, "name": name, "role": role, "access_level": level}
    body.update(capture_payload(capture))
    resp = _call("POST", "/api/enroll", json=body)
    enrolled = resp.json().get("enrolled", False)
    if enrolled:
        logger.info(f"🟢 ENROLLED '{user_id}' at {level}")
    else:
        logger.warning(f"🔴 ENROLLMENT REJECTED for '{user_id}' (see audit log)")
    return enrolled


# ──────────────────────────────────────────────
# AUTHENTICATION
# ──────────────────────────────────────────────
def authenticate(subject: str, level: str,
                 scanner: FacialRecognitionScanner = None) -> dict:
    scanner = scanner or FacialRecognitionScanner()
    capture = scanner.capture(subject)
    logger.info(f"✔ New biometric captured (quality={capture.quality:.2f})")

    body = {"requested_level": level}
    body.update(capture_payload(capture))
    result = _call("POST", "/api/authenticate", json=body).json()

    logger.info("-" * 55)
    if result.get("success"):
        logger.info(f"🟢 AUTHENTICATION SUCCESS  user={result['user']['user_id']} "
                    f"level={result['granted_level']}")
        logger.info(f"   Session token: {result['session_token'][:8]}…")
    else:
        logger.warning(f"🔴 AUTHENTICATION FAILED: {result.get('message')}")
    return result


# ──────────────────────────────────────────────
# ADMINISTRATION
# ──────────────────────────────────────────────
def revoke(user_id: str) -> bool:
    revoked = _call("POST", f"/api/user/{user_id}/revoke").json().get("revoked", False)
    logger.info(f"Revoke '{user_id}': {'done' if revoked else 'unknown user'}")
    return revoked


def list_users():
    users = _call("GET", "/api/users").json().get("users", [])
    if not users:
        print("No users enrolled.")
        return
    print("Enrolled users:")
    for u in users:
        state = "active" if u["active"] else "revoked"
        print(f"  • {u['user_id']:<10} {u['name']:<20} {u['max_access_level']:<13} {state}")


def show_logs(limit: int):
    for line in _call("GET", "/api/logs", params={"limit": limit}).json().get("logs", []):
        print(line)


# ──────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────
def main(argv=None):
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    parser = argparse.ArgumentParser(description="Biometric Access Control Client")
    sub = parser.add_subparsers(dest="cmd")

    p_enroll = sub.add_parser("enroll", help="Enroll a new user")
    p_enroll.add_argument("--user", required=True)
    p_enroll.add_argument("--name", required=True)
    p_enroll.add_argument("--role", default="")
    p_enroll.add_argument("--level", default="PUBLIC")

    p_auth = sub.add_parser("auth", help="Authenticate with a fresh capture")
    p_auth.add_argument("--user", required=True, help="subject whose face is presented")
    p_auth.add_argument("--level", default="PUBLIC")

    p_revoke = sub.add_parser("revoke", help="Revoke a user's access")
    p_revoke.add_argument("--user", required=True)

    sub.add_parser("users", help="List enrolled users")

    p_logs = sub.add_parser("logs", help="Show the tail of the audit trail")
    p_logs.add_argument("--limit", type=int, default=50)

    args = parser.parse_args(argv)

    if args.cmd == "enroll":
        enroll(args.user, args.name, args.role, args.level)
    elif args.cmd == "auth":
        authenticate(args.user, args.level)
    elif args.cmd == "revoke":
        revoke(args.user)
    elif args.cmd == "users":
        list_users()
    elif args.cmd == "logs":
        show_logs(args.limit)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
