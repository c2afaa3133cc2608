"""
config.py - Server Configuration
"""

import os

# ─────────────────────────────────────────────
# SERVER
# ─────────────────────────────────────────────
SERVER_HOST = os.environ.get("SERVER_HOST", "127.0.0.1")
SERVER_PORT = int(os.environ.get("SERVER_PORT", "5000"))
DEBUG       = os.environ.get("DEBUG", "0") == "1"

# ─────────────────────────────────────────────
# AUDIT TRAIL
# ─────────────────────────────────────────────
AUDIT_LOG_PATH = os.environ.get(
    "BIOAUTH_AUDIT_LOG", os.path.join(os.path.dirname(__file__), "audit.log")
)

# ─────────────────────────────────────────────
# TEMPLATE ENCRYPTION
# 64 hex chars (AES-256). Unset → a fresh key per process, which is fine
# because nothing is persisted across restarts anyway.
# ─────────────────────────────────────────────
TEMPLATE_KEY_HEX = os.environ.get("BIOAUTH_TEMPLATE_KEY", "")


def load_template_key():
    """Return the configured key bytes, or None to let CryptoService generate one."""
    if not TEMPLATE_KEY_HEX:
        return None
    return bytes.fromhex(TEMPLATE_KEY_HEX)


# ─────────────────────────────────────────────
# SECURITY PARAMS
# ─────────────────────────────────────────────
MIN_AUTH_QUALITY       = 0.7   # capture quality gate for authentication
MIN_ENROLLMENT_QUALITY = 0.8   # stricter: enrollment seeds every future match
SESSION_TOKEN_BYTES    = 32    # 256 bits of entropy

# ─────────────────────────────────────────────
# DEMO
# ─────────────────────────────────────────────
SEED_DEMO_USERS = os.environ.get("SEED_DEMO_USERS", "0") == "1"
