"""
sessions.py - Session Tokens

Opaque, unguessable tokens bound to (user, granted level). Sessions live
in memory until invalidated or the process exits; there is no expiry and
revoking a user does not touch sessions already issued to them.
"""

import secrets
import threading
import logging
from datetime import datetime
from typing import Optional

from common.errors import InvalidArgument
from common.models import AccessLevel, SessionContext, User
from server.config import SESSION_TOKEN_BYTES

logger = logging.getLogger(__name__)


class SessionManager:

    def __init__(self, token_bytes: int = SESSION_TOKEN_BYTES):
        if token_bytes < 32:
            raise InvalidArgument("Session tokens need at least 256 bits of entropy")
        self._token_bytes = token_bytes
        self._lock = threading.Lock()
        self._sessions: dict = {}

    def _new_token(self) -> str:
        # URL-safe base64, no padding
        return secrets.token_urlsafe(self._token_bytes)

    def create_session(self, user: User, granted_level: AccessLevel) -> str:
        if user is None:
            raise InvalidArgument("User cannot be null")
        if granted_level is None:
            raise InvalidArgument("Granted level cannot be null")

        context = SessionContext(user, granted_level)
        with self._lock:
            token = self._new_token()
            while token in self._sessions:
                token = self._new_token()
            self._sessions[token] = context
        logger.info(f"[SESSION] Opened for '{user.user_id}' at {granted_level.name}")
        return token

    # ─────────────────────────────────────────────
    # LOOKUPS
    # ─────────────────────────────────────────────
    def get_session(self, token: str) -> Optional[SessionContext]:
        if not token:
            return None
        with self._lock:
            return self._sessions.get(token)

    def is_valid_token(self, token: str) -> bool:
        return self.get_session(token) is not None

    def get_user(self, token: str) -> Optional[User]:
        context = self.get_session(token)
        return context.user if context else None

    def get_granted_level(self, token: str) -> Optional[AccessLevel]:
        context = self.get_session(token)
        return context.granted_level if context else None

    def get_created_at(self, token: str) -> Optional[datetime]:
        context = self.get_session(token)
        return context.created_at if context else None

    # ─────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────
    def invalidate_session(self, token: str) -> bool:
        if not token:
            return False
        with self._lock:
            removed = self._sessions.pop(token, None)
        if removed is not None:
            logger.info(f"[SESSION] Closed for '{removed.user.user_id}'")
        return removed is not None

    def active_session_count(self) -> int:
        with self._lock:
            return len(self._sessions)
