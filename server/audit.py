"""
audit.py - Append-Only Audit Trail

One line per security-relevant event, bracketed millisecond timestamp,
pipe-separated "Key: value" fields:

  [2024-02-28 14:30:15.123] SUCCESSFUL_AUTHENTICATION | UserId: USER-001 | UserName: João Silva | GrantedLevel: PUBLIC (1)

Lines only ever carry modality, quality, identifiers and levels; never a
template or a key. A failed write is reported on the logging error channel
and swallowed so the caller's outcome stands. Values are escaped so a
field can never break the line or its columns.
"""

import os
import threading
import logging
from collections import deque
from typing import List, Optional

from common.models import AccessLevel, AuditEntry, AuditEventKind, BiometricTemplate, User
from common.utils import ensure_dir
from server.config import AUDIT_LOG_PATH

logger = logging.getLogger(__name__)


def _level_text(level: Optional[AccessLevel]) -> str:
    if level is None:
        return "NONE"
    return f"{level.name} ({level.level})"


def _exception_class(exc: BaseException) -> str:
    cls = type(exc)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


class AuditLog:

    def __init__(self, path: str = AUDIT_LOG_PATH):
        self.path = path
        self._lock = threading.Lock()

    # ─────────────────────────────────────────────
    # AUTHENTICATION EVENTS
    # ─────────────────────────────────────────────
    def log_failed_attempt(self, reason: str, capture: Optional[BiometricTemplate] = None):
        modality = capture.modality.name if capture is not None else "UNKNOWN"
        quality = capture.quality if capture is not None else 0.0
        self._append(AuditEventKind.FAILED_AUTHENTICATION,
                     ("Reason", reason),
                     ("BiometricType", modality),
                     ("Quality", f"{quality:.2f}"))

    def log_successful_authentication(self, user: User, granted_level: AccessLevel):
        self._append(AuditEventKind.SUCCESSFUL_AUTHENTICATION,
                     ("UserId", user.user_id),
                     ("UserName", user.name),
                     ("GrantedLevel", _level_text(granted_level)))

    def log_access_check(self, user_id: str, requested_level: Optional[AccessLevel],
                         granted: bool):
        """requested_level is None for revocations."""
        self._append(AuditEventKind.ACCESS_CHECK,
                     ("UserId", user_id),
                     ("RequestedLevel", _level_text(requested_level)),
                     ("Decision", "GRANTED" if granted else "DENIED"))

    # ─────────────────────────────────────────────
    # ENROLLMENT EVENTS
    # ─────────────────────────────────────────────
    def log_enrollment_failure(self, reason: str):
        self._append(AuditEventKind.ENROLLMENT_FAILURE, ("Reason", reason))

    def log_successful_enrollment(self, user_id: str, access_level: AccessLevel):
        self._append(AuditEventKind.SUCCESSFUL_ENROLLMENT,
                     ("UserId", user_id),
                     ("AccessLevel", _level_text(access_level)))

    # ─────────────────────────────────────────────
    # FAULTS
    # ─────────────────────────────────────────────
    def log_exception(self, message: str, exc: BaseException):
        self._append(AuditEventKind.EXCEPTION,
                     ("Message", message),
                     ("Exception", _exception_class(exc)),
                     ("ExceptionMessage", str(exc)))

    # ─────────────────────────────────────────────
    # SINK
    # ─────────────────────────────────────────────
    def _append(self, kind: AuditEventKind, *fields):
        entry = AuditEntry(kind, tuple((key, str(value)) for key, value in fields))
        self.write(entry)

    def write(self, entry: AuditEntry):
        line = entry.render()
        try:
            with self._lock:
                ensure_dir(os.path.dirname(self.path))
                with open(self.path, "a", encoding="utf-8", errors="backslashreplace") as f:
                    f.write(line + "\n")
        except (OSError, ValueError) as e:
            logger.error(f"AUDIT WRITE FAILED ({self.path}): {e}")
            logger.error(f"Audit entry: {line}")

    def read_entries(self, limit: int = 50) -> List[str]:
        """Last *limit* lines, oldest first."""
        if limit <= 0:
            return []
        try:
            with self._lock, open(self.path, encoding="utf-8") as f:
                return [line.rstrip("\n") for line in deque(f, maxlen=limit)]
        except FileNotFoundError:
            return []
