"""
models.py - Shared Data Models
Common: Shared utilities and models

All models are frozen dataclasses. A User is never edited in place:
revocation stores a replaced copy (see UserStore.update).
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from common.errors import InvalidArgument


# ─────────────────────────────────────────────
# ENUMS
# ─────────────────────────────────────────────
class BiometricType(Enum):
    FINGERPRINT = "fingerprint"
    FACIAL_RECOGNITION = "facial"
    IRIS_SCAN = "iris"

    @staticmethod
    def parse(value) -> "BiometricType":
        """Accept an enum member, its value ('facial') or its name."""
        if isinstance(value, BiometricType):
            return value
        text = str(value or "").strip()
        for member in BiometricType:
            if text.lower() == member.value or text.upper() == member.name:
                return member
        raise InvalidArgument(f"Unknown biometric modality: {value!r}")


class AccessLevel(Enum):
    PUBLIC = (1, "Public access")
    RESTRICTED = (2, "Restricted access - Directors")
    CONFIDENTIAL = (3, "Confidential access - Minister")

    def __init__(self, level: int, description: str):
        self.level = level
        self.description = description

    def allows(self, requested: "AccessLevel") -> bool:
        """Hierarchical check: a higher tier covers every lower tier."""
        return self.level >= requested.level

    @staticmethod
    def parse(value) -> "AccessLevel":
        if isinstance(value, AccessLevel):
            return value
        text = str(value or "").strip().upper()
        for member in AccessLevel:
            if text == member.name or text == str(member.level):
                return member
        raise InvalidArgument(f"Unknown access level: {value!r}")


class AuditEventKind(Enum):
    FAILED_AUTHENTICATION = "FAILED_AUTHENTICATION"
    SUCCESSFUL_AUTHENTICATION = "SUCCESSFUL_AUTHENTICATION"
    ENROLLMENT_FAILURE = "ENROLLMENT_FAILURE"
    SUCCESSFUL_ENROLLMENT = "SUCCESSFUL_ENROLLMENT"
    ACCESS_CHECK = "ACCESS_CHECK"
    EXCEPTION = "EXCEPTION"


# ─────────────────────────────────────────────
# CAPTURE
# ─────────────────────────────────────────────
@dataclass(frozen=True)
class BiometricTemplate:
    """One capture event: raw template bytes plus modality and quality."""
    data: bytes = field(repr=False)
    modality: BiometricType
    quality: float
    captured_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not (isinstance(self.quality, (int, float)) and math.isfinite(self.quality)
                and 0.0 <= self.quality <= 1.0):
            raise InvalidArgument(f"Capture quality must be within [0, 1], got {self.quality!r}")

    def __len__(self):
        return len(self.data)


# ─────────────────────────────────────────────
# USER
# ─────────────────────────────────────────────
@dataclass(frozen=True)
class User:
    user_id: str
    name: str
    role: str
    max_access_level: AccessLevel
    encrypted_template: Optional[bytes] = field(default=None, repr=False)
    biometric_type: BiometricType = BiometricType.FACIAL_RECOGNITION
    active: bool = True

    def to_dict(self):
        # never expose the stored template, not even encrypted
        return {
            "user_id": self.user_id,
            "name": self.name,
            "role": self.role,
            "max_access_level": self.max_access_level.name,
            "biometric_type": self.biometric_type.value,
            "active": self.active,
        }


# ─────────────────────────────────────────────
# AUTHENTICATION OUTCOME
# ─────────────────────────────────────────────
SUCCESS_MESSAGE = "Authentication successful"


@dataclass(frozen=True)
class AuthenticationResult:
    success: bool
    message: str
    user: Optional[User] = None
    granted_level: Optional[AccessLevel] = None
    session_token: Optional[str] = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def succeeded(cls, user: User, granted_level: AccessLevel,
                  session_token: str) -> "AuthenticationResult":
        return cls(True, SUCCESS_MESSAGE, user, granted_level, session_token)

    @classmethod
    def failed(cls, message: str) -> "AuthenticationResult":
        return cls(False, message)

    def to_dict(self):
        d = {
            "success": self.success,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(timespec="milliseconds"),
        }
        if self.success:
            d["user"] = self.user.to_dict()
            d["granted_level"] = self.granted_level.name
            d["session_token"] = self.session_token
        return d


# ─────────────────────────────────────────────
# SESSION
# ─────────────────────────────────────────────
@dataclass(frozen=True)
class SessionContext:
    user: User
    granted_level: AccessLevel
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self):
        return {
            "user_id": self.user.user_id,
            "granted_level": self.granted_level.name,
            "created_at": self.created_at.isoformat(timespec="milliseconds"),
        }


# ─────────────────────────────────────────────
# AUDIT
# ─────────────────────────────────────────────
def _escape(value: str) -> str:
    """Keep a field on one line and inside its own column."""
    return (str(value).replace("\\", "\\\\")
            .replace("\r", "\\r")
            .replace("\n", "\\n")
            .replace("|", "\\|"))


@dataclass(frozen=True)
class AuditEntry:
    """
    One audit line. Fields keep their insertion order, e.g.

    [2024-02-28 14:30:15.123] SUCCESSFUL_AUTHENTICATION | UserId: USER-001 | ...
    """
    kind: AuditEventKind
    fields: Tuple[Tuple[str, str], ...] = ()
    timestamp: datetime = field(default_factory=datetime.now)

    def render(self) -> str:
        stamp = self.timestamp.isoformat(sep=" ", timespec="milliseconds")
        parts = [f"[{stamp}] {self.kind.value}"]
        parts.extend(f"{key}: {_escape(value)}" for key, value in self.fields)
        return " | ".join(parts)
