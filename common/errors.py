"""
errors.py - Error Taxonomy
Common: Shared utilities and models

Every fault the engine can hit is one of these. They are caught at the
AuthenticationEngine boundary and turned into a boolean or a sanitized
AuthenticationResult; the full detail only goes to the audit trail.
"""

from typing import Optional, Dict, Any


class BioAuthError(Exception):
    """Base class for all biometric access control errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class InvalidArgument(BioAuthError, ValueError):
    """Null, empty or malformed input."""


class CryptoError(BioAuthError):
    """Key, envelope or integrity failure in the template cipher."""


class UnsupportedModality(BioAuthError):
    """No matcher is bound to the requested biometric modality."""

    def __init__(self, modality):
        name = getattr(modality, "name", str(modality))
        super().__init__(
            f"Biometric modality {name} is not implemented",
            context={"modality": name},
        )


class NotFound(BioAuthError):
    """Unknown user identifier or session token."""


class Conflict(BioAuthError):
    """Uniqueness violation during enrollment."""


class CaptureFailure(BioAuthError):
    """The capture device could not produce a usable sample."""
