"""
authenticator.py - Authentication Engine

Orchestrates capture intake, identification, verification, access-level
authorization, session issue and auditing.

  authenticate:  quality gate → identify → active? → verify → level check → session
  enroll:        quality gate → unique id → unique biometric → encrypt → save
  revoke_access: replace the stored user with an inactive copy

Nothing raised below this layer reaches the caller. Faults become a
boolean or a failure AuthenticationResult with a fixed, non-sensitive
message; the detail goes to the audit trail.
"""

import dataclasses
import logging

from common.errors import Conflict, CryptoError, InvalidArgument, NotFound
from common.models import AccessLevel, AuthenticationResult, BiometricTemplate, User
from server.config import MIN_AUTH_QUALITY, MIN_ENROLLMENT_QUALITY
from server.matcher import MatcherFactory, threshold_for

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────
# CALLER-VISIBLE FAILURE MESSAGES
# ─────────────────────────────────────────────
MSG_INTERNAL_ERROR        = "Internal authentication error"
MSG_INSUFFICIENT_QUALITY  = "Insufficient biometric capture quality"
MSG_NOT_RECOGNIZED        = "Biometric not recognized"
MSG_INACTIVE_USER         = "Access denied: inactive user"
MSG_VERIFICATION_FAILED   = "Biometric verification failed"
MSG_INSUFFICIENT_LEVEL    = "Access denied: insufficient access level"


class AuthenticationEngine:

    def __init__(self, user_store, session_manager, audit_log, crypto_service,
                 matcher_factory: MatcherFactory = None):
        for name, dep in (("user_store", user_store),
                          ("session_manager", session_manager),
                          ("audit_log", audit_log),
                          ("crypto_service", crypto_service)):
            if dep is None:
                raise InvalidArgument(f"{name} cannot be null")
        self.store = user_store
        self.sessions = session_manager
        self.audit = audit_log
        self.crypto = crypto_service
        self.matchers = matcher_factory or MatcherFactory()

    # ─────────────────────────────────────────────
    # AUTHENTICATION
    # ─────────────────────────────────────────────
    def authenticate(self, capture: BiometricTemplate,
                     requested_level: AccessLevel) -> AuthenticationResult:
        if capture is None:
            self.audit.log_exception("Biometric capture is null",
                                     InvalidArgument("capture is null"))
            return AuthenticationResult.failed(MSG_INTERNAL_ERROR)
        if requested_level is None:
            self.audit.log_exception("Requested access level is null",
                                     InvalidArgument("requested_level is null"))
            return AuthenticationResult.failed(MSG_INTERNAL_ERROR)

        try:
            return self._authenticate(capture, requested_level)
        except Exception as e:
            logger.exception("[AUTH] Unexpected failure")
            self.audit.log_exception("Error during authentication", e)
            return AuthenticationResult.failed(MSG_INTERNAL_ERROR)

    def _authenticate(self, capture: BiometricTemplate,
                      requested_level: AccessLevel) -> AuthenticationResult:
        # Step 1: quality gate
        if not capture.quality >= MIN_AUTH_QUALITY:
            self.audit.log_failed_attempt("Insufficient biometric quality", capture)
            logger.warning(f"[AUTH] Rejected: quality {capture.quality:.2f}")
            return AuthenticationResult.failed(MSG_INSUFFICIENT_QUALITY)

        # Step 2: identify
        user = self.store.find_by_template(capture.data, capture.modality)
        if user is None:
            self.audit.log_failed_attempt("User not found", capture)
            logger.warning("[AUTH] Rejected: biometric not recognized")
            return AuthenticationResult.failed(MSG_NOT_RECOGNIZED)

        # Step 3: account must still be active
        if not user.active:
            self.audit.log_failed_attempt(f"Inactive user: {user.user_id}", capture)
            logger.warning(f"[AUTH] Rejected: '{user.user_id}' is inactive")
            return AuthenticationResult.failed(MSG_INACTIVE_USER)

        # Step 4: explicit verification against the stored template
        if not self._verify(capture, user):
            self.audit.log_failed_attempt("Biometric verification failed", capture)
            logger.warning(f"[AUTH] Rejected: verification failed for '{user.user_id}'")
            return AuthenticationResult.failed(MSG_VERIFICATION_FAILED)

        # Step 5: hierarchical access level
        if not self._check_access_level(user, requested_level):
            self.audit.log_failed_attempt(
                f"Insufficient access level: {user.user_id} requested {requested_level.name}",
                capture,
            )
            logger.warning(f"[AUTH] Denied {requested_level.name} to '{user.user_id}'")
            return AuthenticationResult.failed(MSG_INSUFFICIENT_LEVEL)

        # Step 6: session + audit
        token = self.sessions.create_session(user, requested_level)
        self.audit.log_successful_authentication(user, requested_level)
        logger.info(f"[AUTH] SUCCESS for '{user.user_id}' at {requested_level.name}")
        return AuthenticationResult.succeeded(user, requested_level, token)

    def _verify(self, capture: BiometricTemplate, user: User) -> bool:
        """Decrypt, compare lengths (fail closed), score, apply threshold."""
        try:
            stored = self.crypto.decrypt(user.encrypted_template)
        except CryptoError as e:
            self.audit.log_exception("Error decrypting stored template", e)
            return False

        if len(stored) != len(capture.data):
            return False

        matcher = self.matchers.get_matcher(capture.modality)
        score = matcher.similarity(capture.data, stored)
        return score >= threshold_for(capture.modality)

    def _check_access_level(self, user: User, requested_level: AccessLevel) -> bool:
        granted = user.max_access_level.allows(requested_level)
        self.audit.log_access_check(user.user_id, requested_level, granted)
        return granted

    # ─────────────────────────────────────────────
    # ENROLLMENT
    # ─────────────────────────────────────────────
    def enroll(self, user: User, capture: BiometricTemplate) -> bool:
        if user is None or capture is None:
            self.audit.log_enrollment_failure("Invalid input data")
            return False
        if not user.user_id:
            self.audit.log_enrollment_failure("Invalid user id")
            return False

        try:
            return self._enroll(user, capture)
        except CryptoError as e:
            self.audit.log_exception("Error encrypting biometric template", e)
            return False
        except Exception as e:
            logger.exception("[ENROLL] Unexpected failure")
            self.audit.log_exception("Error during enrollment", e)
            return False

    def _enroll(self, user: User, capture: BiometricTemplate) -> bool:
        # Step 1: stricter quality gate
        if not capture.quality >= MIN_ENROLLMENT_QUALITY:
            self.audit.log_enrollment_failure(
                f"Insufficient biometric quality for enrollment: {capture.quality:.2f}"
            )
            logger.warning(f"[ENROLL] Rejected '{user.user_id}': quality {capture.quality:.2f}")
            return False

        # Steps 2-3: uniqueness of identifier and biometric
        try:
            self._check_unique(user, capture)
        except Conflict as e:
            self.audit.log_enrollment_failure(e.message)
            logger.warning(f"[ENROLL] Rejected '{user.user_id}': {e.message}")
            return False

        # Step 4: encrypt, build the active record, persist
        enrolled = dataclasses.replace(
            user,
            encrypted_template=self.crypto.encrypt(capture.data),
            biometric_type=capture.modality,
            active=True,
        )
        if not self.store.save(enrolled):
            # lost a race with a concurrent enrollment
            self.audit.log_enrollment_failure("Failed to save user to the store")
            logger.warning(f"[ENROLL] Store rejected '{user.user_id}'")
            return False

        self.audit.log_successful_enrollment(user.user_id, user.max_access_level)
        logger.info(f"[ENROLL] '{user.user_id}' enrolled at {user.max_access_level.name}")
        return True

    def _check_unique(self, user: User, capture: BiometricTemplate):
        if self.store.find_by_id(user.user_id) is not None:
            raise Conflict(f"User already exists: {user.user_id}",
                           context={"user_id": user.user_id})
        if self.store.find_by_template(capture.data, capture.modality) is not None:
            raise Conflict("Biometric already enrolled")

    # ─────────────────────────────────────────────
    # REVOCATION
    # ─────────────────────────────────────────────
    def revoke_access(self, user_id: str) -> bool:
        if not user_id:
            return False
        try:
            user = self._require_user(user_id)
            updated = self.store.update(dataclasses.replace(user, active=False))
            if updated:
                self.audit.log_access_check(user_id, None, False)
                logger.info(f"[REVOKE] Access revoked for '{user_id}'")
            return updated
        except NotFound:
            logger.warning(f"[REVOKE] Unknown user '{user_id}'")
            return False
        except Exception as e:
            logger.exception("[REVOKE] Unexpected failure")
            self.audit.log_exception("Error revoking access", e)
            return False

    def _require_user(self, user_id: str) -> User:
        user = self.store.find_by_id(user_id)
        if user is None:
            raise NotFound(f"Unknown user: {user_id}", context={"user_id": user_id})
        return user
