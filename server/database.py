"""
database.py - In-Memory User Store

Registry of enrolled users keyed by identifier. Templates are kept
encrypted; the store decrypts them only to compare.

Concurrency: every write (and the uniqueness checks that guard it) runs
under one lock, so "check, then insert" is a single step. Reads work on a
snapshot of the registry taken under the same lock.

Nothing here survives a restart.
"""

import threading
import logging
from typing import List, Optional

from common.errors import CryptoError
from common.models import BiometricType, User
from server.matcher import MatcherFactory, threshold_for

logger = logging.getLogger(__name__)


class UserStore:

    def __init__(self, crypto, matcher_factory: Optional[MatcherFactory] = None):
        self._crypto = crypto
        self._matchers = matcher_factory or MatcherFactory()
        self._lock = threading.Lock()
        self._users: dict = {}

    def _snapshot(self) -> List[User]:
        with self._lock:
            return list(self._users.values())

    def _decrypt_or_none(self, user: User) -> Optional[bytes]:
        try:
            return self._crypto.decrypt(user.encrypted_template)
        except CryptoError as e:
            logger.warning(f"Skipping '{user.user_id}': stored template unreadable ({e.message})")
            return None

    # ─────────────────────────────────────────────
    # LOOKUPS
    # ─────────────────────────────────────────────
    def find_by_id(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        with self._lock:
            return self._users.get(user_id)

    def find_by_template(self, template: bytes, modality: BiometricType) -> Optional[User]:
        """
        Identify the first enrolled user whose stored template scores at or
        above the modality threshold against *template*.

        Linear in the number of enrolled users. Inactive users are returned
        too; deciding what to do with them is the engine's job.
        Raises UnsupportedModality when no matcher exists for *modality*.
        """
        if not template or modality is None:
            return None

        matcher = self._matchers.get_matcher(modality)
        threshold = threshold_for(modality)

        for user in self._snapshot():
            if user.biometric_type != modality:
                continue
            stored = self._decrypt_or_none(user)
            if stored is None or len(stored) != len(template):
                continue
            if matcher.similarity(template, stored) >= threshold:
                return user
        return None

    def all_users(self) -> List[User]:
        return self._snapshot()

    def count(self) -> int:
        with self._lock:
            return len(self._users)

    # ─────────────────────────────────────────────
    # WRITES
    # ─────────────────────────────────────────────
    def _has_equal_template(self, user: User) -> bool:
        """Content equality against every active user of the same modality."""
        candidate = self._crypto.decrypt(user.encrypted_template)
        for other in self._users.values():
            if not other.active or other.biometric_type != user.biometric_type:
                continue
            stored = self._decrypt_or_none(other)
            if stored is not None and stored == candidate:
                return True
        return False

    def save(self, user: User) -> bool:
        """
        Insert a new user. Returns False, with no effect, when the id is
        taken or an active user already holds an identical template.
        """
        if user is None or not user.user_id or not user.encrypted_template:
            return False
        with self._lock:
            if user.user_id in self._users:
                logger.info(f"Rejected save: id '{user.user_id}' already enrolled")
                return False
            if self._has_equal_template(user):
                logger.info(f"Rejected save for '{user.user_id}': template already enrolled")
                return False
            self._users[user.user_id] = user
        logger.info(f"User '{user.user_id}' stored")
        return True

    def update(self, user: User) -> bool:
        """Atomically replace the stored value for an existing id."""
        if user is None or not user.user_id:
            return False
        with self._lock:
            if user.user_id not in self._users:
                return False
            self._users[user.user_id] = user
        logger.info(f"User '{user.user_id}' updated (active={user.active})")
        return True
