"""
test_sessions.py - Session Token Tests
"""

import sys
import os
import re
import threading
import unittest
from unittest import mock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from common.errors import InvalidArgument
from common.models import AccessLevel, User
from server.sessions import SessionManager

URL_SAFE = re.compile(r"^[A-Za-z0-9_-]+$")


# ─────────────────────────────────────────────
class TestSessionManager(unittest.TestCase):

    def setUp(self):
        self.sessions = SessionManager()
        self.user = User("USER-001", "João Silva", "Public Servant", AccessLevel.PUBLIC)

    def test_token_format(self):
        token = self.sessions.create_session(self.user, AccessLevel.PUBLIC)
        self.assertGreaterEqual(len(token), 43)      # 32 bytes, base64 without padding
        self.assertRegex(token, URL_SAFE)
        self.assertNotIn("=", token)

    def test_tokens_unique(self):
        tokens = {self.sessions.create_session(self.user, AccessLevel.PUBLIC) for _ in range(200)}
        self.assertEqual(len(tokens), 200)
        self.assertEqual(self.sessions.active_session_count(), 200)

    def test_lookup(self):
        token = self.sessions.create_session(self.user, AccessLevel.PUBLIC)
        self.assertTrue(self.sessions.is_valid_token(token))
        self.assertEqual(self.sessions.get_user(token), self.user)
        self.assertEqual(self.sessions.get_granted_level(token), AccessLevel.PUBLIC)
        self.assertIsNotNone(self.sessions.get_created_at(token))

    def test_unknown_token(self):
        for token in ("nope", "", None):
            self.assertFalse(self.sessions.is_valid_token(token))
            self.assertIsNone(self.sessions.get_user(token))
            self.assertIsNone(self.sessions.get_granted_level(token))
            self.assertIsNone(self.sessions.get_created_at(token))

    def test_invalidate(self):
        token = self.sessions.create_session(self.user, AccessLevel.PUBLIC)
        self.assertTrue(self.sessions.invalidate_session(token))
        self.assertFalse(self.sessions.is_valid_token(token))
        self.assertFalse(self.sessions.invalidate_session(token))
        self.assertEqual(self.sessions.active_session_count(), 0)

    def test_null_arguments(self):
        with self.assertRaises(InvalidArgument):
            self.sessions.create_session(None, AccessLevel.PUBLIC)
        with self.assertRaises(InvalidArgument):
            self.sessions.create_session(self.user, None)

    def test_collision_is_retried(self):
        with mock.patch.object(self.sessions, "_new_token",
                               side_effect=["tok-a", "tok-a", "tok-b"]):
            first = self.sessions.create_session(self.user, AccessLevel.PUBLIC)
            second = self.sessions.create_session(self.user, AccessLevel.PUBLIC)
        self.assertEqual((first, second), ("tok-a", "tok-b"))

    def test_too_little_entropy_rejected(self):
        with self.assertRaises(InvalidArgument):
            SessionManager(token_bytes=16)

    def test_concurrent_creation(self):
        tokens = []
        lock = threading.Lock()

        def worker():
            mine = [self.sessions.create_session(self.user, AccessLevel.PUBLIC)
                    for _ in range(50)]
            with lock:
                tokens.extend(mine)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(len(set(tokens)), 400)
        self.assertEqual(self.sessions.active_session_count(), 400)


# ─────────────────────────────────────────────
if __name__ == "__main__":
    unittest.main(verbosity=2)
