"""
test_audit.py - Audit Trail Tests
"""

import sys
import os
import re
import shutil
import tempfile
import threading
import unittest
from datetime import datetime

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from common.errors import UnsupportedModality
from common.models import (
    AccessLevel,
    AuditEntry,
    AuditEventKind,
    BiometricTemplate,
    BiometricType,
    User,
)
from server.audit import AuditLog

STAMP = r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}\] "


class AuditTestCase(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.path = os.path.join(self.tmpdir, "audit.log")
        self.audit = AuditLog(self.path)
        self.user = User("USER-001", "João Silva", "Public Servant", AccessLevel.PUBLIC)

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def lines(self):
        with open(self.path, encoding="utf-8") as f:
            return f.read().splitlines()

    def last_line_without_stamp(self):
        line = self.lines()[-1]
        self.assertRegex(line, STAMP)
        return re.sub(STAMP, "", line)


# ─────────────────────────────────────────────
class TestLineFormat(AuditTestCase):

    def test_render_matches_sink_format(self):
        entry = AuditEntry(
            AuditEventKind.SUCCESSFUL_AUTHENTICATION,
            (("UserId", "USER-001"), ("UserName", "João Silva"), ("GrantedLevel", "PUBLIC (1)")),
            datetime(2024, 2, 28, 14, 30, 15, 123456),
        )
        self.assertEqual(
            entry.render(),
            "[2024-02-28 14:30:15.123] SUCCESSFUL_AUTHENTICATION | UserId: USER-001 | "
            "UserName: João Silva | GrantedLevel: PUBLIC (1)",
        )

    def test_failed_attempt(self):
        capture = BiometricTemplate(os.urandom(512), BiometricType.FACIAL_RECOGNITION, 0.654)
        self.audit.log_failed_attempt("Insufficient biometric quality", capture)
        self.assertEqual(
            self.last_line_without_stamp(),
            "FAILED_AUTHENTICATION | Reason: Insufficient biometric quality | "
            "BiometricType: FACIAL_RECOGNITION | Quality: 0.65",
        )

    def test_failed_attempt_without_capture(self):
        self.audit.log_failed_attempt("No capture")
        self.assertTrue(self.last_line_without_stamp().endswith(
            "BiometricType: UNKNOWN | Quality: 0.00"))

    def test_successful_authentication(self):
        self.audit.log_successful_authentication(self.user, AccessLevel.PUBLIC)
        self.assertEqual(
            self.last_line_without_stamp(),
            "SUCCESSFUL_AUTHENTICATION | UserId: USER-001 | UserName: João Silva | "
            "GrantedLevel: PUBLIC (1)",
        )

    def test_enrollment_events(self):
        self.audit.log_enrollment_failure("User already exists: USER-001")
        self.assertEqual(self.last_line_without_stamp(),
                         "ENROLLMENT_FAILURE | Reason: User already exists: USER-001")
        self.audit.log_successful_enrollment("MIN-001", AccessLevel.CONFIDENTIAL)
        self.assertEqual(self.last_line_without_stamp(),
                         "SUCCESSFUL_ENROLLMENT | UserId: MIN-001 | AccessLevel: CONFIDENTIAL (3)")

    def test_access_check(self):
        self.audit.log_access_check("DIR-001", AccessLevel.RESTRICTED, True)
        self.assertEqual(self.last_line_without_stamp(),
                         "ACCESS_CHECK | UserId: DIR-001 | RequestedLevel: RESTRICTED (2) | "
                         "Decision: GRANTED")
        self.audit.log_access_check("DIR-001", None, False)
        self.assertEqual(self.last_line_without_stamp(),
                         "ACCESS_CHECK | UserId: DIR-001 | RequestedLevel: NONE | Decision: DENIED")

    def test_exception(self):
        self.audit.log_exception("Error during authentication",
                                 UnsupportedModality(BiometricType.IRIS_SCAN))
        self.assertEqual(
            self.last_line_without_stamp(),
            "EXCEPTION | Message: Error during authentication | "
            "Exception: common.errors.UnsupportedModality | "
            "ExceptionMessage: Biometric modality IRIS_SCAN is not implemented",
        )
        self.audit.log_exception("boom", ValueError("bad"))
        self.assertTrue(self.last_line_without_stamp().endswith(
            "Exception: ValueError | ExceptionMessage: bad"))


# ─────────────────────────────────────────────
class TestSink(AuditTestCase):

    def test_append_only_in_arrival_order(self):
        self.audit.log_enrollment_failure("first")
        self.audit.log_enrollment_failure("second")
        AuditLog(self.path).log_enrollment_failure("third")
        reasons = [line.rsplit("Reason: ", 1)[1] for line in self.lines()]
        self.assertEqual(reasons, ["first", "second", "third"])

    def test_creates_missing_directory(self):
        nested = AuditLog(os.path.join(self.tmpdir, "a", "b", "audit.log"))
        nested.log_enrollment_failure("x")
        self.assertEqual(len(nested.read_entries()), 1)

    def test_write_failure_does_not_raise(self):
        broken = AuditLog(self.tmpdir)        # a directory cannot be opened for append
        with self.assertLogs("server.audit", level="ERROR") as cm:
            broken.log_enrollment_failure("lost")
        self.assertTrue(any("ENROLLMENT_FAILURE | Reason: lost" in m for m in cm.output))

    def test_read_entries(self):
        self.assertEqual(self.audit.read_entries(), [])
        for i in range(5):
            self.audit.log_enrollment_failure(f"r{i}")
        tail = self.audit.read_entries(limit=2)
        self.assertEqual(len(tail), 2)
        self.assertTrue(tail[-1].endswith("Reason: r4"))
        self.assertEqual(self.audit.read_entries(limit=0), [])

    def test_concurrent_lines_do_not_interleave(self):
        def worker(n):
            for i in range(50):
                self.audit.log_access_check(f"T{n}-{i}", AccessLevel.PUBLIC, True)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        lines = self.lines()
        self.assertEqual(len(lines), 400)
        for line in lines:
            self.assertRegex(line, STAMP + r"ACCESS_CHECK \| UserId: T\d-\d+ \| "
                                           r"RequestedLevel: PUBLIC \(1\) \| Decision: GRANTED$")


# ─────────────────────────────────────────────
class TestFieldEscaping(AuditTestCase):

    def test_newline_in_value_cannot_forge_a_line(self):
        forged = ("x\n[2024-01-01 00:00:00.000] SUCCESSFUL_AUTHENTICATION | UserId: MIN-001"
                  " | UserName: forged | GrantedLevel: CONFIDENTIAL (3)")
        user = User("USER-001", forged, "Public Servant", AccessLevel.PUBLIC)
        self.audit.log_successful_authentication(user, AccessLevel.PUBLIC)
        lines = self.lines()
        self.assertEqual(len(lines), 1)
        self.assertEqual(len(lines[0].split(" | ")), 4)
        self.assertIn("UserName: x\\n[2024-01-01", lines[0])
        self.assertTrue(lines[0].endswith("| GrantedLevel: PUBLIC (1)"))

    def test_carriage_return_and_backslash(self):
        self.audit.log_enrollment_failure("a\rb\\c")
        self.assertEqual(self.last_line_without_stamp(),
                         "ENROLLMENT_FAILURE | Reason: a\\rb\\\\c")

    def test_unencodable_value_is_still_written(self):
        user = User("U4", "bad\udc80", "Staff", AccessLevel.PUBLIC)
        self.audit.log_successful_authentication(user, AccessLevel.PUBLIC)
        self.assertEqual(len(self.lines()), 1)
        self.assertIn("UserName: bad\\udc80", self.lines()[0])


# ─────────────────────────────────────────────
if __name__ == "__main__":
    unittest.main(verbosity=2)
