"""
test_matcher.py - Similarity Metric Tests
"""

import sys
import os
import math
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import numpy as np

from common.errors import InvalidArgument, UnsupportedModality
from common.models import BiometricType
from server.matcher import (
    FacialRecognitionMatcher,
    MatcherFactory,
    SIMILARITY_THRESHOLDS,
    euclidean_similarity,
    normalized_correlation,
    region_agreement,
    template_to_vector,
    threshold_for,
)


# ─────────────────────────────────────────────
class TestFacialSimilarity(unittest.TestCase):

    def setUp(self):
        self.matcher = FacialRecognitionMatcher()

    def test_identical_templates_score_one(self):
        for _ in range(5):
            t = os.urandom(512)
            self.assertAlmostEqual(self.matcher.similarity(t, t), 1.0, places=12)

    def test_symmetric(self):
        a, b = os.urandom(512), os.urandom(512)
        self.assertAlmostEqual(self.matcher.similarity(a, b),
                               self.matcher.similarity(b, a), places=12)

    def test_score_in_unit_interval(self):
        for _ in range(10):
            s = self.matcher.similarity(os.urandom(256), os.urandom(256))
            self.assertGreaterEqual(s, 0.0)
            self.assertLessEqual(s, 1.0)

    def test_unrelated_templates_fall_below_threshold(self):
        s = self.matcher.similarity(os.urandom(512), os.urandom(512))
        self.assertLess(s, threshold_for(BiometricType.FACIAL_RECOGNITION))

    def test_opposite_templates_score_zero(self):
        a = bytes([0, 255] * 8)
        b = bytes([255, 0] * 8)
        self.assertAlmostEqual(self.matcher.similarity(a, b), 0.0, places=12)

    def test_half_matching_templates(self):
        a = bytes([0, 255] * 8)
        b = bytes([0, 255] * 4 + [255, 0] * 4)
        # r = 0 → 0.5; 8 of 16 bytes off by 255; 4 of 8 regions agree
        expected = 0.5 * 0.5 + 0.3 * (1 - math.sqrt(8) / 4) + 0.2 * 0.5
        self.assertAlmostEqual(self.matcher.similarity(a, b), expected, places=12)

    def test_constant_template_has_no_correlation(self):
        t = b"\x07" * 64
        self.assertAlmostEqual(self.matcher.similarity(t, t), 0.5, places=12)

    def test_length_mismatch_raises(self):
        with self.assertRaises(InvalidArgument):
            self.matcher.similarity(os.urandom(512), os.urandom(511))

    def test_empty_or_null_raises(self):
        for a, b in ((b"", b""), (None, b"abc"), (b"abc", None), (b"", b"a")):
            with self.assertRaises(InvalidArgument):
                self.matcher.similarity(a, b)


# ─────────────────────────────────────────────
class TestSubMetrics(unittest.TestCase):

    def test_correlation_rescaled(self):
        v = template_to_vector(bytes(range(0, 200, 2)))
        self.assertAlmostEqual(normalized_correlation(v, v), 1.0)
        self.assertAlmostEqual(normalized_correlation(v, 255 - v), 0.0)

    def test_template_bytes_are_unsigned(self):
        v = template_to_vector(b"\xff\x80\x00")
        np.testing.assert_array_equal(v, [255.0, 128.0, 0.0])

    def test_euclidean_extremes(self):
        zeros = np.zeros(9)
        full = np.full(9, 255.0)
        self.assertAlmostEqual(euclidean_similarity(zeros, zeros), 1.0)
        self.assertAlmostEqual(euclidean_similarity(zeros, full), 0.0)

    def test_region_remainder_goes_to_last_region(self):
        a = np.zeros(20)
        b = np.zeros(20)
        b[-4:] = 255.0      # regions of 2; last region is bytes 14..19
        self.assertAlmostEqual(region_agreement(a, b), 7 / 8)

    def test_short_templates_leave_empty_regions(self):
        v = template_to_vector(b"\x01\x02\x03\x04")
        self.assertAlmostEqual(region_agreement(v, v), 1 / 8)


# ─────────────────────────────────────────────
class TestMatcherFactory(unittest.TestCase):

    def setUp(self):
        self.factory = MatcherFactory()

    def test_facial_is_supported(self):
        matcher = self.factory.get_matcher(BiometricType.FACIAL_RECOGNITION)
        self.assertIsInstance(matcher, FacialRecognitionMatcher)
        self.assertTrue(self.factory.supports(BiometricType.FACIAL_RECOGNITION))

    def test_declared_but_unimplemented(self):
        for modality in (BiometricType.FINGERPRINT, BiometricType.IRIS_SCAN):
            self.assertFalse(self.factory.supports(modality))
            with self.assertRaises(UnsupportedModality):
                self.factory.get_matcher(modality)

    def test_null_modality(self):
        with self.assertRaises(InvalidArgument):
            self.factory.get_matcher(None)

    def test_threshold_table(self):
        self.assertEqual(threshold_for(BiometricType.FINGERPRINT), 0.85)
        self.assertEqual(threshold_for(BiometricType.FACIAL_RECOGNITION), 0.88)
        self.assertEqual(threshold_for(BiometricType.IRIS_SCAN), 0.92)
        self.assertEqual(set(SIMILARITY_THRESHOLDS), set(BiometricType))


# ─────────────────────────────────────────────
if __name__ == "__main__":
    unittest.main(verbosity=2)
