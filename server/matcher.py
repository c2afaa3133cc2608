"""
matcher.py - Template Similarity

Provides:
  - One similarity metric per biometric modality (score in [0, 1])
  - MatcherFactory: modality -> matcher
  - SIMILARITY_THRESHOLDS: the single table used by both identification
    (UserStore) and verification (AuthenticationEngine)

The facial metric is a deterministic numeric blend, not a real face
recogniser. Template bytes are read as unsigned values 0..255.
"""

import math
import logging

import numpy as np

from common.errors import InvalidArgument, UnsupportedModality
from common.models import BiometricType

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────
# THRESHOLDS
# ─────────────────────────────────────────────
SIMILARITY_THRESHOLDS = {
    BiometricType.FINGERPRINT:        0.85,
    BiometricType.FACIAL_RECOGNITION: 0.88,
    BiometricType.IRIS_SCAN:          0.92,
}

MAX_BYTE = 255.0


def threshold_for(modality: BiometricType) -> float:
    """Minimum score for two templates of *modality* to count as a match."""
    try:
        return SIMILARITY_THRESHOLDS[modality]
    except KeyError:
        raise InvalidArgument(f"Unknown biometric modality: {modality!r}")


# ─────────────────────────────────────────────
# CONVERSION HELPERS
# ─────────────────────────────────────────────
def template_to_vector(template: bytes) -> np.ndarray:
    """Unsigned byte values as a float64 array."""
    return np.frombuffer(bytes(template), dtype=np.uint8).astype(np.float64)


def _check_pair(a: bytes, b: bytes):
    if a is None or b is None:
        raise InvalidArgument("Templates cannot be null")
    if len(a) == 0 or len(b) == 0:
        raise InvalidArgument("Templates cannot be empty")
    if len(a) != len(b):
        raise InvalidArgument("Templates must have the same length to be compared")


# ─────────────────────────────────────────────
# SUB-METRICS
# ─────────────────────────────────────────────
def normalized_correlation(v1: np.ndarray, v2: np.ndarray) -> float:
    """
    Pearson correlation rescaled from [-1, 1] to [0, 1].
    A constant template has no defined correlation → 0.0.
    """
    d1 = v1 - v1.mean()
    d2 = v2 - v2.mean()
    denominator = math.sqrt(float(np.dot(d1, d1)) * float(np.dot(d2, d2)))
    if denominator == 0.0:
        return 0.0
    r = float(np.dot(d1, d2)) / denominator
    return (r + 1.0) / 2.0


def euclidean_similarity(v1: np.ndarray, v2: np.ndarray) -> float:
    """1 - L2 distance / theoretical maximum (255 * sqrt(n))."""
    distance = float(np.linalg.norm(v1 - v2))
    max_distance = MAX_BYTE * math.sqrt(len(v1))
    return 1.0 - distance / max_distance


def region_similarity(v1: np.ndarray, v2: np.ndarray) -> float:
    """1 - RMSE/255 over one contiguous slice."""
    rmse = math.sqrt(float(np.mean((v1 - v2) ** 2)))
    return 1.0 - rmse / MAX_BYTE


def region_agreement(v1: np.ndarray, v2: np.ndarray,
                     n_regions: int = 8, region_threshold: float = 0.85) -> float:
    """
    Split both templates into *n_regions* contiguous regions (the last one
    takes any remainder) and return the fraction whose region similarity
    reaches *region_threshold*. Empty regions never match.
    """
    total = len(v1)
    size = total // n_regions
    matching = 0
    for i in range(n_regions):
        start = i * size
        end = total if i == n_regions - 1 else start + size
        if end <= start:
            continue
        if region_similarity(v1[start:end], v2[start:end]) >= region_threshold:
            matching += 1
    return matching / n_regions


# ─────────────────────────────────────────────
# MATCHERS
# ─────────────────────────────────────────────
class BiometricMatcher:
    """Computes a similarity score in [0, 1] between two equal-length templates."""

    modality = None

    def similarity(self, a: bytes, b: bytes) -> float:
        raise NotImplementedError


class FacialRecognitionMatcher(BiometricMatcher):
    """
    0.5 * correlation + 0.3 * euclidean similarity + 0.2 * region agreement,
    clamped to [0, 1].
    """

    modality = BiometricType.FACIAL_RECOGNITION

    CORRELATION_WEIGHT = 0.5
    EUCLIDEAN_WEIGHT   = 0.3
    REGION_WEIGHT      = 0.2

    def similarity(self, a: bytes, b: bytes) -> float:
        _check_pair(a, b)
        v1, v2 = template_to_vector(a), template_to_vector(b)

        score = (self.CORRELATION_WEIGHT * normalized_correlation(v1, v2)
                 + self.EUCLIDEAN_WEIGHT * euclidean_similarity(v1, v2)
                 + self.REGION_WEIGHT * region_agreement(v1, v2))
        return max(0.0, min(1.0, score))


class MatcherFactory:
    """
    Maps a modality to its matcher. Fingerprint and iris are declared
    modalities with no implementation yet.
    """

    def __init__(self):
        self._matchers = {
            BiometricType.FACIAL_RECOGNITION: FacialRecognitionMatcher(),
        }

    def get_matcher(self, modality: BiometricType) -> BiometricMatcher:
        if modality is None:
            raise InvalidArgument("Biometric modality cannot be null")
        matcher = self._matchers.get(modality)
        if matcher is None:
            raise UnsupportedModality(modality)
        return matcher

    def supports(self, modality: BiometricType) -> bool:
        return modality in self._matchers
