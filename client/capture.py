"""
capture.py - Simulated Biometric Capture

Stands in for the camera: produces a facial template (512 bytes) plus a
quality score for the engine to consume. There is no real feature
extraction here.

With a subject id the base template is derived deterministically from the
id and perturbed with a little Gaussian sensor noise, so two captures of
the same subject differ slightly but still match. Without a subject the
template is pure random bytes.
"""

import hashlib
import json
import logging
from typing import Optional

import numpy as np

from common.errors import CaptureFailure
from common.models import BiometricTemplate, BiometricType

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────
# CONSTANTS
# ─────────────────────────────────────────────
FACIAL_TEMPLATE_SIZE = 512       # bytes
DEFAULT_NOISE_STD    = 2.0       # sensor noise, in byte units
MIN_QUALITY = 0.5
MAX_QUALITY = 1.0

UNIFORM_BYTE_VARIANCE = 5461.0   # variance of uniform 0..255 (≈ 256² / 12)


# ─────────────────────────────────────────────
# QUALITY
# ─────────────────────────────────────────────
def calculate_quality(template: bytes) -> float:
    """
    Heuristic quality in [0.5, 1.0]:
      0.3 * variance factor + 0.5 * entropy factor + 0.2 * (1 - repetition rate)
    Empty input → 0.0.
    """
    if not template:
        return 0.0
    arr = np.frombuffer(bytes(template), dtype=np.uint8)

    variance_factor = min(float(arr.astype(np.float64).var()) / UNIFORM_BYTE_VARIANCE, 1.0)

    counts = np.bincount(arr, minlength=256)
    p = counts[counts > 0] / arr.size
    entropy = float(-(p * np.log2(p)).sum())
    entropy_factor = min(entropy / 8.0, 1.0)

    repetitions = int(np.count_nonzero(arr[1:] == arr[:-1]))
    repetition_factor = 1.0 - repetitions / arr.size

    raw = variance_factor * 0.3 + entropy_factor * 0.5 + repetition_factor * 0.2
    quality = MIN_QUALITY + raw * (MAX_QUALITY - MIN_QUALITY)
    return max(MIN_QUALITY, min(MAX_QUALITY, quality))


# ─────────────────────────────────────────────
# SIMULATION
# ─────────────────────────────────────────────
def _subject_seed(subject: str) -> int:
    return int(hashlib.sha256(subject.encode()).hexdigest(), 16) % (2**31)


def simulate_template(subject: str, noise_std: float = DEFAULT_NOISE_STD,
                      rng: Optional[np.random.Generator] = None) -> bytes:
    """Base template for *subject* plus Gaussian noise, clipped to 0..255."""
    base = np.random.default_rng(_subject_seed(subject)).integers(
        0, 256, FACIAL_TEMPLATE_SIZE
    ).astype(np.float64)
    if noise_std > 0:
        rng = rng or np.random.default_rng()
        base = base + rng.normal(0, noise_std, FACIAL_TEMPLATE_SIZE)
    return np.clip(np.rint(base), 0, 255).astype(np.uint8).tobytes()


class FacialRecognitionScanner:
    """Capture device: one call, one BiometricTemplate."""

    modality = BiometricType.FACIAL_RECOGNITION

    def __init__(self, seed: Optional[int] = None, noise_std: float = DEFAULT_NOISE_STD):
        self._rng = np.random.default_rng(seed)
        self.noise_std = noise_std

    def capture(self, subject: Optional[str] = None) -> BiometricTemplate:
        try:
            if subject:
                data = simulate_template(subject, self.noise_std, self._rng)
            else:
                data = self._rng.integers(0, 256, FACIAL_TEMPLATE_SIZE, dtype=np.uint8).tobytes()
        except (TypeError, ValueError) as e:
            raise CaptureFailure(f"Facial capture failed: {e}") from e

        quality = calculate_quality(data)
        logger.info(f"Facial template captured ({len(data)} bytes, quality={quality:.2f})")
        return BiometricTemplate(data, self.modality, quality)

    def calculate_quality(self, template: bytes) -> float:
        return calculate_quality(template)


# ─────────────────────────────────────────────
# CLI DEMO
# ─────────────────────────────────────────────
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    t = FacialRecognitionScanner().capture("alice")
    print(json.dumps({"modality": t.modality.value, "quality": round(t.quality, 4),
                      "first_bytes": list(t.data[:5])}, indent=2))
    print(f"  … ({FACIAL_TEMPLATE_SIZE} bytes total)")
