"""
Sextant Mathematical Utilities
===============================

Byte-statistics helpers used to characterise recovered sections: a
256-bin byte histogram and the Shannon entropy derived from it.

References:
    [1] Shannon, C. E. (1948). A Mathematical Theory of Communication.
        Bell System Technical Journal, 27(3), 379-423.
    [2] Lyda, R., & Hamrock, J. (2007). Using Entropy Analysis to Find
        Encrypted and Packed Malware. IEEE Security & Privacy, 5(2), 40-45.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

FloatArray = NDArray[np.floating]

# Coarse classification thresholds (bits per byte)
ENTROPY_NULL: float = 1.0
ENTROPY_CODE_HIGH: float = 6.5
ENTROPY_COMPRESSED: float = 7.5


def frequency_distribution(data: bytes) -> FloatArray:
    """Compute a 256-bin byte-value frequency histogram.

    Args:
        data: Raw byte sequence.

    Returns:
        1-D float64 array of length 256 containing occurrence counts.
    """
    if not data:
        return np.zeros(256, dtype=np.float64)
    byte_arr = np.frombuffer(data, dtype=np.uint8)
    return np.bincount(byte_arr, minlength=256).astype(np.float64)


def shannon_entropy(data: bytes) -> float:
    """Compute the Shannon entropy of a byte sequence.

    .. math::

        H = -\\sum_{i=0}^{255} p_i \\, \\log_2(p_i)

    Args:
        data: Raw byte sequence to analyse.

    Returns:
        Entropy in bits per byte, 0.0 for empty input.
    """
    if not data:
        return 0.0
    counts = frequency_distribution(data)
    probs = counts[counts > 0] / len(data)
    return float(-np.sum(probs * np.log2(probs)))


def classify_entropy(entropy: float) -> str:
    """Map an entropy value to a coarse content label."""
    if entropy < ENTROPY_NULL:
        return "null/padding"
    if entropy < ENTROPY_CODE_HIGH:
        return "code/data"
    if entropy < ENTROPY_COMPRESSED:
        return "dense code or tables"
    return "compressed/encrypted"
