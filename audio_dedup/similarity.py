from __future__ import annotations

import base64
import binascii
import logging

logger = logging.getLogger(__name__)


def hamming_distance(left: bytes, right: bytes) -> int:
    if len(left) != len(right):
        raise ValueError("hamming distance needs equal-length inputs")
    return sum((a ^ b).bit_count() for a, b in zip(left, right))


def calculate_similarity(hash_a: str, hash_b: str) -> float:
    """Bitwise similarity of two Base64 fingerprints in ``[0, 1]``.

    Identical strings score 1.0 without decoding. Malformed Base64 or digests of
    different lengths score 0.0.
    """
    if hash_a == hash_b:
        return 1.0
    try:
        left = base64.b64decode(hash_a, validate=True)
        right = base64.b64decode(hash_b, validate=True)
    except (binascii.Error, ValueError) as exc:
        logger.warning("Invalid fingerprint format: %s", exc)
        return 0.0
    if len(left) != len(right):
        return 0.0
    if not left:
        return 1.0
    total_bits = len(left) * 8
    return 1.0 - hamming_distance(left, right) / total_bits
