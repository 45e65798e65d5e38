from __future__ import annotations

from ..similarity import calculate_similarity


def run(hash_a: str, hash_b: str) -> float:
    similarity = calculate_similarity(hash_a, hash_b)
    print(f"{similarity:.8f}")
    return similarity
