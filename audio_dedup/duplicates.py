from __future__ import annotations

import logging
from typing import Iterable, Optional

from .models import DuplicateMatch
from .similarity import calculate_similarity

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.9


def find_duplicates(
    query_hash: str,
    corpus: Iterable[tuple[object, Optional[str]]],
    threshold: float = DEFAULT_THRESHOLD,
) -> list[DuplicateMatch]:
    """Rank corpus entries whose similarity to ``query_hash`` reaches ``threshold``.

    Every entry is compared once; there is no index. Entries without a stored
    hash are skipped. Ties keep corpus order.
    """
    matches: list[DuplicateMatch] = []
    scanned = 0
    for track_id, stored_hash in corpus:
        if not stored_hash:
            continue
        scanned += 1
        similarity = calculate_similarity(query_hash, stored_hash)
        if similarity >= threshold:
            matches.append(DuplicateMatch(track_id=track_id, similarity=similarity))
    logger.debug(
        "Compared fingerprint against %d stored track(s), %d above %.2f",
        scanned,
        len(matches),
        threshold,
    )
    return sorted(matches, key=lambda match: match.similarity, reverse=True)
