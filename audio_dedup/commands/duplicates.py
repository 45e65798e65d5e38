from __future__ import annotations

import logging
from pathlib import Path

from ..models import DuplicateMatch
from ..service import FingerprintService
from ..store import FingerprintStore

logger = logging.getLogger(__name__)


def run(
    service: FingerprintService,
    store: FingerprintStore,
    path: Path,
    *,
    threshold: float,
) -> list[DuplicateMatch]:
    fingerprint = service.generate_fingerprint(path)
    if fingerprint is None:
        logger.warning("Could not fingerprint %s", path)
        return []
    matches = service.find_duplicates(fingerprint.hash, threshold)
    if not matches:
        print(f"No stored track reaches {threshold:.2f} similarity.")
        return matches
    for match in matches:
        stored = store.get_by_id(match.track_id)  # type: ignore[arg-type]
        location = stored.fingerprint.file_path if stored else "?"
        print(f"{match.track_id}\t{match.similarity:.4f}\t{location}")
    return matches
