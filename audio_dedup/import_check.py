from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .models import AudioFingerprint
from .service import FingerprintService
from .store import FingerprintStore

logger = logging.getLogger(__name__)

DEFAULT_IMPORT_THRESHOLD = 0.95


class RejectionReason(str, Enum):
    ALREADY_IMPORTED = "already_imported"


@dataclass(frozen=True, slots=True)
class ImportRejection:
    reason: RejectionReason
    message: str
    track_id: Optional[object] = None
    similarity: Optional[float] = None


class AlreadyImportedCheck:
    """Advisory check telling an importer the file is already in the library."""

    def __init__(
        self,
        store: FingerprintStore,
        service: FingerprintService,
        *,
        threshold: float = DEFAULT_IMPORT_THRESHOLD,
    ) -> None:
        self.store = store
        self.service = service
        self.threshold = threshold

    def evaluate(
        self, path: Path, fingerprint: Optional[AudioFingerprint]
    ) -> Optional[ImportRejection]:
        existing = self.store.get(path)
        if existing is not None and existing.size_bytes == _file_size(path):
            logger.debug("File already imported: %s (size %s)", path, existing.size_bytes)
            return ImportRejection(
                RejectionReason.ALREADY_IMPORTED,
                f"File already imported: {path}",
                track_id=existing.track_id,
            )
        if fingerprint is None or not fingerprint.hash:
            return None
        matches = [
            match
            for match in self.service.find_duplicates(fingerprint.hash, self.threshold)
            if existing is None or match.track_id != existing.track_id
        ]
        if not matches:
            return None
        best = matches[0]
        logger.debug(
            "Duplicate found via fingerprint: %s matches track %s (%.1f%%)",
            path,
            best.track_id,
            best.similarity * 100,
        )
        return ImportRejection(
            RejectionReason.ALREADY_IMPORTED,
            f"Duplicate file detected (fingerprint match: {best.similarity:.1%})",
            track_id=best.track_id,
            similarity=best.similarity,
        )

    async def evaluate_async(
        self, path: Path, fingerprint: Optional[AudioFingerprint]
    ) -> Optional[ImportRejection]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.service.executor, self.evaluate, path, fingerprint
        )


def _file_size(path: Path) -> Optional[int]:
    try:
        return path.stat().st_size
    except OSError:
        return None
