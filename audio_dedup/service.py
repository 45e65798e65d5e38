from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from pathlib import Path
from typing import Iterable, Optional, Protocol

from .decoder import AudioDecoder, FFmpegAudioDecoder
from .duplicates import DEFAULT_THRESHOLD, find_duplicates
from .fingerprint import fingerprint_decoded
from .models import AudioFingerprint, CorpusEntry, DuplicateMatch
from .similarity import calculate_similarity

logger = logging.getLogger(__name__)


class FingerprintCorpus(Protocol):
    def iter_fingerprints(self) -> Iterable[CorpusEntry]: ...


class FingerprintService:
    """Public entry point: fingerprint files and look up stored near-duplicates.

    Async variants run the blocking work on ``executor`` (the loop default when
    ``None``). Cancelling the awaiting task does not stop a decode that already
    started; it runs to completion and its result is dropped.
    """

    def __init__(
        self,
        corpus: Optional[FingerprintCorpus] = None,
        *,
        decoder: Optional[AudioDecoder] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.corpus = corpus
        self.decoder = decoder or FFmpegAudioDecoder()
        self.executor = executor

    def generate_fingerprint(self, path: Path | str) -> Optional[AudioFingerprint]:
        path = Path(path)
        try:
            audio = self.decoder.decode(path)
            if audio is None:
                return None
            fingerprint = fingerprint_decoded(audio, file_path=path)
        except Exception:
            logger.exception("Error generating fingerprint for %s", path)
            return None
        logger.debug(
            "Fingerprinted %s (%ss, %s Hz, %s ch)",
            path,
            fingerprint.duration_seconds,
            audio.sample_rate_hz,
            audio.channels,
        )
        return fingerprint

    async def generate_fingerprint_async(self, path: Path | str) -> Optional[AudioFingerprint]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.generate_fingerprint, path)

    def calculate_similarity(self, hash_a: str, hash_b: str) -> float:
        return calculate_similarity(hash_a, hash_b)

    def find_duplicates(
        self, query_hash: str, threshold: float = DEFAULT_THRESHOLD
    ) -> list[DuplicateMatch]:
        if self.corpus is None:
            return []
        snapshot = list(self.corpus.iter_fingerprints())
        return find_duplicates(query_hash, snapshot, threshold)

    async def find_duplicates_async(
        self, query_hash: str, threshold: float = DEFAULT_THRESHOLD
    ) -> list[DuplicateMatch]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.executor, self.find_duplicates, query_hash, threshold
        )
