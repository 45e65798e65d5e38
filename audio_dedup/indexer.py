from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from watchdog.observers import Observer

from .config import Settings
from .import_check import AlreadyImportedCheck
from .scanner import LibraryScanner
from .service import FingerprintService
from .store import FingerprintStore
from .watchdog_handler import WatchHandler

logger = logging.getLogger(__name__)


@dataclass
class IndexReport:
    indexed: int = 0
    unchanged: int = 0
    failed: int = 0
    duplicates: list[tuple[Path, Path, float]] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"indexed={self.indexed} unchanged={self.unchanged} "
            f"failed={self.failed} duplicates={len(self.duplicates)}"
        )


class LibraryIndexer:
    """Fingerprints library files into the store and flags likely duplicates.

    Decoding happens on executor threads; the event loop only coordinates the
    queue and the store.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        store: FingerprintStore,
        service: FingerprintService,
        scanner: Optional[LibraryScanner] = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.service = service
        self.scanner = scanner or LibraryScanner(settings.library)
        self.check = AlreadyImportedCheck(
            store, service, threshold=settings.fingerprint.import_threshold
        )
        self.queue: asyncio.Queue[Path] = asyncio.Queue()
        self.report = IndexReport()
        self.observer: Optional[Observer] = None
        self._in_flight: set[Path] = set()
        self._pending: set[Path] = set()

    async def run_scan(self) -> IndexReport:
        for path in self.scanner.iter_files():
            self.queue.put_nowait(path)
        workers = self._start_workers()
        try:
            await self.queue.join()
        finally:
            await self._stop_workers(workers)
        logger.info("Scan complete: %s", self.report.summary())
        return self.report

    async def run_watch(self) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._bootstrap_watchdog, loop)
        workers = self._start_workers()
        for path in self.scanner.iter_files():
            self.queue.put_nowait(path)
        logger.info("Watching %d library root(s)", len(self.settings.library.roots))
        try:
            await asyncio.Event().wait()
        finally:
            await self._stop_workers(workers)
            if self.observer:
                self.observer.stop()
                self.observer.join()

    async def process_path(self, path: Path) -> None:
        if path in self._in_flight:
            logger.debug("Already processing %s; will re-check when done", path)
            self._pending.add(path)
            return
        self._in_flight.add(path)
        try:
            await self._index(path)
        finally:
            self._in_flight.discard(path)
            if path in self._pending:
                self._pending.discard(path)
                self.queue.put_nowait(path)

    async def _index(self, path: Path) -> None:
        try:
            size = path.stat().st_size
        except OSError as exc:
            logger.warning("Cannot stat %s: %s", path, exc)
            self.report.failed += 1
            return
        existing = self.store.get(path)
        if existing is not None and existing.size_bytes == size:
            logger.debug("Unchanged since last fingerprint: %s", path)
            self.report.unchanged += 1
            return
        fingerprint = await self.service.generate_fingerprint_async(path)
        if fingerprint is None:
            logger.warning("Could not fingerprint %s; skipping duplicate detection", path)
            self.report.failed += 1
            return
        rejection = await self.check.evaluate_async(path, fingerprint)
        if rejection is not None and rejection.similarity is not None:
            matched = self.store.get_by_id(rejection.track_id)  # type: ignore[arg-type]
            matched_path = matched.fingerprint.file_path if matched else Path("?")
            logger.warning(
                "Possible duplicate: %s matches %s (%.1f%%)",
                path,
                matched_path,
                rejection.similarity * 100,
            )
            self.report.duplicates.append((path, matched_path, rejection.similarity))
        self.store.upsert(fingerprint, size)
        self.report.indexed += 1

    def _bootstrap_watchdog(self, loop: asyncio.AbstractEventLoop) -> None:
        handler = WatchHandler(self.queue, self.scanner, loop=loop)
        observer = Observer()
        for root in self.settings.library.roots:
            if root.exists():
                observer.schedule(handler, str(root), recursive=True)
        observer.start()
        self.observer = observer

    def _start_workers(self) -> list[asyncio.Task[None]]:
        concurrency = self.settings.daemon.worker_concurrency
        return [asyncio.create_task(self._worker(i)) for i in range(concurrency)]

    async def _stop_workers(self, workers: list[asyncio.Task[None]]) -> None:
        for worker_task in workers:
            worker_task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    async def _worker(self, worker_id: int) -> None:
        while True:
            path = await self.queue.get()
            try:
                await self.process_path(path)
            except Exception:  # pragma: no cover - logged and ignored
                logger.exception("Worker %s failed to process %s", worker_id, path)
                self.report.failed += 1
            finally:
                self.queue.task_done()
