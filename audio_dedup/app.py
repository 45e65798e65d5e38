from __future__ import annotations

from dataclasses import dataclass

from .config import Settings
from .decoder import FFmpegAudioDecoder
from .indexer import LibraryIndexer
from .scanner import LibraryScanner
from .service import FingerprintService
from .store import FingerprintStore


@dataclass
class DedupApp:
    settings: Settings
    store: FingerprintStore
    scanner: LibraryScanner
    service: FingerprintService
    _indexer: LibraryIndexer | None = None

    @classmethod
    def create(cls, settings: Settings) -> "DedupApp":
        store = FingerprintStore(settings.daemon.store_path)
        scanner = LibraryScanner(settings.library)
        service = FingerprintService(
            store, decoder=FFmpegAudioDecoder(settings.fingerprint)
        )
        return cls(settings=settings, store=store, scanner=scanner, service=service)

    def get_indexer(self) -> LibraryIndexer:
        if self._indexer is None:
            self._indexer = LibraryIndexer(
                self.settings,
                store=self.store,
                service=self.service,
                scanner=self.scanner,
            )
        return self._indexer

    def close(self) -> None:
        self.store.close()
