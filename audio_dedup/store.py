from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Optional

from .models import AudioFingerprint, CorpusEntry


@dataclass(frozen=True, slots=True)
class StoredTrack:
    track_id: int
    fingerprint: AudioFingerprint
    size_bytes: int


class FingerprintStore:
    """SQLite table of one fingerprint per library file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        if str(path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS tracks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                path TEXT NOT NULL UNIQUE,
                size_bytes INTEGER NOT NULL,
                fingerprint TEXT,
                duration_seconds INTEGER,
                generated_at TEXT
            )
            """
        )
        self._conn.commit()

    def upsert(self, fingerprint: AudioFingerprint, size_bytes: int) -> int:
        """Store ``fingerprint`` for its path, replacing any earlier value."""
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO tracks(path, size_bytes, fingerprint, duration_seconds, generated_at)
                VALUES(?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    size_bytes=excluded.size_bytes,
                    fingerprint=excluded.fingerprint,
                    duration_seconds=excluded.duration_seconds,
                    generated_at=excluded.generated_at
                """,
                (
                    str(fingerprint.file_path),
                    size_bytes,
                    fingerprint.hash,
                    fingerprint.duration_seconds,
                    fingerprint.generated_at.isoformat(),
                ),
            )
            self._conn.commit()
            row = self._conn.execute(
                "SELECT id FROM tracks WHERE path=?", (str(fingerprint.file_path),)
            ).fetchone()
        return int(row[0])

    def get(self, path: Path) -> Optional[StoredTrack]:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT id, path, size_bytes, fingerprint, duration_seconds, generated_at
                FROM tracks WHERE path=?
                """,
                (str(path),),
            ).fetchone()
        if not row:
            return None
        return self._row_to_track(row)

    def get_by_id(self, track_id: int) -> Optional[StoredTrack]:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT id, path, size_bytes, fingerprint, duration_seconds, generated_at
                FROM tracks WHERE id=?
                """,
                (track_id,),
            ).fetchone()
        if not row:
            return None
        return self._row_to_track(row)

    def remove(self, path: Path) -> bool:
        with self._lock:
            cur = self._conn.execute("DELETE FROM tracks WHERE path=?", (str(path),))
            self._conn.commit()
        return cur.rowcount > 0

    def count(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM tracks").fetchone()
        return int(row[0])

    def iter_fingerprints(self) -> list[CorpusEntry]:
        """Snapshot of ``(track_id, hash)`` for every fingerprinted track."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT id, fingerprint FROM tracks
                WHERE fingerprint IS NOT NULL AND fingerprint != ''
                ORDER BY id
                """
            ).fetchall()
        return [CorpusEntry(track_id=int(row[0]), hash=row[1]) for row in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_track(row: tuple) -> StoredTrack:
        track_id, path, size_bytes, fingerprint, duration, generated_at = row
        generated = datetime.fromisoformat(generated_at) if generated_at else datetime.min
        return StoredTrack(
            track_id=int(track_id),
            fingerprint=AudioFingerprint(
                file_path=Path(path),
                hash=fingerprint or "",
                duration_seconds=int(duration or 0),
                generated_at=generated,
            ),
            size_bytes=int(size_bytes),
        )
