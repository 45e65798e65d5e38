from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, NamedTuple, Optional, Sequence


@dataclass(frozen=True, slots=True)
class AudioFingerprint:
    """Content digest of one decoded track.

    ``hash`` is the Base64 text of a 32 byte SHA-256 digest. Instances are never
    updated; a changed file gets a freshly generated fingerprint.
    """

    file_path: Path
    hash: str
    duration_seconds: int
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_record(self) -> Dict[str, object]:
        return {
            "path": str(self.file_path),
            "hash": self.hash,
            "duration_seconds": self.duration_seconds,
            "generated_at": self.generated_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class DecodedAudio:
    """Interleaved signed 16-bit PCM for a whole audio stream."""

    samples: Sequence[int]
    sample_rate_hz: int
    channels: int

    def __post_init__(self) -> None:
        if self.sample_rate_hz <= 0:
            raise ValueError(f"sample rate must be positive, got {self.sample_rate_hz}")
        if self.channels <= 0:
            raise ValueError(f"channel count must be positive, got {self.channels}")


@dataclass(frozen=True, slots=True)
class DuplicateMatch:
    track_id: object
    similarity: float


class CorpusEntry(NamedTuple):
    track_id: object
    hash: Optional[str]


class DecodeError(Exception):
    """Raised inside the decoder when a file cannot be turned into PCM."""
