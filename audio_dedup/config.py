from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


class LibrarySettings(BaseModel):
    roots: List[Path]
    include_extensions: List[str] = Field(
        default_factory=lambda: [".mp3", ".flac", ".m4a", ".ogg", ".opus", ".wav"]
    )
    exclude_patterns: List[str] = Field(default_factory=list)

    @field_validator("roots", mode="before")
    @classmethod
    def _expand_roots(cls, values: List[str]) -> List[Path]:
        return [Path(v).expanduser().resolve() for v in values]


class FingerprintSettings(BaseModel):
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    decode_timeout_seconds: Optional[float] = 600.0
    duplicate_threshold: float = Field(default=0.9, ge=0.0, le=1.0)
    import_threshold: float = Field(default=0.95, ge=0.0, le=1.0)


class DaemonSettings(BaseModel):
    worker_concurrency: int = Field(default=4, ge=1)
    store_path: Path = Path("./cache/fingerprints.sqlite3")

    @field_validator("store_path", mode="before")
    @classmethod
    def _expand_store(cls, value: str | Path) -> Path:
        return Path(value).expanduser().resolve()


class Settings(BaseModel):
    library: LibrarySettings
    fingerprint: FingerprintSettings = FingerprintSettings()
    daemon: DaemonSettings = DaemonSettings()

    @classmethod
    def load(cls, path: Path) -> "Settings":
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
        return cls.model_validate(raw)


def find_config(explicit_path: Optional[Path]) -> Path:
    if explicit_path:
        return explicit_path
    cwd = Path.cwd()
    for candidate in (cwd / "config.yaml", cwd / "config.yml"):
        if candidate.exists():
            return candidate
    raise FileNotFoundError("Could not find config.yaml - pass --config explicitly.")
