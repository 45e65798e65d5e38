from __future__ import annotations

import shutil
import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from ..config import Settings
from ..fingerprint import DIGEST_SIZE, is_current_digest
from ..store import FingerprintStore


class Severity(str, Enum):
    OK = "OK"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class Check:
    label: str
    severity: Severity
    detail: Optional[str] = None

    def __str__(self) -> str:
        if self.detail:
            return f"{self.label}: {self.severity.value} ({self.detail})"
        return f"{self.label}: {self.severity.value}"


@dataclass(slots=True)
class DoctorReport:
    checks: list[Check] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(check.severity is not Severity.ERROR for check in self.checks)

    def add(self, label: str, severity: Severity, detail: Optional[str] = None) -> None:
        self.checks.append(Check(label, severity, detail))


def run(settings: Settings) -> DoctorReport:
    report = DoctorReport()

    for label, binary in (
        ("ffprobe", settings.fingerprint.ffprobe_path),
        ("ffmpeg", settings.fingerprint.ffmpeg_path),
    ):
        resolved = shutil.which(binary)
        if resolved:
            report.add(label, Severity.OK, resolved)
        else:
            report.add(label, Severity.ERROR, f"{binary} not found on PATH")

    roots = [root.resolve() for root in settings.library.roots]
    missing = [str(root) for root in roots if not root.exists()]
    if missing:
        report.add("Library roots", Severity.ERROR, f"missing: {', '.join(missing)}")
    else:
        report.add("Library roots", Severity.OK, f"{len(roots)} root(s)")

    _check_store(report, Path(settings.daemon.store_path))

    fp = settings.fingerprint
    if fp.import_threshold < fp.duplicate_threshold:
        report.add(
            "Thresholds",
            Severity.WARNING,
            f"import_threshold {fp.import_threshold} is looser than duplicate_threshold {fp.duplicate_threshold}",
        )
    else:
        report.add(
            "Thresholds",
            Severity.OK,
            f"duplicates>={fp.duplicate_threshold}, import>={fp.import_threshold}",
        )
    return report


def _check_store(report: DoctorReport, store_path: Path) -> None:
    try:
        store = FingerprintStore(store_path)
    except (sqlite3.Error, OSError) as exc:
        report.add("Fingerprint store", Severity.ERROR, f"{store_path}: {exc}")
        return
    try:
        total = store.count()
        corpus = store.iter_fingerprints()
    finally:
        store.close()
    report.add("Fingerprint store", Severity.OK, f"{store_path}, {len(corpus)} fingerprint(s)")
    if total > len(corpus):
        report.add("Missing fingerprints", Severity.WARNING, f"{total - len(corpus)} track(s) without hash")
    # other digest lengths mean a legacy format or a damaged row; they never match
    foreign = sum(1 for entry in corpus if not is_current_digest(entry.hash or ""))
    if foreign:
        report.add(
            "Fingerprint format",
            Severity.WARNING,
            f"{foreign} hash(es) are not {DIGEST_SIZE}-byte digests; rescan those files",
        )
