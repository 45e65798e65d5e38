from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional

from .app import DedupApp
from .commands import compare as cmd_compare
from .commands import doctor as cmd_doctor
from .commands import duplicates as cmd_duplicates
from .commands import fingerprint as cmd_fingerprint
from .config import FingerprintSettings, Settings, find_config
from .decoder import FFmpegAudioDecoder
from .service import FingerprintService

LOG_FORMAT = "%(levelname).1s | %(name)s | %(message)s"

ANSI_RESET = "\033[0m"
ANSI_BY_LEVEL = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[37m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}

NO_LIBRARY_COMMANDS = {"fingerprint", "compare"}


class LibraryPathFormatter(logging.Formatter):
    """Prints library files relative to their root, optionally coloured by level."""

    def __init__(self, fmt: str, roots: list[Path], *, color: bool = False) -> None:
        super().__init__(fmt)
        # longest first so nested roots are stripped whole
        self.prefixes = sorted((str(root) for root in roots if root), key=len, reverse=True)
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for prefix in self.prefixes:
            message = message.replace(f"{prefix}/", "").replace(prefix, "")
        code = ANSI_BY_LEVEL.get(record.levelno) if self.color else None
        return f"{code}{message}{ANSI_RESET}" if code else message


class WarningSummaryHandler(logging.Handler):
    """Keeps warnings and errors so they can be repeated once the command ends."""

    def __init__(self) -> None:
        super().__init__(level=logging.WARNING)
        self.records: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.records.append(self.format(record))
        except Exception:  # pragma: no cover
            self.handleError(record)

    def print_summary(self, log_path: Optional[Path]) -> None:
        if not self.records:
            return
        print(f"\n{ANSI_BY_LEVEL[logging.WARNING]}Warnings/Errors summary:{ANSI_RESET}")
        for line in self.records:
            print(f" - {line}")
        if log_path:
            print(f"\nFull warning log: {log_path}")


def configure_logging(
    level_name: str, roots: list[Path], warn_log_path: Optional[Path]
) -> WarningSummaryHandler:
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level_name.upper(), logging.INFO))

    console = logging.StreamHandler()
    console.setFormatter(LibraryPathFormatter(LOG_FORMAT, roots, color=True))
    root_logger.addHandler(console)

    summary = WarningSummaryHandler()
    summary.setFormatter(LibraryPathFormatter(LOG_FORMAT, roots))
    root_logger.addHandler(summary)

    if warn_log_path is not None:
        file_handler = logging.FileHandler(warn_log_path, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.WARNING)
        file_handler.setFormatter(LibraryPathFormatter(LOG_FORMAT, roots))
        root_logger.addHandler(file_handler)

    logging.getLogger("watchdog").setLevel(logging.WARNING)
    return summary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Audio fingerprinting and duplicate detection"
    )
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")

    subparsers = parser.add_subparsers(dest="command", required=True)
    fp_parser = subparsers.add_parser(
        "fingerprint", help="Print fingerprints of the given files as JSON lines"
    )
    fp_parser.add_argument("files", nargs="+", type=Path)
    compare_parser = subparsers.add_parser(
        "compare", help="Print the similarity of two fingerprint hashes"
    )
    compare_parser.add_argument("hash_a")
    compare_parser.add_argument("hash_b")
    subparsers.add_parser("scan", help="Fingerprint the whole library into the store")
    subparsers.add_parser(
        "watch", help="Scan, then keep fingerprinting new files as they appear"
    )
    dup_parser = subparsers.add_parser(
        "duplicates", help="List stored tracks that duplicate a file"
    )
    dup_parser.add_argument("file", type=Path)
    dup_parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Minimum similarity (defaults to fingerprint.duplicate_threshold)",
    )
    subparsers.add_parser("doctor", help="Check ffmpeg, library roots and the store")
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings: Settings | None = None
    if args.command not in NO_LIBRARY_COMMANDS or args.config:
        try:
            settings = Settings.load(find_config(args.config))
        except FileNotFoundError as exc:
            raise SystemExit(str(exc))

    display_roots = [root.resolve() for root in settings.library.roots] if settings else []
    warn_log_path = Path.cwd() / "audio-dedup-warnings.log" if settings else None
    warnings_summary = configure_logging(args.log_level, display_roots, warn_log_path)

    app: DedupApp | None = None
    if settings is not None and args.command not in NO_LIBRARY_COMMANDS | {"doctor"}:
        app = DedupApp.create(settings)

    try:
        match args.command:
            case "fingerprint":
                fp_settings = settings.fingerprint if settings else FingerprintSettings()
                service = FingerprintService(decoder=FFmpegAudioDecoder(fp_settings))
                if cmd_fingerprint.run(service, args.files):
                    raise SystemExit(1)
            case "compare":
                cmd_compare.run(args.hash_a, args.hash_b)
            case "scan":
                report = asyncio.run(app.get_indexer().run_scan())
                print(report.summary())
            case "watch":
                try:
                    asyncio.run(app.get_indexer().run_watch())
                except KeyboardInterrupt:
                    print("Stopped watching.")
            case "duplicates":
                threshold = (
                    args.threshold
                    if args.threshold is not None
                    else settings.fingerprint.duplicate_threshold
                )
                cmd_duplicates.run(app.service, app.store, args.file, threshold=threshold)
            case "doctor":
                doctor_report = cmd_doctor.run(settings)
                for check in doctor_report.checks:
                    print(check)
                if not doctor_report.ok:
                    raise SystemExit(1)
            case _:
                parser.error("Unknown command")
    finally:
        if app:
            app.close()
        warnings_summary.print_summary(warn_log_path)
