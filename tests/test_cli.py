import base64
import io
import json
import logging
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

from audio_dedup import cli
from audio_dedup.models import AudioFingerprint


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        patcher = patch(
            "audio_dedup.cli.configure_logging", return_value=cli.WarningSummaryHandler()
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_compare_prints_similarity(self) -> None:
        a = base64.b64encode(bytes(32)).decode("ascii")
        b = base64.b64encode(b"\x01" + bytes(31)).decode("ascii")
        out = io.StringIO()
        with redirect_stdout(out):
            cli.main(["compare", a, b])
        self.assertEqual(out.getvalue().strip(), "0.99609375")

    def test_fingerprint_prints_json_and_fails_on_missing_file(self) -> None:
        fp = AudioFingerprint(Path("/music/a.flac"), "HASH", 42)
        results = {Path("/music/a.flac"): fp, Path("/music/missing.flac"): None}
        with patch(
            "audio_dedup.service.FingerprintService.generate_fingerprint",
            side_effect=lambda path: results[Path(path)],
        ):
            out = io.StringIO()
            with redirect_stdout(out), self.assertRaises(SystemExit):
                cli.main(["fingerprint", "/music/a.flac", "/music/missing.flac"])
        record = json.loads(out.getvalue().splitlines()[0])
        self.assertEqual(record["hash"], "HASH")
        self.assertEqual(record["duration_seconds"], 42)

    def test_library_command_without_config_exits(self) -> None:
        with patch("audio_dedup.cli.find_config", side_effect=FileNotFoundError("no config")):
            with self.assertRaises(SystemExit) as ctx:
                cli.main(["scan"])
        self.assertEqual(str(ctx.exception), "no config")


class TestLibraryPathFormatter(unittest.TestCase):
    def _record(self, level: int, msg: str) -> logging.LogRecord:
        return logging.LogRecord("audio_dedup.indexer", level, __file__, 1, msg, None, None)

    def test_strips_longest_root_first(self) -> None:
        formatter = cli.LibraryPathFormatter(
            "%(message)s", [Path("/music"), Path("/music/lossless")]
        )
        record = self._record(logging.INFO, "Indexed /music/lossless/A/01.flac")
        self.assertEqual(formatter.format(record), "Indexed A/01.flac")

    def test_color_wraps_by_level(self) -> None:
        formatter = cli.LibraryPathFormatter("%(message)s", [], color=True)
        rendered = formatter.format(self._record(logging.WARNING, "careful"))
        self.assertEqual(rendered, "\033[33mcareful\033[0m")

    def test_summary_handler_collects_warnings(self) -> None:
        handler = cli.WarningSummaryHandler()
        handler.setFormatter(cli.LibraryPathFormatter("%(message)s", [Path("/music")]))
        handler.handle(self._record(logging.WARNING, "Could not fingerprint /music/x.ogg"))
        self.assertEqual(handler.records, ["Could not fingerprint x.ogg"])


if __name__ == "__main__":
    unittest.main()
