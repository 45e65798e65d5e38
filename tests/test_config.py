import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from pydantic import ValidationError

from audio_dedup.config import FingerprintSettings, Settings, find_config


class TestSettings(unittest.TestCase):
    def test_load_yaml_with_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            tmp = Path(tmpdir)
            config = tmp / "config.yaml"
            config.write_text(
                "library:\n"
                f"  roots: ['{tmp}/music']\n"
                "fingerprint:\n"
                "  import_threshold: 0.97\n"
                "daemon:\n"
                f"  store_path: '{tmp}/store/fp.sqlite3'\n",
                encoding="utf-8",
            )
            settings = Settings.load(config)
            self.assertEqual(settings.library.roots, [(tmp / "music").resolve()])
            self.assertIn(".flac", settings.library.include_extensions)
            self.assertEqual(settings.fingerprint.import_threshold, 0.97)
            self.assertEqual(settings.fingerprint.duplicate_threshold, 0.9)
            self.assertEqual(settings.fingerprint.ffmpeg_path, "ffmpeg")
            self.assertEqual(settings.daemon.store_path, (tmp / "store" / "fp.sqlite3").resolve())
            self.assertEqual(settings.daemon.worker_concurrency, 4)

    def test_threshold_must_be_a_probability(self) -> None:
        with self.assertRaises(ValidationError):
            FingerprintSettings(duplicate_threshold=1.5)
        with self.assertRaises(ValidationError):
            FingerprintSettings(import_threshold=-0.1)


class TestFindConfig(unittest.TestCase):
    def test_explicit_path_wins(self) -> None:
        self.assertEqual(find_config(Path("/etc/x.yaml")), Path("/etc/x.yaml"))

    def test_discovers_config_in_cwd(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            tmp = Path(tmpdir)
            (tmp / "config.yml").write_text("library: {roots: []}\n", encoding="utf-8")
            with patch("audio_dedup.config.Path.cwd", return_value=tmp):
                self.assertEqual(find_config(None), tmp / "config.yml")

    def test_missing_config_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with patch("audio_dedup.config.Path.cwd", return_value=Path(tmpdir)):
                with self.assertRaises(FileNotFoundError):
                    find_config(None)


if __name__ == "__main__":
    unittest.main()
