import asyncio
import base64
import threading
import unittest
from array import array
from pathlib import Path
from typing import Optional

from audio_dedup.decoder import FFmpegAudioDecoder
from audio_dedup.fingerprint import CHUNK_SIZE, generate_fingerprint
from audio_dedup.models import CorpusEntry, DecodedAudio
from audio_dedup.service import FingerprintService


def _synthetic(seed: int, chunks: int = 4) -> DecodedAudio:
    samples = array("h", ((i * seed) % 4000 - 2000 for i in range(CHUNK_SIZE * chunks)))
    return DecodedAudio(samples=samples, sample_rate_hz=44100, channels=2)


class FakeDecoder:
    def __init__(self, by_name: dict[str, Optional[DecodedAudio]]) -> None:
        self.by_name = by_name
        self.calls: list[Path] = []

    def decode(self, path: Path) -> Optional[DecodedAudio]:
        self.calls.append(path)
        return self.by_name.get(path.name)


class BrokenDecoder:
    def decode(self, path: Path) -> Optional[DecodedAudio]:
        raise RuntimeError("codec exploded")


class ListCorpus:
    def __init__(self, entries: list[CorpusEntry]) -> None:
        self.entries = entries

    def iter_fingerprints(self):
        return iter(self.entries)


class TestFingerprintService(unittest.TestCase):
    def test_generate_uses_decoder_output(self) -> None:
        audio = _synthetic(7)
        service = FingerprintService(decoder=FakeDecoder({"a.flac": audio}))
        fp = service.generate_fingerprint("/music/a.flac")
        expected = generate_fingerprint(audio.samples, 44100, 2)
        self.assertEqual(fp.hash, expected.hash)
        self.assertEqual(fp.file_path, Path("/music/a.flac"))
        self.assertEqual(fp.duration_seconds, expected.duration_seconds)

    def test_same_pcm_under_different_names_matches(self) -> None:
        audio = _synthetic(3)
        service = FingerprintService(decoder=FakeDecoder({"a.flac": audio, "b.mp3": audio}))
        first = service.generate_fingerprint("/music/a.flac")
        second = service.generate_fingerprint("/other/b.mp3")
        self.assertEqual(first.hash, second.hash)
        self.assertEqual(service.calculate_similarity(first.hash, second.hash), 1.0)

    def test_undecodable_file_returns_none(self) -> None:
        service = FingerprintService(decoder=FakeDecoder({}))
        self.assertIsNone(service.generate_fingerprint("/music/nothing.ogg"))

    def test_decoder_exception_is_contained(self) -> None:
        service = FingerprintService(decoder=BrokenDecoder())
        with self.assertLogs("audio_dedup.service", level="ERROR"):
            self.assertIsNone(service.generate_fingerprint("/music/bad.flac"))

    def test_missing_file_with_ffmpeg_decoder(self) -> None:
        service = FingerprintService(decoder=FFmpegAudioDecoder())
        with self.assertLogs("audio_dedup.decoder", level="WARNING"):
            self.assertIsNone(service.generate_fingerprint("/missing/file.flac"))

    def test_find_duplicates_against_corpus(self) -> None:
        query = base64.b64encode(bytes(32)).decode("ascii")
        other = base64.b64encode(b"\xff" * 32).decode("ascii")
        corpus = ListCorpus(
            [CorpusEntry(1, other), CorpusEntry(2, query), CorpusEntry(3, None)]
        )
        service = FingerprintService(corpus, decoder=FakeDecoder({}))
        matches = service.find_duplicates(query)
        self.assertEqual([(m.track_id, m.similarity) for m in matches], [(2, 1.0)])

    def test_find_duplicates_without_corpus(self) -> None:
        service = FingerprintService(decoder=FakeDecoder({}))
        self.assertEqual(service.find_duplicates("AAAA"), [])


class _BlockingDecoder:
    def __init__(self) -> None:
        self.started = threading.Event()
        self.release = threading.Event()
        self.finished = threading.Event()

    def decode(self, path: Path) -> Optional[DecodedAudio]:
        self.started.set()
        self.release.wait(timeout=5)
        self.finished.set()
        return _synthetic(5)


class TestFingerprintServiceAsync(unittest.IsolatedAsyncioTestCase):
    async def test_async_generate_runs_off_loop(self) -> None:
        audio = _synthetic(11)
        decoder = FakeDecoder({"a.flac": audio})
        service = FingerprintService(decoder=decoder)
        fp = await service.generate_fingerprint_async(Path("/music/a.flac"))
        self.assertEqual(fp.hash, generate_fingerprint(audio.samples, 44100, 2).hash)

    async def test_cancelled_caller_does_not_interrupt_decode(self) -> None:
        decoder = _BlockingDecoder()
        service = FingerprintService(decoder=decoder)
        task = asyncio.create_task(service.generate_fingerprint_async("/music/slow.flac"))
        await asyncio.get_running_loop().run_in_executor(None, decoder.started.wait, 5)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertFalse(decoder.finished.is_set())
        decoder.release.set()
        finished = await asyncio.get_running_loop().run_in_executor(
            None, decoder.finished.wait, 5
        )
        self.assertTrue(finished)

    async def test_async_find_duplicates(self) -> None:
        query = base64.b64encode(bytes(32)).decode("ascii")
        service = FingerprintService(ListCorpus([CorpusEntry("x", query)]))
        matches = await service.find_duplicates_async(query, 0.99)
        self.assertEqual(matches[0].track_id, "x")


if __name__ == "__main__":
    unittest.main()
