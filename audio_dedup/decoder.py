from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
import tempfile
from array import array
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence

from .config import FingerprintSettings
from .models import DecodedAudio, DecodeError

logger = logging.getLogger(__name__)

PCM_CODEC = "pcm_s16le"
PCM_FORMAT = "s16le"


class AudioDecoder(Protocol):
    def decode(self, path: Path) -> Optional[DecodedAudio]: ...


@dataclass(frozen=True, slots=True)
class AudioStreamInfo:
    index: int
    codec_name: Optional[str]
    sample_rate_hz: int
    channels: int
    is_default: bool = False

    @classmethod
    def from_probe(cls, stream: dict[str, Any]) -> Optional["AudioStreamInfo"]:
        try:
            sample_rate = int(stream.get("sample_rate") or 0)
            channels = int(stream.get("channels") or 0)
            index = int(stream["index"])
        except (KeyError, TypeError, ValueError):
            return None
        if sample_rate <= 0 or channels <= 0:
            return None
        disposition = stream.get("disposition")
        if not isinstance(disposition, dict):
            disposition = {}
        return cls(
            index=index,
            codec_name=stream.get("codec_name"),
            sample_rate_hz=sample_rate,
            channels=channels,
            is_default=bool(disposition.get("default")),
        )


def select_primary_stream(streams: Sequence[AudioStreamInfo]) -> Optional[AudioStreamInfo]:
    """The stream flagged as default wins, otherwise the first audio stream."""
    for stream in streams:
        if stream.is_default:
            return stream
    return streams[0] if streams else None


def read_pcm_samples(path: Path) -> array:
    samples = array("h")
    with path.open("rb") as fh:
        # a trailing odd byte is not a whole sample
        samples.fromfile(fh, os.fstat(fh.fileno()).st_size // samples.itemsize)
    if sys.byteorder == "big":
        samples.byteswap()
    return samples


class FFmpegAudioDecoder:
    """Decodes the primary audio stream of any container ffmpeg understands.

    The call blocks until ffmpeg exits and cannot be interrupted; async callers
    should dispatch it to an executor.
    """

    def __init__(self, settings: Optional[FingerprintSettings] = None) -> None:
        self.settings = settings or FingerprintSettings()

    def decode(self, path: Path) -> Optional[DecodedAudio]:
        path = Path(path)
        if not path.is_file():
            logger.warning("File not found: %s", path)
            return None
        try:
            stream = select_primary_stream(self._probe_audio_streams(path))
            if stream is None:
                logger.warning("No audio stream found in %s", path)
                return None
            with tempfile.TemporaryDirectory(prefix="audio-dedup-") as tmpdir:
                pcm_path = Path(tmpdir) / "decoded.pcm"
                self._decode_to_pcm(path, stream, pcm_path)
                samples = read_pcm_samples(pcm_path)
            return DecodedAudio(
                samples=samples,
                sample_rate_hz=stream.sample_rate_hz,
                channels=stream.channels,
            )
        except DecodeError as exc:
            logger.error("Failed to decode audio from %s: %s", path, exc)
        except subprocess.TimeoutExpired:
            logger.error("Decoding %s timed out", path)
        except (subprocess.SubprocessError, OSError, ValueError) as exc:
            logger.error("Failed to decode audio from %s: %s", path, exc)
        return None

    def _probe_audio_streams(self, path: Path) -> list[AudioStreamInfo]:
        cmd = [
            self.settings.ffprobe_path,
            "-v",
            "error",
            "-select_streams",
            "a",
            "-show_streams",
            "-of",
            "json",
            str(path),
        ]
        proc = self._run(cmd)
        payload = json.loads(proc.stdout or b"{}")
        if not isinstance(payload, dict):
            raise DecodeError("unexpected ffprobe output")
        raw_streams = payload.get("streams")
        streams = []
        for raw in raw_streams if isinstance(raw_streams, list) else []:
            if not isinstance(raw, dict) or raw.get("codec_type", "audio") != "audio":
                continue
            info = AudioStreamInfo.from_probe(raw)
            if info is None:
                logger.debug("Ignoring unusable audio stream %s in %s", raw.get("index"), path)
                continue
            streams.append(info)
        return streams

    def _decode_to_pcm(self, path: Path, stream: AudioStreamInfo, target: Path) -> None:
        cmd = [
            self.settings.ffmpeg_path,
            "-nostdin",
            "-v",
            "error",
            "-y",
            "-i",
            str(path),
            "-map",
            f"0:{stream.index}",
            "-vn",
            "-acodec",
            PCM_CODEC,
            "-ar",
            str(stream.sample_rate_hz),
            "-f",
            PCM_FORMAT,
            str(target),
        ]
        self._run(cmd)
        if not target.exists():
            raise DecodeError("ffmpeg produced no output")

    def _run(self, cmd: list[str]) -> subprocess.CompletedProcess[bytes]:
        proc = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=self.settings.decode_timeout_seconds,
            check=False,
        )
        if proc.returncode != 0:
            err = (proc.stderr or b"").decode("utf-8", errors="replace").strip()
            raise DecodeError(f"{Path(cmd[0]).name} exited with {proc.returncode}: {err}")
        return proc
