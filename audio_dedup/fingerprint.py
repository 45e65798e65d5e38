"""Amplitude-envelope fingerprint of decoded PCM.

The digest covers the mean absolute amplitude of up to ``MAX_CHUNKS`` leading
windows of ``CHUNK_SIZE`` samples, followed by the stream shape (sample rate,
channel count, total samples).
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import struct
from pathlib import Path
from typing import Sequence

from .models import AudioFingerprint, DecodedAudio

CHUNK_SIZE = 4096
MAX_CHUNKS = 100
DIGEST_SIZE = hashlib.sha256().digest_size

_UINT32 = struct.Struct("<I")


def _pack(value: int) -> bytes:
    # low 32 bits, matching a wrapped int32
    return _UINT32.pack(value & 0xFFFFFFFF)


def chunk_energies(samples: Sequence[int]) -> list[int]:
    count = min(MAX_CHUNKS, len(samples) // CHUNK_SIZE)
    energies = []
    for i in range(count):
        start = i * CHUNK_SIZE
        total = sum(abs(s) for s in samples[start : start + CHUNK_SIZE])
        energies.append(total // CHUNK_SIZE)
    return energies


def duration_seconds(sample_count: int, sample_rate_hz: int, channels: int) -> int:
    return sample_count // (sample_rate_hz * channels)


def fingerprint_digest(samples: Sequence[int], sample_rate_hz: int, channels: int) -> bytes:
    payload = bytearray()
    for energy in chunk_energies(samples):
        payload += _pack(energy)
    payload += _pack(sample_rate_hz)
    payload += _pack(channels)
    payload += _pack(len(samples))
    return hashlib.sha256(bytes(payload)).digest()


def generate_fingerprint(
    samples: Sequence[int],
    sample_rate_hz: int,
    channels: int,
    *,
    file_path: Path | str = "",
) -> AudioFingerprint:
    if sample_rate_hz <= 0 or channels <= 0:
        raise ValueError("sample rate and channel count must be positive")
    digest = fingerprint_digest(samples, sample_rate_hz, channels)
    return AudioFingerprint(
        file_path=Path(file_path),
        hash=base64.b64encode(digest).decode("ascii"),
        duration_seconds=duration_seconds(len(samples), sample_rate_hz, channels),
    )


def fingerprint_decoded(audio: DecodedAudio, file_path: Path | str = "") -> AudioFingerprint:
    return generate_fingerprint(
        audio.samples, audio.sample_rate_hz, audio.channels, file_path=file_path
    )


def is_current_digest(hash_value: str) -> bool:
    """True when ``hash_value`` is Base64 of a digest this module produces."""
    try:
        return len(base64.b64decode(hash_value, validate=True)) == DIGEST_SIZE
    except (binascii.Error, ValueError):
        return False
