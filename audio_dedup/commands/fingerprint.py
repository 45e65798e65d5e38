from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Sequence

from ..service import FingerprintService

logger = logging.getLogger(__name__)


def run(service: FingerprintService, paths: Sequence[Path]) -> int:
    """Print one JSON record per file; return the number of failures."""
    failures = 0
    for path in paths:
        fingerprint = service.generate_fingerprint(path)
        if fingerprint is None:
            logger.warning("Could not fingerprint %s", path)
            failures += 1
            continue
        print(json.dumps(fingerprint.to_record()))
    return failures
