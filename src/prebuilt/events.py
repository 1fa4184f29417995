"""JSON event stream for tools driving prebuilt.

When enabled, one JSON object per line is written to stdout for each step
of a package's installation::

    {"crate": "foo", "version": "1.2.0", "event_version": "1", "event": "target", "data": "..."}

Events per package, in order: ``target``, ``info_verify``,
``hashes_verify``, then one ``bin_installed`` per binary.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, TextIO

from prebuilt.models.constants import EVENT_VERSION
from prebuilt.models.entities import ResolvedRelease


class EventEmitter:
    """Writes installation events as JSON lines. Silent unless ``enabled``."""

    def __init__(self, enabled: bool = False, stream: TextIO | None = None) -> None:
        self.enabled = enabled
        self._stream = stream

    def _emit(self, release: ResolvedRelease, event: str, data: Any) -> None:
        if not self.enabled:
            return
        record = {
            "crate": release.id,
            "version": release.version,
            "event_version": EVENT_VERSION,
            "event": event,
            "data": data,
        }
        stream = self._stream or sys.stdout
        stream.write(json.dumps(record) + "\n")
        stream.flush()

    def target(self, release: ResolvedRelease) -> None:
        self._emit(release, "target", release.target)

    def info_verify(self, release: ResolvedRelease, verified: bool) -> None:
        self._emit(release, "info_verify", str(verified).lower())

    def hashes_verify(self, release: ResolvedRelease, verified: bool) -> None:
        self._emit(release, "hashes_verify", str(verified).lower())

    def binary_installed(self, release: ResolvedRelease, path: Path) -> None:
        self._emit(release, "bin_installed", str(path))
