"""JSON-file backed result store for local runs of the CLI."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from leaksweep.models import FilterClass, Finding, KeywordFilter, TrackedRepository
from leaksweep.store.base import StoreError
from leaksweep.store.memory import InMemoryResultStore

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class JsonFileResultStore(InMemoryResultStore):
    """In-memory store that writes its state to a JSON file on every change.

    The file is replaced atomically (write to a temp file, then rename), so
    an interrupted write leaves the previous state intact. When a write fails
    the in-memory state is rolled back to the last document on disk, so
    memory and file never disagree. Use ``batch()`` to flush many writes once.
    """

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = Path(path)
        self._load()
        self._saved = self._snapshot()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            self._restore(data)
        except (OSError, KeyError, ValueError) as e:
            raise StoreError(f"Cannot read store file {self.path}: {e}") from e
        logger.debug(
            "Loaded %d findings and %d repositories from %s",
            len(self._findings),
            len(self._repositories),
            self.path,
        )

    def _snapshot(self) -> dict[str, Any]:
        return {
            "version": FORMAT_VERSION,
            "repositories": [r.to_dict() for r in self._repositories.values()],
            "filters": [
                {"class": f.filter_class.value, "content": f.content} for f in self._filters
            ],
            "findings": [f.to_dict() for _, f in sorted(self._findings.items())],
        }

    def _restore(self, data: dict[str, Any]) -> None:
        """Replace the in-memory state with a parsed document."""
        repositories = [
            TrackedRepository.from_dict(item) for item in data.get("repositories", [])
        ]
        filters = [
            KeywordFilter(FilterClass(item["class"]), item.get("content", ""))
            for item in data.get("filters", [])
        ]
        findings = [Finding.from_dict(item) for item in data.get("findings", [])]

        self._repositories = {r.identity: r for r in repositories}
        self._filters = filters
        self._findings = {}
        self._keys = {}
        for finding in findings:
            if finding.id is None:
                continue
            self._findings[finding.id] = finding
            self._keys[finding.natural_key] = finding.id
        self._next_id = max(self._findings, default=0) + 1

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

    def _changed(self) -> None:
        data = self._snapshot()
        try:
            self._write(data)
        except OSError as e:
            self._restore(self._saved)
            raise StoreError(f"Cannot write store file {self.path}: {e}") from e
        self._saved = data
