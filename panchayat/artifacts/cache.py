"""
Artifact cache - generated bytes on disk, keyed by (record id, format).

Files live in one directory, named <kind slug>-<record id>.<ext>. Writes go to
a temporary file in the same directory and are renamed into place, so readers
never see a partial artifact. Each record id carries an epoch that
invalidate() bumps; a write that started before the bump is dropped.
"""

import os
import tempfile
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Tuple

from ..core.config import ensure_cache_directory
from ..core.errors import ValidationError
from ..core.kinds import KINDS, RecordKind, kind_for_id
from ..util.logging import logger


@dataclass(frozen=True)
class ArtifactFormat:
    name: str
    extension: str
    content_type: str


DOCUMENT = ArtifactFormat("document", "pdf", "application/pdf")
IMAGE = ArtifactFormat("image", "jpg", "image/jpeg")

ARTIFACT_FORMATS = {fmt.name: fmt for fmt in (DOCUMENT, IMAGE)}
FORMAT_ALIASES = {"pdf": DOCUMENT, "jpg": IMAGE, "jpeg": IMAGE}


def resolve_format(name: str) -> ArtifactFormat:
    """Map a requested format name or alias onto a supported format."""
    wanted = (name or "").strip().lower()
    fmt = ARTIFACT_FORMATS.get(wanted) or FORMAT_ALIASES.get(wanted)
    if fmt is None:
        raise ValidationError(f"Unsupported format '{name}'. Use pdf or jpg.")
    return fmt


class ArtifactCache:
    """On-disk cache of generated artifacts."""

    def __init__(self, cache_dir: str = None):
        self.cache_dir = ensure_cache_directory(cache_dir)
        self._epochs: Dict[str, int] = {}
        self._lock = threading.Lock()

    def filename(self, kind: RecordKind, record_id: str, fmt: ArtifactFormat) -> str:
        return f"{kind.slug}-{record_id}.{fmt.extension}"

    def path_for(self, kind: RecordKind, record_id: str, fmt: ArtifactFormat) -> Path:
        return self.cache_dir / self.filename(kind, record_id, fmt)

    def epoch(self, record_id: str) -> int:
        with self._lock:
            return self._epochs.get(record_id, 0)

    def get(self, kind: RecordKind, record_id: str, fmt: ArtifactFormat) -> Optional[Tuple[bytes, datetime]]:
        """Return cached bytes and their generation time, or None on a miss."""
        path = self.path_for(kind, record_id, fmt)
        try:
            content = path.read_bytes()
            generated_at = datetime.fromtimestamp(path.stat().st_mtime)
        except FileNotFoundError:
            return None
        return content, generated_at

    def put(self, kind: RecordKind, record_id: str, fmt: ArtifactFormat, content: bytes,
            epoch: int = None) -> bool:
        """Atomically store artifact bytes. Returns False if the write was stale."""
        path = self.path_for(kind, record_id, fmt)
        fd, tmp_path = tempfile.mkstemp(dir=self.cache_dir, prefix=".tmp-", suffix=f".{fmt.extension}")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(content)
            with self._lock:
                if epoch is not None and epoch != self._epochs.get(record_id, 0):
                    logger.log_artifact_operation("cache.put", record_id, fmt.name, "skipped",
                                                  {"reason": "record changed during generation"})
                    return False
                os.replace(tmp_path, path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

        logger.log_artifact_operation("cache.put", record_id, fmt.name, details={"bytes": len(content)})
        return True

    def invalidate(self, record_id: str) -> int:
        """Delete cached entries for every format of a record. Returns files removed."""
        kind = kind_for_id(record_id)
        kinds = [kind] if kind else list(KINDS.values())

        removed = 0
        with self._lock:
            self._epochs[record_id] = self._epochs.get(record_id, 0) + 1
            for candidate in kinds:
                for fmt in ARTIFACT_FORMATS.values():
                    path = self.path_for(candidate, record_id, fmt)
                    if path.exists():
                        path.unlink()
                        removed += 1

        logger.log_artifact_operation("cache.invalidate", record_id, "*", details={"removed": removed})
        return removed

    def purge(self, older_than_sec: float = None) -> int:
        """Delete cached artifacts, optionally only those older than a cutoff."""
        cutoff = time.time() - older_than_sec if older_than_sec is not None else None
        removed = 0
        extensions = {f".{fmt.extension}" for fmt in ARTIFACT_FORMATS.values()}

        with self._lock:
            for path in self.cache_dir.iterdir():
                if not path.is_file() or path.suffix not in extensions or path.name.startswith(".tmp-"):
                    continue
                if cutoff is not None and path.stat().st_mtime >= cutoff:
                    continue
                path.unlink()
                removed += 1

        logger.log_operation("artifact.cache.purge", "success", {"removed": removed})
        return removed
