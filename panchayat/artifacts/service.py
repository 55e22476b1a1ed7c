"""
Artifact service - serves a record's document or image, generating on a miss.

Request flow: resolve the format, load the record, check that its status
allows download, return the cached bytes if present, otherwise generate on the
worker pool, persist under the cache key and send a best-effort notification.

Image requests never surface a generation error. When re-encoding fails (or
generation as a whole fails or times out) the caller gets a placeholder JPEG.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime
from typing import Callable, Dict, Tuple, Union

from ..core.config import (
    GENERATION_TIMEOUT_SEC,
    GENERATION_WORKERS,
    IMAGE_REENCODE_ENABLED,
    JPEG_QUALITY,
    RENDER_DPI,
)
from ..core.errors import GenerationError, PolicyError
from ..core.kinds import RecordKind
from ..core.repository import RepositorySet
from ..core.schema import ApplicationRecord, Artifact
from ..util.logging import logger
from .cache import DOCUMENT, IMAGE, ArtifactCache, ArtifactFormat, resolve_format
from .imaging import is_placeholder, reencode_to_jpeg, render_placeholder
from .renderer import render_document


class ArtifactService:
    """Cache-first artifact retrieval with generation on a bounded worker pool."""

    def __init__(self, repositories: RepositorySet, cache: ArtifactCache, notifier=None,
                 executor: ThreadPoolExecutor = None,
                 timeout_sec: float = GENERATION_TIMEOUT_SEC,
                 reencode_enabled: bool = IMAGE_REENCODE_ENABLED,
                 dpi: int = RENDER_DPI,
                 quality: int = JPEG_QUALITY,
                 renderer: Callable[[ApplicationRecord, RecordKind], bytes] = render_document,
                 reencoder: Callable[..., Union[bytes, Exception]] = reencode_to_jpeg):
        self.repositories = repositories
        self.cache = cache
        self.notifier = notifier
        self.executor = executor or ThreadPoolExecutor(max_workers=GENERATION_WORKERS,
                                                       thread_name_prefix="artifact-gen")
        self.timeout_sec = timeout_sec
        self.reencode_enabled = reencode_enabled
        self.dpi = dpi
        self.quality = quality
        self.renderer = renderer
        self.reencoder = reencoder
        self._inflight: Dict[Tuple[str, str, int], Future] = {}
        self._lock = threading.Lock()

    def invalidate(self, record_id: str) -> int:
        """Drop every cached format of a record."""
        return self.cache.invalidate(record_id)

    def request_artifact(self, record_id: str, format_name: str) -> Artifact:
        fmt = resolve_format(format_name)
        repository = self.repositories.for_record(record_id)
        kind = repository.kind

        # Epoch first: a record read after an invalidation must not be cached under the old epoch.
        epoch = self.cache.epoch(record_id)
        record = repository.get(record_id)

        if not kind.allows_download(record.status):
            raise PolicyError(
                f"{kind.category} application {record_id} is '{kind.human_status(record.status)}' "
                f"and is not ready for download"
            )

        cached = self.cache.get(kind, record_id, fmt)
        if cached is not None:
            content, generated_at = cached
            logger.log_artifact_operation("request", record_id, fmt.name, "hit")
            return self._artifact(kind, record, fmt, content, generated_at,
                                  placeholder=fmt is IMAGE and is_placeholder(content), from_cache=True)

        logger.log_artifact_operation("request", record_id, fmt.name, "miss")
        future = self._submit(kind, record, fmt, epoch)
        try:
            content, placeholder = future.result(timeout=self.timeout_sec)
        except FutureTimeout:
            content, placeholder = self._generation_failed(
                kind, record, fmt, f"generation did not finish within {self.timeout_sec}s")
        except Exception as e:
            content, placeholder = self._generation_failed(kind, record, fmt, e)

        artifact = self._artifact(kind, record, fmt, content, datetime.now(), placeholder=placeholder)
        if self.notifier is not None:
            self.notifier.notify(
                record.citizen_id,
                record.id,
                kind.category,
                kind.human_status(record.status),
                f"{kind.category} document generated in {fmt.extension.upper()} format",
            )
        return artifact

    def _submit(self, kind: RecordKind, record: ApplicationRecord, fmt: ArtifactFormat, epoch: int) -> Future:
        key = (record.id, fmt.name, epoch)
        with self._lock:
            future = self._inflight.get(key)
            if future is not None:
                return future
            future = self.executor.submit(self._generate, kind, record, fmt, epoch)
            self._inflight[key] = future

        future.add_done_callback(lambda _: self._forget(key))
        return future

    def _forget(self, key):
        with self._lock:
            self._inflight.pop(key, None)

    def _generate(self, kind: RecordKind, record: ApplicationRecord, fmt: ArtifactFormat,
                  epoch: int) -> Tuple[bytes, bool]:
        """Render, re-encode if needed, and persist. Runs on the worker pool."""
        if fmt is DOCUMENT:
            try:
                content = self.renderer(record, kind)
            except Exception as e:
                raise GenerationError(f"Failed to generate document for {record.id}: {e}") from e
            placeholder = False
        else:
            content, placeholder = self._image_or_placeholder(kind, record, self._reencode(kind, record))

        self.cache.put(kind, record.id, fmt, content, epoch=epoch)
        logger.log_artifact_operation("generate", record.id, fmt.name,
                                      "degraded" if placeholder else "success",
                                      {"bytes": len(content)})
        return content, placeholder

    def _reencode(self, kind: RecordKind, record: ApplicationRecord) -> Union[bytes, Exception]:
        cached_document = self.cache.get(kind, record.id, DOCUMENT)
        if cached_document is not None:
            pdf_bytes = cached_document[0]
        else:
            try:
                pdf_bytes = self.renderer(record, kind)
            except Exception as e:
                return e

        return self.reencoder(pdf_bytes, dpi=self.dpi, quality=self.quality, enabled=self.reencode_enabled)

    def _image_or_placeholder(self, kind: RecordKind, record: ApplicationRecord,
                              result: Union[bytes, Exception]) -> Tuple[bytes, bool]:
        if isinstance(result, Exception):
            logger.log_artifact_operation("reencode", record.id, IMAGE.name, "degraded",
                                          {"error": str(result)[:200]})
            return render_placeholder(record, kind, reason=str(result), quality=self.quality), True
        return result, False

    def _generation_failed(self, kind: RecordKind, record: ApplicationRecord, fmt: ArtifactFormat,
                           error) -> Tuple[bytes, bool]:
        logger.log_artifact_operation("generate", record.id, fmt.name, "failed", {"error": str(error)[:200]})
        if fmt is DOCUMENT:
            if isinstance(error, GenerationError):
                raise error
            raise GenerationError(f"Failed to generate document for {record.id}: {error}")

        # Not cached: the worker may still finish and store the real image.
        return render_placeholder(record, kind, reason=str(error), quality=self.quality), True

    def _artifact(self, kind: RecordKind, record: ApplicationRecord, fmt: ArtifactFormat, content: bytes,
                  generated_at: datetime, placeholder: bool = False, from_cache: bool = False) -> Artifact:
        return Artifact(
            record_id=record.id,
            format=fmt.name,
            content=content,
            content_type=fmt.content_type,
            filename=self.cache.filename(kind, record.id, fmt),
            generated_at=generated_at,
            placeholder=placeholder,
            from_cache=from_cache,
        )

    def shutdown(self, wait: bool = True):
        self.executor.shutdown(wait=wait)
