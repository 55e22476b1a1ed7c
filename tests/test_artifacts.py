"""
Artifact generation: PDF documents, JPEG re-encoding, placeholder images,
cache consistency after updates, and failure handling.
"""

import io
import threading
from concurrent.futures import ThreadPoolExecutor

import pymupdf
import pytest
from PIL import Image

from panchayat.artifacts.cache import DOCUMENT, IMAGE, ArtifactCache, resolve_format
from panchayat.artifacts.imaging import (
    FAILURE_NOTICE,
    PLACEHOLDER_MARKER,
    ReencodeDisabled,
    is_placeholder,
    reencode_to_jpeg,
    render_placeholder,
)
from panchayat.artifacts.renderer import render_document
from panchayat.artifacts.service import ArtifactService
from panchayat.core.errors import GenerationError, NotFoundError, PolicyError, ValidationError
from panchayat.core.kinds import CERTIFICATE, LAND_RECORD, MUTATION
from panchayat.core.repository import RepositorySet
from panchayat.core.schema import ApplicationStatus


def _jpeg(content):
    image = Image.open(io.BytesIO(content))
    image.load()
    return image


class TestFormats:
    @pytest.mark.parametrize("name,expected", [
        ("pdf", DOCUMENT), ("document", DOCUMENT), ("JPG", IMAGE), ("jpeg", IMAGE), ("image", IMAGE),
    ])
    def test_aliases(self, name, expected):
        assert resolve_format(name) is expected

    def test_unsupported(self):
        with pytest.raises(ValidationError) as exc:
            resolve_format("docx")
        assert "docx" in exc.value.message


class TestRendering:
    def test_document_contains_record_fields(self, services, land_record_fields):
        record = services.repositories.for_kind("land-records").create(land_record_fields)

        pdf = render_document(record, LAND_RECORD)

        assert pdf.startswith(b"%PDF")
        with pymupdf.open(stream=pdf, filetype="pdf") as doc:
            assert doc.page_count == 1
            text = doc[0].get_text()
        assert "LAND RECORD" in text
        assert "112/3A" in text
        assert record.id in text

    def test_mutation_document_lists_timeline(self, services, mutation_fields):
        record = services.repositories.for_kind("mutations").create(mutation_fields)

        with pymupdf.open(stream=render_document(record, MUTATION), filetype="pdf") as doc:
            text = doc[0].get_text()
        assert "Field verification" in text

    def test_reencode_disabled_returns_error_value(self):
        result = reencode_to_jpeg(b"%PDF-1.7", enabled=False)
        assert isinstance(result, ReencodeDisabled)

    def test_reencode_garbage_returns_error_value(self):
        assert isinstance(reencode_to_jpeg(b"not a pdf"), Exception)

    def test_placeholder_is_marked(self, services, land_record_fields):
        record = services.repositories.for_kind("land-records").create(land_record_fields)

        image = _jpeg(render_placeholder(record, LAND_RECORD, reason="converter crashed"))

        assert image.format == "JPEG"
        assert image.size == (800, 600)
        assert FAILURE_NOTICE.encode() in image.info["comment"]

    def test_placeholder_marker_is_explicit(self, services, land_record_fields):
        record = services.repositories.for_kind("land-records").create(land_record_fields)
        placeholder = render_placeholder(record, LAND_RECORD)
        real = reencode_to_jpeg(render_document(record, LAND_RECORD))

        buffer = io.BytesIO()
        Image.new("RGB", (10, 10)).save(buffer, format="JPEG", comment=f"note: {FAILURE_NOTICE}".encode())
        mentions_notice = buffer.getvalue()

        assert _jpeg(placeholder).info["comment"].startswith(PLACEHOLDER_MARKER)
        assert is_placeholder(placeholder) is True
        assert is_placeholder(real) is False
        assert is_placeholder(mentions_notice) is False
        assert is_placeholder(b"%PDF-1.7") is False


class TestArtifactRequests:
    """Cache-first retrieval through the artifact service."""

    def test_document_download(self, services, land_record_fields):
        record = services.repositories.for_kind("land-records").create(land_record_fields)

        artifact = services.artifacts.request_artifact(record.id, "pdf")

        assert artifact.content_type == "application/pdf"
        assert artifact.content.startswith(b"%PDF")
        assert artifact.filename == f"land-record-certificate-{record.id}.pdf"
        assert artifact.from_cache is False
        assert services.cache.path_for(LAND_RECORD, record.id, DOCUMENT).exists()

    def test_repeated_requests_are_byte_identical(self, services, land_record_fields):
        record = services.repositories.for_kind("land-records").create(land_record_fields)

        first = services.artifacts.request_artifact(record.id, "pdf")
        second = services.artifacts.request_artifact(record.id, "document")

        assert second.from_cache is True
        assert second.content == first.content

    def test_image_download(self, services, land_record_fields):
        record = services.repositories.for_kind("land-records").create(land_record_fields)

        artifact = services.artifacts.request_artifact(record.id, "jpg")

        assert artifact.content_type == "image/jpeg"
        assert artifact.placeholder is False
        assert _jpeg(artifact.content).format == "JPEG"
        assert services.artifacts.request_artifact(record.id, "image").content == artifact.content

    def test_update_then_download_is_fresh(self, services, land_record_fields):
        record = services.repositories.for_kind("land-records").create(land_record_fields)
        before_pdf = services.artifacts.request_artifact(record.id, "pdf")
        services.artifacts.request_artifact(record.id, "jpg")

        services.repositories.update(record.id, {"area": "9 acres"})

        assert not services.cache.path_for(LAND_RECORD, record.id, IMAGE).exists()
        after_pdf = services.artifacts.request_artifact(record.id, "pdf")
        assert after_pdf.from_cache is False
        assert after_pdf.content != before_pdf.content
        with pymupdf.open(stream=after_pdf.content, filetype="pdf") as doc:
            assert "9 acres" in doc[0].get_text()

    def test_mutation_acknowledgement_downloads_in_any_status(self, services, mutation_fields):
        record = services.repositories.for_kind("mutations").create(mutation_fields)
        assert record.status == ApplicationStatus.SUBMITTED

        artifact = services.artifacts.request_artifact(record.id, "pdf")

        assert artifact.filename == f"mutation-status-{record.id}.pdf"
        with pymupdf.open(stream=artifact.content, filetype="pdf") as doc:
            text = doc[0].get_text()
            title = doc.metadata["title"]
        assert "ACKNOWLEDGEMENT" in text
        assert title.startswith("Mutation Application Acknowledgement")

        services.repositories.update(record.id, {"status": "Rejected"})
        assert services.artifacts.request_artifact(record.id, "pdf").from_cache is False

    def test_download_policy_per_kind(self):
        assert CERTIFICATE.allows_download(ApplicationStatus.READY) is True
        assert CERTIFICATE.allows_download(ApplicationStatus.IN_PROCESS) is False
        assert all(MUTATION.allows_download(status) for status in ApplicationStatus)

    def test_not_ready_is_policy_error(self, services, certificate_fields):
        record = services.repositories.for_kind("certificates").create(certificate_fields)

        with pytest.raises(PolicyError):
            services.artifacts.request_artifact(record.id, "pdf")

        services.repositories.update(record.id, {"status": "Ready"})
        assert services.artifacts.request_artifact(record.id, "pdf").content.startswith(b"%PDF")

    def test_unknown_record(self, services):
        with pytest.raises(NotFoundError):
            services.artifacts.request_artifact("LND-000000000000", "pdf")
        with pytest.raises(NotFoundError):
            services.artifacts.request_artifact("garbage", "pdf")

    def test_unsupported_format(self, services, land_record_fields):
        record = services.repositories.for_kind("land-records").create(land_record_fields)

        with pytest.raises(ValidationError):
            services.artifacts.request_artifact(record.id, "tiff")

    def test_download_notifies_connected_citizen(self, services, transport, property_tax_fields):
        record = services.repositories.for_kind("property-tax").create(property_tax_fields)
        services.registry.bind("CIT-2002", "conn-1")

        services.artifacts.request_artifact(record.id, "pdf")

        connection_id, event, payload = transport.sent[-1]
        assert connection_id == "conn-1"
        assert event == "applicationUpdate"
        assert payload["recordId"] == record.id
        assert payload["status"] == "Paid"
        assert payload["message"] == "Property Tax document generated in PDF format"


class TestImageFallback:
    """Image requests always yield a JPEG, even when re-encoding fails."""

    def test_reencode_disabled_yields_placeholder(self, db_path, cache_dir, land_record_fields):
        repositories = RepositorySet.build(db_path)
        service = ArtifactService(repositories, ArtifactCache(cache_dir), reencode_enabled=False)
        record = repositories.for_kind("land-records").create(land_record_fields)

        artifact = service.request_artifact(record.id, "jpg")

        assert artifact.placeholder is True
        assert artifact.content_type == "image/jpeg"
        assert FAILURE_NOTICE.encode() in _jpeg(artifact.content).info["comment"]
        # Placeholders are cached and recognised on a hit
        again = service.request_artifact(record.id, "jpg")
        assert again.from_cache is True and again.placeholder is True
        service.shutdown()

    def test_reencoder_failure_yields_placeholder(self, db_path, cache_dir, land_record_fields):
        def broken_reencoder(pdf_bytes, **kwargs):
            return RuntimeError("rasterizer crashed")

        repositories = RepositorySet.build(db_path)
        service = ArtifactService(repositories, ArtifactCache(cache_dir), reencoder=broken_reencoder)
        record = repositories.for_kind("land-records").create(land_record_fields)

        artifact = service.request_artifact(record.id, "image")

        assert artifact.placeholder is True
        assert _jpeg(artifact.content).size == (800, 600)
        service.shutdown()

    def test_image_reuses_cached_document(self, db_path, cache_dir, land_record_fields):
        calls = []

        def counting_renderer(record, kind):
            calls.append(record.id)
            return render_document(record, kind)

        repositories = RepositorySet.build(db_path)
        service = ArtifactService(repositories, ArtifactCache(cache_dir), renderer=counting_renderer)
        record = repositories.for_kind("land-records").create(land_record_fields)

        service.request_artifact(record.id, "pdf")
        service.request_artifact(record.id, "jpg")

        assert calls == [record.id]
        service.shutdown()


class TestGenerationFailures:
    def test_document_render_failure(self, db_path, cache_dir, land_record_fields):
        def failing_renderer(record, kind):
            raise RuntimeError("font missing")

        repositories = RepositorySet.build(db_path)
        cache = ArtifactCache(cache_dir)
        service = ArtifactService(repositories, cache, renderer=failing_renderer)
        record = repositories.for_kind("land-records").create(land_record_fields)

        with pytest.raises(GenerationError) as exc:
            service.request_artifact(record.id, "pdf")
        assert "font missing" in exc.value.message
        assert cache.get(LAND_RECORD, record.id, DOCUMENT) is None

        # The image path still degrades to a placeholder
        assert service.request_artifact(record.id, "jpg").placeholder is True
        service.shutdown()

    def test_timeouts(self, db_path, cache_dir, land_record_fields):
        release = threading.Event()

        def slow_renderer(record, kind):
            release.wait(5)
            return render_document(record, kind)

        repositories = RepositorySet.build(db_path)
        service = ArtifactService(repositories, ArtifactCache(cache_dir), renderer=slow_renderer,
                                  timeout_sec=0.2)
        record = repositories.for_kind("land-records").create(land_record_fields)

        try:
            with pytest.raises(GenerationError):
                service.request_artifact(record.id, "pdf")

            image = service.request_artifact(record.id, "jpg")
            assert image.placeholder is True
            assert _jpeg(image.content).format == "JPEG"
        finally:
            release.set()
            service.shutdown()

    def test_concurrent_requests_generate_once(self, db_path, cache_dir, land_record_fields):
        started = threading.Event()
        release = threading.Event()
        calls = []

        def gated_renderer(record, kind):
            calls.append(record.id)
            started.set()
            release.wait(5)
            return render_document(record, kind)

        repositories = RepositorySet.build(db_path)
        service = ArtifactService(repositories, ArtifactCache(cache_dir), renderer=gated_renderer)
        record = repositories.for_kind("land-records").create(land_record_fields)

        with ThreadPoolExecutor(max_workers=2) as pool:
            first = pool.submit(service.request_artifact, record.id, "pdf")
            started.wait(5)
            second = pool.submit(service.request_artifact, record.id, "pdf")
            release.set()
            results = [first.result(10), second.result(10)]

        assert len(calls) == 1
        assert results[0].content == results[1].content
        service.shutdown()


class TestArtifactCache:
    def test_stale_write_is_dropped(self, cache_dir):
        cache = ArtifactCache(cache_dir)
        epoch = cache.epoch("LND-000000000001")

        cache.invalidate("LND-000000000001")

        assert cache.put(LAND_RECORD, "LND-000000000001", DOCUMENT, b"%PDF-old", epoch=epoch) is False
        assert cache.get(LAND_RECORD, "LND-000000000001", DOCUMENT) is None

    def test_invalidate_removes_every_format(self, cache_dir):
        cache = ArtifactCache(cache_dir)
        cache.put(LAND_RECORD, "LND-000000000001", DOCUMENT, b"%PDF")
        cache.put(LAND_RECORD, "LND-000000000001", IMAGE, b"\xff\xd8")

        assert cache.invalidate("LND-000000000001") == 2
        assert cache.get(LAND_RECORD, "LND-000000000001", IMAGE) is None

    def test_purge(self, cache_dir):
        cache = ArtifactCache(cache_dir)
        cache.put(LAND_RECORD, "LND-000000000001", DOCUMENT, b"%PDF")

        assert cache.purge(older_than_sec=3600) == 0
        assert cache.purge() == 1
        assert list(cache.cache_dir.iterdir()) == []
