"""
Tests for the conversion client and poller.

Run with: pytest tests/test_converter.py -v
"""
import jwt
import pytest

from core.converter import ConversionPoller, ConverterClient
from core.errors import ConversionError, ConversionTimeoutError
from core.file_store import latest_path
from models import ConversionJob, ConversionStatus, JobStatus

pytestmark = pytest.mark.anyio

CONVERTER_URL = "https://docs.test/converter"
PDF_URL = "https://src.test/report.pdf"
RESULT_URL = "https://docs.test/cache/files/conv/output.docx"
DOCX = b"PK\x03\x04 converted"


class ScriptedBackend:
    """
    Idempotent converter fake: a key is one job, and re-submitting it only
    advances that job. Submitting a second key is a test failure.
    """

    def __init__(self, finish_after=None, error_at=None, error_code=-4, result_url=RESULT_URL):
        self.result_url = result_url
        self.finish_after = finish_after
        self.error_at = error_at
        self.error_code = error_code
        self.submissions = []

    async def submit_or_poll(self, job):
        self.submissions.append(job.key)
        assert len(set(self.submissions)) == 1, "poller started a second job"
        n = len(self.submissions)
        if self.error_at is not None and n >= self.error_at:
            raise ConversionError("boom", code=self.error_code)
        if self.finish_after is not None and n >= self.finish_after:
            return JobStatus(end_convert=True, file_url=self.result_url, percent=100)
        return JobStatus(end_convert=False, percent=n * 10)


class Sleeps:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
async def http(docserver):
    docserver.files[RESULT_URL] = DOCX
    async with docserver.client() as client:
        yield client


def make_poller(backend, store, blobs, http, sleeps, max_attempts=5):
    return ConversionPoller(
        backend,
        record_store=store,
        blob_store=blobs,
        http_client=http,
        max_attempts=max_attempts,
        poll_interval=0.25,
        signed_url_ttl_seconds=3600,
        sleep=sleeps,
    )


def job(key="doc1-pdf2docx-1"):
    return ConversionJob(key=key, document_id="doc1", source_url=PDF_URL)


class TestWaitFor:
    async def test_reuses_key_until_done(self, store, blobs, http):
        backend, sleeps = ScriptedBackend(finish_after=3), Sleeps()
        poller = make_poller(backend, store, blobs, http, sleeps)
        j = job()

        url = await poller.wait_for(j)

        assert url == RESULT_URL
        assert backend.submissions == [j.key] * 3
        assert sleeps.calls == [0.25, 0.25]
        assert j.status == ConversionStatus.SUCCEEDED
        assert j.attempts == 3
        assert j.result_url == RESULT_URL

    async def test_timeout_after_exact_budget(self, store, blobs, http):
        backend, sleeps = ScriptedBackend(), Sleeps()
        poller = make_poller(backend, store, blobs, http, sleeps, max_attempts=4)
        j = job()

        with pytest.raises(ConversionTimeoutError) as exc:
            await poller.wait_for(j)

        assert len(backend.submissions) == 4
        assert len(sleeps.calls) == 3
        assert exc.value.attempts == 4
        assert isinstance(exc.value, TimeoutError)
        assert j.status == ConversionStatus.TIMED_OUT

    async def test_error_code_stops_immediately(self, store, blobs, http):
        backend, sleeps = ScriptedBackend(error_at=2, error_code=4), Sleeps()
        poller = make_poller(backend, store, blobs, http, sleeps)
        j = job()

        with pytest.raises(ConversionError) as exc:
            await poller.wait_for(j)

        assert exc.value.code == 4
        assert len(backend.submissions) == 2
        assert j.status == ConversionStatus.FAILED
        assert j.error_code == 4

    def test_rejects_zero_budget(self, store, blobs):
        with pytest.raises(ValueError):
            ConversionPoller(ScriptedBackend(), record_store=store, blob_store=blobs, http_client=None, max_attempts=0)


class TestConvertAndStore:
    async def test_first_conversion_creates_v1(self, store, blobs, http):
        poller = make_poller(ScriptedBackend(finish_after=2), store, blobs, http, Sleeps())

        j, rec = await poller.convert_and_store("doc1", PDF_URL, "Report", owner_id="u1")

        assert rec.version == 1
        assert rec.title == "Report"
        assert rec.owner_id == "u1"
        assert rec.source_conversion_ref == j.key
        assert rec.source_url == PDF_URL
        assert rec.current_file_path == latest_path("doc1")
        assert blobs.blobs[latest_path("doc1")] == DOCX
        assert j.key.startswith("doc1-pdf2docx-")
        assert ":v" not in j.key

    async def test_reconversion_increments(self, store, blobs, http):
        store.materialize_file("doc1", {"current_file_path": latest_path("doc1")}, title="Old")
        store.increment_version("doc1", {})
        poller = make_poller(ScriptedBackend(finish_after=1), store, blobs, http, Sleeps())

        _, rec = await poller.convert_and_store("doc1", PDF_URL)

        assert rec.version == 3
        assert rec.title == "Old"
        assert rec.source_url == PDF_URL

    async def test_reconversion_replaces_source_url(self, store, blobs, http):
        """Each conversion records its own source PDF; the first ref stays."""
        first = make_poller(ScriptedBackend(finish_after=1), store, blobs, http, Sleeps())
        j1, _ = await first.convert_and_store("doc1", PDF_URL)

        second = make_poller(ScriptedBackend(finish_after=1), store, blobs, http, Sleeps())
        _, rec = await second.convert_and_store("doc1", "https://src.test/NEW.pdf")

        assert rec.version == 2
        assert rec.source_url == "https://src.test/NEW.pdf"
        assert rec.source_conversion_ref == j1.key

    async def test_finished_without_result_fails_fast(self, store, blobs, http):
        backend, sleeps = ScriptedBackend(finish_after=1, result_url=None), Sleeps()
        poller = make_poller(backend, store, blobs, http, sleeps)

        with pytest.raises(ConversionError):
            await poller.convert_and_store("doc1", PDF_URL)

        assert len(backend.submissions) == 1
        assert sleeps.calls == []
        assert store.get_document("doc1") is None

    async def test_failure_does_not_mutate(self, store, blobs, http):
        poller = make_poller(ScriptedBackend(error_at=1, error_code=4), store, blobs, http, Sleeps())

        with pytest.raises(ConversionError):
            await poller.convert_and_store("doc1", PDF_URL)

        assert store.get_document("doc1") is None
        assert blobs.put_calls == []

    async def test_timeout_does_not_mutate(self, store, blobs, http):
        poller = make_poller(ScriptedBackend(), store, blobs, http, Sleeps(), max_attempts=2)
        with pytest.raises(ConversionTimeoutError):
            await poller.convert_and_store("doc1", PDF_URL)
        assert store.get_document("doc1") is None

    async def test_result_download_failure(self, store, blobs, http, docserver):
        docserver.download_status[RESULT_URL] = 410
        poller = make_poller(ScriptedBackend(finish_after=1), store, blobs, http, Sleeps())

        with pytest.raises(ConversionError) as exc:
            await poller.convert_and_store("doc1", PDF_URL)

        assert exc.value.http_status == 410
        assert store.get_document("doc1") is None


class TestConverterClient:
    async def test_request_shape(self, docserver):
        docserver.converter_responses = [{"endConvert": True, "fileUrl": RESULT_URL, "percent": 100}]
        async with docserver.client() as client:
            status = await ConverterClient(client, CONVERTER_URL).submit_or_poll(job("k1"))

        assert status.end_convert is True
        assert status.file_url == RESULT_URL
        [body] = docserver.converter_requests
        assert body == {
            "async": True,
            "url": PDF_URL,
            "filetype": "pdf",
            "outputtype": "docx",
            "key": "k1",
            "title": "source.pdf",
        }
        assert "authorization" not in docserver.converter_headers[0]

    async def test_signed_request(self, docserver):
        async with docserver.client() as client:
            await ConverterClient(client, CONVERTER_URL, jwt_secret="s3cret").submit_or_poll(job("k1"))

        body = docserver.converter_requests[0]
        claims = jwt.decode(body["token"], "s3cret", algorithms=["HS256"])
        assert claims["key"] == "k1"
        assert docserver.converter_headers[0]["authorization"] == f"Bearer {body['token']}"

    async def test_error_code(self, docserver):
        docserver.converter_responses = [{"error": -4}]
        async with docserver.client() as client:
            with pytest.raises(ConversionError) as exc:
                await ConverterClient(client, CONVERTER_URL).submit_or_poll(job())
        assert exc.value.code == -4

    async def test_http_error(self, docserver):
        docserver.converter_status_code = 503
        docserver.converter_responses = [{"message": "unavailable"}]
        async with docserver.client() as client:
            with pytest.raises(ConversionError) as exc:
                await ConverterClient(client, CONVERTER_URL).submit_or_poll(job())
        assert exc.value.http_status == 503
        assert exc.value.code is None

    async def test_in_progress(self, docserver):
        docserver.converter_responses = [{"endConvert": False, "percent": 40}]
        async with docserver.client() as client:
            status = await ConverterClient(client, CONVERTER_URL).submit_or_poll(job())
        assert status.end_convert is False
        assert status.percent == 40
        assert status.error is None

    async def test_non_numeric_fields(self, docserver):
        docserver.converter_responses = [{"endConvert": False, "percent": "half"}]
        async with docserver.client() as client:
            with pytest.raises(ConversionError) as exc:
                await ConverterClient(client, CONVERTER_URL).submit_or_poll(job())
        assert exc.value.details == {"endConvert": False, "percent": "half"}
        assert exc.value.code is None
