"""
Tests for ImportService: replace-on-import, batch failure handling, timeouts and import records.
"""

import asyncio
import re

import httpx
import pytest
from pymongo.errors import PyMongoError

from app.core.config import settings
from app.services.imports.import_service import ImportService, generate_import_id
from app.services.ingest.gsc_client import SearchConsoleClient
from app.utils.error_handlers import ImportFailedError, UpstreamError, ValidationError
from conftest import DETAIL_ROWS, TIME_SERIES_ROWS, FakeSearchConsoleClient, run

SITE_A = "https://a.example.com/"
SITE_B = "https://b.example.com/"

# 2 daily totals + 3 query/page rows, 4 metric documents each
GSC_DOCUMENTS = 20

AHREFS_CSV = (
    b"Keyword,URL,Position,Volume,Traffic,Date\n"
    b"seo tools,https://a.example.com/tools,3,1200,90,2024-02-01\n"
    b"rank tracker,https://a.example.com/rank,7,300,20,2024-02-01\n"
)


def gsc_client():
    return FakeSearchConsoleClient("token", time_series=TIME_SERIES_ROWS, detail=DETAIL_ROWS)


class FailingClient(FakeSearchConsoleClient):

    async def fetch_detail_rows(self, site_url, start_date, end_date):
        raise UpstreamError("Search Console API error (503): backend unavailable")


class BrokenClient(FakeSearchConsoleClient):

    async def fetch_time_series(self, site_url, start_date, end_date):
        raise RuntimeError("unexpected row shape")


class SlowClient(FakeSearchConsoleClient):

    async def fetch_time_series(self, site_url, start_date, end_date):
        await asyncio.sleep(1)
        return []


class FlakyCollection:
    """Wraps a collection; the Nth insert_many call fails"""

    def __init__(self, inner, fail_on):
        self.inner = inner
        self.fail_on = fail_on
        self.calls = 0

    async def insert_many(self, documents, *args, **kwargs):
        self.calls += 1
        if self.calls == self.fail_on:
            raise PyMongoError("write concern error")
        return await self.inner.insert_many(documents, *args, **kwargs)

    def __getattr__(self, name):
        return getattr(self.inner, name)


def count(repository, query):
    return run(repository.reporting.count_documents(query))


class TestGenerateImportId:

    def test_gsc_format(self):
        import_id = generate_import_id("gsc", "https://example.com/", "2024-01-01", "2024-01-31")
        assert re.match(r"^gsc_https___example_com__20240101_20240131_\d{13}$", import_id)

    def test_ahrefs_format(self):
        import_id = generate_import_id("ahrefs", "keywords (1).csv")
        assert re.match(r"^ahrefs_keywords__1__csv_\d{13}$", import_id)


class TestGSCImport:

    def test_import_stores_time_series_and_detail(self, repository):
        result = run(ImportService(repository).import_gsc(gsc_client(), SITE_A, "2024-01-01", "2024-01-02"))

        assert result["success"] is True
        assert result["record_count"] == GSC_DOCUMENTS
        assert result["time_series_count"] == 8
        assert result["query_page_count"] == 12
        assert result["replaced_records"] == 0
        assert count(repository, {"siteUrl": SITE_A, "isTimeSeries": True}) == 8

        record = run(repository.get_import(result["import_id"]))
        assert record["status"] == "completed"
        assert record["recordCount"] == GSC_DOCUMENTS
        assert record["replacedPreviousData"] is False

    def test_reimport_replaces_only_that_site(self, repository):
        service = ImportService(repository)
        run(service.import_gsc(gsc_client(), SITE_A, "2024-01-01", "2024-01-02"))
        run(service.import_gsc(gsc_client(), SITE_B, "2024-01-01", "2024-01-02"))
        second = run(service.import_gsc(gsc_client(), SITE_A, "2024-01-01", "2024-01-02"))

        assert second["replaced_records"] == GSC_DOCUMENTS
        assert count(repository, {"siteUrl": SITE_A}) == GSC_DOCUMENTS
        assert count(repository, {"siteUrl": SITE_B}) == GSC_DOCUMENTS
        assert count(repository, {"siteUrl": SITE_A, "importId": second["import_id"]}) == GSC_DOCUMENTS

    def test_invalid_request_creates_no_record(self, repository):
        with pytest.raises(ValidationError):
            run(ImportService(repository).import_gsc(gsc_client(), SITE_A, "2024-02-01", "2024-01-01"))
        assert run(repository.list_imports()) == []

    def test_fetch_failure_keeps_existing_data(self, repository):
        service = ImportService(repository)
        run(service.import_gsc(gsc_client(), SITE_A, "2024-01-01", "2024-01-02"))

        with pytest.raises(ImportFailedError) as exc:
            run(service.import_gsc(FailingClient("token"), SITE_A, "2024-01-01", "2024-01-03"))

        assert count(repository, {"siteUrl": SITE_A}) == GSC_DOCUMENTS
        record = run(repository.get_import(exc.value.import_id))
        assert record["status"] == "failed"
        assert "backend unavailable" in record["error"]

    def test_failed_batch_keeps_earlier_batches(self, repository, monkeypatch):
        monkeypatch.setattr(settings, "IMPORT_BATCH_SIZE", 5)
        inner = repository.reporting
        repository.reporting = FlakyCollection(inner, fail_on=3)

        with pytest.raises(ImportFailedError) as exc:
            run(ImportService(repository).import_gsc(gsc_client(), SITE_A, "2024-01-01", "2024-01-02"))

        assert run(inner.count_documents({"siteUrl": SITE_A})) == 10
        record = run(repository.get_import(exc.value.import_id))
        assert record["status"] == "failed"
        assert record["recordCount"] == 10
        assert "write concern error" in record["error"]

    def test_unreadable_api_response_marks_import_failed(self, repository):
        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>not json</html>"))
        )
        client = SearchConsoleClient("token", http_client=http_client)

        with pytest.raises(ImportFailedError) as exc:
            run(ImportService(repository).import_gsc(client, SITE_A, "2024-01-01", "2024-01-02"))

        record = run(repository.get_import(exc.value.import_id))
        assert record["status"] == "failed"
        assert "invalid JSON" in record["error"]

    def test_unexpected_error_marks_import_failed(self, repository):
        with pytest.raises(ImportFailedError) as exc:
            run(ImportService(repository).import_gsc(BrokenClient("token"), SITE_A, "2024-01-01", "2024-01-02"))

        assert [r["status"] for r in run(repository.list_imports())] == ["failed"]
        assert "unexpected row shape" in run(repository.get_import(exc.value.import_id))["error"]

    def test_timeout_marks_import_failed(self, repository):
        service = ImportService(repository, timeout_seconds=0.05)
        with pytest.raises(ImportFailedError) as exc:
            run(service.import_gsc(SlowClient("token"), SITE_A, "2024-01-01", "2024-01-02"))

        assert "timed out" in exc.value.message
        record = run(repository.get_import(exc.value.import_id))
        assert record["status"] == "failed"


class TestAhrefsImport:

    def test_import_one_document_per_row(self, repository):
        result = run(ImportService(repository).import_ahrefs(AHREFS_CSV, "keywords.csv"))

        assert result["record_count"] == 2
        assert result["total_rows"] == 2
        assert result["valid_rows"] == 2
        assert result["file_name"] == "keywords.csv"
        assert count(repository, {"source": "ahrefs", "volume": 1200, "traffic": 90}) == 1

    def test_reimport_replaces_all_ahrefs_data(self, repository):
        service = ImportService(repository)
        run(service.import_ahrefs(AHREFS_CSV, "first.csv"))
        run(service.import_gsc(gsc_client(), SITE_A, "2024-01-01", "2024-01-02"))

        second = run(service.import_ahrefs(
            b"Keyword,Volume\nbacklinks,50\n", "second.csv"
        ))

        assert second["replaced_records"] == 2
        assert count(repository, {"source": "ahrefs"}) == 1
        assert count(repository, {"source": "gsc"}) == GSC_DOCUMENTS

    def test_no_valid_rows_fails_with_validation_error(self, repository):
        with pytest.raises(ValidationError):
            run(ImportService(repository).import_ahrefs(b"Keyword,Volume\n,50\n", "empty.csv"))

        imports = run(repository.list_imports(source="ahrefs"))
        assert imports[0]["status"] == "failed"
        assert count(repository, {"source": "ahrefs"}) == 0
