"""
Tests for the remote store implementations.

HTTP calls go through httpx.MockTransport; Google Sheets is replaced by a
fake worksheet. No real network calls in tests.
"""

import json

import gspread
import httpx
import pytest
from google.auth.exceptions import RefreshError

from organizer.config import Settings
from organizer.services.storage import (
    GoogleSheetsRemoteStore,
    HttpRemoteStore,
    InMemoryRemoteStore,
    RemoteStoreError,
    RemoteUnavailableError,
    create_remote_store,
)
from organizer.services.storage.google_sheets import DATA_COLUMNS


def http_store(handler) -> HttpRemoteStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpRemoteStore(api_base="https://organizer.test/", client=client)


class TestHttpRemoteStore:
    """Tests for the /api/save and /api/load client."""

    @pytest.mark.asyncio
    async def test_save_posts_key_and_value(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        store = http_store(handler)
        assert await store.save("data", {"habits": []}) is True
        assert seen["url"] == "https://organizer.test/api/save"
        assert seen["body"] == {"key": "data", "value": {"habits": []}}

    @pytest.mark.asyncio
    async def test_save_non_success_is_false(self):
        store = http_store(lambda request: httpx.Response(500, json={"error": "boom"}))
        assert await store.save("data", {}) is False

    @pytest.mark.asyncio
    async def test_save_ok_false_is_false(self):
        store = http_store(lambda request: httpx.Response(200, json={"ok": False}))
        assert await store.save("data", {}) is False

    @pytest.mark.asyncio
    async def test_save_network_error_raises_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RemoteUnavailableError):
            await http_store(handler).save("data", {})

    @pytest.mark.asyncio
    async def test_load_returns_value(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["key"] == "data"
            return httpx.Response(200, json={"value": {"habits": []}})

        assert await http_store(handler).load("data") == {"habits": []}

    @pytest.mark.asyncio
    async def test_load_missing_value(self):
        store = http_store(lambda request: httpx.Response(200, json={"value": None}))
        assert await store.load("data") is None

    @pytest.mark.asyncio
    async def test_load_non_success_raises(self):
        store = http_store(lambda request: httpx.Response(503))
        with pytest.raises(RemoteStoreError, match="HTTP 503"):
            await store.load("data")

    @pytest.mark.asyncio
    async def test_load_non_object_raises(self):
        store = http_store(lambda request: httpx.Response(200, json={"value": [1, 2]}))
        with pytest.raises(RemoteStoreError, match="expected object"):
            await store.load("data")

    @pytest.mark.asyncio
    async def test_load_invalid_json_raises(self):
        store = http_store(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(RemoteStoreError, match="invalid JSON"):
            await store.load("data")

    @pytest.mark.asyncio
    async def test_non_transport_httpx_error_raises_remote_store_error(self):
        def handler(request):
            raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=request)

        with pytest.raises(RemoteStoreError) as excinfo:
            await http_store(handler).load("data")
        assert not isinstance(excinfo.value, RemoteUnavailableError)


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the key/value protocol."""

    def __init__(self):
        self.rows = [list(DATA_COLUMNS)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, values):
        self.rows.append(list(values))

    def update_cell(self, row, col, value):
        self.rows[row - 1][col - 1] = value


class FakeSheetsClient:

    def __init__(self, sheet=None, error=None):
        self.sheet = sheet or FakeWorksheet()
        self.error = error

    def get_data_sheet(self):
        if self.error is not None:
            raise self.error
        return self.sheet


class TestGoogleSheetsRemoteStore:
    """Tests for the Sheets key/value store."""

    @pytest.mark.asyncio
    async def test_save_appends_new_key(self):
        client = FakeSheetsClient()
        store = GoogleSheetsRemoteStore(client)

        assert await store.save("data", {"habits": []}) is True

        assert len(client.sheet.rows) == 2
        key, value, updated_at = client.sheet.rows[1]
        assert key == "data"
        assert json.loads(value) == {"habits": []}
        assert updated_at

    @pytest.mark.asyncio
    async def test_save_updates_existing_key(self):
        client = FakeSheetsClient()
        store = GoogleSheetsRemoteStore(client)

        await store.save("data", {"version": 1})
        await store.save("other", {"version": 9})
        await store.save("data", {"version": 2})

        assert len(client.sheet.rows) == 3
        assert await store.load("data") == {"version": 2}
        assert await store.load("other") == {"version": 9}

    @pytest.mark.asyncio
    async def test_load_missing_key(self):
        assert await GoogleSheetsRemoteStore(FakeSheetsClient()).load("data") is None

    @pytest.mark.asyncio
    async def test_load_corrupt_cell_raises(self):
        client = FakeSheetsClient()
        client.sheet.rows.append(["data", "{oops", ""])
        with pytest.raises(RemoteStoreError, match="not JSON"):
            await GoogleSheetsRemoteStore(client).load("data")

    @pytest.mark.asyncio
    async def test_unreachable_sheets(self):
        client = FakeSheetsClient(error=OSError("network down"))
        with pytest.raises(RemoteUnavailableError):
            await GoogleSheetsRemoteStore(client).load("data")

    @pytest.mark.asyncio
    async def test_gspread_errors_become_remote_store_errors(self):
        client = FakeSheetsClient(error=gspread.exceptions.GSpreadException("bad range"))
        with pytest.raises(RemoteStoreError):
            await GoogleSheetsRemoteStore(client).load("data")

    @pytest.mark.asyncio
    async def test_auth_errors_become_remote_store_errors(self):
        client = FakeSheetsClient(error=RefreshError("invalid_grant"))
        with pytest.raises(RemoteStoreError, match="authentication"):
            await GoogleSheetsRemoteStore(client).save("data", {})


class TestInMemoryRemoteStore:

    @pytest.mark.asyncio
    async def test_values_are_copied(self):
        remote = InMemoryRemoteStore()
        value = {"habits": []}
        await remote.save("data", value)
        value["habits"].append("mutated")
        assert await remote.load("data") == {"habits": []}

    @pytest.mark.asyncio
    async def test_unavailable(self):
        remote = InMemoryRemoteStore()
        remote.available = False
        with pytest.raises(RemoteUnavailableError):
            await remote.load("data")


class TestRemoteFactory:

    def test_default_backend_is_local_only(self, monkeypatch):
        monkeypatch.delenv("ORGANIZER_REMOTE_BACKEND", raising=False)
        assert create_remote_store(Settings()) is None

    @pytest.mark.asyncio
    async def test_http_backend(self, monkeypatch):
        monkeypatch.setenv("ORGANIZER_REMOTE_BACKEND", "http")
        monkeypatch.setenv("ORGANIZER_REMOTE_API_BASE", "https://organizer.test/")
        store = create_remote_store(Settings())
        assert isinstance(store, HttpRemoteStore)
        await store.aclose()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
