"""Record store backends: remote GET/PUT and the local file fallback."""

import json

import httpx
import pytest

from passdrop.store.remote import FileRecordStore, RecordStoreError, RemoteRecordStore


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_get_unwraps_record_envelope():
    """JSONBin-style `{"record": ...}` responses yield the inner document."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/b/abc/latest"
        assert request.headers["X-Master-Key"] == "k"
        return httpx.Response(200, json={"record": {"mappings": {"1": "2"}}, "metadata": {}})

    store = RemoteRecordStore(_client(handler), "https://store.test/b/abc", api_key="k")
    assert await store.get() == {"mappings": {"1": "2"}}


@pytest.mark.asyncio
async def test_get_accepts_bare_document():
    store = RemoteRecordStore(_client(lambda request: httpx.Response(200, json={"mappings": {}})), "https://s.test/r")
    assert await store.get() == {"mappings": {}}


@pytest.mark.asyncio
async def test_get_errors_raise_store_error():
    """HTTP failures and non-object bodies both surface as RecordStoreError."""

    failing = RemoteRecordStore(_client(lambda request: httpx.Response(500)), "https://s.test/r")
    with pytest.raises(RecordStoreError):
        await failing.get()

    listy = RemoteRecordStore(_client(lambda request: httpx.Response(200, json=[1, 2])), "https://s.test/r")
    with pytest.raises(RecordStoreError):
        await listy.get()


@pytest.mark.asyncio
async def test_put_sends_full_document():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True})

    store = RemoteRecordStore(_client(handler), "https://s.test/b/abc/")
    await store.put({"mappings": {"1": "2"}})
    assert seen == {"method": "PUT", "path": "/b/abc", "body": {"mappings": {"1": "2"}}}


@pytest.mark.asyncio
async def test_put_failure_raises_store_error():
    store = RemoteRecordStore(_client(lambda request: httpx.Response(429)), "https://s.test/r")
    with pytest.raises(RecordStoreError):
        await store.put({})


@pytest.mark.asyncio
async def test_file_store_missing_file_reads_empty(tmp_path):
    store = FileRecordStore(tmp_path / "storage" / "db.json")
    assert await store.get() == {}


@pytest.mark.asyncio
async def test_file_store_persists_document(tmp_path):
    path = tmp_path / "storage" / "db.json"
    store = FileRecordStore(path)
    await store.put({"mappings": {"111": "D1"}})

    assert json.loads(path.read_text()) == {"mappings": {"111": "D1"}}
    assert await FileRecordStore(path).get() == {"mappings": {"111": "D1"}}


@pytest.mark.asyncio
async def test_file_store_corrupt_file_raises(tmp_path):
    path = tmp_path / "db.json"
    path.write_text("{not json")
    with pytest.raises(RecordStoreError):
        await FileRecordStore(path).get()
