"""Shared fakes for store, chat gateway and outbound HTTP."""

import json
import os

os.environ.setdefault("DISCORD_TOKEN", "test-token")
os.environ["SHARED_SECRET"] = "test-secret"

import httpx
import pytest

from passdrop.services.catalog import ProductCatalog
from passdrop.services.delivery import DeliveryOrchestrator
from passdrop.services.fulfillment import FulfillmentService
from passdrop.services.identity import IdentityLookup
from passdrop.services.ledger import DeliveryLedger
from passdrop.services.mapping import IdentityMappingTable
from passdrop.services.ownership import OwnershipPoller
from passdrop.store.cache import RecordCache
from passdrop.store.remote import RecordStoreError


class FakeStore:
    """In-memory record store with scriptable failures."""

    def __init__(self, document=None, fail_gets: bool = False, fail_puts: int = 0) -> None:
        self.document = document if document is not None else {}
        self.fail_gets = fail_gets
        self.fail_puts = fail_puts
        self.put_attempts = 0
        self.writes: list[dict] = []

    async def get(self) -> dict:
        if self.fail_gets:
            raise RecordStoreError("store unreachable")
        return self.document

    async def put(self, document: dict) -> None:
        self.put_attempts += 1
        if self.fail_puts > 0:
            self.fail_puts -= 1
            raise RecordStoreError("store unavailable")
        self.writes.append(document)
        self.document = document


class FakeGateway:
    """Records every chat side effect; individual calls can be made to fail."""

    def __init__(self) -> None:
        self.dms: list[tuple[str, str | None, str | None]] = []
        self.roles: dict[str, set[int]] = {}
        self.granted: list[tuple[str, int]] = []
        self.posts: list[tuple[int, str]] = []
        self.fail_dm = False
        self.fail_grant = False
        self.ready = True

    def is_ready(self) -> bool:
        return self.ready

    async def send_dm(self, chat_id, content=None, file_path=None) -> None:
        if self.fail_dm:
            raise RuntimeError("cannot send messages to this user")
        self.dms.append((str(chat_id), content, file_path))

    async def has_role(self, chat_id, role_id) -> bool:
        return role_id in self.roles.get(str(chat_id), set())

    async def grant_role(self, chat_id, role_id) -> None:
        if self.fail_grant:
            raise RuntimeError("missing permissions")
        self.roles.setdefault(str(chat_id), set()).add(role_id)
        self.granted.append((str(chat_id), role_id))

    async def post_channel(self, channel_id, content) -> None:
        self.posts.append((channel_id, content))

    def files_sent(self) -> list[str]:
        return [file_path for _, _, file_path in self.dms if file_path]


class FakeRoblox:
    """httpx MockTransport handler for the users and inventory APIs."""

    def __init__(self) -> None:
        self.users: dict[str, int] = {}
        self.owned: set[tuple[str, str]] = set()
        self.fail = False
        self.inventory_calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(503, json={"errors": [{"message": "unavailable"}]})
        path = request.url.path
        if path == "/v1/usernames/users":
            name = json.loads(request.content)["usernames"][0]
            data = [{"id": self.users[name], "name": name}] if name in self.users else []
            return httpx.Response(200, json={"data": data})
        if "/items/GamePass/" in path:
            self.inventory_calls += 1
            parts = path.split("/")
            user_id, pass_id = parts[3], parts[-1]
            data = [{"type": "GamePass", "id": int(pass_id)}] if (user_id, pass_id) in self.owned else []
            return httpx.Response(200, json={"data": data})
        return httpx.Response(404)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def cache(store) -> RecordCache:
    return RecordCache(store, debounce_seconds=0.01, max_attempts=3, retry_backoff_seconds=0.0)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def roblox() -> FakeRoblox:
    return FakeRoblox()


@pytest.fixture
def http_client(roblox) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(roblox))


@pytest.fixture
def deliverable(tmp_path) -> str:
    path = tmp_path / "premium.zip"
    path.write_bytes(b"PK\x03\x04")
    return str(path)


@pytest.fixture
def catalog(deliverable) -> ProductCatalog:
    return ProductCatalog.from_entries(
        [
            {
                "productId": "P1",
                "entitlementId": "9001",
                "filename": deliverable,
                "name": "Premium config",
                "roleId": 42,
            },
            {
                "productId": "P2",
                "entitlementId": "9002",
                "filename": "missing/nowhere.zip",
                "name": "Unconfigured pack",
            },
        ]
    )


@pytest.fixture
def fulfillment(cache, gateway, http_client, catalog) -> FulfillmentService:
    return FulfillmentService(
        mappings=IdentityMappingTable(cache),
        ledger=DeliveryLedger(cache),
        catalog=catalog,
        orchestrator=DeliveryOrchestrator(gateway),
        poller=OwnershipPoller(http_client, "https://inventory.test"),
        identity=IdentityLookup(http_client, "https://users.test"),
    )
