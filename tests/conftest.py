import pytest
from fastapi.testclient import TestClient

from vehiscan.core.config import Settings
from vehiscan.core.exceptions import StorageUnavailable
from vehiscan.main import create_app
from vehiscan.services.storage import MemoryKeyValueStore

# 2025-03-14 13:30:00 UTC
START_MS = 1_741_959_000_000


class FakeClock:
    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class BrokenStore(MemoryKeyValueStore):
    """Store whose backend is down."""

    def get(self, key):
        raise StorageUnavailable("backend down", key=key)

    def set(self, key, value):
        raise StorageUnavailable("backend down", key=key)

    def remove(self, key):
        raise StorageUnavailable("backend down", key=key)

    def keys(self, prefix=""):
        raise StorageUnavailable("backend down")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def settings():
    return Settings(DB_URL="sqlite://", ADMIN_EMAILS="admin@vehiscan.test")


@pytest.fixture
def app(settings, clock):
    app = create_app(settings, clock=clock)
    yield app
    app.state.context.close()


@pytest.fixture
def client(app):
    return TestClient(app)


def register(client, email: str, password: str = "secret123"):
    return client.post("/auth/register", params={"email": email, "password": password})


def login(client, email: str, password: str = "secret123"):
    return client.post(
        "/auth/login",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )


def auth_headers(token: str):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def tokens(client):
    register(client, "user1@vehiscan.test")
    register(client, "user2@vehiscan.test")
    register(client, "admin@vehiscan.test")

    result = {}
    for name, email in (
        ("user1", "user1@vehiscan.test"),
        ("user2", "user2@vehiscan.test"),
        ("admin", "admin@vehiscan.test"),
    ):
        r = login(client, email)
        assert r.status_code == 200
        result[name] = r.json()["access_token"]
    return result


def vehicle_form(**overrides):
    form = {
        "licensePlate": "ABC 1234",
        "ownerName": "Juan Dela Cruz",
        "make": "Toyota",
        "model": "Vios",
        "yearModel": "2020",
        "bodyType": "Sedan",
        "chassisNumber": "JTDBT123456789",
        "engineNumber": "2NZ12345",
        "color": "Silver",
        "fuel": "Gasoline",
        "grossWt": "1500",
        "netWt": "1050.5",
        "netCapacity": "5",
        "pistonDisplacement": "1299.99",
        "series": "E",
        "lastRenewal": "2025-01-10",
    }
    form.update(overrides)
    return form
