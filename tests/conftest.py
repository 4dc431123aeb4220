import pytest
from fastapi.testclient import TestClient

from app.main import app, get_notifier, get_store
from app.models import ClientInfo
from app.notifications import OrderNotifier
from app.orders import OrderService
from shared.security_config import limiter
from shared.utils import create_access_token, settings

from fakes import InMemoryStore


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def service(store):
    return OrderService(store, backoff=0)


@pytest.fixture
def client_info():
    return ClientInfo(name="John Doe", phone="+1234567890", address="123 Main St, City, Country")


@pytest.fixture
def products(store):
    return {
        "p1": store.seed_product("Test Product 1", "10.99", 5),
        "p2": store.seed_product("Test Product 2", "15.99", 3),
    }


class RecordingNotifier(OrderNotifier):
    def __init__(self, fail=False):
        super().__init__()
        self.fail = fail
        self.orders = []

    async def order_created(self, order):
        self.orders.append(order.id)
        if self.fail:
            raise RuntimeError("mail relay down")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def api(store, notifier, monkeypatch):
    monkeypatch.setattr(settings, "ORDER_TX_BACKOFF_SECONDS", 0)
    monkeypatch.setattr(limiter, "enabled", False)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    token = create_access_token({"sub": "admin-1", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def internal_headers():
    return {"X-Internal-Token": settings.INTERNAL_API_KEY}
