import os

# Avant tout import de checkout_backend: store fakeredis
os.environ.setdefault("USE_FAKE_REDIS_FOR_TESTS", "1")

import hashlib
import hmac
import itertools
import json
import time
from typing import Any, Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

from checkout_backend.app_setup.factory import create_app

WEBHOOK_SECRET = "whsec_test_secret"
STOREFRONT_ORIGIN = "https://rthree.io"


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/"):
            item.add_marker(pytest.mark.integration)
        elif "/tests/functional/" in nodeid or nodeid.startswith("tests/functional/"):
            item.add_marker(pytest.mark.functional)


class FakeOrderClient:
    """Double du client Shopify: enregistre les appels, ids incrémentaux."""
    is_configured = True

    def __init__(self):
        self.orders: List[Dict[str, Any]] = []
        self.drafts: List[Dict[str, Any]] = []
        self.updated: List[tuple] = []
        self.completed: List[int] = []
        self.deleted: List[int] = []
        self._ids = itertools.count(1001)

    async def create_order(self, order):
        self.orders.append(order)
        oid = next(self._ids)
        return {"id": oid, "name": f"#{oid}"}

    async def create_draft_order(self, draft):
        self.drafts.append(draft)
        did = next(self._ids)
        return {"id": did, "name": f"#D{did}", "tags": draft.get("tags", "")}

    async def update_draft_order(self, draft_id, changes):
        self.updated.append((draft_id, changes))
        return {"id": draft_id, **changes}

    async def complete_draft_order(self, draft_id, *, payment_pending=False):
        self.completed.append(draft_id)
        return {"id": draft_id, "order_id": 9000 + draft_id, "status": "completed"}

    async def delete_draft_order(self, draft_id):
        self.deleted.append(draft_id)

    async def aclose(self):
        return None


@pytest.fixture()
def order_client() -> FakeOrderClient:
    return FakeOrderClient()


@pytest.fixture()
def app(order_client):
    # TestClient joue le rôle du load balancer: X-Forwarded-For est accepté
    return create_app(
        environment="test", trusted_proxies=["testclient"], order_client=order_client, webhook_secret=WEBHOOK_SECRET,
    )


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


# Mock Stripe: aucun appel réseau, un intent distinct par appel
@pytest.fixture(autouse=True)
def stripe_calls(monkeypatch) -> List[Dict[str, Any]]:
    import checkout_backend.payments.stripe_client as stripe_client

    calls: List[Dict[str, Any]] = []
    counter = itertools.count(1)

    async def _fake_create_payment_intent(**kwargs):
        n = next(counter)
        calls.append(kwargs)
        return {
            "id": f"pi_test_{n}",
            "client_secret": f"pi_test_{n}_secret_abc",
            "status": "requires_payment_method",
            "livemode": False,
        }

    monkeypatch.setattr(stripe_client, "create_payment_intent", _fake_create_payment_intent, raising=True)
    return calls


@pytest.fixture()
def open_session():
    """Ouvre une session via l'API et renvoie (corps, en-têtes authentifiés)."""
    def _open(client: TestClient, cart_token: str = "cart-abc-123", **extra):
        body = {"cartToken": cart_token, "cartTotal": 60.0, **extra}
        r = client.post("/api/checkout/session", json=body, headers={"Origin": STOREFRONT_ORIGIN})
        assert r.status_code == 200, r.text
        data = r.json()
        headers = {
            "Authorization": f"Bearer {data['sessionToken']}",
            "X-CSRF-Token": data["csrfToken"],
            "Origin": STOREFRONT_ORIGIN,
        }
        return data, headers
    return _open


@pytest.fixture()
def sign():
    """Signe un corps comme Stripe: t=<ts>,v1=hmac_sha256("{ts}.{corps}")."""
    def _sign(payload: str, timestamp: Optional[int] = None, secret: str = WEBHOOK_SECRET) -> str:
        ts = int(time.time()) if timestamp is None else timestamp
        digest = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
        return f"t={ts},v1={digest}"
    return _sign


@pytest.fixture()
def order_metadata() -> Dict[str, str]:
    return {
        "customer_email": "buyer@example.com",
        "customer_first_name": "Jane",
        "customer_last_name": "Doe",
        "items": json.dumps([
            {"variant_id": 4455, "quantity": 2, "price": 2500, "title": "Naloxone Kit"},
            {"variant_id": 7788, "quantity": 1, "price": 1000, "title": "Training Card"},
        ]),
        "shipping_address": json.dumps({
            "first_name": "Jane", "last_name": "Doe", "address1": "1 Main St", "address2": "",
            "city": "Sacramento", "province": "CA", "zip": "95814", "country": "US", "phone": "5551234567",
        }),
        "shipping_method": "Standard Shipping (5-7 business days)",
        "shipping_price": "2900",
        "tax_amount": "527",
        "rep": "rep42",
        "environment": "test",
        "store_domain": "rthree.io",
    }


@pytest.fixture()
def pi_event(order_metadata):
    """Fabrique un événement PaymentIntent sérialisé (chaîne JSON)."""
    def _event(
        event_id: str = "evt_1",
        event_type: str = "payment_intent.succeeded",
        intent_id: str = "pi_123",
        metadata: Optional[Dict[str, str]] = None,
        amount: int = 9427,
        methods: Optional[List[str]] = None,
    ) -> str:
        return json.dumps({
            "id": event_id,
            "type": event_type,
            "created": int(time.time()),
            "data": {"object": {
                "id": intent_id,
                "object": "payment_intent",
                "amount": amount,
                "amount_received": amount,
                "currency": "usd",
                "status": event_type.split(".")[-1],
                "payment_method_types": methods or ["card"],
                "metadata": order_metadata if metadata is None else metadata,
            }},
        })
    return _event
