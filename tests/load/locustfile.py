# Module-level imports & constants
from locust import HttpUser, task, between
import os
import random
import uuid

# Origine vitrine envoyée à /api/checkout/session (doit être en liste blanche)
STOREFRONT_ORIGIN = os.getenv("LOCUST_ORIGIN", "https://rthree.io").strip()
# Plafond raisonnable: la création de PaymentIntent appelle Stripe (mode test)
CREATE_PAYMENT_INTENTS = os.getenv("LOCUST_CREATE_PAYMENT_INTENTS", "0").strip() == "1"

SAMPLE_ITEMS = [
    {"variant_id": 4455, "price": 2500, "quantity": 2, "weight": 1, "product_type": "Naloxone"},
    {"variant_id": 7788, "price": 1000, "quantity": 1, "weight": 0.5},
    {"variant_id": 9900, "price": 1500, "quantity": 10, "properties": {"_onebox": "true"}},
]
STATES = ["CA", "TX", "NY", "AK", "WA", "FL"]


class CheckoutUser(HttpUser):
    wait_time = between(0.5, 2.0)

    def on_start(self):
        self.headers = {"Accept": "application/json", "Origin": STOREFRONT_ORIGIN}
        # IP simulée par utilisateur (rate limit session par IP); lancer le serveur avec FORWARDED_ALLOW_IPS=<ip locust>
        self.headers["X-Forwarded-For"] = f"10.{random.randint(0, 255)}.{random.randint(0, 255)}.{random.randint(1, 254)}"
        self._open_session()

    def _open_session(self):
        with self.client.post(
            "/api/checkout/session",
            json={"cartToken": uuid.uuid4().hex, "cartTotal": 95.0},
            headers=self.headers,
            name="POST /api/checkout/session",
            catch_response=True,
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Session refusée ({resp.status_code}): {resp.text[:200]}")
                return
            data = resp.json()
            self.headers["Authorization"] = f"Bearer {data['sessionToken']}"
            self.headers["X-CSRF-Token"] = data["csrfToken"]
            resp.success()

    def _ensure_session(self, resp):
        # Session expirée (30 min) ou purgée: on en rouvre une
        if resp.status_code == 401:
            self.headers.pop("Authorization", None)
            self.headers.pop("X-CSRF-Token", None)
            self._open_session()

    @task(3)
    def quote_shipping(self):
        if "Authorization" not in self.headers:
            return
        items = random.sample(SAMPLE_ITEMS, k=random.randint(1, len(SAMPLE_ITEMS)))
        resp = self.client.post(
            "/api/calculate-shipping",
            json={"items": items, "address": {"state": random.choice(STATES), "country": "US"}},
            headers=self.headers,
            name="POST /api/calculate-shipping",
        )
        self._ensure_session(resp)

    @task(2)
    def quote_tax(self):
        if "Authorization" not in self.headers:
            return
        resp = self.client.post(
            "/api/calculate-tax",
            json={"subtotal": round(random.uniform(5, 400), 2), "shipping": 12.0, "state": random.choice(STATES)},
            headers=self.headers,
            name="POST /api/calculate-tax",
        )
        self._ensure_session(resp)

    @task(1)
    def create_payment_intent(self):
        if not CREATE_PAYMENT_INTENTS or "Authorization" not in self.headers:
            return
        with self.client.post(
            "/api/stripe/create-payment-intent",
            json={"amount": random.randint(500, 50000), "currency": "usd"},
            headers=self.headers,
            name="POST /api/stripe/create-payment-intent",
            catch_response=True,
        ) as resp:
            # 429 attendu au-delà du quota par session
            if resp.status_code in (200, 429):
                resp.success()
            else:
                resp.failure(f"{resp.status_code}: {resp.text[:200]}")

    @task(1)
    def health(self):
        self.client.get("/health", name="GET /health")
