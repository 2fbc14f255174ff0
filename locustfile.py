from locust import HttpUser, task, between
import random

PASSWORD = "Load@12345"


class ShopperUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Register a shopper for this simulated client
        uname = f"user_{random.randint(1, 1_000_000)}"
        r = self.client.post("/api/auth/register", json={
            "name": f"Load Test Shopper {uname}",
            "email": f"{uname}@load.test",
            "address": "1 Load Street",
            "password": PASSWORD,
            "role": "user",
        })
        if r.status_code == 201:
            self.user_id = r.json()["id"]
        else:
            self.user_id = None
        self.store_ids = []

    @task(3)
    def list_stores(self):
        if not getattr(self, "user_id", None):
            return
        r = self.client.get("/api/user/stores", params={"userId": self.user_id})
        if r.status_code == 200:
            self.store_ids = [s["id"] for s in r.json()]

    @task(2)
    def rate_store(self):
        if not getattr(self, "user_id", None) or not self.store_ids:
            return
        store_id = random.choice(self.store_ids)
        self.client.post(
            f"/api/user/stores/{store_id}/rate",
            json={"userId": self.user_id, "rating": random.randint(1, 5)},
            name="/api/user/stores/[id]/rate",
        )

    @task(1)
    def search_stores(self):
        if not getattr(self, "user_id", None):
            return
        self.client.get("/api/user/stores", params={"userId": self.user_id, "name": "store"})
