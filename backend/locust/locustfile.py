"""
Locust Load Test Suite

Signup needs an e-mailed code, so load users log in to pre-provisioned
accounts:
  LOAD_GUEST_EMAIL / LOAD_GUEST_PASSWORD   any verified guest account
  LOAD_ADMIN_EMAIL / LOAD_ADMIN_PASSWORD   an admin account

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test double-booking
  locust -f locustfile.py --tags throughput   # Test availability cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
from datetime import date, timedelta

from locust import HttpUser, between, events, tag, task

GUEST_LOGIN = {
    "email": os.getenv("LOAD_GUEST_EMAIL", "guest@example.com"),
    "password": os.getenv("LOAD_GUEST_PASSWORD", "guestpassword"),
}
ADMIN_LOGIN = {
    "email": os.getenv("LOAD_ADMIN_EMAIL", "admin@example.com"),
    "password": os.getenv("LOAD_ADMIN_PASSWORD", "adminpassword"),
}

# Shared state
ROOM_IDS = []
CONTESTED_ROOM_ID = None
CONTESTED_STAY = (date.today() + timedelta(days=60), date.today() + timedelta(days=63))
PENDING_CONTESTED = []


def login(client, credentials) -> dict:
    resp = client.post("/api/v1/auth/login", json=credentials, name="/api/v1/auth/login")
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}


def random_stay(max_offset=120):
    start = date.today() + timedelta(days=random.randint(1, max_offset))
    return start, start + timedelta(days=random.randint(1, 5))


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: contested stay {CONTESTED_STAY[0]} -> {CONTESTED_STAY[1]}")
    print("=" * 60)


class ConcurrencyGuest(HttpUser):
    """
    TEST 1: Concurrency - many guests request one room for the same nights

    Pending bookings do not hold the room, so every request succeeds; the
    fight happens when admins confirm them (see ConcurrencyAdmin).

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM bookings
      WHERE room_id = X AND status IN ('confirmed', 'checked-in');
    Should be <= 1
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = login(self.client, GUEST_LOGIN)
        if self.headers and not ROOM_IDS:
            resp = self.client.get("/api/v1/rooms/")
            if resp.status_code == 200:
                ROOM_IDS.extend(room["id"] for room in resp.json()["data"])
        if ROOM_IDS and CONTESTED_ROOM_ID is None:
            globals()["CONTESTED_ROOM_ID"] = ROOM_IDS[0]

    @tag("concurrency")
    @task
    def request_contested_room(self):
        if not CONTESTED_ROOM_ID or not self.headers:
            return

        with self.client.post(
            "/api/v1/bookings/",
            json={
                "room_id": CONTESTED_ROOM_ID,
                "check_in_date": CONTESTED_STAY[0].isoformat(),
                "check_out_date": CONTESTED_STAY[1].isoformat(),
                "number_of_guests": 1,
            },
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                PENDING_CONTESTED.append(resp.json()["data"]["id"])
                resp.success()
            elif resp.status_code in (400, 409):
                resp.success()  # Expected once a booking is confirmed
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ConcurrencyAdmin(HttpUser):
    """Admins racing to confirm the contested bookings. At most one may win."""
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = login(self.client, ADMIN_LOGIN)

    @tag("concurrency")
    @task
    def confirm_contested(self):
        if not PENDING_CONTESTED or not self.headers:
            return

        booking_id = random.choice(PENDING_CONTESTED)
        with self.client.put(
            f"/api/v1/bookings/{booking_id}/status",
            json={"status": "confirmed"},
            headers=self.headers,
            name="/api/v1/bookings/{id}/status",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 400, 409):
                resp.success()  # 400: room taken or already confirmed; 409: lock contention
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Availability cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: Stop Redis, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def search_availability(self):
        # A small set of ranges so the cache actually gets hits
        start = date.today() + timedelta(days=random.randint(1, 7))
        end = start + timedelta(days=2)
        self.client.get(
            f"/api/v1/rooms/availability?start_date={start}&end_date={end}",
            name="/api/v1/rooms/availability [cached]",
        )

    @tag("throughput", "read")
    @task(3)
    def list_rooms(self):
        self.client.get("/api/v1/rooms/")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = login(self.client, GUEST_LOGIN)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_room(self):
        start, end = random_stay()
        with self.client.post(
            "/api/v1/bookings/",
            json={
                "room_id": 999999,
                "check_in_date": start.isoformat(),
                "check_out_date": end.isoformat(),
                "number_of_guests": 1,
            },
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def reversed_dates(self):
        start, end = random_stay()
        with self.client.post(
            "/api/v1/bookings/",
            json={
                "room_id": 1,
                "check_in_date": end.isoformat(),
                "check_out_date": start.isoformat(),
                "number_of_guests": 1,
            },
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (400,))

    @tag("edge")
    @task
    def zero_guests(self):
        start, end = random_stay()
        with self.client.post(
            "/api/v1/bookings/",
            json={
                "room_id": 1,
                "check_in_date": start.isoformat(),
                "check_out_date": end.isoformat(),
                "number_of_guests": 0,
            },
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (400,))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (400,))

    @tag("edge")
    @task
    def missing_auth(self):
        start, end = random_stay()
        with self.client.post(
            "/api/v1/bookings/",
            json={
                "room_id": 1,
                "check_in_date": start.isoformat(),
                "check_out_date": end.isoformat(),
                "number_of_guests": 1,
            },
            catch_response=True,
        ) as resp:
            self._expect(resp, (401,))


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing and availability search
      - Some booking requests
      - Checking own bookings and notifications
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = login(self.client, GUEST_LOGIN)

    @task(40)
    def browse_rooms(self):
        resp = self.client.get("/api/v1/rooms/")
        if resp.status_code == 200:
            for room in resp.json()["data"]:
                if room["id"] not in ROOM_IDS:
                    ROOM_IDS.append(room["id"])

    @task(20)
    def search_availability(self):
        start, end = random_stay(30)
        self.client.get(
            f"/api/v1/rooms/availability?start_date={start}&end_date={end}",
            name="/api/v1/rooms/availability",
        )

    @task(10)
    def request_booking(self):
        if ROOM_IDS and self.headers:
            start, end = random_stay()
            self.client.post(
                "/api/v1/bookings/",
                json={
                    "room_id": random.choice(ROOM_IDS),
                    "check_in_date": start.isoformat(),
                    "check_out_date": end.isoformat(),
                    "number_of_guests": random.randint(1, 3),
                },
                headers=self.headers,
            )

    @task(5)
    def my_bookings(self):
        if self.headers:
            self.client.get("/api/v1/bookings/me", headers=self.headers)

    @task(5)
    def notifications(self):
        if self.headers:
            self.client.get("/api/v1/notifications/", headers=self.headers)
