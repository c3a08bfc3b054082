#!/usr/bin/env python3
"""
Seed script — creates a geo-tagged dataset for trying out every feed mode.

Creates:
  • 10 users and a follow graph (each user follows 4 others)
  • 6 posts per user, spread over Moldovan districts and foreign cities
  • a couple of stories, some likes and comments
  • one user with personalized recommendations (Chișinău / Botanica)
  • one user in explorer mode, with a last known location in Chișinău

Run after docker compose up:
  python scripts/seed_data.py --api-url http://localhost:8000
"""
import argparse
import json
import random
import time
import urllib.error
import urllib.request
from dataclasses import dataclass

BASE_USERS = [
    ("ana_pop", "Ana Popescu"),
    ("ion_rusu", "Ion Rusu"),
    ("maria_ciobanu", "Maria Ciobanu"),
    ("victor_lungu", "Victor Lungu"),
    ("elena_munteanu", "Elena Munteanu"),
    ("andrei_ceban", "Andrei Ceban"),
    ("olga_sirbu", "Olga Sîrbu"),
    ("dan_cojocaru", "Dan Cojocaru"),
    ("irina_rotaru", "Irina Rotaru"),
    ("mihai_bostan", "Mihai Bostan"),
]

# (country, city, district, lat, lng)
PLACES = [
    ("Moldova", "Chișinău", "Botanica", 46.9870, 28.8560),
    ("Moldova", "Chișinău", "Centru", 47.0245, 28.8323),
    ("Moldova", "Chișinău", "Rîșcani", 47.0560, 28.8790),
    ("Moldova", "Chișinău", None, 47.0105, 28.8638),
    ("Moldova", "Orhei", None, 47.3831, 28.8231),
    ("Moldova", "Bălți", None, 47.7617, 27.9289),
    ("Romania", "Iași", None, 47.1585, 27.6014),
    ("Romania", "București", "Sector 1", 44.4268, 26.1025),
    ("Italy", "Roma", None, 41.9028, 12.4964),
    (None, None, None, None, None),
]

SAMPLE_POSTS = [
    "Morning coffee on the terrace, the city is still asleep.",
    "Found a tiny bookshop tucked behind the market.",
    "Sunset from the park, no filter needed.",
    "New bike lane finally open on our street.",
    "Weekend market haul: cherries, cheese and fresh bread.",
    "Street musicians playing by the fountain tonight.",
    "First snow of the season!",
    "Trying the new bakery everyone talks about.",
    "Long walk along the lake, totally worth it.",
    "Local football match, the whole neighbourhood came out.",
]


@dataclass
class ApiClient:
    base_url: str

    def request(self, method: str, path: str, data: dict = None) -> dict:
        url = f"{self.base_url}{path}"
        body = json.dumps(data).encode() if data is not None else None
        req = urllib.request.Request(
            url, data=body, headers={"Content-Type": "application/json"}, method=method
        )
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                raw = resp.read()
                return json.loads(raw) if raw else {}
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on {method} {path}: {e.read().decode()}")
            return {}

    def get(self, path: str) -> dict:
        return self.request("GET", path)

    def post(self, path: str, data: dict) -> dict:
        return self.request("POST", path, data)

    def put(self, path: str, data: dict) -> dict:
        return self.request("PUT", path, data)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            if client.get("/health").get("status") == "ok":
                print("  API is ready!\n")
                return
        except OSError:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def post_payload(user_id: str, place: tuple, **extra) -> dict:
    country, city, district, lat, lng = place
    return {
        "user_id": user_id,
        "content": random.choice(SAMPLE_POSTS),
        "media_type": random.choice([None, "image", "video"]),
        "country": country,
        "city": city,
        "district": district,
        "latitude": lat,
        "longitude": lng,
        **extra,
    }


def main(api_url: str) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Users ────────────────────────────────────────────────────────────
    print("Creating users...")
    user_ids: list[str] = []
    for username, display_name in BASE_USERS:
        uid = client.post("/users/", {"username": username, "display_name": display_name}).get("user_id")
        if uid:
            user_ids.append(uid)
            print(f"  ✓ {username} ({uid})")
        else:
            print(f"  ✗ Failed to create {username}")

    if len(user_ids) < 3:
        print("Not enough users created — aborting")
        return

    # ── Follow graph ─────────────────────────────────────────────────────
    print("\nCreating follow relationships...")
    for follower_id in user_ids:
        others = [u for u in user_ids if u != follower_id]
        for followee_id in random.sample(others, k=min(4, len(others))):
            client.post("/users/follow", {"follower_id": follower_id, "followee_id": followee_id})
    print("  ✓ Follow graph created")

    # ── Posts and stories ────────────────────────────────────────────────
    print("\nCreating posts...")
    post_ids: list[str] = []
    for user_id in user_ids:
        for _ in range(6):
            extra = {}
            if random.random() < 0.15:
                extra["visibility"] = random.choice(["friends", "private"])
            pid = client.post("/posts/", post_payload(user_id, random.choice(PLACES), **extra)).get("post_id")
            if pid:
                post_ids.append(pid)
    for user_id in user_ids[:2]:
        client.post("/posts/", post_payload(user_id, PLACES[1], expires_in_hours=24))
    print(f"  ✓ {len(post_ids)} posts and 2 stories created")

    # ── Likes and comments ───────────────────────────────────────────────
    print("\nAdding likes and comments...")
    likes = comments = 0
    for post_id in post_ids:
        for user_id in random.sample(user_ids, k=random.randint(0, 4)):
            if client.post(f"/posts/{post_id}/like", {"user_id": user_id}):
                likes += 1
        if random.random() < 0.3:
            commenter = random.choice(user_ids)
            if client.post(f"/posts/{post_id}/comments", {"user_id": commenter, "content": "Frumos!"}):
                comments += 1
    print(f"  ✓ {likes} likes, {comments} comments added")

    # ── Feed settings ────────────────────────────────────────────────────
    personalized, explorer = user_ids[0], user_ids[1]
    client.put(
        f"/users/{personalized}/recommendations",
        {
            "recommendation_enabled": True,
            "recommendation_locations": [
                {"country": "Moldova", "city": "Chișinău", "district": "Botanica"},
            ],
            "recommendation_radius": 0,
        },
    )
    client.put(f"/users/{explorer}/location", {"latitude": 47.0105, "longitude": 28.8638})
    client.post(f"/users/{explorer}/explorer-mode", {"duration_minutes": 120})
    print("\n  ✓ Personalized and explorer users configured")

    # ── Summary ──────────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    print(f"# Personalized feed ({BASE_USERS[0][0]}):")
    print(f"  curl -s '{api_url}/feed/?user_id={personalized}' | python3 -m json.tool\n")
    print(f"# Explorer feed ({BASE_USERS[1][0]}):")
    print(f"  curl -s '{api_url}/feed/?user_id={explorer}' | python3 -m json.tool\n")
    print("# Following feed / video discovery:")
    print(f"  curl -s '{api_url}/feed/?user_id={user_ids[2]}&limit=5'")
    print(f"  curl -s '{api_url}/feed/?user_id={user_ids[2]}&media_type=video'\n")
    print("# Location suggestions:")
    print(f"  curl -s '{api_url}/feed/location-suggestions?user_id={user_ids[2]}'\n")
    print("# Check Jaeger traces: http://localhost:16686")
    print("# Check Prometheus: http://localhost:9090")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Geo Feed API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
