# app/leaderboard/names.py
from __future__ import annotations

import hashlib

ADJECTIVES = (
    "Amber", "Azure", "Bold", "Brave", "Bright", "Calm", "Clever", "Coral",
    "Crimson", "Daring", "Eager", "Fancy", "Gentle", "Golden", "Happy", "Indigo",
    "Jolly", "Keen", "Lively", "Lucky", "Mellow", "Nimble", "Olive", "Proud",
    "Quick", "Rapid", "Scarlet", "Silver", "Swift", "Teal", "Vivid", "Witty",
)

ANIMALS = (
    "Albatross", "Badger", "Beaver", "Bison", "Cheetah", "Dolphin", "Eagle", "Falcon",
    "Fox", "Gazelle", "Heron", "Ibis", "Jaguar", "Koala", "Lemur", "Lynx",
    "Marmot", "Narwhal", "Ocelot", "Otter", "Panda", "Puffin", "Quokka", "Raven",
    "Salmon", "Seal", "Tiger", "Toucan", "Urchin", "Walrus", "Wombat", "Zebra",
)


def generate_random_name(seed: str) -> str:
    """
    Stable pseudonym for a partner id: same id, same name, on every call.
    """
    n = int.from_bytes(hashlib.sha256(seed.encode("utf-8")).digest()[:8], "big")
    adjective = ADJECTIVES[n % len(ADJECTIVES)]
    animal = ANIMALS[(n // len(ADJECTIVES)) % len(ANIMALS)]
    return f"{adjective} {animal}"
