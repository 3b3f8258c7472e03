from __future__ import annotations

import json
from typing import Any

import pytest
from fastapi.testclient import TestClient

from cmxpush.config import Settings
from cmxpush.ingest.events import EventIngestor
from cmxpush.server import create_app
from cmxpush.storage.dao import ClientStore

SECRET = "s3cr3t"
VALIDATOR = "da3a9ec8e9b3f1c2"


def probe(
    mac: str,
    millis: int | None,
    lat: float = 37.77,
    lng: float = -122.38,
    *,
    seen: str = "Fri Apr 18 00:01:41.479 UTC 2014",
    located: bool = True,
    unc: float = 4.5,
    n_samples: int = 3,
) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "client_mac": mac,
        "ap_mac": "11:22:33:44:55:66",
        "rssi": 24,
        "last_seen": seen,
    }
    if millis is not None:
        entry["last_seen_millis"] = millis
    if located:
        entry["location"] = {"lat": lat, "lng": lng, "unc": unc, "nSamples": n_samples}
    return entry


def batch(*probes: dict[str, Any], secret: str = SECRET) -> str:
    return json.dumps({"version": "1.0", "secret": secret, "probing": list(probes)})


@pytest.fixture
def settings() -> Settings:
    return Settings(secret=SECRET, validator=VALIDATOR)


@pytest.fixture
def store() -> ClientStore:
    s = ClientStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def ingestor(store: ClientStore, settings: Settings) -> EventIngestor:
    return EventIngestor(store, settings)


@pytest.fixture
def client(store: ClientStore, settings: Settings) -> TestClient:
    with TestClient(create_app(settings, store)) as c:
        yield c
