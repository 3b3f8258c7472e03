from __future__ import annotations

import json
from urllib.parse import urlencode

from fastapi.testclient import TestClient

from cmxpush.storage.dao import ClientStore
from conftest import SECRET, VALIDATOR, batch, probe


def test_handshake_returns_validator(client: TestClient) -> None:
    resp = client.get("/events")

    assert resp.status_code == 200
    assert resp.text == VALIDATOR
    assert resp.headers["content-type"].startswith("text/plain")


def test_handshake_unaffected_by_posts(client: TestClient) -> None:
    client.post("/events", content=batch(probe("aa:bb:cc:dd:ee:ff", 100)))
    client.post("/events", content=batch(probe("aa:bb:cc:dd:ee:ff", 100), secret="bad"))
    client.post("/events", content=b"garbage")

    assert client.get("/events").text == VALIDATOR


def test_post_events_returns_empty_200(client: TestClient, store: ClientStore) -> None:
    resp = client.post(
        "/events",
        content=batch(probe("aa:bb:cc:dd:ee:ff", 100)),
        headers={"content-type": "application/json"},
    )

    assert resp.status_code == 200
    assert resp.content == b""
    assert store.count() == 1


def test_post_with_wrong_secret_looks_identical(client: TestClient, store: ClientStore) -> None:
    good = client.post("/events", content=batch(probe("00:00:00:00:00:01", 100)))
    bad = client.post("/events", content=batch(probe("00:00:00:00:00:02", 100), secret="wrong"))

    assert bad.status_code == good.status_code == 200
    assert bad.content == good.content == b""
    assert [r.mac for r in store.list_all()] == ["00:00:00:00:00:01"]


def test_wrong_secret_with_null_probing_still_200(client: TestClient, store: ClientStore) -> None:
    resp = client.post("/events", content=json.dumps({"secret": "wrong", "probing": None}))

    assert resp.status_code == 200
    assert resp.content == b""
    assert store.count() == 0


def test_right_secret_with_null_probing_is_malformed(client: TestClient) -> None:
    resp = client.post("/events", content=json.dumps({"secret": SECRET, "probing": None}))

    assert resp.status_code == 400


def test_oversized_millis_does_not_fail_request(client: TestClient, store: ClientStore) -> None:
    resp = client.post(
        "/events",
        content=batch(probe("aa:bb:cc:dd:ee:ff", 2**64), probe("00:00:00:00:00:01", 100)),
    )

    assert resp.status_code == 200
    assert [r.mac for r in store.list_all()] == ["00:00:00:00:00:01"]


def test_post_form_encoded(client: TestClient, store: ClientStore) -> None:
    resp = client.post(
        "/events",
        content=urlencode({"data": batch(probe("aa:bb:cc:dd:ee:ff", 100))}),
        headers={"content-type": "application/x-www-form-urlencoded"},
    )

    assert resp.status_code == 200
    assert store.get("aa:bb:cc:dd:ee:ff") is not None


def test_malformed_post_is_rejected_without_leaking(client: TestClient, store: ClientStore) -> None:
    client.post("/events", content=batch(probe("aa:bb:cc:dd:ee:ff", 100)))

    resp = client.post("/events", content=b"{oops")

    assert resp.status_code == 400
    assert resp.json() == {"detail": "malformed event batch"}
    assert store.count() == 1
    # still serving
    assert client.get("/clients").status_code == 200


def test_unknown_client_is_empty_object(client: TestClient) -> None:
    resp = client.get("/clients/de:ad:be:ef:00:00")

    assert resp.status_code == 200
    assert resp.json() == {}


def test_client_lookup_is_case_insensitive(client: TestClient) -> None:
    client.post("/events", content=batch(probe("AA:BB:CC:DD:EE:FF", 1397779301479, lat=37.77, lng=-122.38)))

    lower = client.get("/clients/aa:bb:cc:dd:ee:ff").json()
    upper = client.get("/clients/AA:BB:CC:DD:EE:FF").json()

    assert lower == upper
    assert lower["mac"] == "aa:bb:cc:dd:ee:ff"
    assert lower["seenMillis"] == 1397779301479
    assert lower["seenAt"] == "Fri Apr 18 00:01:41.479 UTC 2014"
    assert (lower["lat"], lower["lng"], lower["unc"], lower["nSamples"]) == (37.77, -122.38, 4.5, 3)
    assert isinstance(lower["id"], int)


def test_list_clients(client: TestClient) -> None:
    assert client.get("/clients").json() == []

    macs = [f"00:00:00:00:00:0{i}" for i in range(1, 6)]
    client.post("/events", content=batch(*(probe(m, 100 + i, lat=float(i)) for i, m in enumerate(macs))))
    client.post("/events", content=batch(probe(macs[0], 500, lat=99.0)))

    for path in ("/clients", "/clients/"):
        resp = client.get(path)
        assert resp.status_code == 200
        records = {r["mac"]: r for r in resp.json()}
        assert sorted(records) == macs
        assert records[macs[0]]["lat"] == 99.0
        assert records[macs[0]]["seenMillis"] == 500
        assert records[macs[3]]["seenMillis"] == 103


def test_status_reports_counts(client: TestClient) -> None:
    client.post("/events", content=batch(probe("aa:bb:cc:dd:ee:ff", 100)))
    client.post("/events", content=batch(probe("aa:bb:cc:dd:ee:ff", 100), secret="wrong"))

    assert client.get("/api/status").json() == {"status": "ok", "clients": 1, "rejected_posts": 1}


def test_frontend_is_served(client: TestClient) -> None:
    resp = client.get("/")

    assert resp.status_code == 200
    assert "/clients/" in resp.text
