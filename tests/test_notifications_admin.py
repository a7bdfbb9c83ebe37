import logging
import uuid
from fastapi.testclient import TestClient

from watchmarket.main import app


client = TestClient(app)
ADMIN = {"X-Admin-Token": "test_admin"}


def _auth():
    phone = f"+4476{uuid.uuid4().int % 10**8:08d}"
    r = client.post("/auth/verify_otp", json={"phone": phone, "otp": "123456"})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def _setup_bid(amount_cents=50000):
    Hs = _auth()
    Hb = _auth()
    r = client.post("/listings", headers=Hs, json={"brand": "Cartier", "model": "Santos", "price_cents": 70000})
    listing_id = r.json()["id"]
    bid = client.post("/bids", headers=Hb, json={"listing_id": listing_id, "amount_cents": amount_cents}).json()
    return Hs, Hb, listing_id, bid


def test_counterpart_notified_through_negotiation():
    Hs, Hb, _, bid = _setup_bid()

    notes = client.get("/notifications", headers=Hs).json()["notifications"]
    assert [n["type"] for n in notes] == ["new_bid"]
    assert notes[0]["entity_id"] == bid["id"]
    assert client.get("/notifications/unread_count", headers=Hs).json()["unread"] == 1

    client.post(f"/bids/{bid['id']}/counter", headers=Hs, json={"amount_cents": 65000})
    notes = client.get("/notifications", headers=Hb).json()["notifications"]
    assert [n["type"] for n in notes] == ["counter_offer"]

    client.post(f"/bids/{bid['id']}/accept", headers=Hb)
    types = [n["type"] for n in client.get("/notifications", headers=Hs).json()["notifications"]]
    assert sorted(types) == ["bid_accepted", "new_bid"]


def test_reject_notifies_bidder_and_cancel_is_silent():
    Hs, Hb, _, bid = _setup_bid()
    client.post(f"/bids/{bid['id']}/reject", headers=Hs)
    assert [n["type"] for n in client.get("/notifications", headers=Hb).json()["notifications"]] == ["bid_rejected"]

    Hs2, Hb2, _, bid2 = _setup_bid()
    client.post(f"/bids/{bid2['id']}/cancel", headers=Hb2)
    assert client.get("/notifications/unread_count", headers=Hs2).json()["unread"] == 1


def test_mark_read_and_read_all():
    Hs, Hb, listing_id, _ = _setup_bid()
    Hb2 = _auth()
    client.post("/bids", headers=Hb2, json={"listing_id": listing_id, "amount_cents": 40000})

    notes = client.get("/notifications", headers=Hs).json()["notifications"]
    assert len(notes) == 2
    r = client.post(f"/notifications/{notes[0]['id']}/read", headers=Hs)
    assert r.status_code == 200
    assert r.json()["read"] is True
    assert r.json()["read_at"] is not None
    assert len(client.get("/notifications", headers=Hs, params={"unread_only": True}).json()["notifications"]) == 1

    assert client.post(f"/notifications/{notes[1]['id']}/read", headers=Hb).status_code == 404

    assert client.post("/notifications/read_all", headers=Hs).json()["unread"] == 0
    assert client.get("/notifications/unread_count", headers=Hs).json()["unread"] == 0


def test_events_are_logged(caplog):
    with caplog.at_level(logging.INFO, logger="watchmarket.utils.notify"):
        Hs, _, _, bid = _setup_bid()
        client.post(f"/bids/{bid['id']}/reject", headers=Hs)
    messages = [r.getMessage() for r in caplog.records if r.name == "watchmarket.utils.notify"]
    assert any("event=bid.created" in m for m in messages)
    assert any("event=bid.status_changed" in m and "'to': 'rejected'" in m for m in messages)


def test_admin_requires_token():
    assert client.get("/admin/bids").status_code == 401
    assert client.get("/admin/bids", headers={"X-Admin-Token": "wrong"}).status_code == 401


def test_admin_bid_views():
    Hs, _, _, bid = _setup_bid()
    client.post(f"/bids/{bid['id']}/reject", headers=Hs)

    r = client.get("/admin/bids", headers=ADMIN, params={"status": "rejected"})
    assert r.status_code == 200
    rows = r.json()["bids"]
    assert bid["id"] in [b["id"] for b in rows]
    assert all(b["status"] == "rejected" for b in rows)

    assert client.get("/admin/bids/count", headers=ADMIN).json()["count"] >= 1

    r = client.get(f"/admin/bids/{bid['id']}", headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["status"] == "rejected"

    assert client.get("/admin/bids", headers=ADMIN, params={"status": "bogus"}).status_code == 422


def test_admin_listing_status_roundtrip():
    _, Hb, listing_id, _ = _setup_bid()
    r = client.post(f"/admin/listings/{listing_id}/status", headers=ADMIN, json={"status": "pending"})
    assert r.json()["status"] == "pending"
    r = client.post("/bids", headers=_auth(), json={"listing_id": listing_id, "amount_cents": 30000})
    assert r.json()["code"] == "ListingNotAvailable"
    r = client.post(f"/admin/listings/{listing_id}/status", headers=ADMIN, json={"status": "archived"})
    assert r.status_code == 422


def test_recent_notifications_with_unread_count():
    Hs, _, listing_id, _ = _setup_bid()
    for amount in (41000, 42000):
        client.post("/bids", headers=_auth(), json={"listing_id": listing_id, "amount_cents": amount})

    r = client.get("/notifications/recent", headers=Hs, params={"limit": 2})
    assert r.status_code == 200
    body = r.json()
    assert len(body["notifications"]) == 2
    assert body["unread_count"] == 3

    client.post("/notifications/read_all", headers=Hs)
    body = client.get("/notifications/recent", headers=Hs).json()
    assert len(body["notifications"]) == 3
    assert body["unread_count"] == 0


def test_delete_notification_scoped_to_owner():
    Hs, Hb, _, _ = _setup_bid()
    note_id = client.get("/notifications", headers=Hs).json()["notifications"][0]["id"]

    r = client.delete(f"/notifications/{note_id}", headers=Hb)
    assert r.status_code == 404
    assert r.json()["code"] == "NotFound"
    assert client.delete("/notifications/not-a-uuid", headers=Hs).status_code == 404

    assert client.delete(f"/notifications/{note_id}", headers=Hs).status_code == 200
    assert client.get("/notifications", headers=Hs).json()["notifications"] == []
    assert client.delete(f"/notifications/{note_id}", headers=Hs).status_code == 404


def test_request_id_is_echoed_and_stamped_on_events(caplog):
    Hs, _, _, bid = _setup_bid()
    with caplog.at_level(logging.INFO):
        r = client.post(f"/bids/{bid['id']}/reject", headers={**Hs, "X-Request-ID": "trace-42"})
    assert r.headers["X-Request-ID"] == "trace-42"
    events = [r.getMessage() for r in caplog.records if r.name == "watchmarket.utils.notify"]
    assert any("event=bid.status_changed request_id=trace-42" in m for m in events)
    access = [r.getMessage() for r in caplog.records if r.name == "watchmarket.request"]
    assert any('"route": "/bids/{bid_id}/reject"' in m for m in access)


def test_malformed_request_id_is_replaced():
    r = client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
    assert r.status_code == 200
    assert r.headers["X-Request-ID"] != "bad id with spaces"
    assert len(r.headers["X-Request-ID"]) == 32
