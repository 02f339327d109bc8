from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from securein.core.security import create_access_token

pytestmark = pytest.mark.anyio


async def test_issue_pass_returns_record_with_qr(client, staff, issue):
    p = await issue()
    assert len(p["pass_id"]) == 6
    assert p["status"] == "active"
    assert p["entry_status"] is None
    assert p["visitor_name"] == "Asha Rao"
    assert p["relation_to_student"] == "mother"
    assert p["created_by"] == str(staff.id)
    assert p["qr_code"].startswith("data:image/png;base64,")


async def test_issue_pass_accepts_snake_case_body(client, staff_headers):
    now = datetime.now(timezone.utc)
    r = await client.post("/passes", headers=staff_headers, json={
        "visitor_name": "Walk-in",
        "valid_from": now.isoformat(),
        "valid_until": (now + timedelta(hours=2)).isoformat(),
    })
    assert r.status_code == 201
    assert r.json()["message"] == "Entry pass created successfully"


async def test_issue_pass_validation(client, staff_headers):
    now = datetime.now(timezone.utc)
    r = await client.post("/passes", headers=staff_headers, json={
        "visitorName": "Backwards",
        "validFrom": now.isoformat(),
        "validUntil": (now - timedelta(hours=1)).isoformat(),
    })
    assert r.status_code == 422

    r = await client.post("/passes", headers=staff_headers, json={
        "visitorName": "Ghost event",
        "eventId": "7b1e0c4e-8a43-4c52-9d0e-3f1c9a5e2b10",
        "validFrom": now.isoformat(),
        "validUntil": (now + timedelta(hours=1)).isoformat(),
    })
    assert r.status_code == 404
    assert r.json()["detail"] == "Event not found"


async def test_mutating_routes_require_a_valid_bearer(client, issue):
    p = await issue()
    r = await client.post(f"/passes/{p['pass_id']}/verify")
    assert r.status_code == 401
    assert r.json()["detail"] == "Missing token"

    r = await client.get("/passes/active", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid token"


async def test_inactive_user_is_rejected(client, db, staff, staff_headers):
    staff.is_active = False
    await db.commit()
    r = await client.get("/passes/active", headers=staff_headers)
    assert r.status_code == 401
    assert r.json()["detail"] == "User not active"


async def test_scan_scenario_entry_exit_then_fully_used(client, staff_headers, issue):
    p = await issue(start_h=-1, end_h=1)
    url = f"/passes/{p['pass_id']}/verify"

    r1 = await client.post(url, headers=staff_headers)
    assert r1.status_code == 200
    assert r1.json()["action"] == "entry"
    assert r1.json()["pass"]["entry_status"] == "entered"
    assert r1.json()["pass"]["entry_time"] is not None

    r2 = await client.post(url, headers=staff_headers)
    assert r2.status_code == 200
    assert r2.json()["action"] == "exit"
    assert r2.json()["pass"]["entry_status"] == "exited"

    r3 = await client.post(url, headers=staff_headers)
    assert r3.status_code == 400
    assert "already fully used" in r3.json()["detail"]["message"]
    assert r3.json()["detail"]["entry_status"] == "exited"


async def test_scan_unknown_pass_is_404(client, staff_headers):
    r = await client.post("/passes/ZZZZZZ/verify", headers=staff_headers)
    assert r.status_code == 404
    assert r.json()["detail"] == "Pass not found"


async def test_scan_expired_pass_is_400_and_persists_expiry(client, staff_headers, issue):
    p = await issue(start_h=-3, end_h=-1)
    r = await client.post(f"/passes/{p['pass_id']}/verify", headers=staff_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == {"message": "Pass has expired", "status": "expired"}

    r = await client.get("/passes/active", headers=staff_headers)
    assert [x["status"] for x in r.json() if x["pass_id"] == p["pass_id"]] == ["expired"]


async def test_scan_pending_pass_is_400(client, staff_headers, issue):
    p = await issue(start_h=1, end_h=2)
    r = await client.post(f"/passes/{p['pass_id']}/verify", headers=staff_headers)
    assert r.status_code == 400
    assert r.json()["detail"]["status"] == "pending"
    assert r.json()["detail"]["message"] == "Pass is not yet valid"


async def test_verify_read_of_expired_pass(client, issue):
    now = datetime.now(timezone.utc)
    p = await issue(
        validFrom=(now - timedelta(hours=2)).isoformat(),
        validUntil=(now - timedelta(minutes=1)).isoformat(),
    )
    r = await client.get(f"/passes/verify/{p['pass_id']}")
    assert r.status_code == 200
    body = r.json()["pass"]
    assert body["status"] == "expired"
    assert body["validation_message"] == "Pass has expired"


async def test_verify_read_is_public_and_idempotent(client, issue):
    p = await issue()
    first = (await client.get(f"/passes/verify/{p['pass_id']}")).json()["pass"]
    second = (await client.get(f"/passes/verify/{p['pass_id']}")).json()["pass"]
    assert first["status"] == second["status"] == "active"
    assert first["validation_message"] == second["validation_message"] == "Pass is valid - awaiting entry"
    # display-only local rendering (Asia/Kolkata)
    assert first["valid_until_local"].endswith("+05:30")


async def test_verify_read_of_future_pass_is_pending(client, staff_headers, issue):
    p = await issue(start_h=2, end_h=4)
    body = (await client.get(f"/passes/verify/{p['pass_id'].lower()}")).json()["pass"]
    assert body["status"] == "pending"
    assert body["validation_message"] == "Pass is not yet valid"

    listed = (await client.get("/passes/active", headers=staff_headers)).json()
    assert [x["status"] for x in listed if x["pass_id"] == p["pass_id"]] == ["active"]


async def test_soft_delete_makes_pass_invisible(client, staff_headers, issue):
    p = await issue()
    r = await client.patch(f"/passes/{p['pass_id']}/soft-delete", headers=staff_headers)
    assert r.status_code == 200
    assert r.json()["message"] == "Pass deleted successfully"

    assert (await client.get(f"/passes/verify/{p['pass_id']}")).status_code == 404
    assert (await client.post(f"/passes/{p['pass_id']}/verify", headers=staff_headers)).status_code == 404
    assert (await client.patch(f"/passes/{p['pass_id']}/soft-delete", headers=staff_headers)).status_code == 404
    listed = (await client.get("/passes/active", headers=staff_headers)).json()
    assert p["pass_id"] not in [x["pass_id"] for x in listed]


async def test_hard_delete_is_admin_only(client, staff_headers, admin_headers, issue):
    p = await issue()
    r = await client.delete(f"/passes/{p['pass_id']}", headers=staff_headers)
    assert r.status_code == 403

    r = await client.delete(f"/passes/{p['pass_id']}", headers=admin_headers)
    assert r.status_code == 200
    r = await client.delete(f"/passes/{p['pass_id']}", headers=admin_headers)
    assert r.status_code == 404


async def test_active_list_orders_active_before_expired(client, staff_headers, issue):
    expired = await issue(start_h=-5, end_h=-2)
    soon = await issue(start_h=-1, end_h=1)
    later = await issue(start_h=-1, end_h=6)

    r = await client.get("/passes/active", headers=staff_headers)
    assert r.status_code == 200
    assert [x["pass_id"] for x in r.json()] == [later["pass_id"], soon["pass_id"], expired["pass_id"]]
    assert [x["status"] for x in r.json()] == ["active", "active", "expired"]


async def test_qr_png_renders_verification_link(client, staff_headers, issue):
    p = await issue()
    r = await client.get(f"/passes/{p['pass_id']}/qr.png", headers=staff_headers)
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"
    assert r.content.startswith(b"\x89PNG")


async def test_token_for_unknown_user_is_rejected(client):
    token = create_access_token(user_id=uuid.uuid4(), role="staff")
    r = await client.get("/passes/active", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


async def test_issue_pass_with_mixed_naive_and_utc_window(client, staff_headers):
    # naive validFrom is institution local time, validUntil carries its own offset
    local_now = datetime.now(timezone(timedelta(hours=5, minutes=30))).replace(tzinfo=None)
    utc_now = datetime.now(timezone.utc)
    r = await client.post("/passes", headers=staff_headers, json={
        "visitorName": "Mixed clocks",
        "validFrom": (local_now - timedelta(hours=1)).isoformat(),
        "validUntil": (utc_now + timedelta(hours=1)).strftime("%Y-%m-%dT%H:%M:%SZ"),
    })
    assert r.status_code == 201, r.text

    r = await client.post("/passes", headers=staff_headers, json={
        "visitorName": "Mixed clocks, backwards",
        "validFrom": (local_now + timedelta(hours=2)).isoformat(),
        "validUntil": (utc_now + timedelta(hours=1)).strftime("%Y-%m-%dT%H:%M:%SZ"),
    })
    assert r.status_code == 422
