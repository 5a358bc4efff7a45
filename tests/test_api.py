"""HTTP surface tests — health, authentication, and the leave endpoints end to end."""

from __future__ import annotations

import uuid

from jose import jwt

from leavedesk.config import settings
from tests.conftest import _seed_employee, auth_header, create_access_token


# ═════════════════════════════════════════════════════════════════════
# System / auth
# ═════════════════════════════════════════════════════════════════════


class TestHealth:

    async def test_health_no_auth(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["version"] == "1.0.0"


class TestAuthentication:

    async def test_missing_token(self, client):
        resp = await client.get("/api/v1/leave/balance")
        assert resp.status_code == 401
        body = resp.json()
        assert body["title"] == "Unauthorized"
        assert body["instance"] == "/api/v1/leave/balance"

    async def test_expired_token(self, client, db, test_employee):
        await db.commit()
        token = create_access_token(test_employee.id, expired=True)
        resp = await client.get(
            "/api/v1/leave/balance", headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token has expired."

    async def test_wrong_signature(self, client, db, test_employee):
        await db.commit()
        token = jwt.encode({"sub": str(test_employee.id)}, "another-secret", algorithm="HS256")
        resp = await client.get(
            "/api/v1/leave/balance", headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid token."

    async def test_subject_not_a_uuid(self, client):
        token = jwt.encode(
            {"sub": "tam.employee"}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM,
        )
        resp = await client.get(
            "/api/v1/leave/balance", headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401

    async def test_inactive_employee(self, client, db):
        gone = await _seed_employee(db, is_active=False)
        await db.commit()
        resp = await client.get("/api/v1/leave/balance", headers=auth_header(gone.id))
        assert resp.status_code == 401

    async def test_unknown_employee(self, client):
        resp = await client.get("/api/v1/leave/balance", headers=auth_header(uuid.uuid4()))
        assert resp.status_code == 401


# ═════════════════════════════════════════════════════════════════════
# Leave endpoints
# ═════════════════════════════════════════════════════════════════════

WEEK = {"from_date": "2026-03-02", "to_date": "2026-03-06"}


class TestLeaveAPI:

    async def test_leave_types(self, client, auth_headers):
        resp = await client.get("/api/v1/leave/types", headers=auth_headers)
        assert resp.status_code == 200
        codes = {t["code"]: t for t in resp.json()}
        assert float(codes["wedding_self"]["legal_allowance"]) == 3
        assert codes["unpaid"]["always_unpaid"] is True

    async def test_preview(self, client, auth_headers):
        resp = await client.post(
            "/api/v1/leave/preview",
            json={
                "leave_type": "annual",
                **WEEK,
                "sessions": {"2026-03-06": "morning"},
            },
            headers=auth_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert len(body["days"]) == 5
        assert body["days"][-1]["session"] == "morning"
        assert float(body["breakdown"]["total"]) == 4.5
        assert body["breakdown"]["note"] == "4.5 annual"

    async def test_submit_validation_errors(self, client, auth_headers):
        resp = await client.post(
            "/api/v1/leave/requests",
            json={"leave_type": "annual", "from_date": "2026-03-06", "to_date": "2026-03-02"},
            headers=auth_headers,
        )
        assert resp.status_code == 422
        assert resp.headers["content-type"].startswith("application/problem+json")

        resp = await client.post(
            "/api/v1/leave/requests",
            json={"leave_type": "annual", **WEEK, "sessions": {"2026-03-09": "full"}},
            headers=auth_headers,
        )
        assert resp.status_code == 422

        resp = await client.post(
            "/api/v1/leave/requests",
            json={"leave_type": "annual", "from_date": "2026-03-07", "to_date": "2026-03-08"},
            headers=auth_headers,
        )
        assert resp.status_code == 422
        assert "sessions" in resp.json()["errors"]

    async def test_full_lifecycle(self, client, db, test_employee, test_manager):
        await db.commit()
        employee_headers = auth_header(test_employee.id)
        manager_headers = auth_header(test_manager.id)

        resp = await client.post(
            "/api/v1/leave/requests",
            json={"leave_type": "annual", **WEEK, "reason": "Trip"},
            headers=employee_headers,
        )
        assert resp.status_code == 201
        request_id = resp.json()["id"]
        assert resp.json()["status"] == "pending"

        resp = await client.get("/api/v1/leave/requests/pending", headers=manager_headers)
        assert [r["id"] for r in resp.json()["data"]] == [request_id]

        # The requester cannot approve their own request.
        resp = await client.put(
            f"/api/v1/leave/requests/{request_id}/approve", json={}, headers=employee_headers,
        )
        assert resp.status_code == 403

        resp = await client.put(
            f"/api/v1/leave/requests/{request_id}/approve",
            json={"remarks": "Approved"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "approved"
        assert resp.json()["reviewer_name"] == test_manager.name

        resp = await client.get(
            "/api/v1/leave/balance", params={"as_of": "2026-03-31"}, headers=employee_headers,
        )
        balance = resp.json()
        assert float(balance["annual_used"]) == 5
        assert float(balance["available"]) == 7

        resp = await client.put(
            f"/api/v1/leave/requests/{request_id}/reject", json={}, headers=manager_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["type"].endswith("/invalid-transition")

        resp = await client.put(
            f"/api/v1/leave/requests/{request_id}/cancel",
            json={"reason": "Release moved"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"

        resp = await client.get("/api/v1/leave/requests/mine", headers=employee_headers)
        assert resp.json()["meta"]["total"] == 1

        resp = await client.get("/api/v1/notifications", headers=employee_headers)
        titles = [n["title"] for n in resp.json()["data"]]
        assert "Approved Leave Cancelled" in titles
        assert "Leave Request Approved" in titles

    async def test_balance_of_others(self, client, db, test_employee, test_manager):
        outsider = await _seed_employee(db, name="Outsider")
        await db.commit()

        resp = await client.get(
            "/api/v1/leave/balance",
            params={"employee_id": str(test_employee.id), "as_of": "2026-06-01"},
            headers=auth_header(test_manager.id),
        )
        assert resp.status_code == 200
        assert resp.json()["entitlement"] == 12

        resp = await client.get(
            "/api/v1/leave/balance",
            params={"employee_id": str(test_employee.id)},
            headers=auth_header(outsider.id),
        )
        assert resp.status_code == 403

    async def test_team_listing(self, client, db, test_employee, test_manager):
        await db.commit()
        await client.post(
            "/api/v1/leave/requests",
            json={"leave_type": "sick", **WEEK},
            headers=auth_header(test_employee.id),
        )
        resp = await client.get(
            "/api/v1/leave/requests/team", params={"leave_type": "sick"},
            headers=auth_header(test_manager.id),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["meta"]["total"] == 1
        assert body["data"][0]["employee"]["name"] == test_employee.name

    async def test_unknown_request_404(self, client, auth_headers):
        resp = await client.get(f"/api/v1/leave/requests/{uuid.uuid4()}", headers=auth_headers)
        assert resp.status_code == 404
